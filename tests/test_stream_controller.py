import threading

import pytest

from framecodec.controllers.frame_builder import encode_frame
from framecodec.controllers.frame_parser import FrameParser
from framecodec.controllers.stream_controller import DEFAULT_QUEUE_SIZE, StreamController
from framecodec.infra.settings_store import CodecSettings
from framecodec.model.protocol import Protocol, ProtocolField


def test_submit_and_process_pending(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol))
    received = []
    ctrl.on_frame = received.append

    raw = encode_frame(sensor_protocol, {"id": 1}) + encode_frame(sensor_protocol, {"id": 2})
    assert ctrl.submit(raw[:4])
    assert ctrl.submit(raw[4:])
    assert ctrl.pending_chunks == 2

    frames = ctrl.process_pending()
    assert [f.values()["id"] for f in frames] == [1, 2]
    assert received == frames
    assert ctrl.pending_chunks == 0


def test_full_queue_drops_chunk_and_reports(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol), maxsize=1)
    errors = []
    ctrl.on_error = errors.append

    assert ctrl.submit(b"\xAA")
    assert not ctrl.submit(b"\x55\x01")
    assert ctrl.dropped_chunks == 1
    assert len(errors) == 1
    assert "dropped 2 bytes" in errors[0]


def test_worker_thread_delivers_frames(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol))
    got = []
    done = threading.Event()
    statuses = []

    def _on_frame(frame):
        got.append(frame)
        if len(got) == 2:
            done.set()

    ctrl.on_frame = _on_frame
    ctrl.on_status = statuses.append
    ctrl.start()
    ctrl.start()  # second start is a no-op
    try:
        assert ctrl.running
        raw = encode_frame(sensor_protocol, {"id": 7}) * 2
        for byte in raw:
            ctrl.submit(bytes([byte]))
        assert done.wait(timeout=2.0)
        with pytest.raises(RuntimeError):
            ctrl.process_pending()
    finally:
        ctrl.stop()

    assert [f.values()["id"] for f in got] == [7, 7]
    assert not ctrl.running
    assert statuses[0] == "stream worker started"
    assert statuses[-1] == "stream worker stopped"


def test_stop_drains_queued_chunks(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol))
    got = []
    ctrl.on_frame = got.append
    ctrl.submit(encode_frame(sensor_protocol, {"id": 4}))
    ctrl.stop(drain=True)
    assert [f.values()["id"] for f in got] == [4]


def test_stop_without_drain_leaves_queue(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol))
    ctrl.submit(encode_frame(sensor_protocol, {"id": 4}))
    ctrl.stop(drain=False)
    assert ctrl.pending_chunks == 1


def test_flush_emits_open_frame():
    protocol = Protocol(name="log", header=b"\x02", fields=(ProtocolField("text", "string", 0),))
    ctrl = StreamController(FrameParser(protocol))
    got = []
    ctrl.on_frame = got.append
    ctrl.submit(b"\x02done")
    assert ctrl.process_pending() == []
    assert [f.values() for f in ctrl.flush()] == [{"text": "done"}]
    assert len(got) == 1


def test_submit_rejects_text(sensor_protocol):
    ctrl = StreamController(FrameParser(sensor_protocol))
    with pytest.raises(TypeError):
        ctrl.submit("AA55")


def test_maxsize_must_be_positive(sensor_protocol):
    with pytest.raises(ValueError):
        StreamController(FrameParser(sensor_protocol), maxsize=0)


def test_queue_size_taken_from_settings(sensor_protocol):
    errors = []
    ctrl = StreamController(
        FrameParser(sensor_protocol), settings=CodecSettings(stream_queue_size=2)
    )
    ctrl.on_error = errors.append
    assert ctrl.maxsize == 2
    results = [ctrl.submit(b"\x00") for _ in range(3)]
    assert results == [True, True, False]
    assert ctrl.dropped_chunks == 1
    assert len(errors) == 1


def test_explicit_maxsize_overrides_settings(sensor_protocol):
    ctrl = StreamController(
        FrameParser(sensor_protocol), settings=CodecSettings(stream_queue_size=2), maxsize=5
    )
    assert ctrl.maxsize == 5
    assert StreamController(FrameParser(sensor_protocol)).maxsize == DEFAULT_QUEUE_SIZE


class BlockingParser:
    """Parser stand-in whose feed blocks until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = []

    def feed(self, data):
        self.calls.append("feed")
        self.entered.set()
        self.release.wait(timeout=5.0)
        return []

    def flush(self):
        self.calls.append("flush")
        return []


def test_flush_refused_while_worker_is_parsing():
    parser = BlockingParser()
    ctrl = StreamController(parser)
    ctrl.start()
    try:
        ctrl.submit(b"\x01")
        assert parser.entered.wait(timeout=2.0)
        with pytest.raises(RuntimeError):
            ctrl.flush()
        assert parser.calls == ["feed"]
    finally:
        parser.release.set()
        ctrl.stop()


def test_stop_does_not_drain_while_worker_is_busy():
    parser = BlockingParser()
    ctrl = StreamController(parser)
    errors = []
    ctrl.on_error = errors.append
    ctrl.start()
    ctrl.submit(b"\x01")
    assert parser.entered.wait(timeout=2.0)
    ctrl.submit(b"\x02")

    ctrl.stop(drain=True, timeout=0.05)
    # the worker still owns the parser, so the second chunk stays queued
    assert parser.calls == ["feed"]
    assert ctrl.pending_chunks == 1
    assert errors == ["stream worker still busy, queue not drained"]

    parser.release.set()
    ctrl.stop(drain=True)
    assert parser.calls == ["feed", "feed"]
    assert ctrl.pending_chunks == 0
