import pytest

from framecodec.controllers.frame_builder import encode_frame
from framecodec.controllers.parse_controller import ParseController
from framecodec.infra.settings_store import CodecSettings, save_codec_settings
from framecodec.model.errors import ProtocolValidationError
from framecodec.model.protocol import Protocol, ProtocolField


@pytest.fixture
def controller(sensor_protocol):
    pc = ParseController()
    pc.register_protocol(sensor_protocol)
    pc.set_active_protocol(sensor_protocol.id)
    return pc


def test_parse_without_active_protocol_returns_none(sensor_protocol):
    pc = ParseController()
    pc.register_protocol(sensor_protocol)
    assert pc.parse(b"\xAA\x55") is None
    assert pc.feed("port", b"\xAA\x55") == []


def test_parse_with_active_protocol(controller, sensor_protocol):
    raw = encode_frame(sensor_protocol, {"id": 3})
    frame = controller.parse(raw)
    assert frame.valid
    assert frame.values()["id"] == 3


def test_registry_operations(controller, sensor_protocol):
    other = Protocol(name="other", fields=(ProtocolField("x", "uint8", 0),))
    controller.register_protocol(other)
    assert {p.name for p in controller.get_protocols()} == {"sensor", "other"}
    assert controller.get_protocol(other.id) is other
    assert controller.active_protocol() is sensor_protocol

    assert controller.remove_protocol(sensor_protocol.id)
    assert controller.active_protocol() is None
    assert not controller.remove_protocol(sensor_protocol.id)


def test_set_active_unknown_protocol(controller):
    with pytest.raises(KeyError):
        controller.set_active_protocol("missing")


def test_register_rejects_invalid_protocol():
    pc = ParseController()
    with pytest.raises(ProtocolValidationError):
        pc.register_protocol(Protocol(name=""))
    assert pc.get_protocols() == []
    # skipping validation stores the snapshot as-is
    pc.register_protocol(Protocol(name=""), validate=False)
    assert len(pc.get_protocols()) == 1


def test_streams_are_independent(controller, sensor_protocol):
    frame_a = encode_frame(sensor_protocol, {"id": 1})
    frame_b = encode_frame(sensor_protocol, {"id": 2})

    assert controller.feed("COM1", frame_a[:6]) == []
    assert [f.values()["id"] for f in controller.feed("COM2", frame_b)] == [2]
    assert [f.values()["id"] for f in controller.feed("COM1", frame_a[6:])] == [1]
    assert set(controller.stream_ids()) == {"COM1", "COM2"}

    controller.close_stream("COM1")
    assert controller.stream_ids() == ["COM2"]


def test_reregistered_snapshot_replaces_stream_parser(controller, sensor_protocol):
    controller.feed("COM1", encode_frame(sensor_protocol, {"id": 1}))
    renamed = sensor_protocol.updated(name="sensor-v2")
    assert renamed.id == sensor_protocol.id
    controller.register_protocol(renamed)

    frames = controller.feed("COM1", encode_frame(renamed, {"id": 2}))
    assert [f.protocol_name for f in frames] == ["sensor-v2"]


def test_framing_errors_carry_stream_id(controller, sensor_protocol):
    seen = []
    controller.on_framing_error = lambda stream, err: seen.append((stream, err.dropped))
    controller.feed("COM3", b"\x01\x02" + encode_frame(sensor_protocol, {"id": 1}))
    assert seen == [("COM3", 2)]


def test_encode_and_parse_with_protocol(controller, sensor_protocol):
    other = Protocol(name="other", header=b"\x7E", fields=(ProtocolField("x", "uint8", 0),))
    controller.register_protocol(other)

    raw = controller.encode({"x": 42}, protocol_id=other.id)
    assert raw == b"\x7E\x2A"
    assert controller.parse_with_protocol(raw, other.id).values() == {"x": 42}
    assert controller.encode({"id": 5}) == encode_frame(sensor_protocol, {"id": 5})

    with pytest.raises(KeyError):
        controller.parse_with_protocol(raw, "missing")
    with pytest.raises(KeyError):
        controller.encode({}, protocol_id="missing")


def test_flush_stream_releases_open_frame():
    protocol = Protocol(name="log", header=b"\x02", fields=(ProtocolField("text", "string", 0),))
    pc = ParseController(settings=CodecSettings())
    # open-ended text is rejected by validation; the stream rules still handle it
    pc.register_protocol(protocol, validate=False)
    pc.set_active_protocol(protocol.id)
    assert pc.feed("s", b"\x02tail") == []
    assert [f.values() for f in pc.flush_stream("s")] == [{"text": "tail"}]
    assert pc.flush_stream("unknown") == []


def test_settings_loaded_from_store_by_default():
    save_codec_settings(CodecSettings(max_scan_window=16, max_frame_length=64))
    pc = ParseController()
    assert pc.settings.max_scan_window == 16
    assert pc.settings.max_frame_length == 64
