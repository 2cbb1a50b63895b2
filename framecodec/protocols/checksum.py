"""Checksum and CRC algorithms selectable per protocol.

+--------+-------+--------------------------------------------------+--------+
| name   | width | definition                                       | output |
+========+=======+==================================================+========+
| sum8   | 1     | byte sum mod 256                                 |        |
| sum16  | 2     | byte sum mod 65536                               | big    |
| xor8   | 1     | XOR of all bytes                                 |        |
| crc8   | 1     | poly 0x07, init 0x00 (SMBUS)                     |        |
| crc16  | 2     | MODBUS: poly 0xA001 reflected, init 0xFFFF       | little |
| crc32  | 4     | IEEE 802.3: poly 0xEDB88320 reflected,           | little |
|        |       | init/xorout 0xFFFFFFFF                           |        |
+--------+-------+--------------------------------------------------+--------+

The polynomials are the common instantiations of each algorithm name.  A
device using a different CRC convention needs its own entry here.
"""

from __future__ import annotations

import zlib
from functools import lru_cache
from typing import Any, Callable, Dict, Tuple, Union

from framecodec.model.protocol import ChecksumType

BytesLike = Union[bytes, bytearray, memoryview]


def sum8(data: BytesLike) -> int:
    return sum(data) & 0xFF


def sum16(data: BytesLike) -> int:
    return sum(data) & 0xFFFF


def xor8(data: BytesLike) -> int:
    value = 0
    for byte in data:
        value ^= byte
    return value


@lru_cache(maxsize=1)
def _crc8_table() -> Tuple[int, ...]:
    table = []
    for index in range(256):
        crc = index
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ 0x07) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
        table.append(crc)
    return tuple(table)


@lru_cache(maxsize=1)
def _crc16_table() -> Tuple[int, ...]:
    table = []
    for index in range(256):
        crc = index
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
        table.append(crc)
    return tuple(table)


def crc8(data: BytesLike) -> int:
    table = _crc8_table()
    crc = 0x00
    for byte in data:
        crc = table[crc ^ byte]
    return crc


def crc16_modbus(data: BytesLike) -> int:
    table = _crc16_table()
    crc = 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ table[(crc ^ byte) & 0xFF]
    return crc


def crc32(data: BytesLike) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


# algorithm -> (function, output byte order)
_ALGORITHMS: Dict[ChecksumType, Tuple[Callable[[BytesLike], int], str]] = {
    ChecksumType.SUM8: (sum8, "big"),
    ChecksumType.SUM16: (sum16, "big"),
    ChecksumType.XOR8: (xor8, "big"),
    ChecksumType.CRC8: (crc8, "big"),
    ChecksumType.CRC16: (crc16_modbus, "little"),
    ChecksumType.CRC32: (crc32, "little"),
}


def checksum_width(algorithm: Any) -> int:
    return ChecksumType.parse(algorithm).width


def compute(algorithm: Any, data: BytesLike) -> bytes:
    """Compute the checksum bytes of ``data`` in the algorithm's wire order.

    ``algorithm`` may be a :class:`ChecksumType`, its name, or ``None``.
    ``none`` yields an empty byte string.
    """
    algo = ChecksumType.parse(algorithm)
    if algo is ChecksumType.NONE:
        return b""
    func, order = _ALGORITHMS[algo]
    return func(data).to_bytes(algo.width, order)


def validate(algorithm: Any, data: BytesLike, expected: BytesLike) -> bool:
    return compute(algorithm, data) == bytes(expected)
