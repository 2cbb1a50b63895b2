import sys
from pathlib import Path

from PySide6.QtCore import QSettings
import pytest

# Ensure repository root is on sys.path so tests can import the package
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from framecodec.model.protocol import Protocol, ProtocolField  # noqa: E402


@pytest.fixture(autouse=True)
def qsettings_tmpdir(tmp_path, monkeypatch):
    """Force QSettings to use an INI file in a temporary directory for isolation."""
    QSettings.setDefaultFormat(QSettings.IniFormat)
    QSettings.setPath(QSettings.IniFormat, QSettings.UserScope, str(tmp_path))
    yield


@pytest.fixture
def sensor_protocol():
    """AA 55 header, three fixed fields, CRC-16 and a 0D 0A footer."""
    return Protocol(
        name="sensor",
        header=b"\xAA\x55",
        footer=b"\x0D\x0A",
        checksum="crc16",
        fields=(
            ProtocolField("id", "uint8", 0),
            ProtocolField("temperature", "int16", 1),
            ProtocolField("humidity", "uint16", 3, byte_order="littleEndian"),
        ),
    )
