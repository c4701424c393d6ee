"""
Tests for spcplay - SPC Player CLI
==================================

Device traffic goes through a scripted FakePort patched in place of
create_serial_port().
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from spcduino.cli.errors import ExitCode
from spcduino.cli.spcplay import main
from spcduino.comms.link import Response
from spcduino.comms.serial import PortInfo
from spcduino.spc.parser import Id666Tag, build_spc

from helpers import FakePort, make_snapshot

OK = Response.OKAY
FULL_SESSION = [Response.READY] + [OK] * (1 + 2 + 1 + 1020 + 1)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SPCDUINO_PORT", "SPCDUINO_BAUD", "SPCDUINO_MUTE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def spc_file(tmp_path):
    path = tmp_path / "song.spc"
    tag = Id666Tag(song_title="Overworld", game_title="Test Game")
    path.write_bytes(build_spc(make_snapshot(tag=tag)))
    return path


@pytest.fixture
def full_spc_file(tmp_path):
    """A snapshot with no room for the boot stub."""
    path = tmp_path / "full.spc"
    memory = bytes(i & 0xFF for i in range(0x10000))
    path.write_bytes(build_spc(make_snapshot(memory=memory)))
    return path


class TestInfo:
    """Tests for 'spcplay info'."""

    def test_shows_tag_and_site(self, spc_file):
        result = CliRunner().invoke(main, ["info", str(spc_file)])
        assert result.exit_code == 0
        assert "Overworld" in result.output
        assert "PC=1234" in result.output
        assert "Echo buffer: 0x8000" in result.output
        assert "Boot stub: 0xFF90" in result.output

    def test_no_space(self, full_spc_file):
        result = CliRunner().invoke(main, ["info", str(full_spc_file)])
        assert result.exit_code == 0
        assert "no free space" in result.output

    def test_not_an_spc(self, tmp_path):
        path = tmp_path / "bad.spc"
        path.write_bytes(b"not an spc file")
        result = CliRunner().invoke(main, ["info", str(path)])
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "signature" in result.output

    def test_missing_file(self, tmp_path):
        result = CliRunner().invoke(main, ["info", str(tmp_path / "nope.spc")])
        assert result.exit_code == 2


class TestCompose:
    """Tests for 'spcplay compose'."""

    def test_writes_image(self, spc_file, tmp_path):
        output = tmp_path / "song.bin"
        result = CliRunner().invoke(main, ["compose", str(spc_file), "-o", str(output)])
        assert result.exit_code == 0, result.output
        image = output.read_bytes()
        assert len(image) == 0x10000
        assert image[0xFF] == 0xE9
        assert "0xFF90" in result.output

    def test_no_space(self, full_spc_file, tmp_path):
        output = tmp_path / "full.bin"
        result = CliRunner().invoke(main, ["compose", str(full_spc_file), "-o", str(output)])
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "free space" in result.output
        assert not output.exists()


class TestPlay:
    """Tests for 'spcplay play'."""

    def test_plays(self, spc_file):
        port = FakePort(FULL_SESSION)
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port) as create:
            result = CliRunner().invoke(main, ["-p", "/dev/ttyACM0", "play", str(spc_file)])

        assert result.exit_code == 0, result.output
        create.assert_called_once_with("/dev/ttyACM0", baud_rate=115200)
        assert "Playing: Overworld" in result.output
        assert "Started at 0xFF90" in result.output
        assert port.frames[-1][0] == 0x05
        assert not port.is_open

    def test_no_mute(self, spc_file):
        port = FakePort(FULL_SESSION)
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port):
            result = CliRunner().invoke(
                main, ["-p", "/dev/ttyACM0", "play", str(spc_file), "--no-mute"]
            )
        assert result.exit_code == 0, result.output
        assert port.frames[2][:-1] == make_snapshot().dsp_registers

    def test_baud_option(self, spc_file):
        port = FakePort(FULL_SESSION)
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port) as create:
            CliRunner().invoke(main, ["-p", "COM3", "-b", "57600", "play", str(spc_file)])
        create.assert_called_once_with("COM3", baud_rate=57600)

    def test_port_from_env(self, spc_file, monkeypatch):
        monkeypatch.setenv("SPCDUINO_PORT", "/dev/ttyUSB9")
        port = FakePort(FULL_SESSION)
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port) as create:
            result = CliRunner().invoke(main, ["play", str(spc_file)])
        assert result.exit_code == 0, result.output
        assert create.call_args[0][0] == "/dev/ttyUSB9"

    def test_no_port(self, spc_file):
        with patch("spcduino.cli.spcplay.find_spcduino_port", return_value=None):
            result = CliRunner().invoke(main, ["play", str(spc_file)])
        assert result.exit_code == ExitCode.INVALID_ARGS
        assert "auto-detect failed" in result.output

    def test_device_rejects(self, spc_file):
        port = FakePort([Response.READY, Response.FAIL])
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port):
            result = CliRunner().invoke(main, ["-p", "/dev/ttyACM0", "play", str(spc_file)])
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "Playback error" in result.output
        assert not port.is_open

    def test_not_ready(self, spc_file):
        port = FakePort([])
        with patch("spcduino.cli.spcplay.create_serial_port", return_value=port):
            result = CliRunner().invoke(
                main, ["-p", "/dev/ttyACM0", "--timeout", "0.1", "play", str(spc_file)]
            )
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "READY" in result.output


class TestPorts:
    """Tests for 'spcplay ports'."""

    def test_lists_ports(self):
        ports = [PortInfo("/dev/ttyACM0", "Arduino Uno", "Arduino", "123", 0x2341, 0x0043)]
        with patch("spcduino.cli.spcplay.list_serial_ports", return_value=ports), \
             patch("spcduino.cli.spcplay.find_spcduino_port", return_value="/dev/ttyACM0"):
            result = CliRunner().invoke(main, ["ports"])
        assert result.exit_code == 0
        assert "/dev/ttyACM0" in result.output
        assert "Suggested port for spcduino: /dev/ttyACM0" in result.output

    def test_no_ports(self):
        with patch("spcduino.cli.spcplay.list_serial_ports", return_value=[]):
            result = CliRunner().invoke(main, ["ports"])
        assert result.exit_code == 0
        assert "No serial ports found" in result.output


class TestVersion:
    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output
