"""
Tests for Serial Port Utilities
===============================

No hardware is touched: listings are patched and ports are mocks, except
for create_serial_port(), which builds a real but unopened serial.Serial.
"""

from unittest.mock import Mock, patch

import pytest
import serial

from spcduino.comms.serial import (
    DEFAULT_BAUD_RATE,
    VALID_BAUD_RATES,
    PortInfo,
    close_serial_port,
    create_serial_port,
    find_spcduino_port,
    format_port_list,
    open_port,
)
from spcduino.errors import TransportError


UNO = PortInfo("/dev/ttyACM0", "Arduino Uno", "Arduino (www.arduino.cc)", "7563", 0x2341, 0x0043)
CH340 = PortInfo("/dev/ttyUSB0", "USB2.0-Serial", None, None, 0x1A86, 0x7523)
ONBOARD = PortInfo("/dev/ttyS0", "ttyS0", None, None, None, None)
UNKNOWN_USB = PortInfo("/dev/ttyUSB1", "Gadget", None, None, 0x1234, 0x0001)


class TestPortInfo:
    """Tests for PortInfo."""

    def test_usb(self):
        assert UNO.is_usb
        assert UNO.vendor_name == "Arduino"
        assert UNO.usb_id == "2341:0043"

    def test_not_usb(self):
        assert not ONBOARD.is_usb
        assert ONBOARD.vendor_name is None
        assert ONBOARD.usb_id == ""

    def test_str(self):
        assert str(UNO) == "/dev/ttyACM0 - Arduino Uno (Arduino)"
        assert str(UNKNOWN_USB) == "/dev/ttyUSB1 - Gadget"

    def test_from_listing(self):
        entry = Mock(device="COM4", description=None, manufacturer="FTDI",
                     serial_number="A1", vid=0x0403, pid=0x6001)
        info = PortInfo.from_listing(entry)
        assert info.device == "COM4"
        assert info.description == ""
        assert info.vendor_name == "FTDI"


class TestFindPort:
    """Tests for find_spcduino_port()."""

    def _find(self, ports):
        with patch("spcduino.comms.serial.list_serial_ports", return_value=ports):
            return find_spcduino_port()

    def test_prefers_arduino(self):
        assert self._find([ONBOARD, CH340, UNO]) == "/dev/ttyACM0"

    def test_clone_over_unknown(self):
        assert self._find([UNKNOWN_USB, CH340]) == "/dev/ttyUSB0"

    def test_any_usb(self):
        assert self._find([ONBOARD, UNKNOWN_USB]) == "/dev/ttyUSB1"

    def test_none(self):
        assert self._find([ONBOARD]) is None
        assert self._find([]) is None


class TestFormatPortList:
    """Tests for format_port_list()."""

    def test_empty(self):
        assert format_port_list([]) == "No serial ports found."

    def test_brief(self):
        text = format_port_list([UNO, ONBOARD])
        assert text.splitlines() == [f"  {UNO}", f"  {ONBOARD}"]

    def test_verbose(self):
        text = format_port_list([UNO], verbose=True)
        assert "Manufacturer: Arduino (www.arduino.cc)" in text
        assert "USB ID: 2341:0043 (Arduino)" in text
        assert "Serial: 7563" in text


class TestCreateAndOpen:
    """Tests for create_serial_port(), open_port() and close_serial_port()."""

    def test_created_closed(self):
        port = create_serial_port("/dev/ttyACM0")
        assert not port.is_open
        assert port.port == "/dev/ttyACM0"
        assert port.baudrate == DEFAULT_BAUD_RATE

    def test_invalid_baud(self):
        with pytest.raises(ValueError, match="Unsupported baud rate"):
            create_serial_port("/dev/ttyACM0", baud_rate=12345)

    def test_all_valid_baud_rates(self):
        for rate in VALID_BAUD_RATES:
            assert create_serial_port("COM3", baud_rate=rate).baudrate == rate

    @pytest.mark.parametrize("message,hint", [
        ("[Errno 13] Permission denied: '/dev/ttyACM0'", "dialout"),
        ("[Errno 2] No such file or directory: '/dev/ttyACM0'", "spcplay ports"),
        ("[Errno 16] Device or resource busy", "another program"),
        ("something odd", "Cannot open"),
    ])
    def test_open_errors(self, message, hint):
        port = Mock(port="/dev/ttyACM0", baudrate=115200)
        port.open.side_effect = serial.SerialException(message)
        with pytest.raises(TransportError, match=hint):
            open_port(port)

    def test_open_clears_buffers(self):
        port = Mock(port="/dev/ttyACM0", baudrate=115200)
        open_port(port)
        port.open.assert_called_once()
        port.reset_input_buffer.assert_called_once()

    def test_close(self):
        port = Mock(is_open=True, port="/dev/ttyACM0")
        close_serial_port(port)
        port.close.assert_called_once()

    def test_close_errors_swallowed(self):
        port = Mock(is_open=True, port="/dev/ttyACM0")
        port.close.side_effect = serial.SerialException("gone")
        close_serial_port(port)  # Should not raise

    def test_close_none(self):
        close_serial_port(None)
