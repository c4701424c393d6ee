"""
spcduino Serial Port Handling
=============================

Finding, configuring and opening the USB-serial port of the spcduino.

Opening Is Deferred
-------------------
create_serial_port() returns a configured but closed port. Opening the
port pulses DTR, which reboots the Arduino; the board then prints a READY
byte once its sketch is running. SpcduinoLink.open() opens the port and
waits for that byte, so the two always happen together.

Line Settings
-------------
8 data bits, no parity, 1 stop bit, no hardware or software flow control.
Every frame is acknowledged by the firmware, which is all the pacing the
link needs. The baud rate must match the firmware build (115200 stock).
"""

import logging
from dataclasses import dataclass
from typing import Final, Optional

import serial
import serial.tools.list_ports

from spcduino.errors import TransportError

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Rates the spcduino sketch can be compiled for
VALID_BAUD_RATES: Final[tuple[int, ...]] = (9600, 19200, 38400, 57600, 115200, 250000)
DEFAULT_BAUD_RATE: Final[int] = 115200

# Read timeout configured on new ports (the link polls with its own)
DEFAULT_TIMEOUT: Final[float] = 1.0

# Known USB vendors, in auto-detect preference order
USB_VENDOR_IDS: Final[dict[int, str]] = {
    0x2341: "Arduino",
    0x2A03: "Arduino",        # arduino.org
    0x1A86: "QinHeng",        # CH340 on clone boards
    0x0403: "FTDI",
    0x10C4: "Silicon Labs",   # CP210x
}
PREFERRED_VENDOR_IDS: Final[tuple[int, ...]] = tuple(USB_VENDOR_IDS)

# Substrings of driver errors and the hint shown for each
_OPEN_ERROR_HINTS: Final[tuple[tuple[str, str], ...]] = (
    ("permission denied",
     "Permission denied on {device}. Add yourself to the 'dialout' group "
     "(sudo usermod -a -G dialout $USER) and log in again."),
    ("no such file",
     "{device} does not exist. Run 'spcplay ports' to see what is attached."),
    ("could not find",
     "{device} does not exist. Run 'spcplay ports' to see what is attached."),
    ("busy",
     "{device} is held by another program (serial monitor, IDE?)."),
    ("in use",
     "{device} is held by another program (serial monitor, IDE?)."),
)


# =============================================================================
# Port Listing
# =============================================================================

@dataclass(frozen=True)
class PortInfo:
    """
    One entry from the operating system's serial port listing.

    ``vid``/``pid`` are None for ports that are not USB devices.
    """

    device: str
    description: str
    manufacturer: Optional[str]
    serial_number: Optional[str]
    vid: Optional[int]
    pid: Optional[int]

    @classmethod
    def from_listing(cls, entry) -> "PortInfo":
        """Build from a pyserial ListPortInfo."""
        return cls(
            device=entry.device,
            description=entry.description or "",
            manufacturer=entry.manufacturer,
            serial_number=entry.serial_number,
            vid=entry.vid,
            pid=entry.pid,
        )

    @property
    def is_usb(self) -> bool:
        return self.vid is not None

    @property
    def vendor_name(self) -> Optional[str]:
        """Friendly vendor for known adapters, else None."""
        return USB_VENDOR_IDS.get(self.vid) if self.is_usb else None

    @property
    def usb_id(self) -> str:
        """``VVVV:PPPP`` or an empty string."""
        if not self.is_usb:
            return ""
        return f"{self.vid:04X}:{self.pid or 0:04X}"

    def __str__(self) -> str:
        text = self.device
        if self.description:
            text += f" - {self.description}"
        if self.vendor_name:
            text += f" ({self.vendor_name})"
        return text


def list_serial_ports() -> list[PortInfo]:
    """Return every serial port the system reports."""
    ports = [PortInfo.from_listing(entry) for entry in serial.tools.list_ports.comports()]
    for info in ports:
        logger.debug("Port %s usb=%s", info.device, info.usb_id or "no")
    return ports


def _detection_rank(info: PortInfo) -> int:
    if info.vid in PREFERRED_VENDOR_IDS:
        return PREFERRED_VENDOR_IDS.index(info.vid)
    return len(PREFERRED_VENDOR_IDS)


def find_spcduino_port() -> Optional[str]:
    """
    Guess which port the spcduino is on.

    Only USB ports are considered. Arduino boards win over USB-serial
    chips, which win over unknown USB devices; ties keep listing order.

    Returns:
        Device path, or None when no USB serial port is attached.
    """
    candidates = [info for info in list_serial_ports() if info.is_usb]
    if not candidates:
        logger.debug("Auto-detect: no USB serial ports")
        return None

    best = min(candidates, key=_detection_rank)
    logger.info("Auto-detected spcduino port: %s", best)
    return best.device


def format_port_list(ports: list[PortInfo], verbose: bool = False) -> str:
    """
    Render ports for the terminal, one per line (or block when verbose).
    """
    if not ports:
        return "No serial ports found."

    if not verbose:
        return "\n".join(f"  {info}" for info in ports)

    blocks = []
    for info in ports:
        rows = [f"  {info.device}"]
        for label, value in (
            ("Description", info.description),
            ("Manufacturer", info.manufacturer),
            ("USB ID", info.usb_id + (f" ({info.vendor_name})" if info.vendor_name else "")),
            ("Serial", info.serial_number),
        ):
            if value:
                rows.append(f"    {label}: {value}")
        blocks.append("\n".join(rows))
    return "\n".join(blocks)


# =============================================================================
# Opening and Closing
# =============================================================================

def create_serial_port(
    device: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    timeout: float = DEFAULT_TIMEOUT,
) -> serial.Serial:
    """
    Create a closed serial.Serial set up for the spcduino.

    Args:
        device: Port path, e.g. '/dev/ttyACM0' or 'COM3'.
        baud_rate: One of VALID_BAUD_RATES.
        timeout: Read timeout in seconds.

    Raises:
        ValueError: For a baud rate the firmware does not support.
    """
    if baud_rate not in VALID_BAUD_RATES:
        raise ValueError(
            f"Unsupported baud rate {baud_rate}; choose one of "
            + ", ".join(map(str, VALID_BAUD_RATES))
        )

    # No port argument: pyserial would open immediately
    port = serial.Serial(
        baudrate=baud_rate,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=timeout,
        xonxoff=False,
        rtscts=False,
        dsrdtr=False,
    )
    port.port = device
    logger.debug("Prepared %s at %d baud", device, baud_rate)
    return port


def open_port(port: serial.Serial) -> None:
    """
    Open a port from create_serial_port() and clear stale buffered bytes.

    Raises:
        TransportError: With a hint for the common failure causes.
    """
    logger.info("Opening %s at %d baud", port.port, port.baudrate)
    try:
        port.open()
        port.reset_input_buffer()
        port.reset_output_buffer()
    except serial.SerialException as e:
        raise TransportError(_describe_open_error(port.port, e)) from e


def _describe_open_error(device: str, error: Exception) -> str:
    text = str(error).lower()
    for needle, hint in _OPEN_ERROR_HINTS:
        if needle in text:
            return hint.format(device=device)
    return f"Cannot open {device}: {error}"


def close_serial_port(port: Optional[serial.Serial]) -> None:
    """Close ``port`` if it is open. Errors are logged, never raised."""
    if port is None or not port.is_open:
        return
    try:
        port.close()
    except (serial.SerialException, OSError) as e:
        logger.warning("Error closing %s: %s", port.port, e)
    else:
        logger.debug("Closed %s", port.port)
