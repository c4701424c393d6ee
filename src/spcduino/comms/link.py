"""
spcduino Link Protocol Implementation
=====================================

This module implements the command/response protocol spoken by the
spcduino firmware over a serial port. It handles:

- Command framing (opcode, payload, checksum)
- Flow-controlled writes (64-byte slices, each drained before the next)
- One-byte acknowledgements
- The device boot sequence: READY -> reset -> DSP -> image -> play

Protocol Overview
-----------------
Every command is answered by exactly one response byte. The device has
no request identifiers, so correctness depends on pairing each response
with the single outstanding frame.

    ┌────────┬──────────────────────┬──────────┐
    │ Opcode │       Payload        │ Checksum │
    │ 1 byte │      0-237 bytes     │  1 byte  │
    └────────┴──────────────────────┴──────────┘

- The checksum is the sum of the payload bytes modulo 256. The opcode is
  not included. A frame without payload (reset) has no checksum.
- Some frames are sent without an opcode because the device already
  knows what comes next (DSP register dump, image chunk bodies).

    Reset              01
    Load DSP           02 <loader...> ck      then  <128 registers> ck
    Begin image load   03 <237 zero page bytes> ck
    Image chunk        04 lo hi len ck        then  <len bytes> ck
    Play               05 lo hi p0 p1 p2 p3 ck

Responses: 01 OKAY, 02 FAIL, 03 BAD_CHECKSUM, 56 (86) READY.

Boot Sequence
-------------
1. Open the port. The Arduino reboots and sends READY.
2. Reset the SPC700.
3. Upload the DSP loader program, then the 128 DSP registers.
4. Send zero page bytes 0x02-0xEE, then RAM 0x100-0xFFFF in 128-byte chunks.
5. Play: jump to the boot stub with the captured I/O port values.

There is no retransmission. Any failure faults the link for the rest
of the session. Rejections and transport failures alike surface as the
failing command's CommandError subclass; transport failures use the
variant that is also a TransportError.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Final, Optional, Sequence

import serial

from spcduino.comms.checksum import append_checksum
from spcduino.comms.serial import open_port
from spcduino.errors import (
    CommsError,
    DspInitFailed,
    DspInitTransportError,
    FailureReason,
    ImageLoadFailed,
    ImageLoadTransportError,
    PlayFailed,
    PlayTransportError,
    ProtocolError,
    ResetFailed,
    ResetTransportError,
    TimeoutError,
    TransportError,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Protocol Constants
# =============================================================================

# Maximum number of bytes in any single serial write
MAX_SEND_SIZE: Final[int] = 64

# Zero page bytes sent with the begin-image-load command: 0x02-0xEE.
# 0x00/0x01 are restored by the boot stub; 0xEF-0xFF are I/O registers.
ZERO_PAGE_START: Final[int] = 0x02
ZERO_PAGE_END: Final[int] = 0xEF
ZERO_PAGE_SIZE: Final[int] = ZERO_PAGE_END - ZERO_PAGE_START

# Image body transfer
IMAGE_BODY_START: Final[int] = 0x100
IMAGE_END: Final[int] = 0x10000
IMAGE_CHUNK_SIZE: Final[int] = 128

# Size of the S-DSP register file
DSP_REGISTER_COUNT: Final[int] = 128

# Number of CPU I/O ports passed to the play command
PORT_COUNT: Final[int] = 4

# Polling read timeout while waiting for a response byte
READ_POLL_INTERVAL: Final[float] = 0.05

# Type alias for progress callback (bytes_done, bytes_total)
ProgressCallback = Callable[[int, int], None]


# =============================================================================
# Command and Response Codes
# =============================================================================

class Command(IntEnum):
    """Command opcodes understood by the spcduino firmware."""

    RESET = 1         # Reset the SPC700
    LOAD_DSP = 2      # DSP loader program, followed by register data
    START_IMAGE = 3   # Zero page data, begins the memory transfer
    IMAGE_CHUNK = 4   # Header for one chunk of program memory
    PLAY = 5          # Entry point and port values, starts execution


class Response(IntEnum):
    """Single-byte responses sent by the spcduino firmware."""

    OKAY = 1
    FAIL = 2
    BAD_CHECKSUM = 3
    READY = 86

    @classmethod
    def describe(cls, code: int) -> str:
        """Get a printable name for a response byte."""
        try:
            return cls(code).name
        except ValueError:
            return f"0x{code:02X}"


class LinkState(Enum):
    """Device session states."""

    DISCONNECTED = "disconnected"
    AWAITING_READY = "awaiting ready"
    READY = "ready"
    RESETTING = "resetting"
    LOADING_DSP = "loading DSP"
    LOADING_IMAGE = "loading image"
    PLAYING = "playing"
    FAULTED = "faulted"


# =============================================================================
# Frame Class
# =============================================================================

@dataclass(frozen=True)
class Frame:
    """
    One outbound protocol frame.

    Attributes:
        command: Opcode, or None for payload-only frames that the device
                 is already waiting for.
        payload: Frame payload. The checksum is computed over it alone.

    Example:
        >>> Frame(Command.IMAGE_CHUNK, bytes([0x00, 0x01, 0x80])).to_bytes().hex()
        '0400018081'
    """

    command: Optional[Command]
    payload: bytes = b""

    def __post_init__(self) -> None:
        if not isinstance(self.payload, bytes):
            raise TypeError(
                f"Payload must be bytes, got {type(self.payload).__name__}"
            )
        if self.command is None and not self.payload:
            raise ValueError("A frame needs an opcode or a payload")

    def to_bytes(self) -> bytes:
        """Serialize the frame for transmission."""
        wire = bytearray()
        if self.command is not None:
            wire.append(self.command)
        if self.payload:
            wire.extend(append_checksum(self.payload))
        return bytes(wire)

    def __repr__(self) -> str:
        name = self.command.name if self.command is not None else "DATA"
        data_repr = (
            self.payload[:16].hex() + "..."
            if len(self.payload) > 16
            else self.payload.hex()
        )
        return f"Frame({name}, payload[{len(self.payload)}]={data_repr})"


def _classify_response(code: int) -> FailureReason:
    """Map a non-OKAY response byte to a FailureReason."""
    if code == Response.BAD_CHECKSUM:
        return FailureReason.BAD_CHECKSUM
    if code == Response.FAIL:
        return FailureReason.FAIL
    return FailureReason.UNEXPECTED_BYTE


def iter_image_chunks(start: int = IMAGE_BODY_START, end: int = IMAGE_END,
                      size: int = IMAGE_CHUNK_SIZE):
    """
    Yield (address, length) for each body chunk, in ascending order.

    The windows are contiguous and non-overlapping; the last one is
    shortened if the range is not a multiple of ``size``.
    """
    address = start
    while address < end:
        length = min(size, end - address)
        yield address, length
        address += length


# =============================================================================
# Link Protocol State Machine
# =============================================================================

class SpcduinoLink:
    """
    spcduino protocol driver.

    This class owns the serial port for the whole session and issues one
    command at a time. Every wait is bounded: a READY wait by the
    ``timeout`` given to open(), each acknowledgement by ``ack_timeout``.
    Closing the port from elsewhere makes a pending wait fail with
    TransportError.

    Usage:
        port = create_serial_port('/dev/ttyACM0')
        link = SpcduinoLink(port)

        link.open(timeout=10)
        link.reset()
        link.load_dsp_state(composition.dsp_loader, composition.dsp_registers)
        link.load_image(composition.image)
        link.play(composition.boot_address, composition.port_values)
        link.close()
    """

    # Default wait for the READY announcement (seconds)
    DEFAULT_READY_TIMEOUT: Final[float] = 10.0

    # Default wait for each acknowledgement (seconds)
    DEFAULT_ACK_TIMEOUT: Final[float] = 5.0

    def __init__(self, port: "serial.Serial", ack_timeout: float = DEFAULT_ACK_TIMEOUT):
        """
        Initialize the link.

        Args:
            port: Configured serial port. It may be closed; open() opens it.
            ack_timeout: Maximum wait for each response byte, in seconds.
        """
        self.port = port
        self.ack_timeout = ack_timeout
        self._state = LinkState.DISCONNECTED
        self._saved_timeout: Optional[float] = None

    @property
    def state(self) -> LinkState:
        """Current session state."""
        return self._state

    @property
    def ready(self) -> bool:
        """Return True if the link can accept a command."""
        return self._state is LinkState.READY

    # -------------------------------------------------------------------------
    # Connection Management
    # -------------------------------------------------------------------------

    def open(self, timeout: float = DEFAULT_READY_TIMEOUT) -> None:
        """
        Open the port and wait for the device to announce READY.

        Opening the port reboots the Arduino. Any bytes it prints before
        READY are discarded.

        Args:
            timeout: Maximum time to wait for READY, in seconds.

        Raises:
            TransportError: If the port cannot be opened or fails.
            TimeoutError: If READY is not seen within ``timeout``.
        """
        if self._state is not LinkState.DISCONNECTED:
            raise CommsError(f"Link already open ({self._state.value})")

        if not self.port.is_open:
            open_port(self.port)

        # Reads poll; the deadline is tracked by _read_byte
        self._saved_timeout = self.port.timeout
        self.port.timeout = READ_POLL_INTERVAL

        self._state = LinkState.AWAITING_READY
        logger.info("Waiting for spcduino to become ready...")
        deadline = time.monotonic() + timeout

        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"spcduino did not report READY within {timeout}s"
                    )
                code = self._read_byte(remaining)
                if code == Response.READY:
                    break
                logger.warning("Discarding byte 0x%02X while waiting for READY", code)
        except CommsError:
            self._state = LinkState.FAULTED
            raise

        self._state = LinkState.READY
        logger.info("spcduino ready")

    def close(self) -> None:
        """Close the port. Safe to call more than once."""
        try:
            if self._saved_timeout is not None and self.port.is_open:
                self.port.timeout = self._saved_timeout
            if self.port.is_open:
                self.port.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing port: %s", e)
        self._saved_timeout = None
        self._state = LinkState.DISCONNECTED
        logger.debug("Link closed")

    def __enter__(self) -> "SpcduinoLink":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Device Commands
    # -------------------------------------------------------------------------

    def reset(self) -> None:
        """
        Reset the SPC700.

        Raises:
            ResetFailed: If the device does not answer OKAY.
            ResetTransportError: If the port fails (also a TransportError).
        """
        with self._command(LinkState.RESETTING):
            try:
                self.send_and_await_ack(Frame(Command.RESET).to_bytes())
            except ProtocolError as e:
                raise ResetFailed(e.kind) from e
            except TransportError as e:
                raise ResetTransportError(
                    FailureReason.TRANSPORT, f"Error during reset: {e}"
                ) from e
        logger.info("SPC700 reset")

    def load_dsp_state(self, dsp_loader: bytes, dsp_registers: bytes) -> None:
        """
        Upload the DSP loader program followed by the DSP register file.

        The device runs the loader as soon as it arrives; the loader then
        consumes the register dump, which is why the second frame has no
        opcode.

        Args:
            dsp_loader: Patched DSP-restore stub.
            dsp_registers: 128 DSP register values.

        Raises:
            ValueError: If dsp_registers is not 128 bytes.
            DspInitFailed: With reason BAD_CHECKSUM if a payload checksum was
                           rejected, UNKNOWN for any other failure.
            DspInitTransportError: If the port fails (reason UNKNOWN, also a
                                   TransportError).
        """
        if len(dsp_registers) != DSP_REGISTER_COUNT:
            raise ValueError(
                f"DSP register dump must be {DSP_REGISTER_COUNT} bytes, "
                f"got {len(dsp_registers)}"
            )

        with self._command(LinkState.LOADING_DSP):
            try:
                self.send_and_await_ack(
                    Frame(Command.LOAD_DSP, bytes(dsp_loader)).to_bytes()
                )
                logger.debug("DSP loader accepted (%d bytes)", len(dsp_loader))
                self.send_and_await_ack(Frame(None, bytes(dsp_registers)).to_bytes())
            except ProtocolError as e:
                reason = (
                    FailureReason.BAD_CHECKSUM
                    if e.kind is FailureReason.BAD_CHECKSUM
                    else FailureReason.UNKNOWN
                )
                raise DspInitFailed(reason) from e
            except TransportError as e:
                raise DspInitTransportError(
                    FailureReason.UNKNOWN, f"Error during DSP initialization: {e}"
                ) from e
        logger.info("DSP registers loaded")

    def load_image(
        self,
        image: bytes,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Transfer a finalized 64KB program memory image.

        Phase 1 sends zero page bytes 0x02-0xEE in one frame. Phase 2
        sends 0x100-0xFFFF in 128-byte chunks, each announced by an
        address header.

        Args:
            image: 65,536 bytes of program memory.
            progress: Optional callback(bytes_done, bytes_total).

        Raises:
            ValueError: If image is not 65,536 bytes.
            ImageLoadFailed: With the address of the rejected frame.
            ImageLoadTransportError: With the address of the frame in flight
                                     when the port failed (also a
                                     TransportError).
        """
        if len(image) != IMAGE_END:
            raise ValueError(f"Image must be {IMAGE_END} bytes, got {len(image)}")

        total = ZERO_PAGE_SIZE + (IMAGE_END - IMAGE_BODY_START)

        with self._command(LinkState.LOADING_IMAGE):
            # Address of the frame in flight, for error reports
            address = ZERO_PAGE_START
            try:
                # Phase 1: zero page
                zero_page = bytes(image[ZERO_PAGE_START:ZERO_PAGE_END])
                self.send_and_await_ack(
                    Frame(Command.START_IMAGE, zero_page).to_bytes()
                )
                logger.info("Zero page data written")

                done = ZERO_PAGE_SIZE
                if progress:
                    progress(done, total)

                # Phase 2: body chunks
                for address, length in iter_image_chunks():
                    header = bytes([address & 0xFF, address >> 8, length])
                    body = bytes(image[address:address + length])
                    self.send_and_await_ack(
                        Frame(Command.IMAGE_CHUNK, header).to_bytes()
                    )
                    self.send_and_await_ack(Frame(None, body).to_bytes())

                    done += length
                    logger.debug("Chunk 0x%04X accepted (%d/%d)", address, done, total)
                    if progress:
                        progress(done, total)
            except ProtocolError as e:
                raise ImageLoadFailed(address, e.kind) from e
            except TransportError as e:
                raise ImageLoadTransportError(
                    address, FailureReason.TRANSPORT, str(e)
                ) from e

        logger.info("Image transfer complete: %d bytes", total)

    def play(self, boot_address: int, port_values: Sequence[int]) -> None:
        """
        Start execution at the boot stub.

        Args:
            boot_address: Address of the injected boot stub.
            port_values: Values for CPU I/O ports 0-3, which the boot stub
                         waits to see before resuming the program.

        Raises:
            ValueError: If arguments are out of range.
            PlayFailed: If the device does not answer OKAY.
            PlayTransportError: If the port fails (also a TransportError).
        """
        if not 0 <= boot_address <= 0xFFFF:
            raise ValueError(f"Boot address out of range: {boot_address:#x}")
        if len(port_values) != PORT_COUNT:
            raise ValueError(f"Expected {PORT_COUNT} port values, got {len(port_values)}")

        payload = bytes([boot_address & 0xFF, boot_address >> 8, *port_values])

        with self._command(LinkState.PLAYING):
            try:
                self.send_and_await_ack(Frame(Command.PLAY, payload).to_bytes())
            except ProtocolError as e:
                raise PlayFailed(e.kind) from e
            except TransportError as e:
                raise PlayTransportError(
                    FailureReason.TRANSPORT, f"Error during play: {e}"
                ) from e
        logger.info("Playing from 0x%04X", boot_address)

    # -------------------------------------------------------------------------
    # Low-Level I/O
    # -------------------------------------------------------------------------

    def send_and_await_ack(self, data: bytes) -> None:
        """
        Write a frame and wait for exactly one response byte.

        The frame is written in slices of at most MAX_SEND_SIZE bytes. Each
        slice is flushed (drained to the device) before the next one.

        Args:
            data: Complete frame bytes.

        Raises:
            ProtocolError: If the response is anything but OKAY.
            TimeoutError: If no response arrives within ack_timeout.
            TransportError: If the port fails or is closed.
        """
        self._write(data)
        code = self._read_byte(self.ack_timeout)

        if code != Response.OKAY:
            raise ProtocolError(
                f"Device responded {Response.describe(code)}",
                response=code,
                kind=_classify_response(code),
            )

    def _write(self, data: bytes) -> None:
        if not self.port.is_open:
            raise TransportError("Port is not open")

        try:
            for offset in range(0, len(data), MAX_SEND_SIZE):
                self.port.write(data[offset:offset + MAX_SEND_SIZE])
                self.port.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write failed: {e}") from e

        logger.debug("Sent %d bytes: %s", len(data), data[:32].hex())

    def _read_byte(self, timeout: float) -> int:
        """
        Read a single byte, polling in short intervals.

        The port's read timeout (READ_POLL_INTERVAL, set once by open())
        bounds each poll, so a deadline can overshoot by one interval.

        Raises:
            TimeoutError: If nothing arrives within ``timeout``.
            TransportError: If the port is closed or fails.
        """
        deadline = time.monotonic() + timeout

        try:
            while time.monotonic() < deadline:
                if not self.port.is_open:
                    raise TransportError("Port closed while waiting for response")
                chunk = self.port.read(1)
                if chunk:
                    logger.debug("Received 0x%02X", chunk[0])
                    return chunk[0]
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read failed: {e}") from e

        raise TimeoutError(f"No response received within {timeout}s")

    # -------------------------------------------------------------------------
    # State Handling
    # -------------------------------------------------------------------------

    def _command(self, busy_state: LinkState) -> "_CommandScope":
        if self._state is LinkState.FAULTED:
            raise ProtocolError("Link is faulted; reopen the session")
        if self._state is not LinkState.READY:
            raise CommsError(f"Link not ready ({self._state.value})")
        return _CommandScope(self, busy_state)


class _CommandScope:
    """Moves the link into a busy state and back, or to FAULTED on error."""

    def __init__(self, link: SpcduinoLink, busy_state: LinkState):
        self.link = link
        self.busy_state = busy_state

    def __enter__(self) -> None:
        self.link._state = self.busy_state

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.link._state = LinkState.READY
        else:
            logger.debug("%s failed: %s", self.busy_state.value, exc)
            self.link._state = LinkState.FAULTED
        return False
