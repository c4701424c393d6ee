"""
spcduino Error Hierarchy
========================

This module defines the exception hierarchy for the whole package.
All exceptions inherit from SpcduinoError, allowing callers to catch all
package errors with a single except clause if desired.

Exception Hierarchy
-------------------
SpcduinoError (base)
├── SnapshotError (SPC snapshot handling)
│   ├── SpcFormatError - malformed or truncated SPC file
│   └── InvalidSnapshotError - snapshot fields out of range
├── ComposerError (image composition)
│   └── NoSpaceForStubError - no free run found for the boot stub
└── CommsError (serial communication)
    ├── TransportError - port cannot be opened, read or written
    │   └── TimeoutError - bounded wait expired
    ├── ProtocolError - device rejected or misreported a frame
    └── CommandError - a high-level device command failed
        ├── ResetFailed
        │   └── ResetTransportError (also a TransportError)
        ├── DspInitFailed
        │   └── DspInitTransportError (also a TransportError)
        ├── ImageLoadFailed
        │   └── ImageLoadTransportError (also a TransportError)
        └── PlayFailed
            └── PlayTransportError (also a TransportError)

Propagation
-----------
The link never retries. A rejected frame terminates the current command
and surfaces as the command's CommandError subclass, chained from the
ProtocolError that carries the raw response code. A transport failure
during a command surfaces as the command's *TransportError variant,
chained from the original TransportError: it can be caught either as the
command's failure or as a TransportError.
"""

from enum import Enum
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class SpcduinoError(Exception):
    """
    Base exception for all spcduino errors.

        try:
            player.play(snapshot)
        except SpcduinoError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Snapshot Exceptions
# =============================================================================

class SnapshotError(SpcduinoError):
    """Base exception for SPC snapshot handling errors."""
    pass


class SpcFormatError(SnapshotError):
    """
    Invalid SPC file format.

    Raised when reading an SPC file that:
    - Is missing the "SNES-SPC700 Sound File Data" signature
    - Is too short to hold the RAM and DSP register dumps
    """
    pass


class InvalidSnapshotError(SnapshotError):
    """
    Snapshot fields are inconsistent or out of range.

    Raised for wrong memory sizes, register values that do not fit their
    width, or a stack pointer too low to hold the emulated return frame.
    """
    pass


# =============================================================================
# Composer Exceptions
# =============================================================================

class ComposerError(SpcduinoError):
    """Base exception for image composition errors."""
    pass


class NoSpaceForStubError(ComposerError):
    """
    No run of repeated filler bytes is long enough to hold the boot stub.

    This is fatal for the snapshot: there is no fallback relocation.
    """

    def __init__(self, stub_length: int, message: str = ""):
        self.stub_length = stub_length
        if not message:
            message = (
                f"Unable to find {stub_length} bytes of free space "
                "for the boot stub"
            )
        super().__init__(message)


# =============================================================================
# Communication Exceptions
# =============================================================================

class CommsError(SpcduinoError):
    """Base exception for serial communication errors."""
    pass


class TransportError(CommsError):
    """
    The byte stream failed.

    Raised when:
    - Serial port not found or permission denied
    - The port was closed while a command was waiting
    - A read or write on the port raised
    """
    pass


class TimeoutError(TransportError):
    """
    Communication timeout error.

    Raised when no byte arrives within the bounded wait. This usually
    means the device is not powered, the baud rate is wrong or the
    device firmware hung.

    Note:
        This is distinct from the Python builtin TimeoutError.
    """
    pass


class FailureReason(Enum):
    """Why a device command failed, as reported to callers."""
    BAD_CHECKSUM = "bad checksum"
    FAIL = "device reported failure"
    UNEXPECTED_BYTE = "unexpected response byte"
    TRANSPORT = "serial link failure"
    UNKNOWN = "unknown error"


class ProtocolError(CommsError):
    """
    The device answered a frame with something other than OKAY.

    Attributes:
        response: The raw response byte (None when the link was faulted)
        kind: FailureReason classifying the response
    """

    def __init__(
        self,
        message: str,
        response: Optional[int] = None,
        kind: FailureReason = FailureReason.UNKNOWN,
    ):
        self.response = response
        self.kind = kind
        super().__init__(message)


class CommandError(CommsError):
    """Base exception for a failed high-level device command."""

    command_name = "command"

    def __init__(self, reason: FailureReason = FailureReason.UNKNOWN, message: str = ""):
        self.reason = reason
        if not message:
            message = f"Error during {self.command_name}: {reason.value}"
        super().__init__(message)


class ResetFailed(CommandError):
    """The device did not acknowledge the reset command."""

    command_name = "reset"


class DspInitFailed(CommandError):
    """
    The DSP loader program or the DSP register dump was rejected.

    ``reason`` is BAD_CHECKSUM when the device rejected a payload checksum
    and UNKNOWN for any other failure.
    """

    command_name = "DSP initialization"


class ImageLoadFailed(CommandError):
    """
    Transfer of the program memory image failed.

    Attributes:
        address: Start address of the frame that failed
        reason: FailureReason for the failure
    """

    command_name = "image load"

    def __init__(
        self,
        address: int,
        reason: FailureReason = FailureReason.UNKNOWN,
        detail: str = "",
    ):
        self.address = address
        super().__init__(
            reason,
            f"Error loading image at 0x{address:04X}: {detail or reason.value}",
        )


class PlayFailed(CommandError):
    """The device refused to start execution."""

    command_name = "play"


# =============================================================================
# Transport Failures During a Command
# =============================================================================

class ResetTransportError(ResetFailed, TransportError):
    """The serial link failed while the reset was in flight."""
    pass


class DspInitTransportError(DspInitFailed, TransportError):
    """The serial link failed during DSP initialization (reason UNKNOWN)."""
    pass


class ImageLoadTransportError(ImageLoadFailed, TransportError):
    """The serial link failed while the frame at ``address`` was in flight."""
    pass


class PlayTransportError(PlayFailed, TransportError):
    """The serial link failed while the play command was in flight."""
    pass
