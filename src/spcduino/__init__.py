"""
spcduino - SPC Snapshot Player for Real SNES Sound Hardware
===========================================================

This package plays SPC700 sound snapshots (``.spc`` files) on a real
SPC700 and S-DSP pair driven by an Arduino (the "spcduino") over a
serial link.

Main Components
---------------
- **spc**: Snapshot handling
    Parses SPC files and composes the patched stubs and the finalized
    memory image that resume a snapshot on real hardware

- **comms**: Communication with the spcduino
    Serial port utilities, the command/response link protocol and the
    playback session

- **cli**: The ``spcplay`` command-line tool

Quick Start
-----------
Play a file:
    >>> from spcduino import SpcduinoLink, SpcPlayer, parse_spc_file
    >>> from spcduino.comms import create_serial_port
    >>> with SpcduinoLink(create_serial_port("/dev/ttyACM0")) as link:
    ...     link.open()
    ...     SpcPlayer(link).play(parse_spc_file("song.spc"))

Inspect the composition without a device:
    >>> from spcduino import compose, parse_spc_file
    >>> composition = compose(parse_spc_file("song.spc"))
    >>> hex(composition.boot_address)

Or use the command-line tool:
    $ spcplay info song.spc
    $ spcplay play song.spc --port /dev/ttyACM0
"""

__version__ = "1.0.0"

from spcduino.errors import (
    SpcduinoError,
    SnapshotError,
    SpcFormatError,
    InvalidSnapshotError,
    ComposerError,
    NoSpaceForStubError,
    CommsError,
    TransportError,
    TimeoutError,
    FailureReason,
    ProtocolError,
    CommandError,
    ResetFailed,
    DspInitFailed,
    ImageLoadFailed,
    PlayFailed,
    ResetTransportError,
    DspInitTransportError,
    ImageLoadTransportError,
    PlayTransportError,
)
from spcduino.config import PlayerConfig
from spcduino.spc import Composition, Snapshot, compose, parse_spc, parse_spc_file
from spcduino.comms import SpcduinoLink, SpcPlayer

__all__ = [
    "__version__",
    # Errors
    "SpcduinoError",
    "SnapshotError",
    "SpcFormatError",
    "InvalidSnapshotError",
    "ComposerError",
    "NoSpaceForStubError",
    "CommsError",
    "TransportError",
    "TimeoutError",
    "FailureReason",
    "ProtocolError",
    "CommandError",
    "ResetFailed",
    "DspInitFailed",
    "ImageLoadFailed",
    "PlayFailed",
    "ResetTransportError",
    "DspInitTransportError",
    "ImageLoadTransportError",
    "PlayTransportError",
    # Configuration
    "PlayerConfig",
    # Snapshots
    "Snapshot",
    "Composition",
    "parse_spc",
    "parse_spc_file",
    "compose",
    # Device
    "SpcduinoLink",
    "SpcPlayer",
]
