"""
spcduino Communication Module
=============================

This module drives the spcduino over a serial port.

Module Structure
----------------
- **checksum**: 8-bit additive frame checksum
- **serial**: Serial port utilities (detection, configuration)
- **link**: Command framing, acknowledgements and the boot sequence
- **player**: Composes a snapshot and runs the whole sequence

Quick Start
-----------
    from spcduino.comms import SpcduinoLink, SpcPlayer, create_serial_port

    port = create_serial_port('/dev/ttyACM0', baud_rate=115200)
    with SpcduinoLink(port) as link:
        link.open(timeout=10)
        SpcPlayer(link).play(snapshot)

Error Handling
--------------
All communication errors inherit from `CommsError`:

- `TransportError`: The port failed or was closed (`TimeoutError` when a
  bounded wait expired)
- `ProtocolError`: The device answered something other than OKAY
- `CommandError` subclasses: Which command failed, and why

A port failure during a command raises that command's `*TransportError`
variant, which is both a `CommandError` and a `TransportError`.

Thread Safety
-------------
The link is NOT thread-safe. The device pairs responses with requests
by order alone, so only one command may ever be in flight.
"""

from spcduino.comms.checksum import (
    append_checksum,
    calculate_checksum,
    verify_checksum,
)
from spcduino.comms.serial import (
    DEFAULT_BAUD_RATE,
    VALID_BAUD_RATES,
    PortInfo,
    close_serial_port,
    create_serial_port,
    find_spcduino_port,
    format_port_list,
    list_serial_ports,
    open_port,
)
from spcduino.comms.link import (
    IMAGE_CHUNK_SIZE,
    MAX_SEND_SIZE,
    ZERO_PAGE_SIZE,
    Command,
    Frame,
    LinkState,
    ProgressCallback,
    Response,
    SpcduinoLink,
    iter_image_chunks,
)
from spcduino.comms.player import SpcPlayer, play_spc_file

__all__ = [
    "append_checksum",
    "calculate_checksum",
    "verify_checksum",
    "DEFAULT_BAUD_RATE",
    "VALID_BAUD_RATES",
    "PortInfo",
    "close_serial_port",
    "create_serial_port",
    "find_spcduino_port",
    "format_port_list",
    "list_serial_ports",
    "open_port",
    "IMAGE_CHUNK_SIZE",
    "MAX_SEND_SIZE",
    "ZERO_PAGE_SIZE",
    "Command",
    "Frame",
    "LinkState",
    "ProgressCallback",
    "Response",
    "SpcduinoLink",
    "iter_image_chunks",
    "SpcPlayer",
    "play_spc_file",
]
