"""
SPC File Parser
===============

This module reads SPC700 sound snapshots (``.spc`` files) into the
immutable Snapshot data model used by the composer.

SPC File Layout
---------------
    Offset   Size    Contents
    0x00000  33      "SNES-SPC700 Sound File Data v0.30"
    0x00021  2       0x1A 0x1A
    0x00023  1       0x1A = ID666 tag present, 0x1B = no tag
    0x00024  1       Minor version (30)
    0x00025  2       PC (little-endian)
    0x00027  1       A
    0x00028  1       X
    0x00029  1       Y
    0x0002A  1       PSW
    0x0002B  1       SP (low byte; the stack lives in page 1)
    0x0002E  210     ID666 tag
    0x00100  65536   RAM
    0x10100  128     DSP registers
    0x10180  64      Unused
    0x101C0  64      Extra RAM (RAM hidden under the IPL ROM)

ID666 Tag
---------
Only the text fields shared by the text and binary tag variants are
decoded: song title, game title, dumper name and comments.

Reference
---------
- SPC and ID666 format: https://wiki.superfamicom.org/spc-and-rsn-file-format
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional, Union
import logging

from spcduino.errors import InvalidSnapshotError, SpcFormatError

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Format Constants
# =============================================================================

SPC_SIGNATURE: Final[bytes] = b"SNES-SPC700 Sound File Data"

HAS_TAG_OFFSET: Final[int] = 0x23
HAS_TAG: Final[int] = 0x1A
NO_TAG: Final[int] = 0x1B
VERSION_OFFSET: Final[int] = 0x24

PC_OFFSET: Final[int] = 0x25
A_OFFSET: Final[int] = 0x27
X_OFFSET: Final[int] = 0x28
Y_OFFSET: Final[int] = 0x29
PSW_OFFSET: Final[int] = 0x2A
SP_OFFSET: Final[int] = 0x2B

RAM_OFFSET: Final[int] = 0x100
RAM_SIZE: Final[int] = 0x10000
DSP_OFFSET: Final[int] = RAM_OFFSET + RAM_SIZE
DSP_SIZE: Final[int] = 128
EXTRA_RAM_OFFSET: Final[int] = 0x101C0
EXTRA_RAM_SIZE: Final[int] = 64

# Smallest file holding both the RAM and the DSP register dump
MIN_SPC_SIZE: Final[int] = DSP_OFFSET + DSP_SIZE

# ID666 text fields: (offset, length)
TAG_SONG_TITLE: Final[tuple[int, int]] = (0x2E, 32)
TAG_GAME_TITLE: Final[tuple[int, int]] = (0x4E, 32)
TAG_DUMPER: Final[tuple[int, int]] = (0x6E, 16)
TAG_COMMENTS: Final[tuple[int, int]] = (0x7E, 32)

# DSP registers describing the echo buffer
DSP_ESA: Final[int] = 0x6D   # Echo start address, in pages
DSP_EDL: Final[int] = 0x7D   # Echo delay, in 2KB units (low nibble)


# =============================================================================
# Data Model
# =============================================================================

@dataclass(frozen=True)
class Id666Tag:
    """
    Text metadata stored in an SPC header.

    Attributes:
        song_title: Name of the song
        game_title: Name of the game the song came from
        dumper: Who captured the snapshot
        comments: Free-form comments
    """
    song_title: str = ""
    game_title: str = ""
    dumper: str = ""
    comments: str = ""


@dataclass(frozen=True)
class Snapshot:
    """
    A captured SPC700 state, sufficient to resume execution.

    Attributes:
        program_memory: 64KB of RAM
        dsp_registers: 128 S-DSP register values
        pc: Program counter (16-bit)
        a, x, y, psw: CPU registers (8-bit)
        sp: Stack pointer, relative to page 0x100
        tag: ID666 metadata, if present
        extra_ram: 64 bytes of RAM under the IPL ROM, if present
    """
    program_memory: bytes
    dsp_registers: bytes
    pc: int
    a: int
    x: int
    y: int
    psw: int
    sp: int
    tag: Optional[Id666Tag] = None
    extra_ram: Optional[bytes] = None

    def __post_init__(self) -> None:
        if len(self.program_memory) != RAM_SIZE:
            raise InvalidSnapshotError(
                f"Program memory must be {RAM_SIZE} bytes, "
                f"got {len(self.program_memory)}"
            )
        if len(self.dsp_registers) != DSP_SIZE:
            raise InvalidSnapshotError(
                f"DSP registers must be {DSP_SIZE} bytes, "
                f"got {len(self.dsp_registers)}"
            )
        if not 0 <= self.pc <= 0xFFFF:
            raise InvalidSnapshotError(f"PC out of range: {self.pc:#x}")
        for name in ("a", "x", "y", "psw", "sp"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFF:
                raise InvalidSnapshotError(
                    f"Register {name.upper()} out of range: {value:#x}"
                )
        if self.extra_ram is not None and len(self.extra_ram) != EXTRA_RAM_SIZE:
            raise InvalidSnapshotError(
                f"Extra RAM must be {EXTRA_RAM_SIZE} bytes, "
                f"got {len(self.extra_ram)}"
            )

        # Freeze mutable buffers handed in by callers
        object.__setattr__(self, "program_memory", bytes(self.program_memory))
        object.__setattr__(self, "dsp_registers", bytes(self.dsp_registers))

    @property
    def echo_address(self) -> int:
        """Start of the DSP echo buffer in RAM."""
        return self.dsp_registers[DSP_ESA] * 0x100

    @property
    def echo_size(self) -> int:
        """Size of the DSP echo buffer in bytes."""
        return (self.dsp_registers[DSP_EDL] & 0x0F) * 0x800

    @property
    def port_inputs(self) -> bytes:
        """The four CPU I/O port bytes 0xF4-0xF7 as captured."""
        return self.program_memory[0xF4:0xF8]


# =============================================================================
# Parsing
# =============================================================================

def _read_text(data: bytes, field: tuple[int, int]) -> str:
    offset, length = field
    raw = data[offset:offset + length].split(b"\x00", 1)[0]
    return raw.decode("latin-1").strip()


def parse_id666(data: bytes) -> Id666Tag:
    """Decode the text fields of an ID666 tag from an SPC header."""
    return Id666Tag(
        song_title=_read_text(data, TAG_SONG_TITLE),
        game_title=_read_text(data, TAG_GAME_TITLE),
        dumper=_read_text(data, TAG_DUMPER),
        comments=_read_text(data, TAG_COMMENTS),
    )


def parse_spc(data: bytes) -> Snapshot:
    """
    Parse SPC file contents into a Snapshot.

    Args:
        data: The raw bytes of the SPC file

    Returns:
        The parsed Snapshot

    Raises:
        SpcFormatError: If the signature is missing or the file is truncated
        InvalidSnapshotError: If the decoded fields are inconsistent
    """
    if not data.startswith(SPC_SIGNATURE):
        raise SpcFormatError("Not an SPC file: missing SNES-SPC700 signature")

    if len(data) < MIN_SPC_SIZE:
        raise SpcFormatError(
            f"SPC file truncated: {len(data)} bytes, need at least {MIN_SPC_SIZE}"
        )

    tag_marker = data[HAS_TAG_OFFSET]
    if tag_marker not in (HAS_TAG, NO_TAG):
        logger.warning("Unexpected ID666 marker 0x%02X, assuming no tag", tag_marker)
    tag = parse_id666(data) if tag_marker == HAS_TAG else None

    extra_ram = None
    if len(data) >= EXTRA_RAM_OFFSET + EXTRA_RAM_SIZE:
        extra_ram = bytes(data[EXTRA_RAM_OFFSET:EXTRA_RAM_OFFSET + EXTRA_RAM_SIZE])

    snapshot = Snapshot(
        program_memory=bytes(data[RAM_OFFSET:RAM_OFFSET + RAM_SIZE]),
        dsp_registers=bytes(data[DSP_OFFSET:DSP_OFFSET + DSP_SIZE]),
        pc=data[PC_OFFSET] | (data[PC_OFFSET + 1] << 8),
        a=data[A_OFFSET],
        x=data[X_OFFSET],
        y=data[Y_OFFSET],
        psw=data[PSW_OFFSET],
        sp=data[SP_OFFSET],
        tag=tag,
        extra_ram=extra_ram,
    )

    logger.debug(
        "Parsed SPC: PC=%04X A=%02X X=%02X Y=%02X PSW=%02X SP=%02X",
        snapshot.pc, snapshot.a, snapshot.x, snapshot.y, snapshot.psw, snapshot.sp
    )
    return snapshot


def parse_spc_file(filepath: Union[str, Path]) -> Snapshot:
    """
    Read and parse an SPC file from disk.

    Args:
        filepath: Path to the SPC file

    Returns:
        The parsed Snapshot

    Raises:
        FileNotFoundError: If the file doesn't exist
        SpcFormatError: If the file is not a valid SPC file
    """
    filepath = Path(filepath)
    data = filepath.read_bytes()
    logger.info("Loaded SPC file: %s (%d bytes)", filepath.name, len(data))
    return parse_spc(data)


def build_spc(snapshot: Snapshot) -> bytes:
    """
    Serialize a Snapshot back into SPC file bytes.

    Mostly useful for producing test fixtures and for saving composed
    snapshots. The tag, if any, is written in text form.
    """
    data = bytearray(EXTRA_RAM_OFFSET + EXTRA_RAM_SIZE)
    data[0:33] = b"SNES-SPC700 Sound File Data v0.30"
    data[0x21] = 0x1A
    data[0x22] = 0x1A
    data[HAS_TAG_OFFSET] = HAS_TAG if snapshot.tag else NO_TAG
    data[VERSION_OFFSET] = 30
    data[PC_OFFSET] = snapshot.pc & 0xFF
    data[PC_OFFSET + 1] = snapshot.pc >> 8
    data[A_OFFSET] = snapshot.a
    data[X_OFFSET] = snapshot.x
    data[Y_OFFSET] = snapshot.y
    data[PSW_OFFSET] = snapshot.psw
    data[SP_OFFSET] = snapshot.sp

    if snapshot.tag:
        for field, text in (
            (TAG_SONG_TITLE, snapshot.tag.song_title),
            (TAG_GAME_TITLE, snapshot.tag.game_title),
            (TAG_DUMPER, snapshot.tag.dumper),
            (TAG_COMMENTS, snapshot.tag.comments),
        ):
            offset, length = field
            encoded = text.encode("latin-1")[:length]
            data[offset:offset + len(encoded)] = encoded

    data[RAM_OFFSET:RAM_OFFSET + RAM_SIZE] = snapshot.program_memory
    data[DSP_OFFSET:DSP_OFFSET + DSP_SIZE] = snapshot.dsp_registers
    if snapshot.extra_ram is not None:
        data[EXTRA_RAM_OFFSET:EXTRA_RAM_OFFSET + EXTRA_RAM_SIZE] = snapshot.extra_ram

    return bytes(data)
