"""
Frame Checksum for the spcduino Protocol
========================================

Every payload sent to the spcduino is followed by a single checksum byte.
The algorithm is the plain 8-bit sum of the payload bytes modulo 256; the
command opcode in front of a payload is never part of the sum.

    payload:   0x10 0x20 0xF0
    checksum:  (0x10 + 0x20 + 0xF0) & 0xFF = 0x20
    on wire:   0x10 0x20 0xF0 0x20

A useful property for validating framing: the checksum of a payload with
its own checksum appended is always twice the original checksum, modulo 256.
"""

from typing import Final

# Checksum width mask
CHECKSUM_MASK: Final[int] = 0xFF


def calculate_checksum(data: bytes) -> int:
    """
    Calculate the modulo-256 sum of a byte sequence.

    Args:
        data: Payload bytes.

    Returns:
        Checksum in the range 0-255. Empty data yields 0.

    Example:
        >>> calculate_checksum(bytes([0xFF, 0x02]))
        1
    """
    return sum(data) & CHECKSUM_MASK


def append_checksum(data: bytes) -> bytes:
    """
    Return the payload with its checksum byte appended.

    Args:
        data: Payload bytes.

    Returns:
        ``data`` followed by ``calculate_checksum(data)``.
    """
    return bytes(data) + bytes([calculate_checksum(data)])


def verify_checksum(framed: bytes) -> bool:
    """
    Check that the last byte of ``framed`` is the checksum of the rest.

    Args:
        framed: Payload followed by a checksum byte.

    Returns:
        True if the checksum matches, False otherwise (including for
        empty input).
    """
    if not framed:
        return False
    return calculate_checksum(framed[:-1]) == framed[-1]
