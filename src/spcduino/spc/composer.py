"""
Binary Image Composer
=====================

This module turns a Snapshot into everything the spcduino needs to
resume it, without touching the device:

1. A patched DSP loader (timer targets, stack pointer)
2. A patched boot stub (zero page bytes, I/O port values, control and
   DSP state)
3. A finalized 64KB image: the boot stub injected into free space, and
   the stack rebuilt so that the stub's POP/RETI lands in the captured
   program with its registers restored

Injection Site
--------------
There is no relocation table for the snapshot's program, so the stub
is placed in a run of identical bytes, which SPC captures typically
contain in unused memory. The scan starts at the top of RAM below the
IPL ROM and walks down; the highest run wins. Runs touching the DSP
echo buffer are skipped because the DSP rewrites that region while
audio plays.

Stack Frame
-----------
The stack pointer is lowered by six bytes and the frame is written in
the order the boot stub pops it:

    0x100 + sp + 1   A
    0x100 + sp + 2   X
    0x100 + sp + 3   Y
    0x100 + sp + 4   PSW      (RETI)
    0x100 + sp + 5   PC low   (RETI)
    0x100 + sp + 6   PC high  (RETI)
"""

from dataclasses import dataclass
from typing import Final, Optional
import logging

from spcduino.errors import InvalidSnapshotError, NoSpaceForStubError
from spcduino.spc.parser import Snapshot
from spcduino.spc.programs import (
    BOOT_STUB_BYTE0_SLOT,
    BOOT_STUB_BYTE1_SLOT,
    BOOT_STUB_CONTROL_SLOT,
    BOOT_STUB_DSP_ADDRESS_SLOT,
    BOOT_STUB_FLG_SLOT,
    BOOT_STUB_KEY_ON_SLOT,
    BOOT_STUB_PORT0_SLOT,
    BOOT_STUB_PORT3_SLOT,
    BOOT_STUB_TEMPLATE,
    DSP_LOADER_STACK_POINTER_SLOT,
    DSP_LOADER_TEMPLATE,
    DSP_LOADER_TIMER0_SLOT,
    DSP_LOADER_TIMER1_SLOT,
    DSP_LOADER_TIMER2_SLOT,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# The bounds for where the boot stub can be written
LOWEST_BOOTABLE_ADDRESS: Final[int] = 0x100
HIGHEST_BOOTABLE_ADDRESS: Final[int] = 0xFFBF

# Bytes reserved below the captured stack pointer for the return frame
STACK_FRAME_SIZE: Final[int] = 6
STACK_PAGE: Final[int] = 0x100

# RAM mirror of the SP register the IPL ROM restores
STACK_POINTER_MIRROR: Final[int] = 0xFF

# Control register bits 4-5 reset the input ports; never set them at boot
CONTROL_REGISTER_MASK: Final[int] = 0xCF

# Port 0 value used when all captured input ports are zero. Zero is what
# the ports read before the host writes anything, so the stub could not
# tell the play command apart from power-on state.
ZERO_PORT_SENTINEL: Final[int] = 0x01

# DSP registers touched by the composer
DSP_FLG: Final[int] = 0x6C
DSP_KON: Final[int] = 0x4C
# Register replayed through the key-on slot of the boot stub
DSP_KEY_ON_SOURCE: Final[int] = 0x47

# Muted DSP state: soft reset off, mute on, echo writes off
MUTED_FLG: Final[int] = 0x60


# =============================================================================
# Composition Result
# =============================================================================

@dataclass(frozen=True)
class Composition:
    """
    Everything needed to play a snapshot on the spcduino.

    Attributes:
        boot_stub: Patched boot stub, as injected into the image
        dsp_loader: Patched DSP loader, sent with the load DSP command
        dsp_registers: DSP register values to upload (muted if requested)
        image: Finalized 64KB program memory
        boot_address: Where the boot stub was injected; the play entry point
        stack_pointer: Stack pointer after the emulated return frame
        port_values: Port 0-3 values sent with the play command
    """
    boot_stub: bytes
    dsp_loader: bytes
    dsp_registers: bytes
    image: bytes
    boot_address: int
    stack_pointer: int
    port_values: tuple[int, int, int, int]


# =============================================================================
# Composer Steps
# =============================================================================

def compute_stack_pointer(snapshot: Snapshot) -> int:
    """
    Reserve six bytes below the captured stack pointer.

    Raises:
        InvalidSnapshotError: If SP is too low to hold the frame.
    """
    if snapshot.sp < STACK_FRAME_SIZE:
        raise InvalidSnapshotError(
            f"Stack pointer 0x{snapshot.sp:02X} leaves no room for "
            f"the {STACK_FRAME_SIZE}-byte return frame"
        )
    return snapshot.sp - STACK_FRAME_SIZE


def locate_injection_site(
    program_memory: bytes,
    stub_length: int,
    echo_address: int,
    echo_size: int,
) -> Optional[int]:
    """
    Find the highest run of identical bytes long enough for the stub.

    Candidate end addresses ``i`` are scanned from HIGHEST_BOOTABLE_ADDRESS
    down. A candidate is accepted when every byte in ``[i - stub_length, i)``
    equals ``program_memory[i]``. Candidates whose window touches the echo
    buffer ``[echo_address, echo_address + echo_size]`` are skipped.

    Args:
        program_memory: 64KB of RAM
        stub_length: Size of the code to inject
        echo_address: Start of the DSP echo buffer
        echo_size: Size of the DSP echo buffer

    Returns:
        Start address of the chosen window, or None if no run fits.
    """
    echo_end = echo_address + echo_size

    for i in range(HIGHEST_BOOTABLE_ADDRESS, LOWEST_BOOTABLE_ADDRESS + stub_length, -1):
        start = i - stub_length
        if start <= echo_end and i >= echo_address:
            continue

        filler = program_memory[i]
        # Cheap rejection before comparing the whole window
        if program_memory[start] != filler:
            continue

        if program_memory[start:i].count(filler) == stub_length:
            logger.info("Found space for boot stub at 0x%04X", start)
            return start

    return None


def _patch(template: bytes, slots: dict[int, int]) -> bytes:
    stub = bytearray(template)
    for offset, value in slots.items():
        stub[offset] = value & 0xFF
    return bytes(stub)


def port_values_for(snapshot: Snapshot) -> tuple[int, int, int, int]:
    """
    Values the host puts on ports 0-3 when starting playback.

    These must match what the boot stub compares against, including the
    all-zero sentinel substitution.
    """
    ports = snapshot.port_inputs
    if not any(ports):
        return (ZERO_PORT_SENTINEL, ports[1], ports[2], ports[3])
    return (ports[0], ports[1], ports[2], ports[3])


def build_boot_stub(snapshot: Snapshot, template: bytes = BOOT_STUB_TEMPLATE) -> bytes:
    """
    Patch a copy of the boot stub with values from the snapshot.

    Args:
        snapshot: Source snapshot
        template: Boot stub template (not modified)

    Returns:
        The patched boot stub.
    """
    memory = snapshot.program_memory
    dsp = snapshot.dsp_registers
    port0, _, _, port3 = port_values_for(snapshot)

    return _patch(template, {
        BOOT_STUB_BYTE0_SLOT: memory[0x00],
        BOOT_STUB_BYTE1_SLOT: memory[0x01],
        BOOT_STUB_PORT0_SLOT: port0,
        BOOT_STUB_PORT3_SLOT: port3,
        BOOT_STUB_CONTROL_SLOT: memory[0xF1] & CONTROL_REGISTER_MASK,
        BOOT_STUB_FLG_SLOT: dsp[DSP_FLG],
        BOOT_STUB_KEY_ON_SLOT: dsp[DSP_KEY_ON_SOURCE],
        BOOT_STUB_DSP_ADDRESS_SLOT: memory[0xF2],
    })


def build_dsp_stub(
    snapshot: Snapshot,
    stack_pointer: int,
    template: bytes = DSP_LOADER_TEMPLATE,
) -> bytes:
    """
    Patch a copy of the DSP loader with timer targets and stack pointer.

    Args:
        snapshot: Source snapshot
        stack_pointer: Value from compute_stack_pointer()
        template: DSP loader template (not modified)

    Returns:
        The patched DSP loader.
    """
    memory = snapshot.program_memory
    return _patch(template, {
        DSP_LOADER_TIMER2_SLOT: memory[0xFC],
        DSP_LOADER_TIMER1_SLOT: memory[0xFB],
        DSP_LOADER_TIMER0_SLOT: memory[0xFA],
        DSP_LOADER_STACK_POINTER_SLOT: stack_pointer,
    })


def finalize_image(
    snapshot: Snapshot,
    boot_stub: bytes,
    injection_offset: int,
    stack_pointer: int,
) -> bytes:
    """
    Build the program memory image that is sent to the device.

    Args:
        snapshot: Source snapshot (not modified)
        boot_stub: Patched boot stub
        injection_offset: Address returned by locate_injection_site()
        stack_pointer: Value from compute_stack_pointer()

    Returns:
        The finalized 64KB image.
    """
    if not (LOWEST_BOOTABLE_ADDRESS <= injection_offset
            and injection_offset + len(boot_stub) <= HIGHEST_BOOTABLE_ADDRESS + 1):
        raise ValueError(
            f"Boot stub at 0x{injection_offset:04X} does not fit in "
            f"0x{LOWEST_BOOTABLE_ADDRESS:04X}-0x{HIGHEST_BOOTABLE_ADDRESS:04X}"
        )

    image = bytearray(snapshot.program_memory)
    image[injection_offset:injection_offset + len(boot_stub)] = boot_stub

    image[STACK_POINTER_MIRROR] = stack_pointer
    frame_base = STACK_PAGE + stack_pointer
    image[frame_base + 1] = snapshot.a
    image[frame_base + 2] = snapshot.x
    image[frame_base + 3] = snapshot.y
    image[frame_base + 4] = snapshot.psw
    image[frame_base + 5] = snapshot.pc & 0xFF
    image[frame_base + 6] = snapshot.pc >> 8

    return bytes(image)


def mute_dsp_registers(dsp_registers: bytes) -> bytes:
    """
    Return a copy of the DSP registers with all voices silenced.

    The boot stub restores FLG and key-on once the program resumes, so
    nothing plays while the image is still being uploaded.
    """
    muted = bytearray(dsp_registers)
    muted[DSP_FLG] = MUTED_FLG
    muted[DSP_KON] = 0x00
    return bytes(muted)


def compose(snapshot: Snapshot, mute_voices: bool = True) -> Composition:
    """
    Run every composer step for a snapshot.

    Args:
        snapshot: Source snapshot
        mute_voices: Silence the DSP until the boot stub runs

    Returns:
        The Composition to hand to the link.

    Raises:
        InvalidSnapshotError: If the stack pointer is too low.
        NoSpaceForStubError: If no injection site exists.
    """
    stack_pointer = compute_stack_pointer(snapshot)

    boot_stub = build_boot_stub(snapshot)
    boot_address = locate_injection_site(
        snapshot.program_memory,
        len(boot_stub),
        snapshot.echo_address,
        snapshot.echo_size,
    )
    if boot_address is None:
        raise NoSpaceForStubError(len(boot_stub))

    dsp_loader = build_dsp_stub(snapshot, stack_pointer)
    image = finalize_image(snapshot, boot_stub, boot_address, stack_pointer)

    dsp_registers = snapshot.dsp_registers
    if mute_voices:
        dsp_registers = mute_dsp_registers(dsp_registers)

    logger.debug(
        "Composed snapshot: boot=0x%04X sp=0x%02X echo=0x%04X+0x%X",
        boot_address, stack_pointer, snapshot.echo_address, snapshot.echo_size
    )

    return Composition(
        boot_stub=boot_stub,
        dsp_loader=dsp_loader,
        dsp_registers=dsp_registers,
        image=image,
        boot_address=boot_address,
        stack_pointer=stack_pointer,
        port_values=port_values_for(snapshot),
    )
