"""
SPC Snapshot Handling
=====================

- **parser**: Reads ``.spc`` files into immutable Snapshot objects
- **programs**: The DSP loader and boot stub templates
- **composer**: Patches the stubs and builds the finalized image

Usage:
    >>> from spcduino.spc import parse_spc_file, compose
    >>> composition = compose(parse_spc_file("song.spc"))
    >>> len(composition.image)
    65536
"""

from spcduino.spc.parser import (
    SPC_SIGNATURE,
    MIN_SPC_SIZE,
    Id666Tag,
    Snapshot,
    build_spc,
    parse_id666,
    parse_spc,
    parse_spc_file,
)
from spcduino.spc.programs import (
    BOOT_STUB_TEMPLATE,
    DSP_LOADER_TEMPLATE,
)
from spcduino.spc.composer import (
    HIGHEST_BOOTABLE_ADDRESS,
    LOWEST_BOOTABLE_ADDRESS,
    ZERO_PORT_SENTINEL,
    Composition,
    build_boot_stub,
    build_dsp_stub,
    compose,
    compute_stack_pointer,
    finalize_image,
    locate_injection_site,
    mute_dsp_registers,
    port_values_for,
)

__all__ = [
    "SPC_SIGNATURE",
    "MIN_SPC_SIZE",
    "Id666Tag",
    "Snapshot",
    "build_spc",
    "parse_id666",
    "parse_spc",
    "parse_spc_file",
    "BOOT_STUB_TEMPLATE",
    "DSP_LOADER_TEMPLATE",
    "HIGHEST_BOOTABLE_ADDRESS",
    "LOWEST_BOOTABLE_ADDRESS",
    "ZERO_PORT_SENTINEL",
    "Composition",
    "build_boot_stub",
    "build_dsp_stub",
    "compose",
    "compute_stack_pointer",
    "finalize_image",
    "locate_injection_site",
    "mute_dsp_registers",
    "port_values_for",
]
