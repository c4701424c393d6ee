"""
SPC700 Stub Programs
====================

Two small machine-code programs are needed to resume a captured snapshot
on real hardware. Both were taken from SNES_APU_SD by emukidid:
https://github.com/emukidid/SNES_APU_SD

DSP Loader
----------
Uploaded through the IPL transfer protocol and run first. It receives the
128 DSP registers through the I/O ports, writes them in order, restores
the three timer targets and the stack pointer, then branches back into
the IPL ROM so the rest of RAM can be uploaded.

Boot Stub
---------
Injected into unused RAM inside the image and entered by the play
command. It restores zero page bytes 0x00/0x01 (clobbered by the IPL
transfer), waits for the host to put the captured values on ports 0 and
3, restores the control register, the DSP FLG/key-on state and the DSP
address register, pops A, X, Y and returns from interrupt into the
captured program counter.

Templates are immutable. Patch a copy: ``bytearray(BOOT_STUB_TEMPLATE)``.
Slot offsets index the template; a zero in the template marks a slot.
"""

from typing import Final

# =============================================================================
# DSP Loader
# =============================================================================

DSP_LOADER_TEMPLATE: Final[bytes] = bytes([
    0xC4, 0xF2,        # start:  MOV [0F2h], A
    0x64, 0xF4,        # loop:   CMP A, [0F4h]
    0xD0, 0xFC,        #         BNE loop
    0xFA, 0xF5, 0xF3,  #         MOV [0F3h], [0F5h]
    0xC4, 0xF4,        #         MOV [0F4h], A
    0xBC,              #         INC A
    0x10, 0xF2,        #         BPL start

    0x8F, 0x00, 0xFC,  #         MOV [0FCh], #timer_2
    0x8F, 0x00, 0xFB,  #         MOV [0FBh], #timer_1
    0x8F, 0x00, 0xFA,  #         MOV [0FAh], #timer_0

    0xCD, 0x00,        #         MOV X, #stack_pointer
    0xBD,              #         MOV SP, X

    0x2F, 0xAB,        #         BRA 0FFC9h  ; IPL waits for the next block
])

DSP_LOADER_TIMER2_SLOT: Final[int] = 0x0F
DSP_LOADER_TIMER1_SLOT: Final[int] = 0x12
DSP_LOADER_TIMER0_SLOT: Final[int] = 0x15
DSP_LOADER_STACK_POINTER_SLOT: Final[int] = 0x18


# =============================================================================
# Boot Stub
# =============================================================================

# Value the boot stub acknowledges with on port 0
BOOT_STUB_ACK_BYTE: Final[int] = 0x53

BOOT_STUB_TEMPLATE: Final[bytes] = bytes([
    0x8F, 0x00, 0x00,  #         MOV [0], #byte_0
    0x8F, 0x00, 0x01,  #         MOV [1], #byte_1
    0x8F, 0xB0, 0xF1,  #         MOV [0F1h], #0B0h   ; clear the I/O ports
    0xCD, BOOT_STUB_ACK_BYTE,  # MOV X, #ack_byte
    0xD8, 0xF4,        #         MOV [0F4h], X

    0xE4, 0xF4,        # in0:    MOV A, [0F4h]
    0x68, 0x00,        #         CMP A, #io_byte_0
    0xD0, 0xFA,        #         BNE in0

    0xE4, 0xF7,        # in3:    MOV A, [0F7h]
    0x68, 0x00,        #         CMP A, #io_byte_3
    0xD0, 0xFA,        #         BNE in3

    0x8F, 0x00, 0xF1,  #         MOV [0F1h], #control_byte

    0x8F, 0x6C, 0xF2,  #         MOV [0F2h], #6Ch
    0x8F, 0x00, 0xF3,  #         MOV [0F3h], #flg_byte
    0x8F, 0x4C, 0xF2,  #         MOV [0F2h], #4Ch
    0x8F, 0x00, 0xF3,  #         MOV [0F3h], #key_on_byte
    0x8F, 0x00, 0xF2,  #         MOV [0F2h], #dsp_address_byte
    0xAE,              #         POP A
    0xCE,              #         POP X
    0xEE,              #         POP Y
    0x7F,              #         RETI
])

BOOT_STUB_BYTE0_SLOT: Final[int] = 0x01
BOOT_STUB_BYTE1_SLOT: Final[int] = 0x04
BOOT_STUB_PORT0_SLOT: Final[int] = 0x10
BOOT_STUB_PORT3_SLOT: Final[int] = 0x16
BOOT_STUB_CONTROL_SLOT: Final[int] = 0x1A
BOOT_STUB_FLG_SLOT: Final[int] = 0x20
BOOT_STUB_KEY_ON_SLOT: Final[int] = 0x26
BOOT_STUB_DSP_ADDRESS_SLOT: Final[int] = 0x29
