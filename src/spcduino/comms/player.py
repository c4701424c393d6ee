"""
Playback Session
================

This module ties the composer and the link together: it prepares a
snapshot and walks the spcduino through the full boot sequence.

    port = create_serial_port('/dev/ttyACM0')
    with SpcduinoLink(port) as link:
        link.open()
        SpcPlayer(link).play(parse_spc_file('song.spc'))

Composition happens before any traffic, so a snapshot without room for
the boot stub fails without disturbing the device. After that, the first
failing command aborts the sequence; nothing after it was executed.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from spcduino.comms.link import ProgressCallback, SpcduinoLink
from spcduino.spc.composer import Composition, compose
from spcduino.spc.parser import Snapshot, parse_spc_file

logger = logging.getLogger(__name__)


class SpcPlayer:
    """
    Plays snapshots on an open SpcduinoLink.

    Example:
        player = SpcPlayer(link, mute_voices=True)
        composition = player.play(snapshot, progress=progress_callback)
        print(f"Booted at 0x{composition.boot_address:04X}")
    """

    def __init__(self, link: SpcduinoLink, mute_voices: bool = True):
        """
        Initialize the player.

        Args:
            link: Link that has already seen READY.
            mute_voices: Silence the DSP until the boot stub runs.
        """
        self.link = link
        self.mute_voices = mute_voices

    def play(
        self,
        snapshot: Snapshot,
        progress: Optional[ProgressCallback] = None,
    ) -> Composition:
        """
        Compose a snapshot and start it on the device.

        Args:
            snapshot: Snapshot to play.
            progress: Optional callback for image upload progress.

        Returns:
            The Composition that was sent.

        Raises:
            NoSpaceForStubError: If the boot stub cannot be placed.
            CommandError: If the device rejects a command or the serial link
                          fails (the latter is also a TransportError).
        """
        composition = compose(snapshot, mute_voices=self.mute_voices)
        logger.info(
            "Boot stub at 0x%04X, stack pointer 0x%02X",
            composition.boot_address, composition.stack_pointer
        )

        self.link.reset()
        self.link.load_dsp_state(composition.dsp_loader, composition.dsp_registers)
        self.link.load_image(composition.image, progress=progress)
        self.link.play(composition.boot_address, composition.port_values)

        return composition


def play_spc_file(
    link: SpcduinoLink,
    spc_path: Union[str, Path],
    mute_voices: bool = True,
    progress: Optional[ProgressCallback] = None,
) -> Composition:
    """
    Play an SPC file on an open link.

    Raises:
        FileNotFoundError: If the SPC file is not found.
        SpcFormatError: If the SPC file is invalid.
        SpcduinoError: If composition or the transfer fails.
    """
    path = Path(spc_path)
    if not path.exists():
        raise FileNotFoundError(f"SPC file not found: {spc_path}")

    snapshot = parse_spc_file(path)
    return SpcPlayer(link, mute_voices=mute_voices).play(snapshot, progress=progress)
