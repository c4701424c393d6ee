"""
spcduino Configuration
======================

Player settings. Configuration can come from:
- Default values (defined here)
- Environment variables (PlayerConfig.from_env)
- Command-line options (applied by spcplay on top of the environment)

Environment variables (all optional):
    SPCDUINO_PORT: Serial device path
    SPCDUINO_BAUD: Baud rate (integer)
    SPCDUINO_READY_TIMEOUT: Seconds to wait for READY after opening
    SPCDUINO_ACK_TIMEOUT: Seconds to wait for each acknowledgement
    SPCDUINO_MUTE: "0"/"false"/"no" to keep voices running during upload
"""

from dataclasses import dataclass
from typing import Optional
import logging
import os

from spcduino.comms.serial import DEFAULT_BAUD_RATE

logger = logging.getLogger(__name__)

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class PlayerConfig:
    """
    Settings for one playback session.

    Attributes:
        port: Serial device, or None to auto-detect
        baud_rate: Serial speed, must match the firmware
        ready_timeout: Seconds to wait for READY after opening the port
        ack_timeout: Seconds to wait for each acknowledgement
        mute_voices: Silence the DSP until the boot stub runs
    """

    port: Optional[str] = None
    baud_rate: int = DEFAULT_BAUD_RATE
    ready_timeout: float = 10.0
    ack_timeout: float = 5.0
    mute_voices: bool = True

    @classmethod
    def from_env(cls) -> "PlayerConfig":
        """
        Create a PlayerConfig from environment variables.

        Invalid numeric values are ignored with a warning.
        """
        config = cls()

        if port := os.environ.get("SPCDUINO_PORT"):
            config.port = port

        if baud := os.environ.get("SPCDUINO_BAUD"):
            try:
                config.baud_rate = int(baud)
            except ValueError:
                logger.warning("Ignoring invalid SPCDUINO_BAUD: %r", baud)

        if ready := os.environ.get("SPCDUINO_READY_TIMEOUT"):
            try:
                config.ready_timeout = float(ready)
            except ValueError:
                logger.warning("Ignoring invalid SPCDUINO_READY_TIMEOUT: %r", ready)

        if ack := os.environ.get("SPCDUINO_ACK_TIMEOUT"):
            try:
                config.ack_timeout = float(ack)
            except ValueError:
                logger.warning("Ignoring invalid SPCDUINO_ACK_TIMEOUT: %r", ack)

        if mute := os.environ.get("SPCDUINO_MUTE"):
            config.mute_voices = mute.strip().lower() not in _FALSE_VALUES

        return config
