"""
Tests for PlayerConfig
======================
"""

import pytest

from spcduino.config import PlayerConfig

ENV_VARS = (
    "SPCDUINO_PORT",
    "SPCDUINO_BAUD",
    "SPCDUINO_READY_TIMEOUT",
    "SPCDUINO_ACK_TIMEOUT",
    "SPCDUINO_MUTE",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestPlayerConfig:
    """Tests for defaults and environment overrides."""

    def test_defaults(self, clean_env):
        config = PlayerConfig.from_env()
        assert config == PlayerConfig()
        assert config.port is None
        assert config.baud_rate == 115200
        assert config.mute_voices is True

    def test_env_overrides(self, clean_env):
        clean_env.setenv("SPCDUINO_PORT", "/dev/ttyUSB3")
        clean_env.setenv("SPCDUINO_BAUD", "57600")
        clean_env.setenv("SPCDUINO_READY_TIMEOUT", "2.5")
        clean_env.setenv("SPCDUINO_ACK_TIMEOUT", "0.75")
        config = PlayerConfig.from_env()
        assert config.port == "/dev/ttyUSB3"
        assert config.baud_rate == 57600
        assert config.ready_timeout == 2.5
        assert config.ack_timeout == 0.75

    @pytest.mark.parametrize("value", ["0", "false", "NO", " off "])
    def test_mute_disabled(self, clean_env, value):
        clean_env.setenv("SPCDUINO_MUTE", value)
        assert PlayerConfig.from_env().mute_voices is False

    def test_mute_enabled(self, clean_env):
        clean_env.setenv("SPCDUINO_MUTE", "1")
        assert PlayerConfig.from_env().mute_voices is True

    def test_invalid_values_ignored(self, clean_env, caplog):
        """Unparseable numbers keep the default and log a warning."""
        clean_env.setenv("SPCDUINO_BAUD", "fast")
        clean_env.setenv("SPCDUINO_ACK_TIMEOUT", "soon")
        config = PlayerConfig.from_env()
        assert config.baud_rate == 115200
        assert config.ack_timeout == 5.0
        assert "SPCDUINO_BAUD" in caplog.text
