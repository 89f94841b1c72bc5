"""
agent.config
AUTHOR: carter-vin

Runtime configuration knobs

Every knob can be given as a CLI option or via its environment variable
(typer resolves the env var). This module owns the names, defaults and
validation so both CLIs agree on them.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from agent.errors import ConfigurationMissing

AGENT_VERSION = "0.1.0"

# Device agent
POLL_INTERVAL_MS_ENV = "CATBELL_POLL_INTERVAL_MS"
DEBOUNCE_WINDOW_S_ENV = "CATBELL_DEBOUNCE_WINDOW_S"
HEARTBEAT_WINDOW_S_ENV = "CATBELL_HEARTBEAT_WINDOW_S"
SENSOR_PIN_ENV = "CATBELL_SENSOR_PIN"
DEVICE_ID_ENV = "CATBELL_DEVICE_ID"
PUBLISHER_ENV = "CATBELL_PUBLISHER"
SPOOL_PATH_ENV = "CATBELL_SPOOL_PATH"
INGEST_URL_ENV = "CATBELL_INGEST_URL"
SPOOL_MAX_BYTES_ENV = "CATBELL_SPOOL_MAX_BYTES"

DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_DEBOUNCE_WINDOW_S = 20.0
DEFAULT_HEARTBEAT_WINDOW_S = 60.0
DEFAULT_SENSOR_PIN = 17
DEFAULT_PUBLISHER = "spool"
DEFAULT_SPOOL_PATH = Path("spool") / "catbell_events.jsonl"
DEFAULT_SPOOL_ROTATE_COUNT = 3

VALID_PUBLISHERS = {"spool", "http"}

# Listener
LISTENER_STREAM_DIR_ENV = "CATBELL_LISTENER_STREAM_DIR"
LISTENER_STORAGE_PATH_ENV = "CATBELL_LISTENER_STORAGE_PATH"
LISTENER_TABLE_NAME_ENV = "CATBELL_LISTENER_STORAGE_TABLE_NAME"

DEFAULT_TABLE_NAME = "proximity"


@dataclass(frozen=True)
class TimingSettings:
    """
    Timing knobs for the device loop

    All engine arithmetic is in integer milliseconds
    """

    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    debounce_window_ms: int = int(DEFAULT_DEBOUNCE_WINDOW_S * 1000)
    heartbeat_window_ms: int = int(DEFAULT_HEARTBEAT_WINDOW_S * 1000)

    @staticmethod
    def from_options(
        poll_interval_ms: int,
        debounce_window_s: float,
        heartbeat_window_s: float,
    ) -> "TimingSettings":
        settings = TimingSettings(
            poll_interval_ms=int(poll_interval_ms),
            debounce_window_ms=int(round(debounce_window_s * 1000)),
            heartbeat_window_ms=int(round(heartbeat_window_s * 1000)),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """
        Raises ValueError on invalid
        """
        if self.poll_interval_ms < 1:
            raise ValueError("poll interval must be >= 1 ms")
        if self.debounce_window_ms < 0:
            raise ValueError("debounce window must be >= 0")
        if self.heartbeat_window_ms < 1:
            raise ValueError("heartbeat window must be > 0")


def require_setting(value: str | None, *, setting: str, envvar: str) -> str:
    """
    Return a required value or fail startup with ConfigurationMissing
    """
    if value is None or not str(value).strip():
        raise ConfigurationMissing(setting, envvar)
    return str(value).strip()
