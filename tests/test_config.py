"""
Contract tests for configuration knobs and device identity
"""

import pytest

from agent.config import TimingSettings, require_setting
from agent.errors import ConfigurationMissing
from agent.sensors.identity import collect_identity


def test_defaults() -> None:
    timing = TimingSettings()

    assert timing.poll_interval_ms == 100
    assert timing.debounce_window_ms == 20_000
    assert timing.heartbeat_window_ms == 60_000


def test_from_options_converts_seconds() -> None:
    timing = TimingSettings.from_options(250, 1.5, 30)

    assert timing == TimingSettings(poll_interval_ms=250, debounce_window_ms=1_500, heartbeat_window_ms=30_000)


def test_from_options_rejects_nonsense() -> None:
    with pytest.raises(ValueError, match="heartbeat"):
        TimingSettings.from_options(100, 20, 0)


def test_require_setting_names_the_env_var() -> None:
    with pytest.raises(ConfigurationMissing, match="CATBELL_INGEST_URL"):
        require_setting("  ", setting="ingest url", envvar="CATBELL_INGEST_URL")

    assert require_setting(" https://x ", setting="ingest url", envvar="CATBELL_INGEST_URL") == "https://x"


def test_identity_precedence(monkeypatch) -> None:
    monkeypatch.setenv("CATBELL_DEVICE_ID", "from-env")

    assert collect_identity("from-cli").device_id == "from-cli"
    assert collect_identity().source == "env"

    monkeypatch.delenv("CATBELL_DEVICE_ID")
    monkeypatch.setattr("socket.gethostname", lambda: "catbell-pi")

    identity = collect_identity()
    assert identity.device_id == "catbell-pi"
    assert identity.source == "hostname"
