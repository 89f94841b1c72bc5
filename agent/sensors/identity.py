"""
agent.sensors.identity

AUTHOR: carter-vin

- device_id: stable device identifier (default hostname; override via env var)

Design goals:
- Deterministic behavior
- No network calls, no heavy dependencies
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass

from agent.config import DEVICE_ID_ENV


@dataclass(frozen=True)
class IdentityResult:
    """
    Identity output.

    source: "override", "env" or "hostname"
    """

    device_id: str
    source: str


def collect_identity(override: str | None = None) -> IdentityResult:
    """
    Collect device identity.

    Precedence:
    1) explicit override (CLI option)
    2) device_id from env var (CATBELL_DEVICE_ID)
    3) hostname
    """
    if override and override.strip():
        return IdentityResult(device_id=override.strip(), source="override")

    device_id = os.getenv(DEVICE_ID_ENV, "").strip()
    if device_id:
        return IdentityResult(device_id=device_id, source="env")

    hostname = socket.gethostname()
    if not hostname:
        raise RuntimeError("hostname unavailable; set the device id explicitly")
    return IdentityResult(device_id=hostname, source="hostname")
