"""
agent.sensors.scripted
AUTHOR: carter-vin

Scripted reader
- replays a fixed sequence of samples (bench replays, tests)
- raises SampleReadFailure once the script is exhausted
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from agent.errors import SampleReadFailure

TRUE_TOKENS = {"1", "true", "t", "yes", "y", "on", "high"}
FALSE_TOKENS = {"0", "false", "f", "no", "n", "off", "low"}


def parse_sample_token(token: str) -> bool:
    """
    Parse one textual sample (1/0, true/false, high/low, ...)
    """
    value = token.strip().lower()
    if value in TRUE_TOKENS:
        return True
    if value in FALSE_TOKENS:
        return False
    raise ValueError(f"invalid sample token: {token!r}")


def load_samples(path: Path) -> list[bool]:
    """
    Load samples from a text file, one per line

    Blank lines and '#' comments are ignored
    """
    samples: list[bool] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        stripped = line.split("#", 1)[0].strip()
        if not stripped:
            continue
        try:
            samples.append(parse_sample_token(stripped))
        except ValueError as e:
            raise ValueError(f"{path}:{lineno}: {e}") from e
    return samples


class ScriptedSampleReader:
    def __init__(self, samples: Iterable[bool | Exception]) -> None:
        self._samples = list(samples)
        self._index = 0

    @property
    def remaining(self) -> int:
        return len(self._samples) - self._index

    def read(self) -> bool:
        if self._index >= len(self._samples):
            raise SampleReadFailure("sample script exhausted")

        item = self._samples[self._index]
        self._index += 1

        # Exceptions in the script simulate hardware read errors
        if isinstance(item, Exception):
            raise item
        return bool(item)
