"""
agent.sensors.base
AUTHOR: carter-vin

Sample reader contract + light result wrapper -> prevent read errors from crashing agent
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Protocol

from agent.model import RawSample


class SampleReader(Protocol):
    """
    Poll-based boolean presence source (no push/interrupt semantics)
    """

    def read(self) -> bool: ...


@dataclass(frozen=True)
class SampleOutcome:
    """
    Normalized read result
    - ok: false=failure, error details in error fields
    - sample: RawSample if ok=true
    """

    ok: bool
    sample: Optional[RawSample] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


def read_sample(reader: SampleReader, now_ms: int) -> SampleOutcome:
    """
    Read one sample & collect failure as data
    """
    try:
        value = reader.read()
        return SampleOutcome(ok=True, sample=RawSample(value=bool(value), observed_at_ms=now_ms))
    except Exception as e:
        return SampleOutcome(
            ok=False,
            sample=None,
            error_type=type(e).__name__,
            error_message=str(e),
        )
