"""agent.sensors package exports."""

from agent.sensors.base import SampleOutcome, SampleReader, read_sample
from agent.sensors.gpio import GpioSampleReader
from agent.sensors.identity import collect_identity
from agent.sensors.scripted import ScriptedSampleReader, load_samples

__all__ = [
    "GpioSampleReader",
    "SampleOutcome",
    "SampleReader",
    "ScriptedSampleReader",
    "collect_identity",
    "load_samples",
    "read_sample",
]
