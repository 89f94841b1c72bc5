"""
agent.sensors.gpio
AUTHOR: carter-vin

PIR motion sensor on a Raspberry Pi GPIO pin
- gpiozero MotionSensor, read as a raw level (queue_len=1, no smoothing)
- debouncing happens in agent.debounce, not here
- gpiozero is imported on construction so dev machines can import this module
"""

from __future__ import annotations

from typing import Any

from agent.errors import SampleReadFailure


class GpioSampleReader:
    def __init__(self, pin: int, *, sensor: Any | None = None) -> None:
        self.pin = pin

        if sensor is None:
            from gpiozero import MotionSensor

            # Raw-ish readings: single sample queue, threshold at half level
            sensor = MotionSensor(pin, queue_len=1, sample_rate=50, threshold=0.5)

        self._sensor = sensor

    def read(self) -> bool:
        try:
            value = self._sensor.value
        except Exception as e:
            raise SampleReadFailure(f"gpio pin {self.pin} read failed: {e}") from e

        if value is None:
            raise SampleReadFailure(f"gpio pin {self.pin} returned no value")
        return bool(value >= 0.5)

    def close(self) -> None:
        close = getattr(self._sensor, "close", None)
        if close is not None:
            close()
