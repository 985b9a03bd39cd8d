"""Digital output sinks the stepper drivers write to.

A sink is any object with ``write(pin, level)`` that raises on failure. The
drivers never interpret pin identifiers; they are passed through as given.
"""

import threading
import time
from typing import Protocol

import lgpio


class DigitalWriter(Protocol):
    def write(self, pin: str, level: int) -> None: ...


class LgpioOutput:
    """Drives header GPIOs through an lgpio chip handle.

    Pins are claimed as outputs on first write.
    """

    def __init__(self, chip: int):
        """
        Args:
            chip: lgpio chip handle from gpiochip_open()
        """
        self.chip = chip
        self._claimed = set()
        self._lock = threading.Lock()

    def write(self, pin: str, level: int) -> None:
        gpio = int(pin)
        with self._lock:
            if gpio not in self._claimed:
                lgpio.gpio_claim_output(self.chip, gpio, level)
                self._claimed.add(gpio)
        lgpio.gpio_write(self.chip, gpio, level)

    def close(self) -> None:
        """Release every claimed pin (leaves the chip handle open)."""
        with self._lock:
            for gpio in self._claimed:
                lgpio.gpio_free(self.chip, gpio)
            self._claimed.clear()


class RecordingOutput:
    """In-memory sink that records ``(pin, level, timestamp)`` for every write.

    Used by the timing script and the test suite in place of real hardware.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.writes = []
        self._lock = threading.Lock()

    def write(self, pin: str, level: int) -> None:
        with self._lock:
            self.writes.append((pin, level, self.clock()))

    def levels(self) -> list[tuple[str, int]]:
        """Recorded writes without timestamps."""
        with self._lock:
            return [(pin, level) for pin, level, _ in self.writes]

    def clear(self) -> None:
        with self._lock:
            self.writes.clear()
