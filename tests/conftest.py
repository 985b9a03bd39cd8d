import threading
from unittest.mock import MagicMock

import pytest

from stepper import EasyDriver, RecordingOutput, StepperDriver

PINS = ("A", "B", "C", "D")


class FailingOutput(RecordingOutput):
    """Records writes, raising for the chosen pin or for the first N writes."""

    def __init__(self, fail_pin=None, fail_first=0):
        super().__init__()
        self.fail_pin = fail_pin
        self.fail_first = fail_first
        self.attempts = 0

    def write(self, pin, level):
        self.attempts += 1
        if pin == self.fail_pin or self.attempts <= self.fail_first:
            raise OSError("write error")
        super().write(pin, level)


class BlockingOutput(RecordingOutput):
    """Records writes, then hangs on every write after the first N."""

    def __init__(self, block_after):
        super().__init__()
        self.block_after = block_after
        self.released = threading.Event()

    def write(self, pin, level):
        if len(self.writes) >= self.block_after:
            self.released.wait()
        super().write(pin, level)


@pytest.fixture
def output():
    return RecordingOutput()


@pytest.fixture
def no_sleep():
    return MagicMock()


@pytest.fixture
def stepper(output):
    """Dual-phase stepper, 200 steps/rev at 60 rpm (5 ms per step)."""
    driver = StepperDriver(output, PINS, steps_per_revolution=200, rpm=60)
    yield driver
    driver.stop_if_running()


@pytest.fixture
def fast_stepper(output, no_sleep):
    driver = StepperDriver(output, PINS, steps_per_revolution=200, sleep=no_sleep)
    yield driver
    driver.stop_if_running()


@pytest.fixture
def easy(output):
    """EasyDriver with every pin wired, 0.5 degree steps."""
    driver = EasyDriver(output, 0.5, "S", "D", "E", "Z")
    yield driver
    driver.stop_if_running()


@pytest.fixture
def fast_easy(output, no_sleep):
    driver = EasyDriver(output, 0.5, "S", "D", "E", "Z", sleep=no_sleep)
    yield driver
    driver.stop_if_running()


@pytest.fixture
def blocking_output():
    out = BlockingOutput(block_after=4)
    yield out
    out.released.set()
