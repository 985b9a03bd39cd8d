from unittest.mock import call, patch

import pytest

from stepper.outputs import LgpioOutput, RecordingOutput


@pytest.fixture
def lgpio():
    with patch("stepper.outputs.lgpio") as mock:
        yield mock


def test_claims_pin_once(lgpio):
    output = LgpioOutput(4)
    output.write("17", 1)
    output.write("17", 0)

    lgpio.gpio_claim_output.assert_called_once_with(4, 17, 1)
    assert lgpio.gpio_write.call_args_list == [call(4, 17, 1), call(4, 17, 0)]


def test_write_error_propagates(lgpio):
    lgpio.gpio_write.side_effect = RuntimeError("GPIO busy")
    with pytest.raises(RuntimeError):
        LgpioOutput(4).write("17", 1)


def test_close_frees_claimed_pins(lgpio):
    output = LgpioOutput(4)
    output.write("17", 1)
    output.write("27", 1)
    output.close()

    freed = sorted(c.args[1] for c in lgpio.gpio_free.call_args_list)
    assert freed == [17, 27]

    output.write("17", 0)
    assert lgpio.gpio_claim_output.call_count == 3


def test_recording_output():
    ticks = iter([1.0, 2.0])
    output = RecordingOutput(clock=lambda: next(ticks))
    output.write("A", 1)
    output.write("B", 0)

    assert output.writes == [("A", 1, 1.0), ("B", 0, 2.0)]
    assert output.levels() == [("A", 1), ("B", 0)]
    output.clear()
    assert output.writes == []
