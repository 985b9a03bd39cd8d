import threading
import time

import pytest

from conftest import FailingOutput
from stepper import EasyDriver, RecordingOutput
from stepper.errors import (
    AlreadyRunningError,
    DisabledError,
    InvalidDirectionError,
    PinNotConfiguredError,
    TimeoutWaitingForWorkerError,
    WriteFailedError,
)
from stepper.motors import BACKWARD, FORWARD


class StepHangOutput(RecordingOutput):
    """Hangs on STEP writes after the first N of them; other pins pass."""

    def __init__(self, step_pin, hang_after):
        super().__init__()
        self.step_pin = step_pin
        self.hang_after = hang_after
        self.step_writes = 0
        self.released = threading.Event()

    def write(self, pin, level):
        if pin == self.step_pin:
            self.step_writes += 1
            if self.step_writes > self.hang_after:
                self.released.wait()
        super().write(pin, level)


class TestConstruction:
    def test_steps_per_revolution_from_step_angle(self, output):
        driver = EasyDriver(output, 1.8, "S")
        assert driver.steps_per_revolution == 200
        assert driver.max_speed() == 210
        assert driver.speed() == 52

    def test_defaults(self, fast_easy, output):
        assert fast_easy.steps_per_revolution == 720
        assert fast_easy.speed() == fast_easy.max_speed() // 4
        assert fast_easy.is_enabled()
        assert not fast_easy.is_sleeping()
        assert output.writes == []

    def test_step_pin_is_required(self, output):
        with pytest.raises(ValueError):
            EasyDriver(output, 1.8, "")

    @pytest.mark.parametrize("angle", [0, -1.8])
    def test_step_angle_must_be_positive(self, output, angle):
        with pytest.raises(ValueError):
            EasyDriver(output, angle, "S")

    def test_initial_rpm_is_clamped(self, output):
        assert EasyDriver(output, 1.8, "S", rpm=500).speed() == 210


class TestMotion:
    def test_move_one_degree(self, fast_easy, output):
        fast_easy.move_degrees(1)

        assert output.levels() == [("D", 0), ("S", 0), ("S", 1), ("S", 0), ("S", 1)]
        assert fast_easy.current_step() == 2

    def test_step_position_does_not_wrap(self, fast_easy):
        fast_easy.move_steps(800)
        assert fast_easy.current_step() == 800

    def test_backward_sets_dir_high(self, fast_easy, output):
        fast_easy.move_steps(-3)

        assert output.levels()[0] == ("D", 1)
        assert fast_easy.direction() == BACKWARD
        assert fast_easy.current_step() == -3

    def test_pulse_width_is_one_step_period(self, fast_easy, no_sleep):
        fast_easy.set_speed(10)
        fast_easy.move_steps(2)
        # 60e6 // (720 * 10) us
        assert [c.args[0] for c in no_sleep.call_args_list] == [0.008333] * 2

    def test_single_step(self, fast_easy, output):
        fast_easy.step()
        assert output.levels() == [("S", 0), ("S", 1)]
        assert fast_easy.current_step() == 1

    def test_single_step_while_running(self, easy):
        easy.run()
        with pytest.raises(AlreadyRunningError):
            easy.step()

    def test_run_replaces_running_motion(self, easy):
        easy.run()
        easy.run()
        assert easy.is_moving()
        easy.stop()
        assert not easy.is_moving()

    def test_run_then_stop(self, easy):
        easy.run()
        time.sleep(0.03)
        easy.stop()
        assert easy.current_step() > 0
        assert not easy.is_moving()


class TestMissingPins:
    @pytest.fixture
    def bare(self, output, no_sleep):
        return EasyDriver(output, 1.8, "S", sleep=no_sleep)

    def test_forward_move_without_dir_pin(self, bare, output):
        bare.move_steps(2)
        assert output.levels() == [("S", 0), ("S", 1), ("S", 0), ("S", 1)]

    def test_backward_move_needs_dir_pin(self, bare, output):
        with pytest.raises(PinNotConfiguredError):
            bare.move_steps(-2)
        assert output.writes == []
        assert not bare.is_moving()

    @pytest.mark.parametrize(
        "operation", ["enable", "disable", "sleep", "wake"]
    )
    def test_optional_pins(self, bare, output, operation):
        with pytest.raises(PinNotConfiguredError):
            getattr(bare, operation)()
        assert output.writes == []

    def test_set_direction(self, bare):
        with pytest.raises(PinNotConfiguredError):
            bare.set_direction(FORWARD)


class TestDirection:
    @pytest.mark.parametrize(
        "name, expected, level",
        [("cw", FORWARD, 0), ("ccw", BACKWARD, 1), ("Forward", FORWARD, 0), ("backward", BACKWARD, 1)],
    )
    def test_aliases(self, fast_easy, output, name, expected, level):
        fast_easy.set_direction(name)
        assert fast_easy.direction() == expected
        assert output.levels() == [("D", level)]

    def test_invalid_direction(self, fast_easy, output):
        with pytest.raises(InvalidDirectionError):
            fast_easy.set_direction("up")
        assert output.writes == []
        assert fast_easy.direction() == FORWARD


class TestEnableAndSleep:
    def test_enable(self, fast_easy, output):
        fast_easy.enable()
        assert output.levels() == [("E", 0)]
        assert fast_easy.is_enabled()

    def test_disable_while_running(self, easy, output):
        easy.run()
        easy.disable()

        assert not easy.is_moving()
        assert not easy.is_enabled()
        assert output.levels()[-1] == ("E", 1)
        with pytest.raises(DisabledError):
            easy.move_steps(1)
        with pytest.raises(DisabledError):
            easy.run()
        with pytest.raises(DisabledError):
            easy.step()

    def test_enable_after_disable(self, fast_easy):
        fast_easy.disable()
        fast_easy.enable()
        fast_easy.move_steps(1)
        assert fast_easy.current_step() == 1

    def test_disable_writes_pin_when_stop_times_out(self):
        output = StepHangOutput("S", hang_after=2)
        driver = EasyDriver(output, 0.5, "S", "D", "E", "Z")
        try:
            driver.run()
            with pytest.raises(TimeoutWaitingForWorkerError):
                driver.disable()
            assert ("E", 1) in output.levels()
            assert not driver.is_enabled()
        finally:
            output.released.set()

    def test_failing_enable_write(self):
        driver = EasyDriver(FailingOutput(fail_pin="E"), 1.8, "S", "D", "E")
        with pytest.raises(WriteFailedError):
            driver.enable()
        with pytest.raises(WriteFailedError):
            driver.disable()
        assert driver.is_enabled()

    def test_sleep_and_wake(self, fast_easy, output, no_sleep):
        fast_easy.sleep()
        assert fast_easy.is_sleeping()
        assert output.levels() == [("Z", 0)]

        fast_easy.wake()
        assert not fast_easy.is_sleeping()
        assert output.levels()[-1] == ("Z", 1)
        no_sleep.assert_called_once_with(0.001)

    def test_sleep_stops_motion(self, easy, output):
        easy.run()
        easy.sleep()
        assert not easy.is_moving()
        assert output.levels()[-1] == ("Z", 0)


class TestCommands:
    def test_extra_commands(self, fast_easy):
        names = fast_easy.commander.commands()
        for name in ("Move", "Run", "Stop", "Step", "Enable", "Disable", "Sleep", "Wake"):
            assert name in names

    def test_step_command(self, fast_easy):
        assert fast_easy.commander.execute("Step") == {"result": None}
        assert fast_easy.current_step() == 1

    def test_set_direction_command(self, fast_easy):
        fast_easy.commander.execute("SetDirection", {"direction": "ccw"})
        assert fast_easy.direction() == BACKWARD

    def test_to_json(self, fast_easy):
        fast_easy.sleep()
        data = fast_easy.to_json()
        assert data["name"] == "EasyDriver"
        assert data["sleeping"] is True
        assert data["step_pin"] == "S"
