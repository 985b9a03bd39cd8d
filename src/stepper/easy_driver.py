"""Step/dir driver boards such as the SparkFun EasyDriver (A3967).

The board commutates the coils itself; we only send one STEP pulse per step
(a low to high transition) plus optional DIR, EN and SLEEP levels. EN and
SLEEP are active low. The step number is free running, it does not wrap.
"""

from stepper.config import WAKE_SETTLE_TIME
from stepper.errors import (
    AlreadyRunningError,
    DisabledError,
    InvalidDirectionError,
    PinNotConfiguredError,
    StepperError,
    WriteFailedError,
)
from stepper.motors import BACKWARD, FORWARD, BaseStepper

_DIRECTION_ALIASES = {
    FORWARD: FORWARD,
    "cw": FORWARD,
    BACKWARD: BACKWARD,
    "ccw": BACKWARD,
}


class EasyDriver(BaseStepper):
    """Stepper behind an external step/dir driver board."""

    def __init__(
        self,
        writer,
        step_angle: float,
        step_pin: str,
        dir_pin: str = "",
        enable_pin: str = "",
        sleep_pin: str = "",
        name: str = "EasyDriver",
        rpm: int | None = None,
        halt_on_run_while_running: bool = True,
        **kwargs,
    ):
        """
        Args:
            writer: Digital output sink with write(pin, level)
            step_angle: Degrees per step of the motor (e.g. 1.8)
            step_pin: STEP input of the board (required)
            dir_pin: DIR input, "" if not wired
            enable_pin: EN input (active low), "" if not wired
            sleep_pin: SLEEP input (active low), "" if not wired
            name: Label used in errors and logs
            rpm: Initial speed, defaults to a quarter of max_speed()
            halt_on_run_while_running: A new motion replaces a running one
            **kwargs: Engine options, see BaseStepper
        """
        if not step_pin:
            raise ValueError("Step pin is not set")
        if step_angle <= 0:
            raise ValueError(f"Step angle must be positive, got {step_angle}")

        self.step_angle = step_angle
        self.step_pin = str(step_pin)
        self.dir_pin = str(dir_pin) if dir_pin else ""
        self.enable_pin = str(enable_pin) if enable_pin else ""
        self.sleep_pin = str(sleep_pin) if sleep_pin else ""
        self._sleeping = False

        super().__init__(
            writer,
            round(360 / step_angle),
            name,
            halt_on_run_while_running=halt_on_run_while_running,
            **kwargs,
        )
        # 1/4 of max speed. Not too fast, not too slow
        if rpm is None:
            rpm = max(1, self.max_speed() // 4)
        self._speed = min(max(int(rpm), 1), self.max_speed())

    def _emit_step(self) -> None:
        """One STEP pulse; the rising edge commits the step on the board."""
        with self._values:
            delay = 60_000_000 // (self._steps_per_rev * self._speed) / 1_000_000
            self._write(self.step_pin, 0)
            self._sleep(delay)
            self._write(self.step_pin, 1)
            self._step_num += 1 if self._direction == FORWARD else -1

    def step(self) -> None:
        """Emit a single step right away, outside of any motion."""
        with self._mutex:
            if self._disabled:
                raise DisabledError(f"{self.name} is disabled")
            if self.is_moving():
                raise AlreadyRunningError(f"{self.name} already running or moving")
            self._emit_step()

    # ── Direction ─────────────────────────────────────────────────────

    def _parse_direction(self, direction: str) -> str:
        try:
            return _DIRECTION_ALIASES[str(direction).lower()]
        except KeyError:
            raise InvalidDirectionError(
                f"Invalid direction '{direction}'. Value should be "
                f"'{FORWARD}' ('cw') or '{BACKWARD}' ('ccw')"
            ) from None

    def set_direction(self, direction: str) -> None:
        """Drive DIR low for forward (cw), high for backward (ccw)."""
        if not self.dir_pin:
            raise PinNotConfiguredError(f"{self.name}: dirPin is not set")
        direction = self._parse_direction(direction)
        self._write(self.dir_pin, 0 if direction == FORWARD else 1)
        with self._values:
            self._direction = direction

    def _prepare_direction(self, direction: str) -> None:
        if not self.dir_pin:
            if direction != FORWARD:
                raise PinNotConfiguredError(
                    f"{self.name}: dirPin is not set, cannot move backward"
                )
            return
        self.set_direction(direction)

    # ── Enable / disable ──────────────────────────────────────────────

    def enable(self) -> None:
        """Enable the output stage (EN low)."""
        if not self.enable_pin:
            raise PinNotConfiguredError(
                f"{self.name}: enPin is not set - board is enabled by default"
            )
        self._write(self.enable_pin, 0)
        self._disabled = False

    def disable(self) -> None:
        """Stop any motion, then disable the output stage (EN high).

        The pin is written even if stopping failed; the stop error is raised
        afterwards.
        """
        if not self.enable_pin:
            raise PinNotConfiguredError(f"{self.name}: enPin is not set")
        with self._mutex:
            stop_error = self._stop_then_write(self.enable_pin, 1)
            self._disabled = True
        if stop_error is not None:
            raise stop_error

    # ── Sleep / wake ──────────────────────────────────────────────────

    def sleep(self) -> None:
        """Stop any motion and put the board into low power mode (SLEEP low)."""
        if not self.sleep_pin:
            raise PinNotConfiguredError(f"{self.name}: sleepPin is not set")
        with self._mutex:
            stop_error = self._stop_then_write(self.sleep_pin, 0)
            self._sleeping = True
        if stop_error is not None:
            raise stop_error

    def wake(self) -> None:
        """Leave low power mode and wait for the charge pump to settle."""
        if not self.sleep_pin:
            raise PinNotConfiguredError(f"{self.name}: sleepPin is not set")
        self._write(self.sleep_pin, 1)
        self._sleeping = False
        self._sleep(WAKE_SETTLE_TIME)

    def is_sleeping(self) -> bool:
        return self._sleeping

    def _stop_then_write(self, pin: str, level: int):
        """Stop any motion, then write the pin even if stopping failed.

        Returns the stop error, if any, for the caller to raise once its
        state is updated.
        """
        stop_error = None
        try:
            self.stop_if_running()
        except StepperError as exc:
            stop_error = exc
        try:
            self._write(pin, level)
        except WriteFailedError as exc:
            if stop_error is not None:
                raise stop_error from exc
            raise
        return stop_error

    # ── Commands / JSON ───────────────────────────────────────────────

    def _add_commands(self) -> None:
        super()._add_commands()
        self.commander.add_command("Step", lambda p: self.step())
        self.commander.add_command("Enable", lambda p: self.enable())
        self.commander.add_command("Disable", lambda p: self.disable())
        self.commander.add_command("Sleep", lambda p: self.sleep())
        self.commander.add_command("Wake", lambda p: self.wake())

    def to_json(self) -> dict:
        data = super().to_json()
        data["sleeping"] = self.is_sleeping()
        data["step_pin"] = self.step_pin
        return data
