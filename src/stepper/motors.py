"""Stepper motion engine and the 4-wire phase commutator driver.

This module only understands steps and RPM. Each motion (counted move or
endless run) is carried out by a MotionWorker thread that owns the outputs
until it ends; at most one is alive per driver.
"""

import logging
import math
import threading
import time

from stepper.commands import Commander
from stepper.config import MAX_STEPS_PER_SECOND, STOP_TIMEOUT_MARGIN
from stepper.errors import (
    AlreadyRunningError,
    DisabledError,
    InvalidDirectionError,
    InvalidSpeedError,
    NoStepsToDoError,
    NotRunningError,
    WriteFailedError,
)
from stepper.phases import DUAL_PHASE, levels, phase_table
from stepper.worker import MotionWorker

logger = logging.getLogger(__name__)

FORWARD = "forward"
BACKWARD = "backward"

_DEFAULT_HOOK = object()


def round_half_away(value: float) -> int:
    """Round like a stepper controller does: 0.5 steps become 1, -0.5 become -1."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class BaseStepper:
    """Motion engine shared by the commutator and the step/dir drivers.

    Subclasses implement ``_emit_step`` (one step, including its delay) and
    ``_prepare_direction`` (applied before the first step of a counted move).

    Two locks are used: ``_values`` guards step number, direction and speed
    and is taken once per step; ``_mutex`` serializes motion lifecycle
    (launching, stopping and clearing the worker slot).
    """

    def __init__(
        self,
        writer,
        steps_per_revolution: int,
        name: str,
        rpm: int | None = None,
        max_steps_per_second: int = MAX_STEPS_PER_SECOND,
        halt_on_run_while_running: bool = False,
        skip_step_errors: bool = False,
        sleep=time.sleep,
        on_finished=None,
        after_start=None,
        before_halt=_DEFAULT_HOOK,
        stop_timeout_margin: float = STOP_TIMEOUT_MARGIN,
    ):
        if not isinstance(steps_per_revolution, int) or steps_per_revolution <= 0:
            raise ValueError(
                f"steps_per_revolution must be a positive integer, got {steps_per_revolution!r}"
            )
        if max_steps_per_second <= 0:
            raise ValueError("max_steps_per_second must be positive")

        self.name = name
        self.writer = writer
        self._steps_per_rev = steps_per_revolution
        self.max_steps_per_second = max_steps_per_second
        self.halt_on_run_while_running = halt_on_run_while_running
        self.skip_step_errors = skip_step_errors
        self.on_finished = on_finished
        self.after_start = after_start
        self.before_halt = (
            self.stop_if_running if before_halt is _DEFAULT_HOOK else before_halt
        )
        self.stop_timeout_margin = stop_timeout_margin
        self._sleep = sleep

        self._values = threading.Lock()
        self._mutex = threading.RLock()
        self._worker = None

        self._step_num = 0
        self._direction = FORWARD
        self._speed = self.max_speed()
        self._disabled = False

        if rpm is not None:
            self._speed = min(max(int(rpm), 1), self.max_speed())

        self.commander = Commander()
        self._add_commands()

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Outputs stay idle; runs the after_start hook if one is set."""
        if self.after_start is not None:
            self.after_start()

    def halt(self) -> None:
        """Run the before_halt hook (by default: force-stop any motion).

        Outputs keep their last written levels; call sleep() to release them.
        """
        if self.before_halt is not None:
            self.before_halt()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.halt()

    # ── Motion ────────────────────────────────────────────────────────

    def move_steps(self, steps: int) -> None:
        """Move the given number of steps (negative = backward) and wait.

        Raises the error that ended the motion, if any. Another thread may
        stop() the move early; it then returns without error.
        """
        with self._mutex:
            worker = self._launch(steps)
        self._finish(worker, force=False)

    def move_degrees(self, degrees: float) -> None:
        """Move by an angle at the current speed and wait."""
        self.move_steps(round_half_away(degrees * self._steps_per_rev / 360))

    def run(self) -> None:
        """Start stepping until stop(), returning once the first step is out."""
        with self._mutex:
            worker = self._launch(None)
            started = worker.wait_started(
                worker.timeout(True, self.stop_timeout_margin)
            )
            if not started:
                logger.warning("%s: first step not emitted yet", self.name)
            elif not worker.is_alive():
                # first step failed
                self._finish(worker, force=True)

    def stop(self) -> None:
        """Stop the current motion and wait for it to end.

        Raises NotRunningError when nothing is moving.
        """
        with self._mutex:
            worker = self._worker
            if worker is None:
                raise NotRunningError(f"{self.name} is not yet started")
            self._finish(worker, force=True)

    def stop_if_running(self) -> None:
        with self._mutex:
            if self._worker is not None:
                self._finish(self._worker, force=True)

    def is_moving(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    def _launch(self, steps: int | None) -> MotionWorker:
        if self._disabled:
            raise DisabledError(f"{self.name} is disabled")
        if steps == 0:
            raise NoStepsToDoError(f"{self.name}: no steps to do")

        current = self._worker
        if current is not None:
            if not current.is_alive():
                # ended on its own, its error went to on_finished
                current.release()
                self._worker = None
            elif not self.halt_on_run_while_running:
                raise AlreadyRunningError(f"{self.name} already running or moving")
            else:
                self._finish(current, force=True)

        count = None
        if steps is not None:
            self._prepare_direction(FORWARD if steps > 0 else BACKWARD)
            count = abs(steps)

        worker = MotionWorker(
            self.name,
            self._emit_step,
            self._delay,
            count=count,
            skip_step_errors=self.skip_step_errors,
            on_finished=self.on_finished,
        )
        self._worker = worker
        worker.start()
        return worker

    def _finish(self, worker: MotionWorker, force: bool) -> None:
        try:
            worker.stop(force, self.stop_timeout_margin)
        finally:
            with self._mutex:
                if self._worker is worker:
                    self._worker = None

    # ── Speed, direction, position ────────────────────────────────────

    @property
    def steps_per_revolution(self) -> int:
        return self._steps_per_rev

    def max_speed(self) -> int:
        """Highest RPM allowed without ramping."""
        return max(1, 60 * self.max_steps_per_second // self._steps_per_rev)

    def speed(self) -> int:
        with self._values:
            return self._speed

    def set_speed(self, rpm: int) -> None:
        """Set the speed in RPM, effective from the next step.

        Out-of-range values are clamped to [1, max_speed()] and then
        reported with InvalidSpeedError.
        """
        max_rpm = self.max_speed()
        applied = min(max(int(rpm), 1), max_rpm)
        with self._values:
            self._speed = applied
        if rpm < 1:
            raise InvalidSpeedError(
                f"{self.name}: RPM ({rpm}) cannot be zero or negative, using 1", applied
            )
        if rpm > max_rpm:
            raise InvalidSpeedError(
                f"{self.name}: RPM ({rpm}) exceeds max speed ({max_rpm}), using {max_rpm}",
                applied,
            )

    def direction(self) -> str:
        with self._values:
            return self._direction

    def set_direction(self, direction: str) -> None:
        """Set "forward" or "backward", effective from the next step."""
        direction = self._parse_direction(direction)
        with self._values:
            self._direction = direction

    def current_step(self) -> int:
        with self._values:
            return self._step_num

    def is_enabled(self) -> bool:
        return not self._disabled

    def delay_us(self) -> int:
        """Microseconds per step at the current speed."""
        # no values lock: a step may hold it while its write hangs
        return 60_000_000 // (self._steps_per_rev * self._speed)

    def _delay(self) -> float:
        return self.delay_us() / 1_000_000

    def _parse_direction(self, direction: str) -> str:
        value = str(direction).lower()
        if value not in (FORWARD, BACKWARD):
            raise InvalidDirectionError(
                f"Invalid direction '{direction}'. Value should be '{FORWARD}' or '{BACKWARD}'"
            )
        return value

    def _prepare_direction(self, direction: str) -> None:
        with self._values:
            self._direction = direction

    def _write(self, pin: str, level: int) -> None:
        try:
            self.writer.write(pin, level)
        except Exception as exc:
            raise WriteFailedError(pin, level, exc) from exc

    def _emit_step(self) -> None:
        raise NotImplementedError

    # ── Commands / JSON ───────────────────────────────────────────────

    def _add_commands(self) -> None:
        self.commander.add_command("Move", lambda p: self.move_steps(int(p["steps"])))
        self.commander.add_command(
            "MoveDegrees", lambda p: self.move_degrees(float(p["degs"]))
        )
        self.commander.add_command("Run", lambda p: self.run())
        self.commander.add_command("Stop", lambda p: self.stop())
        self.commander.add_command("SetSpeed", lambda p: self.set_speed(int(p["rpm"])))
        self.commander.add_command(
            "SetDirection", lambda p: self.set_direction(p["direction"])
        )
        self.commander.add_command("CurrentStep", lambda p: self.current_step())
        self.commander.add_command("IsMoving", lambda p: self.is_moving())

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "moving": self.is_moving(),
            "step": self.current_step(),
            "speed": self.speed(),
            "max_speed": self.max_speed(),
            "direction": self.direction(),
            "enabled": self.is_enabled(),
            "commands": self.commander.commands(),
        }


class StepperDriver(BaseStepper):
    """4-wire stepper driven coil by coil from a phase table.

    The step number wraps into [0, steps_per_revolution).
    """

    def __init__(
        self,
        writer,
        pins,
        phase=DUAL_PHASE,
        steps_per_revolution: int = 200,
        name: str = "Stepper",
        **kwargs,
    ):
        """
        Initialize stepper motor.

        Args:
            writer: Digital output sink with write(pin, level)
            pins: 4 pin identifiers [IN1, IN2, IN3, IN4]
            phase: Phase table or mode name ("single", "dual", "half")
            steps_per_revolution: Steps for one full turn
            name: Label used in errors and logs
            **kwargs: Engine options, see BaseStepper
        """
        pins = tuple(str(pin) for pin in pins)
        if len(pins) != 4:
            raise ValueError(f"Expected 4 pins, got {len(pins)}")
        self.pins = pins
        self.phase = phase_table(phase)
        super().__init__(writer, steps_per_revolution, name, **kwargs)

    def _emit_step(self) -> None:
        """Advance one step in the current direction, then wait one step period."""
        with self._values:
            previous = self._step_num
            if self._direction == FORWARD:
                self._step_num += 1
            else:
                self._step_num -= 1

            if self._step_num >= self._steps_per_rev:
                self._step_num = 0
            elif self._step_num < 0:
                self._step_num = self._steps_per_rev - 1

            row = self.phase[self._step_num % len(self.phase)]
            try:
                for pin, level in zip(self.pins, levels(row)):
                    self._write(pin, level)
            except WriteFailedError:
                self._step_num = previous
                raise

        self._sleep(self._delay())

    def sleep(self) -> None:
        """Stop any motion and de-energize all coils (loses holding torque)."""
        self.stop_if_running()
        for pin in self.pins:
            self._write(pin, 0)

    def to_json(self) -> dict:
        data = super().to_json()
        data["pins"] = list(self.pins)
        return data
