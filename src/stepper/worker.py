"""Background motion worker and its stop coordinator.

A MotionWorker owns the outputs of one motion. It runs in its own thread,
calling a step function until the requested count is reached, a stop is
requested, a step fails or the process is interrupted:

    IDLE -> ARMING -> RUNNING -> FINISHED | ERRORED | STOPPED

Three events connect it to the caller:
  - once_done: set after the first step, so a stop never races the start
  - stop:      set by the caller to end the loop before the next step
  - exited:    set when the thread is done; ``error`` holds the final error
"""

import logging
import threading
import time

from stepper import interrupt
from stepper.errors import MotionInterruptedError, TimeoutWaitingForWorkerError

logger = logging.getLogger(__name__)

IDLE = "IDLE"
ARMING = "ARMING"
RUNNING = "RUNNING"
FINISHED = "FINISHED"
ERRORED = "ERRORED"
STOPPED = "STOPPED"


class MotionWorker:
    """One motion of a stepper, counted or endless."""

    def __init__(
        self,
        name: str,
        step,
        delay,
        count: int | None = None,
        skip_step_errors: bool = False,
        on_finished=None,
    ):
        """
        Args:
            name: Driver name, used in errors and log lines
            step: Callable emitting one step; raises on failure
            delay: Callable returning the current seconds per step
            count: Steps to emit, or None to run until stopped
            skip_step_errors: Log failed steps and keep going
            on_finished: Called from the worker thread with the final error
        """
        self.name = name
        self._step = step
        self._delay = delay
        self._remaining = count
        self.skip_step_errors = skip_step_errors
        self.on_finished = on_finished

        self.state = IDLE
        self.error = None
        self._step_delay = 0.0
        self._once_done = threading.Event()
        self._stop = threading.Event()
        self._exited = threading.Event()
        self._interrupt = None
        self._thread = threading.Thread(
            target=self._loop, name=f"{name}-motion", daemon=True
        )

    @property
    def endless(self) -> bool:
        return self._remaining is None

    @property
    def remaining(self) -> int | None:
        """Steps still to emit (None when endless)."""
        return self._remaining

    def start(self) -> None:
        self.state = ARMING
        self._interrupt = interrupt.subscribe()
        self._thread.start()

    def is_alive(self) -> bool:
        return self.state != IDLE and not self._exited.is_set()

    def wait_started(self, timeout: float) -> bool:
        """Block until the first step was emitted (or the worker exited)."""
        return self._once_done.wait(timeout)

    def timeout(self, force: bool, margin: float) -> float:
        """Deadline for a stop: one step when forced or endless, else the rest of the move."""
        # a step in progress keeps the delay it started with
        delay = max(self._delay(), self._step_delay)
        if self.endless or force:
            return 2 * delay + margin
        return 2 * max(self._remaining, 1) * delay + margin

    # ── Stop coordinator ──────────────────────────────────────────────

    def stop(self, force: bool, margin: float) -> None:
        """Stop the worker and harvest its final error.

        Endless motions and forced stops signal the worker to end. A forced
        stop of a counted move discards the worker's final error, so a write
        failure racing the stop is not reported. Raises the worker's error,
        or TimeoutWaitingForWorkerError if it does not report back in time.
        """
        timeout = self.timeout(force, margin)
        deadline = time.monotonic() + timeout
        try:
            if not self._once_done.wait(timeout):
                self._stop.set()
                raise self._timed_out(timeout)

            if self.endless or force:
                self._stop.set()

            if force and not self.endless:
                logger.info("%s was forcefully stopped", self.name)
                if not self._exited.wait(max(0.0, deadline - time.monotonic())):
                    raise self._timed_out(timeout)
                return

            if not self._exited.wait(max(0.0, deadline - time.monotonic())):
                self._stop.set()
                raise self._timed_out(timeout)
            if self.error is not None:
                raise self.error
        finally:
            self.release()

    def release(self) -> None:
        """Stop receiving process interrupts."""
        if self._interrupt is not None:
            interrupt.unsubscribe(self._interrupt)

    def _timed_out(self, timeout: float) -> TimeoutWaitingForWorkerError:
        logger.error("%s: motion worker did not exit within %.3fs", self.name, timeout)
        return TimeoutWaitingForWorkerError(
            f"{self.name}: timeout after {timeout:.3f}s waiting for the motion to end"
        )

    # ── Worker thread ─────────────────────────────────────────────────

    def _loop(self) -> None:
        self.state = RUNNING
        logger.debug("%s: motion started (steps=%s)", self.name, self._remaining)
        error = None
        try:
            while True:
                if self._interrupt.is_set():
                    error = MotionInterruptedError(f"{self.name} was interrupted")
                    self.state = ERRORED
                    break
                if self._stop.is_set():
                    self.state = STOPPED
                    break

                self._step_delay = self._delay()
                try:
                    self._step()
                except Exception as exc:
                    if not self.skip_step_errors:
                        error = exc
                        self.state = ERRORED
                        break
                    # remaining is not decremented: a failed step is retried
                    logger.warning("%s: skipping failed step: %s", self.name, exc)
                    self._once_done.set()
                    continue

                self._once_done.set()
                if self._remaining is not None:
                    self._remaining -= 1
                    if self._remaining <= 0:
                        self.state = FINISHED
                        break
        finally:
            self.error = error
            self._exited.set()
            self._once_done.set()

        logger.debug("%s: motion ended in state %s", self.name, self.state)
        if self.on_finished is not None:
            try:
                self.on_finished(error)
            except Exception:
                logger.exception("%s: on_finished callback failed", self.name)
