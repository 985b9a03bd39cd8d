"""Exceptions raised by the stepper drivers."""


class StepperError(Exception):
    """Base class for every stepper driver error."""


class InvalidDirectionError(StepperError, ValueError):
    """Direction is not one of the accepted names."""


class InvalidSpeedError(StepperError, ValueError):
    """Requested speed was out of range.

    The driver has already applied the clamped speed when this is raised,
    so callers may treat it as a warning.
    """

    def __init__(self, message: str, applied_rpm: int):
        super().__init__(message)
        self.applied_rpm = applied_rpm


class NoStepsToDoError(StepperError, ValueError):
    """A move was requested with a zero step count."""


class AlreadyRunningError(StepperError):
    """A motion is already in progress."""


class NotRunningError(StepperError):
    """Stop was requested but no motion is in progress."""


class DisabledError(StepperError):
    """Motion was requested while the driver outputs are disabled."""


class PinNotConfiguredError(StepperError):
    """The operation needs an optional pin that was not wired."""


class WriteFailedError(StepperError):
    """The digital output sink rejected a write."""

    def __init__(self, pin: str, level: int, cause: Exception):
        super().__init__(f"writing {level} to pin {pin!r} failed: {cause}")
        self.pin = pin
        self.level = level


class MotionInterruptedError(StepperError):
    """The process received an interrupt while a motion was running."""


class TimeoutWaitingForWorkerError(StepperError, TimeoutError):
    """The motion worker did not report back before the stop deadline."""
