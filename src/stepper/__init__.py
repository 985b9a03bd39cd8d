"""Stepper motor drivers with background motion control."""

from stepper.easy_driver import EasyDriver
from stepper.motors import BACKWARD, FORWARD, StepperDriver
from stepper.outputs import LgpioOutput, RecordingOutput
from stepper.phases import DUAL_PHASE, HALF_STEP, SINGLE_PHASE

__all__ = [
    "BACKWARD",
    "DUAL_PHASE",
    "EasyDriver",
    "FORWARD",
    "HALF_STEP",
    "LgpioOutput",
    "RecordingOutput",
    "SINGLE_PHASE",
    "StepperDriver",
]
