#!/usr/bin/env python3
"""Smoke test for the 28BYJ-48 (ULN2003) and EasyDriver steppers on real GPIO."""

import time

import lgpio

from stepper import EasyDriver, LgpioOutput, StepperDriver
from stepper.config import (
    DEFAULT_STEP_ANGLE,
    DEFAULT_STEPS_PER_REV,
    EASY_DRIVER_DIR_PIN,
    EASY_DRIVER_ENABLE_PIN,
    EASY_DRIVER_SLEEP_PIN,
    EASY_DRIVER_STEP_PIN,
    GPIO_CHIP,
    STEPPER_PINS,
)


def main():
    # Open GPIO chip (Pi 5 uses gpiochip4)
    chip = lgpio.gpiochip_open(GPIO_CHIP)
    output = LgpioOutput(chip)

    try:
        stepper = StepperDriver(
            output, STEPPER_PINS, phase="dual", steps_per_revolution=DEFAULT_STEPS_PER_REV
        )
        stepper.set_speed(10)

        print("Moving 4-wire stepper a quarter turn forward...")
        stepper.move_steps(DEFAULT_STEPS_PER_REV // 4)
        print(f"  step = {stepper.current_step()}")

        time.sleep(0.5)

        print("...and back")
        stepper.move_degrees(-90)
        print(f"  step = {stepper.current_step()}")
        stepper.sleep()

        easy = EasyDriver(
            output,
            DEFAULT_STEP_ANGLE,
            EASY_DRIVER_STEP_PIN,
            EASY_DRIVER_DIR_PIN,
            EASY_DRIVER_ENABLE_PIN,
            EASY_DRIVER_SLEEP_PIN,
        )
        easy.wake()
        easy.enable()

        print("Running EasyDriver for 2 seconds, reversing halfway...")
        easy.run()
        time.sleep(1.0)
        easy.set_direction("ccw")
        time.sleep(1.0)
        easy.stop()
        print(f"  step = {easy.current_step()}")

        easy.disable()
        easy.sleep()
        print("Done!")

    finally:
        output.close()
        lgpio.gpiochip_close(chip)


if __name__ == "__main__":
    main()
