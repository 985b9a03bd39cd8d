"""Stepper defaults and pin configuration.

Every value here is a default; driver constructors accept overrides.
"""

# =============================================================================
# GPIO Chip (Pi 5 exposes the 40-pin header on gpiochip4)
# =============================================================================
GPIO_CHIP = 4

# =============================================================================
# 4-wire Stepper Pin Configuration (BCM GPIO numbers) - 28BYJ-48 + ULN2003
# =============================================================================
STEPPER_PINS = ("17", "27", "22", "23")  # IN1, IN2, IN3, IN4
DEFAULT_STEPS_PER_REV = 2048  # 28BYJ-48 output shaft, full steps

# =============================================================================
# EasyDriver (A3967) Pin Configuration - empty string = not wired
# =============================================================================
EASY_DRIVER_STEP_PIN = "5"
EASY_DRIVER_DIR_PIN = "6"
EASY_DRIVER_ENABLE_PIN = "13"
EASY_DRIVER_SLEEP_PIN = "19"
DEFAULT_STEP_ANGLE = 1.8  # degrees per step (NEMA 17)

# =============================================================================
# Motor Timing
# =============================================================================
# Conservative step rate ceiling for an unramped stepper
MAX_STEPS_PER_SECOND = 700

# Added to every stop/join timeout (seconds)
STOP_TIMEOUT_MARGIN = 0.1

# DRV88xx charge pump settling time after leaving sleep (seconds)
WAKE_SETTLE_TIME = 0.001

# =============================================================================
# Web API
# =============================================================================
API_HOST = "0.0.0.0"
API_PORT = 80
