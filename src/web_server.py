"""Flask web server exposing stepper commands over HTTP.

Run on Pi: sudo python3 web_server.py
Then e.g.:
    curl http://<pi-ip>/api/steppers
    curl -X POST -d '{"steps": 200}' -H 'Content-Type: application/json' \
        http://<pi-ip>/api/steppers/Stepper/commands/Move
"""

import signal
import sys

import lgpio
from flask import Flask, jsonify, request

from stepper import EasyDriver, LgpioOutput, StepperDriver
from stepper.config import (
    API_HOST,
    API_PORT,
    DEFAULT_STEP_ANGLE,
    DEFAULT_STEPS_PER_REV,
    EASY_DRIVER_DIR_PIN,
    EASY_DRIVER_ENABLE_PIN,
    EASY_DRIVER_SLEEP_PIN,
    EASY_DRIVER_STEP_PIN,
    GPIO_CHIP,
    STEPPER_PINS,
)


def create_app(drivers: dict) -> Flask:
    """Build the app for a {name: driver} mapping."""
    app = Flask(__name__)

    def _driver_or_404(name):
        driver = drivers.get(name)
        if driver is None:
            return None, (jsonify({"error": f"No stepper named '{name}'"}), 404)
        return driver, None

    @app.route("/api/steppers")
    def list_steppers():
        return jsonify({"steppers": [d.to_json() for d in drivers.values()]})

    @app.route("/api/steppers/<name>")
    def get_stepper(name):
        driver, missing = _driver_or_404(name)
        if missing:
            return missing
        return jsonify(driver.to_json())

    @app.route("/api/steppers/<name>/commands")
    def list_commands(name):
        driver, missing = _driver_or_404(name)
        if missing:
            return missing
        return jsonify({"commands": driver.commander.commands()})

    @app.route("/api/steppers/<name>/commands/<command>", methods=["GET", "POST"])
    def execute_command(name, command):
        driver, missing = _driver_or_404(name)
        if missing:
            return missing
        if driver.commander.command(command) is None:
            return jsonify({"error": f"Unknown command '{command}'"}), 404

        params = request.get_json(silent=True) or request.args.to_dict()
        outcome = driver.commander.execute(command, params)
        if "error" in outcome:
            return jsonify(outcome), 400
        return jsonify(outcome)

    return app


def build_drivers(chip: int) -> dict:
    """Drivers for the pins in stepper/config.py."""
    output = LgpioOutput(chip)
    stepper = StepperDriver(
        output, STEPPER_PINS, phase="half", steps_per_revolution=DEFAULT_STEPS_PER_REV
    )
    easy = EasyDriver(
        output,
        DEFAULT_STEP_ANGLE,
        EASY_DRIVER_STEP_PIN,
        EASY_DRIVER_DIR_PIN,
        EASY_DRIVER_ENABLE_PIN,
        EASY_DRIVER_SLEEP_PIN,
    )
    return {stepper.name: stepper, easy.name: easy}


if __name__ == "__main__":
    chip = lgpio.gpiochip_open(GPIO_CHIP)
    drivers = build_drivers(chip)
    for driver in drivers.values():
        driver.start()

    def shutdown(sig, frame):
        for driver in drivers.values():
            try:
                driver.halt()
            except Exception as e:
                print(f"[shutdown] {driver.name}: {e}")
        lgpio.gpiochip_close(chip)
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    print(f"Server starting on http://{API_HOST}:{API_PORT}")
    create_app(drivers).run(host=API_HOST, port=API_PORT, debug=False, use_reloader=False)
