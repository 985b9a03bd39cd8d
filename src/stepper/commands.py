"""Named commands a driver exposes to remote callers (see web_server.py)."""

import logging

from stepper.errors import StepperError

logger = logging.getLogger(__name__)


class Commander:
    """Table of command name -> callable taking a params dict."""

    def __init__(self):
        self._commands = {}

    def add_command(self, name: str, fn) -> None:
        self._commands[name] = fn

    def command(self, name: str):
        """Return the command callable, or None if unknown."""
        return self._commands.get(name)

    def commands(self) -> list[str]:
        return list(self._commands)

    def execute(self, name: str, params: dict | None = None) -> dict:
        """Run a command and wrap the outcome as ``{"result": ...}`` or ``{"error": ...}``.

        Raises KeyError for unknown commands. Driver errors and bad params
        are reported in the returned dict.
        """
        fn = self._commands.get(name)
        if fn is None:
            raise KeyError(name)
        try:
            return {"result": fn(params or {})}
        except (StepperError, ValueError, KeyError, TypeError) as exc:
            logger.warning("command %s failed: %s", name, exc)
            return {"error": str(exc) or exc.__class__.__name__}
