"""Operator command validation and execution."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, List, Optional

from . import constants
from .core import (
    ActuatorBus,
    BusUnavailableError,
    CommandResponseMessage,
    CommandResult,
    CommandStatus,
    LastCommandGuard,
    OutboundMessage,
)

LOGGER = logging.getLogger(__name__)

Responder = Callable[[OutboundMessage], Any]


class CommandValidationError(ValueError):
    """Raised when a command has the wrong arity, a bad argument or an unknown action."""


class CommandExecutor:
    """Validates, de-duplicates and executes operator commands.

    Every call to :meth:`execute` except a recognised duplicate produces
    exactly one :class:`CommandResponseMessage`, handed to ``responder``.
    """

    def __init__(
        self,
        bus: Optional[ActuatorBus],
        responder: Responder,
        *,
        command_topic: str = constants.DEFAULT_COMMAND_TOPIC,
        guard: Optional[LastCommandGuard] = None,
    ) -> None:
        self._bus = bus
        self._responder = responder
        self._command_topic = command_topic
        self._guard = guard or LastCommandGuard()
        self._validators: Dict[str, Callable[[List[str]], str]] = {
            "move": _validate_move,
            "stop": _validate_stop,
            "camera": _validate_camera,
        }

    @property
    def bus(self) -> Optional[ActuatorBus]:
        return self._bus

    @bus.setter
    def bus(self, bus: Optional[ActuatorBus]) -> None:
        self._bus = bus

    @property
    def last_command_id(self) -> Optional[int]:
        return self._guard.last_command_id

    def execute(self, command_id: int, command_text: str) -> Optional[CommandResult]:
        """Run one command and send its response.

        Returns the result that was sent, or ``None`` for a duplicate.
        """

        if not self._guard.should_process(command_id):
            return None

        # Recorded before running; a failed command still counts as processed.
        self._guard.mark_processed(command_id)
        LOGGER.info("Received command: %s (ID: %s)", command_text, command_id)

        try:
            response = self._run(command_text)
        except (CommandValidationError, BusUnavailableError) as exc:
            LOGGER.warning("Command %s failed: %s", command_id, exc)
            result = CommandResult(command_id, CommandStatus.FAILED, str(exc))
        except Exception as exc:
            LOGGER.exception("Command execution error (ID: %s)", command_id)
            result = CommandResult(
                command_id,
                CommandStatus.FAILED,
                f"Error executing command: {exc}",
            )
        else:
            result = CommandResult(command_id, CommandStatus.SUCCESS, response)

        self._respond(result)
        return result

    def _run(self, command_text: str) -> str:
        tokens = command_text.split()
        action = tokens[0].lower() if tokens else ""

        bus = self._bus
        if bus is None:
            raise BusUnavailableError("Actuator bus is not available.")

        validator = self._validators.get(action)
        if validator is None:
            raise CommandValidationError(f"Unknown command: {action}")

        response = validator(tokens)
        bus.publish(self._command_topic, command_text)
        LOGGER.info("Published to %s: %s", self._command_topic, command_text)
        return response

    def _respond(self, result: CommandResult) -> None:
        try:
            self._responder(CommandResponseMessage(result))
        except Exception:
            LOGGER.exception("Failed to hand off response for command %s", result.command_id)


def _validate_move(tokens: List[str]) -> str:
    if len(tokens) != 3:
        raise CommandValidationError(
            "Move command format is incorrect. Expected: move <direction> <distance>"
        )

    direction = tokens[1]
    try:
        distance = float(tokens[2])
    except ValueError:
        distance = math.nan
    if not math.isfinite(distance):
        raise CommandValidationError("Invalid distance value for move command.")

    return f"Moving {direction} {_format_number(distance)} units"


def _validate_stop(tokens: List[str]) -> str:
    return "Emergency stop engaged"


def _validate_camera(tokens: List[str]) -> str:
    if len(tokens) != 2:
        raise CommandValidationError(
            "Camera command format is incorrect. Expected: camera <action>"
        )
    return f"Camera {tokens[1]} command executed"


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return str(value)
