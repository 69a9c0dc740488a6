"""Inbound frame decoding and dispatch."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional, Union

from .core import CommandEnvelope, InboundMessage, MessageDecodeError, MessageType, decode_frame

if TYPE_CHECKING:
    from .commands import CommandExecutor
    from .connection import ConnectionManager

LOGGER = logging.getLogger(__name__)


class MessageRouter:
    """Routes decoded server frames by their ``type`` discriminator.

    A frame that cannot be decoded or has an unexpected type is logged and
    dropped; the connection stays open and later frames are still handled.
    """

    def __init__(self, connection: ConnectionManager, executor: CommandExecutor) -> None:
        self._connection = connection
        self._executor = executor

    def handle_frame(self, raw: Union[str, bytes]) -> None:
        try:
            message = decode_frame(raw)
        except MessageDecodeError as exc:
            LOGGER.warning("Discarding malformed frame: %s", exc)
            return

        LOGGER.debug("Received %s frame", message.type)

        if message.type == MessageType.CONNECT.value:
            self._handle_connect(message)
        elif message.type == MessageType.COMMAND.value:
            self._handle_command(message)
        elif message.type == MessageType.ERROR.value:
            LOGGER.error("Server error: %s", message.payload)
        else:
            LOGGER.info("Ignoring unsupported message type %s", message.type)

    def _handle_connect(self, message: InboundMessage) -> None:
        payload = message.payload
        if not isinstance(payload, dict) or not payload.get("success"):
            LOGGER.warning("Server rejected rover registration: %s", payload)
            return

        rover_id = _parse_id(payload.get("roverId"))
        if rover_id is None:
            LOGGER.warning(
                "CONNECT acknowledgement without a usable rover id: %s", payload
            )
            return

        LOGGER.info("Connection successful; assigned rover id %s", rover_id)
        self._connection.mark_identified(rover_id)

    def _handle_command(self, message: InboundMessage) -> None:
        envelope = _parse_command(message.payload)
        if envelope is None:
            LOGGER.error("Invalid command received: %s", message.payload)
            return
        self._executor.execute(envelope.command_id, envelope.command_text)


def _parse_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _parse_command(payload: Any) -> Optional[CommandEnvelope]:
    if not isinstance(payload, dict):
        return None

    command = payload.get("command")
    if not isinstance(command, str) or not command.strip():
        return None

    command_id = _parse_id(payload.get("commandId"))
    if command_id is None:
        return None

    return CommandEnvelope(command_id=command_id, command_text=command)
