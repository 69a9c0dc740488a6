"""Wire messages exchanged with the coordination server.

Every frame is a JSON object with a ``type`` discriminator and a ``payload``.
Outbound frames other than ``CONNECT`` also carry the server-assigned
``roverId`` (``null`` until the rover has been identified).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .models import CommandResult, SensorReadings


class MessageType(str, Enum):
    CONNECT = "CONNECT"
    TELEMETRY = "TELEMETRY"
    STATUS_UPDATE = "STATUS_UPDATE"
    COMMAND = "COMMAND"
    ERROR = "ERROR"


class MessageDecodeError(ValueError):
    """Raised when an inbound frame is not a JSON object with a type."""


@dataclass(frozen=True, slots=True)
class ConnectMessage:
    identifier: str
    client_type: str = "rover"

    def to_document(self, rover_id: Optional[int]) -> Dict[str, Any]:
        return {
            "type": MessageType.CONNECT.value,
            "payload": {"type": self.client_type, "identifier": self.identifier},
        }


@dataclass(frozen=True, slots=True)
class TelemetryMessage:
    readings: SensorReadings

    def to_document(self, rover_id: Optional[int]) -> Dict[str, Any]:
        return {
            "type": MessageType.TELEMETRY.value,
            "roverId": rover_id,
            "payload": {"sensorData": self.readings.as_payload()},
        }


@dataclass(frozen=True, slots=True)
class StatusUpdateMessage:
    status: str = "active"

    def to_document(self, rover_id: Optional[int]) -> Dict[str, Any]:
        return {
            "type": MessageType.STATUS_UPDATE.value,
            "roverId": rover_id,
            "payload": {"status": self.status},
        }


@dataclass(frozen=True, slots=True)
class CommandResponseMessage:
    result: CommandResult

    def to_document(self, rover_id: Optional[int]) -> Dict[str, Any]:
        return {
            "type": MessageType.COMMAND.value,
            "roverId": rover_id,
            "payload": {
                "commandId": self.result.command_id,
                "status": self.result.status.value,
                "response": self.result.response,
            },
        }


OutboundMessage = Union[
    ConnectMessage, TelemetryMessage, StatusUpdateMessage, CommandResponseMessage
]


@dataclass(frozen=True, slots=True)
class InboundMessage:
    type: str
    payload: Any


def encode_message(message: OutboundMessage, rover_id: Optional[int]) -> str:
    return json.dumps(message.to_document(rover_id), separators=(",", ":"))


def decode_frame(raw: Union[str, bytes]) -> InboundMessage:
    """Parse one inbound text frame.

    Raises:
        MessageDecodeError: If the frame is not valid JSON, is not an object,
            or has no string ``type``.
    """

    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MessageDecodeError(f"Frame is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise MessageDecodeError("Frame is not a JSON object")

    message_type = document.get("type")
    if not isinstance(message_type, str):
        raise MessageDecodeError("Frame has no message type")

    return InboundMessage(type=message_type, payload=document.get("payload"))
