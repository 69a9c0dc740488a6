"""Core primitives for rover-bridge."""

from .idempotency import LastCommandGuard
from .messages import (
    CommandResponseMessage,
    ConnectMessage,
    InboundMessage,
    MessageDecodeError,
    MessageType,
    OutboundMessage,
    StatusUpdateMessage,
    TelemetryMessage,
    decode_frame,
    encode_message,
)
from .models import (
    CommandEnvelope,
    CommandResult,
    CommandStatus,
    Position,
    RoverIdentity,
    SensorReadings,
    SensorSnapshot,
)
from .protocols import (
    ActuatorBus,
    BusMessageHandler,
    BusUnavailableError,
    Scheduler,
    TimerHandle,
    WebSocketLike,
    WebSocketOpener,
)

__all__ = [
    "ActuatorBus",
    "BusMessageHandler",
    "BusUnavailableError",
    "CommandEnvelope",
    "CommandResponseMessage",
    "CommandResult",
    "CommandStatus",
    "ConnectMessage",
    "InboundMessage",
    "LastCommandGuard",
    "MessageDecodeError",
    "MessageType",
    "OutboundMessage",
    "Position",
    "RoverIdentity",
    "Scheduler",
    "SensorReadings",
    "SensorSnapshot",
    "StatusUpdateMessage",
    "TelemetryMessage",
    "TimerHandle",
    "WebSocketLike",
    "WebSocketOpener",
    "decode_frame",
    "encode_message",
]
