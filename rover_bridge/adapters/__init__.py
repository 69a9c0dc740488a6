"""Adapter modules for external integrations."""

from .mqtt import MQTTBus, MQTTConnectionError
from .websocket import WebSocketConnector

__all__ = [
    "MQTTBus",
    "MQTTConnectionError",
    "WebSocketConnector",
]
