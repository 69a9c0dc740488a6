"""Sensor bus subscriptions feeding the shared snapshot."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Mapping, Optional

from . import constants
from .core import ActuatorBus, Position, SensorSnapshot

LOGGER = logging.getLogger(__name__)


class SensorBusAdapter:
    """Subscribes to the rover's sensor topics and mirrors them into a snapshot.

    Each topic updates its own field independently. Missing numeric values are
    stored as 0; a position report without all three coordinates leaves the
    current position untouched.
    """

    def __init__(
        self,
        snapshot: SensorSnapshot,
        *,
        topics: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._snapshot = snapshot
        self._topics = dict(constants.DEFAULT_SENSOR_TOPICS)
        if topics:
            self._topics.update(topics)
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], None]] = {
            "temperature": self._on_temperature,
            "velocity": self._on_velocity,
            "battery": self._on_battery,
            "signal": self._on_signal,
            "cpu": self._on_cpu,
            "memory": self._on_memory,
            "position": self._on_position,
        }

    def attach(self, bus: ActuatorBus) -> int:
        """Subscribe every sensor topic on ``bus``; returns the number subscribed."""

        subscribed = 0
        for name, handler in self._handlers.items():
            topic = self._topics[name]
            try:
                bus.subscribe(topic, handler)
            except Exception as exc:
                LOGGER.warning("Failed to subscribe to sensor topic %s: %s", topic, exc)
                continue
            subscribed += 1
        LOGGER.info("Subscribed to %d sensor topics", subscribed)
        return subscribed

    def _on_temperature(self, message: Mapping[str, Any]) -> None:
        self._snapshot.update(temperature=_number(message.get("temperature")))

    def _on_velocity(self, message: Mapping[str, Any]) -> None:
        linear = message.get("linear")
        speed = _number(linear.get("x")) if isinstance(linear, Mapping) else 0.0
        self._snapshot.update(speed=speed)

    def _on_battery(self, message: Mapping[str, Any]) -> None:
        self._snapshot.update(battery_level=_number(message.get("percentage")) * 100)

    def _on_signal(self, message: Mapping[str, Any]) -> None:
        self._snapshot.update(signal_strength=_number(message.get("data")))

    def _on_cpu(self, message: Mapping[str, Any]) -> None:
        data = message.get("data")
        if isinstance(data, (list, tuple)):
            data = data[0] if data else None
        self._snapshot.update(cpu_usage=_number(data))

    def _on_memory(self, message: Mapping[str, Any]) -> None:
        self._snapshot.update(memory_usage=_number(message.get("data")))

    def _on_position(self, message: Mapping[str, Any]) -> None:
        coordinates = [_optional_number(message.get(axis)) for axis in ("x", "y", "z")]
        if any(value is None for value in coordinates):
            LOGGER.debug("Ignoring incomplete position report: %s", message)
            return
        x, y, z = coordinates
        self._snapshot.move_to(Position(x, y, z))


def _optional_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _number(value: Any) -> float:
    number = _optional_number(value)
    return 0.0 if number is None else number
