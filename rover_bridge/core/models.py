"""Domain models shared by the bridge components."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


class CommandStatus(str, Enum):
    """Outcome reported back to the server for a command."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Position:
    x: float
    y: float
    z: float

    def distance_to(self, other: "Position") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def as_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(slots=True)
class SensorReadings:
    """Point-in-time copy of the rover's latest sensor values."""

    temperature: float = 0.0
    speed: float = 0.0
    battery_level: float = 100.0
    signal_strength: float = 0.0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    distance_traveled: float = 0.0
    trips: int = 0
    current_position: Optional[Position] = None

    def as_payload(self) -> Dict[str, Any]:
        position = self.current_position
        return {
            "temperature": self.temperature,
            "speed": self.speed,
            "batteryLevel": self.battery_level,
            "signalStrength": self.signal_strength,
            "cpuUsage": self.cpu_usage,
            "memoryUsage": self.memory_usage,
            "distanceTraveled": self.distance_traveled,
            "trips": self.trips,
            "currentPosition": position.as_dict() if position is not None else None,
        }


_READING_FIELDS = frozenset(SensorReadings.__slots__)


class SensorSnapshot:
    """Lock-guarded holder of the latest sensor readings.

    Writers replace individual fields, readers always receive a full copy taken
    under the same lock, so a reader never observes a half-applied update.
    """

    def __init__(self, readings: Optional[SensorReadings] = None) -> None:
        self._lock = threading.Lock()
        self._readings = readings or SensorReadings()

    def update(self, **values: Any) -> None:
        unknown = set(values) - _READING_FIELDS
        if unknown:
            raise AttributeError(f"Unknown sensor fields: {', '.join(sorted(unknown))}")
        with self._lock:
            for name, value in values.items():
                setattr(self._readings, name, value)

    def move_to(self, position: Position) -> None:
        """Record a new position and accumulate the distance from the last one."""

        with self._lock:
            previous = self._readings.current_position
            if previous is not None:
                self._readings.distance_traveled += previous.distance_to(position)
            self._readings.current_position = position

    def read(self) -> SensorReadings:
        with self._lock:
            return replace(self._readings)


@dataclass(slots=True)
class RoverIdentity:
    """Operator-assigned identifier plus the id the server hands out on CONNECT."""

    identifier: str
    assigned_id: Optional[int] = None

    @property
    def is_assigned(self) -> bool:
        return self.assigned_id is not None

    def assign(self, rover_id: int) -> None:
        self.assigned_id = rover_id

    def clear(self) -> None:
        self.assigned_id = None


@dataclass(frozen=True, slots=True)
class CommandEnvelope:
    command_id: int
    command_text: str


@dataclass(frozen=True, slots=True)
class CommandResult:
    command_id: int
    status: CommandStatus
    response: str
