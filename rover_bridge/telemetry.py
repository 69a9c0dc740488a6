"""Periodic telemetry publishing."""

from __future__ import annotations

import logging

from .connection import ConnectionManager, ConnectionState
from .core import SensorSnapshot, StatusUpdateMessage, TelemetryMessage

LOGGER = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


class TelemetryPublisher:
    """Turns the sensor snapshot into TELEMETRY and STATUS_UPDATE messages.

    The connection manager calls :meth:`publish_tick` from its telemetry
    timer. A tick that arrives while the rover is not identified is skipped.
    """

    def __init__(self, connection: ConnectionManager, snapshot: SensorSnapshot) -> None:
        self._connection = connection
        self._snapshot = snapshot
        self._ticks_sent = 0

    @property
    def ticks_sent(self) -> int:
        return self._ticks_sent

    def publish_tick(self) -> bool:
        if self._connection.state is not ConnectionState.IDENTIFIED:
            LOGGER.info("Skipping sensor data send: not connected or missing rover ID")
            return False

        readings = self._snapshot.read()
        self._connection.send(TelemetryMessage(readings))
        self._connection.send(StatusUpdateMessage(ACTIVE_STATUS))
        self._ticks_sent += 1
        LOGGER.debug(
            "Telemetry tick %d sent (position=%s)",
            self._ticks_sent,
            readings.current_position,
        )
        return True
