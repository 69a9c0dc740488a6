"""The rover-side bridge object tying all components together."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import constants
from .adapters import MQTTBus, MQTTConnectionError, WebSocketConnector
from .commands import CommandExecutor
from .config import BridgeConfig
from .connection import ConnectionManager, ConnectionState
from .core import ActuatorBus, RoverIdentity, Scheduler, SensorSnapshot, WebSocketOpener
from .health import HealthReporter, HealthServer
from .router import MessageRouter
from .sensors import SensorBusAdapter
from .telemetry import TelemetryPublisher

LOGGER = logging.getLogger(__name__)


class RoverBridge:
    """Owns identity, connection state and the sensor snapshot for one rover.

    Collaborators can be injected for testing: ``bus`` replaces the MQTT
    actuator bus, ``opener`` the websocket connector and ``scheduler`` the
    event loop's ``call_later`` used by the reconnect and telemetry timers.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        bus: Optional[ActuatorBus] = None,
        opener: Optional[WebSocketOpener] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self._config = config
        self._bus = bus
        self._injected_bus = bus
        self._connector: Optional[WebSocketConnector] = None
        if opener is None:
            self._connector = WebSocketConnector()
            opener = self._connector

        self.identity = RoverIdentity(identifier=config.server.identifier)
        self.snapshot = SensorSnapshot()

        timing = config.timing
        self.connection = ConnectionManager(
            config.server.url,
            self.identity,
            opener=opener,
            scheduler=scheduler,
            reconnect_interval=timing.reconnect_interval_seconds,
            telemetry_interval=timing.telemetry_interval_seconds,
            connect_timeout=timing.connect_timeout_seconds,
        )
        self.executor = CommandExecutor(
            bus, self.connection.send, command_topic=config.bus.command_topic
        )
        self.router = MessageRouter(self.connection, self.executor)
        self.telemetry = TelemetryPublisher(self.connection, self.snapshot)
        self.sensors = SensorBusAdapter(self.snapshot, topics=config.bus.sensor_topics)

        self.connection.set_frame_handler(self.router.handle_frame)
        self.connection.set_telemetry_callback(self.telemetry.publish_tick)
        self.connection.register_state_listener(self._on_connection_state)

        self.health = HealthReporter(config.server.identifier)
        self._health_server: Optional[HealthServer] = None
        self._health_tasks: set[asyncio.Task] = set()
        self._started = False

    @property
    def bus(self) -> Optional[ActuatorBus]:
        return self._bus

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    async def start(self) -> None:
        """Attach the sensor bus and open the server connection."""

        if self._started:
            LOGGER.warning("Bridge already started")
            return
        self._started = True

        LOGGER.info(
            "Starting rover bridge for %s (server=%s)",
            self.identity.identifier,
            self._config.server.url,
        )

        if self._bus is None and self._config.bus.enabled:
            self._bus = await self._connect_bus()

        if self._bus is not None:
            self.sensors.attach(self._bus)
            self.executor.bus = self._bus
            await self.health.update("bus", True, None)
        else:
            LOGGER.warning("No actuator bus available; commands will be reported as failed")
            await self.health.update("bus", False, "unavailable")

        await self._start_health_server()

        self.connection.reset()
        self.connection.connect()

    async def stop(self) -> None:
        """Stop timers, drop the socket, then release the bus.

        Each step runs even if an earlier one fails. A bus passed to the
        constructor is detached but left open for its owner; the bridge can be
        started again afterwards.
        """

        LOGGER.info("Shutting down rover bridge...")
        self.connection.stop_timers()

        try:
            await self.connection.close()
        except Exception:
            LOGGER.warning("Error closing server connection", exc_info=True)

        bus = self._bus
        self._bus = self._injected_bus
        self.executor.bus = None
        if bus is not None and bus is not self._injected_bus:
            try:
                await bus.aclose()
            except Exception:
                LOGGER.warning("Error shutting down actuator bus", exc_info=True)

        if self._health_server is not None:
            try:
                await self._health_server.stop()
            except Exception:
                LOGGER.warning("Error stopping health endpoint", exc_info=True)
            self._health_server = None

        if self._connector is not None:
            try:
                await self._connector.aclose()
            except Exception:
                LOGGER.warning("Error closing websocket session", exc_info=True)

        self._started = False
        LOGGER.info("Rover bridge shutdown complete")

    async def _connect_bus(self) -> Optional[MQTTBus]:
        bus_config = self._config.bus
        client_id = bus_config.client_id or f"{constants.APP_NAME}-{self.identity.identifier}"
        bus = MQTTBus(bus_config, client_id=client_id)
        try:
            await bus.connect()
        except MQTTConnectionError as exc:
            LOGGER.error("Actuator bus connection failed: %s", exc)
            return None
        return bus

    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self.health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
        else:
            self._health_server = server

    def _on_connection_state(self, state: ConnectionState) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(
            self.health.set_link(state.value, self.identity.assigned_id)
        )
        self._health_tasks.add(task)
        task.add_done_callback(self._health_tasks.discard)
