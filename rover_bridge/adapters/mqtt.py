"""MQTT actuator/sensor bus built on the threaded paho-mqtt client."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional

import paho.mqtt.client as mqtt

from ..config import BusConfig
from ..core import BusMessageHandler, BusUnavailableError

LOGGER = logging.getLogger(__name__)


class MQTTConnectionError(BusUnavailableError):
    """Raised when the MQTT bus cannot connect or accept a message."""


class MQTTBus:
    """Async-friendly topic bus over paho-mqtt.

    Handlers registered with :meth:`subscribe` run on the asyncio loop that
    called :meth:`connect`; paho's network thread only decodes the payload and
    hands it over. Subscriptions are replayed whenever paho reconnects.
    """

    def __init__(
        self,
        config: BusConfig,
        *,
        client_id: str,
        keepalive: int = 60,
        qos: int = 0,
    ) -> None:
        self.config = config
        self.client_id = client_id
        self.keepalive = keepalive
        self.qos = qos

        self._client: Optional[mqtt.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected_event: Optional[asyncio.Event] = None
        self._disconnect_event: Optional[asyncio.Event] = None
        self._last_connect_rc: Any = None
        self._connected = False
        self._handlers: Dict[str, BusMessageHandler] = {}

    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, timeout: float = 10.0) -> None:
        """Connect to the broker and wait for the CONNACK."""

        self._loop = asyncio.get_running_loop()
        self._connected_event = asyncio.Event()
        self._disconnect_event = asyncio.Event()
        self._last_connect_rc = None

        client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)
        client.enable_logger(LOGGER)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        self._client = client

        LOGGER.info(
            "Connecting to MQTT bus %s:%s",
            self.config.broker_host,
            self.config.broker_port,
        )

        client.connect_async(
            self.config.broker_host, self.config.broker_port, self.keepalive
        )
        client.loop_start()

        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout=timeout)
            if self._last_connect_rc is None or self._last_connect_rc != 0:
                raise MQTTConnectionError(
                    f"MQTT broker rejected connection (rc={self._last_connect_rc})"
                )
        except asyncio.TimeoutError as exc:
            client.loop_stop()
            self._client = None
            raise MQTTConnectionError("Timed out connecting to MQTT bus") from exc
        except MQTTConnectionError:
            client.loop_stop()
            self._client = None
            raise

    async def aclose(self, timeout: float = 5.0) -> None:
        """Disconnect from the broker and stop the network thread."""

        client = self._client
        if client is None:
            return

        client.disconnect()
        try:
            if self._disconnect_event is not None:
                await asyncio.wait_for(self._disconnect_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("Timed out waiting for MQTT bus disconnect")
        finally:
            client.loop_stop()
            self._client = None
            self._connected = False

    def subscribe(self, topic: str, handler: BusMessageHandler) -> None:
        self._handlers[topic] = handler
        if self._client is None or not self._connected:
            return
        result, _ = self._client.subscribe(topic, qos=self.qos)
        if result != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"Subscribe to {topic} failed with rc={result}")

    def publish(self, topic: str, message: str) -> None:
        if self._client is None or not self._connected:
            raise MQTTConnectionError("MQTT bus not connected")

        payload = json.dumps({"data": message}).encode("utf-8")
        info = self._client.publish(topic, payload, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise MQTTConnectionError(f"Publish failed with rc={info.rc}")

    # ------------------------------------------------------------------
    # Internal callbacks bridging the threaded paho callbacks into asyncio
    # ------------------------------------------------------------------
    def _on_connect(self, client: mqtt.Client, userdata, flags, reason_code, properties=None) -> None:
        self._last_connect_rc = reason_code
        if reason_code == 0:
            LOGGER.info("Connected to MQTT bus")
            self._connected = True
            for topic in list(self._handlers):
                client.subscribe(topic, qos=self.qos)
        else:
            LOGGER.error("MQTT bus connection failed with rc=%s", reason_code)
            self._connected = False
        self._set_event(self._connected_event)

    def _on_disconnect(self, client: mqtt.Client, userdata, flags, reason_code, properties=None) -> None:
        LOGGER.info("Disconnected from MQTT bus (rc=%s)", reason_code)
        self._connected = False
        self._set_event(self._disconnect_event)

    def _on_message(self, client: mqtt.Client, userdata, message: mqtt.MQTTMessage) -> None:
        loop = self._loop
        if loop is None:
            return

        payload = _decode_payload(message.payload)
        if payload is None:
            LOGGER.debug("Dropping undecodable bus message on %s", message.topic)
            return

        loop.call_soon_threadsafe(self._dispatch, message.topic, payload)

    def _dispatch(self, topic: str, payload: Mapping[str, Any]) -> None:
        handler = self._handlers.get(topic)
        if handler is None:
            return
        try:
            handler(payload)
        except Exception:
            LOGGER.exception("Bus handler for %s raised an exception", topic)

    def _set_event(self, event: Optional[asyncio.Event]) -> None:
        loop = self._loop
        if event is None or loop is None:
            return
        loop.call_soon_threadsafe(event.set)


def _decode_payload(raw: bytes) -> Optional[Mapping[str, Any]]:
    try:
        document = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if isinstance(document, dict):
        return document
    return {"data": document}
