"""Connection lifecycle management for the coordination server socket.

This module owns the one persistent websocket to the server. It tracks the
connection state machine, reconnects on a fixed interval after any close or
error, serialises outbound frames through a single writer task and drives the
telemetry timer while the rover is identified.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable, List, Optional

import aiohttp

from . import constants
from .core import (
    ConnectMessage,
    OutboundMessage,
    RoverIdentity,
    Scheduler,
    WebSocketLike,
    WebSocketOpener,
    encode_message,
)
from .timers import RepeatingTimer

LOGGER = logging.getLogger(__name__)

FrameHandler = Callable[[str], None]
StateListener = Callable[["ConnectionState"], None]


class ConnectionState(str, Enum):
    """Current state of the server connection."""

    DISCONNECTED = "disconnected"
    """No socket; a reconnection attempt is pending unless the bridge is stopping."""

    CONNECTING = "connecting"
    """Socket open in progress."""

    CONNECTED = "connected"
    """Socket open, CONNECT sent, waiting for the server to assign a rover id."""

    IDENTIFIED = "identified"
    """Server acknowledged the rover; telemetry flows."""


_OPEN_STATES = (ConnectionState.CONNECTED, ConnectionState.IDENTIFIED)
_BUSY_STATES = (ConnectionState.CONNECTING, *_OPEN_STATES)


class ConnectionManager:
    """Owns the server socket and its reconnect and telemetry timers.

    Only one reconnect timer and one telemetry timer exist per manager. The
    reconnect timer runs only while disconnected, the telemetry timer only
    while identified, so the two never fire for the same state.
    """

    def __init__(
        self,
        url: str,
        identity: RoverIdentity,
        *,
        opener: WebSocketOpener,
        scheduler: Optional[Scheduler] = None,
        reconnect_interval: float = constants.DEFAULT_RECONNECT_INTERVAL_SECONDS,
        telemetry_interval: float = constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS,
        connect_timeout: Optional[float] = constants.DEFAULT_CONNECT_TIMEOUT_SECONDS,
    ) -> None:
        self._url = url
        self._identity = identity
        self._opener = opener
        self._connect_timeout = connect_timeout

        self._state = ConnectionState.DISCONNECTED
        self._stopping = False
        self._ws: Optional[WebSocketLike] = None
        self._outbox: Optional[asyncio.Queue[str]] = None
        self._connection_task: Optional[asyncio.Task[None]] = None
        self._writer_task: Optional[asyncio.Task[None]] = None

        self._frame_handler: Optional[FrameHandler] = None
        self._telemetry_callback: Optional[Callable[[], None]] = None
        self._state_listeners: List[StateListener] = []

        self._reconnect_timer = RepeatingTimer(
            "reconnect",
            reconnect_interval,
            self._on_reconnect_timer,
            scheduler=scheduler,
        )
        self._telemetry_timer = RepeatingTimer(
            "telemetry",
            telemetry_interval,
            self._on_telemetry_timer,
            scheduler=scheduler,
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def identity(self) -> RoverIdentity:
        return self._identity

    @property
    def is_open(self) -> bool:
        ws = self._ws
        return ws is not None and not ws.closed and self._state in _OPEN_STATES

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_timer.is_running

    @property
    def telemetry_running(self) -> bool:
        return self._telemetry_timer.is_running

    def set_frame_handler(self, handler: Optional[FrameHandler]) -> None:
        self._frame_handler = handler

    def set_telemetry_callback(self, callback: Optional[Callable[[], None]]) -> None:
        self._telemetry_callback = callback

    def register_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def connect(self) -> None:
        """Start a connection attempt unless one is active or established."""

        if self._stopping:
            LOGGER.debug("Bridge stopping; connect request ignored")
            return

        if self._state in _BUSY_STATES:
            LOGGER.info("Already %s to server; connect request ignored", self._state.value)
            return

        self._transition(ConnectionState.CONNECTING)
        self._connection_task = asyncio.create_task(self._run_connection())

    def send(self, message: OutboundMessage) -> bool:
        """Submit a message for writing.

        Messages are written in submission order. When the socket is not open
        the message is dropped, not buffered, and a reconnection is requested.
        """

        queue = self._outbox
        if queue is None or not self.is_open:
            LOGGER.warning(
                "Socket not open; dropping %s message", type(message).__name__
            )
            self.connect()
            return False

        frame = encode_message(message, self._identity.assigned_id)
        queue.put_nowait(frame)
        return True

    def mark_identified(self, rover_id: int) -> None:
        """Record the server-assigned id and start the telemetry timer."""

        if self._state not in _OPEN_STATES:
            LOGGER.warning(
                "Ignoring rover id %s received while %s", rover_id, self._state.value
            )
            return

        self._identity.assign(rover_id)
        self._reconnect_timer.stop()
        self._transition(ConnectionState.IDENTIFIED)
        self._telemetry_timer.start()

    async def flush(self) -> None:
        """Wait until every submitted frame has been handed to the socket."""

        queue = self._outbox
        if queue is not None and self._writer_task is not None:
            await queue.join()

    def stop_timers(self) -> None:
        """Prevent any further reconnect attempts and telemetry ticks."""

        self._stopping = True
        self._reconnect_timer.stop()
        self._telemetry_timer.stop()

    def reset(self) -> None:
        """Allow connecting again after :meth:`stop_timers` or :meth:`close`."""

        self._stopping = False

    async def close(self) -> None:
        """Stop timers and drop the socket without waiting for the server."""

        self.stop_timers()

        ws = self._ws
        if ws is not None and not ws.closed:
            LOGGER.info("Closing server connection")
            try:
                await ws.close()
            except Exception as exc:
                LOGGER.warning("Error closing server socket: %s", exc)

        task = self._connection_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._connection_task = None

        await self._stop_writer()
        if self._state is not ConnectionState.DISCONNECTED:
            self._handle_closed()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _run_connection(self) -> None:
        try:
            ws = await self._open_socket()
        except asyncio.CancelledError:
            self._handle_closed()
            raise
        except Exception as exc:
            LOGGER.warning("Connection to %s failed: %s", self._url, exc)
            self._handle_closed()
            return

        self._on_open(ws)
        try:
            await self._read_loop(ws)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Server socket error: %s", exc)
        finally:
            self._handle_closed()
            if not ws.closed:
                with contextlib.suppress(Exception):
                    await ws.close()

    async def _open_socket(self) -> WebSocketLike:
        LOGGER.info("Connecting to server %s", self._url)
        if self._connect_timeout is None:
            return await self._opener(self._url)
        return await asyncio.wait_for(self._opener(self._url), timeout=self._connect_timeout)

    def _on_open(self, ws: WebSocketLike) -> None:
        self._ws = ws
        self._reconnect_timer.stop()

        queue: asyncio.Queue[str] = asyncio.Queue()
        self._outbox = queue
        self._writer_task = asyncio.create_task(self._write_loop(ws, queue))

        self._transition(ConnectionState.CONNECTED)
        LOGGER.info("Connected to server")
        self.send(ConnectMessage(identifier=self._identity.identifier))

    async def _read_loop(self, ws: WebSocketLike) -> None:
        async for message in ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                self._dispatch_frame(message.data)
            elif message.type == aiohttp.WSMsgType.BINARY:
                self._dispatch_frame(message.data)
            elif message.type == aiohttp.WSMsgType.ERROR:
                raise ws.exception() or RuntimeError("Websocket error")
            elif message.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                break

    def _dispatch_frame(self, data: str) -> None:
        handler = self._frame_handler
        if handler is None:
            LOGGER.debug("No frame handler registered; dropping inbound frame")
            return
        try:
            handler(data)
        except Exception:
            LOGGER.exception("Inbound frame handler failed")

    async def _write_loop(self, ws: WebSocketLike, queue: asyncio.Queue[str]) -> None:
        while True:
            frame = await queue.get()
            try:
                await ws.send_str(frame)
                LOGGER.debug("Sent frame: %s", frame)
            except asyncio.CancelledError:
                queue.task_done()
                raise
            except Exception as exc:
                queue.task_done()
                LOGGER.warning("Failed to write to server socket: %s", exc)
                _drain(queue)
                with contextlib.suppress(Exception):
                    await ws.close()
                return
            queue.task_done()

    async def _stop_writer(self) -> None:
        task = self._writer_task
        self._writer_task = None
        queue = self._outbox
        self._outbox = None

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if queue is not None:
            _drain(queue)

    def _handle_closed(self) -> None:
        """Move to DISCONNECTED after a close, an error or a failed attempt."""

        self._ws = None
        task = self._writer_task
        self._writer_task = None
        if task is not None and not task.done():
            task.cancel()
        if self._outbox is not None:
            _drain(self._outbox)
            self._outbox = None

        self._identity.clear()
        self._telemetry_timer.stop()

        if self._state is not ConnectionState.DISCONNECTED:
            LOGGER.info("Disconnected from server")
            self._transition(ConnectionState.DISCONNECTED)

        if not self._stopping and not self._reconnect_timer.is_running:
            self._reconnect_timer.start()

    def _on_reconnect_timer(self) -> None:
        if self._state in _BUSY_STATES:
            self._reconnect_timer.stop()
            return
        LOGGER.info("Attempting to reconnect...")
        self.connect()

    def _on_telemetry_timer(self) -> None:
        callback = self._telemetry_callback
        if callback is not None:
            callback()

    def _transition(self, state: ConnectionState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        LOGGER.debug("Connection state %s -> %s", previous.value, state.value)
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.warning("Connection state listener failed", exc_info=True)


def _drain(queue: asyncio.Queue[str]) -> None:
    while True:
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        queue.task_done()
