"""Protocol definitions for the bridge's external collaborators."""

from __future__ import annotations

from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Protocol


BusMessageHandler = Callable[[Mapping[str, Any]], None]


class BusUnavailableError(RuntimeError):
    """Raised when the actuator bus is missing or cannot accept a message."""


class ActuatorBus(Protocol):
    """Topic based publish/subscribe access to the rover's sensors and actuators."""

    def subscribe(self, topic: str, handler: BusMessageHandler) -> None:
        """Route every message received on ``topic`` to ``handler``."""
        ...

    def publish(self, topic: str, message: str) -> None:
        """Publish a text message on ``topic``.

        Raises:
            BusUnavailableError: If the bus cannot accept the message.
        """
        ...

    async def aclose(self) -> None:
        """Release the bus connection."""
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything offering ``loop.call_later`` semantics."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class WebSocketLike(Protocol):
    """The subset of ``aiohttp.ClientWebSocketResponse`` used by the bridge."""

    @property
    def closed(self) -> bool: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self) -> Any: ...

    def exception(self) -> BaseException | None: ...

    def __aiter__(self) -> AsyncIterator[Any]: ...


WebSocketOpener = Callable[[str], Awaitable[WebSocketLike]]
