import asyncio
import json
from types import SimpleNamespace
from typing import Any, Callable, Optional

import aiohttp
import pytest


class FakeTimerHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Deterministic stand-in for ``loop.call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._handles: list[FakeTimerHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for handle in self._handles if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [
                handle
                for handle in self._handles
                if not handle.cancelled and handle.when <= target + 1e-9
            ]
            if not due:
                break
            handle = min(due, key=lambda item: item.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


class FakeWebSocket:
    """Minimal ``ClientWebSocketResponse`` double fed by the test."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail_send = False
        self._exception: Optional[BaseException] = None
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send_str(self, data: str) -> None:
        if self.fail_send or self.closed:
            raise ConnectionResetError("socket closed")
        self.sent.append(data)

    async def close(self) -> bool:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._incoming.put_nowait(None)
        return True

    def exception(self) -> Optional[BaseException]:
        return self._exception

    def feed_text(self, data: str) -> None:
        self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data))

    def feed_json(self, document: Any) -> None:
        self.feed_text(json.dumps(document))

    def feed_error(self, exc: BaseException) -> None:
        self._exception = exc
        self._incoming.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=exc))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.closed = True
        self._incoming.put_nowait(None)

    def documents(self) -> list[dict]:
        return [json.loads(frame) for frame in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self):
        message = await self._incoming.get()
        if message is None:
            raise StopAsyncIteration
        return message


class FakeOpener:
    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeWebSocket] = []
        self.fail = False

    @property
    def attempts(self) -> int:
        return len(self.urls)

    @property
    def socket(self) -> FakeWebSocket:
        return self.sockets[-1]

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.fail:
            raise ConnectionRefusedError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws


class FakeBus:
    def __init__(self) -> None:
        self.handlers: dict[str, Callable] = {}
        self.published: list[tuple[str, str]] = []
        self.closed = False
        self.publish_error: Optional[BaseException] = None

    def subscribe(self, topic: str, handler: Callable) -> None:
        self.handlers[topic] = handler

    def publish(self, topic: str, message: str) -> None:
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, message))

    def emit(self, topic: str, payload: dict) -> None:
        self.handlers[topic](payload)

    async def aclose(self) -> None:
        self.closed = True


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run until the loop is idle."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def fake_bus() -> FakeBus:
    return FakeBus()
