"""aiohttp websocket opener for the coordination server."""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

from .. import constants

LOGGER = logging.getLogger(__name__)


class WebSocketConnector:
    """Opens client websockets from a lazily created, owned ``ClientSession``.

    ``close_timeout`` bounds how long ``ws.close()`` waits for the server's
    close frame, so shutdown does not stall on an unresponsive server.
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        heartbeat: Optional[float] = None,
        close_timeout: float = constants.DEFAULT_WS_CLOSE_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat
        self._close_timeout = close_timeout

    async def __call__(self, url: str) -> aiohttp.ClientWebSocketResponse:
        session = await self._ensure_session()
        return await session.ws_connect(
            url,
            heartbeat=self._heartbeat,
            timeout=aiohttp.ClientWSTimeout(ws_close=self._close_timeout),
        )

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session
