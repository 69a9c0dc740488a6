"""Liveness reporting for a running rover bridge."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from aiohttp import web

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ComponentStatus:
    name: str
    healthy: bool
    detail: Optional[str] = None
    updated_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


@dataclass(slots=True)
class LinkStatus:
    """Server link as last reported by the connection manager."""

    state: str = "disconnected"
    rover_id: Optional[int] = None
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def identified(self) -> bool:
        return self.state == "identified"

    def as_dict(self) -> Dict[str, object]:
        return {
            "state": self.state,
            "roverId": self.rover_id,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Collects bus and server link status for ``/healthz``.

    The overall status is ``ok`` only when every component is healthy and the
    rover is identified by the server.
    """

    def __init__(self, identifier: str = "") -> None:
        self._identifier = identifier
        self._components: Dict[str, ComponentStatus] = {}
        self._link = LinkStatus()
        self._lock = asyncio.Lock()

    async def update(
        self, name: str, healthy: bool, detail: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._components[name] = ComponentStatus(
                name=name, healthy=healthy, detail=detail
            )

    async def set_link(self, state: str, rover_id: Optional[int] = None) -> None:
        async with self._lock:
            self._link = LinkStatus(state=state, rover_id=rover_id)

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            components = [status.as_dict() for status in self._components.values()]
            link = self._link

        healthy = link.identified and all(item["healthy"] for item in components)
        return {
            "status": "ok" if healthy else "degraded",
            "identifier": self._identifier,
            "link": link.as_dict(),
            "components": components,
        }


class HealthServer:
    """Serves the reporter snapshot on ``GET /healthz``; 503 while degraded."""

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        if self._runner is not None:
            return

        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)

        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        LOGGER.info(
            "Health endpoint listening on http://%s:%s/healthz", self._host, self._port
        )

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None:
            await runner.cleanup()

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
