"""Fixed-interval timers driven by ``loop.call_later``."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from .core import Scheduler, TimerHandle

LOGGER = logging.getLogger(__name__)


class RepeatingTimer:
    """Invoke ``callback`` every ``interval`` seconds until stopped.

    The first invocation happens one full interval after :meth:`start`.
    Starting an already running timer is a no-op, so at most one pending
    callback exists per timer.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], None],
        *,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None:
            return
        LOGGER.debug("Starting %s timer (interval=%.1fs)", self.name, self.interval)
        self._schedule()

    def stop(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        handle.cancel()
        LOGGER.debug("Stopped %s timer", self.name)

    def _schedule(self) -> None:
        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self.interval, self._fire)

    def _fire(self) -> None:
        if self._handle is None:
            return
        self._schedule()
        try:
            self._callback()
        except Exception:
            LOGGER.exception("%s timer callback failed", self.name)
