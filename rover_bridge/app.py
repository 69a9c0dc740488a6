"""Process entry-point running the bridge until a termination signal."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from .bridge import RoverBridge
from .config import BridgeConfig, load_config
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


class RoverBridgeApp:
    """Runs one :class:`RoverBridge` for the lifetime of the process."""

    def __init__(self, config: Optional[BridgeConfig] = None) -> None:
        self._config = config or load_config()
        self._bridge: Optional[RoverBridge] = None
        self._shutdown_event: Optional[asyncio.Event] = None

    @property
    def bridge(self) -> Optional[RoverBridge]:
        return self._bridge

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def run(self, bridge: Optional[RoverBridge] = None) -> None:
        loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        self._bridge = bridge or RoverBridge(self._config)

        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(signum, self.request_shutdown)

        LOGGER.info("rover-bridge starting with config: %s", self._config.path)
        try:
            await self._bridge.start()
            await self._shutdown_event.wait()
            LOGGER.info("rover-bridge received shutdown signal")
        finally:
            await self._bridge.stop()
            for signum in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError, RuntimeError):
                    loop.remove_signal_handler(signum)

    @classmethod
    def start(cls, config: Optional[BridgeConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
            identifier=instance._config.server.identifier,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("rover-bridge received shutdown signal")
