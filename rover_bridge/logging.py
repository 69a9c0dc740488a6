"""Logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

_FORMAT = "%(asctime)s | %(levelname)s | %(rover)s | %(name)s | %(message)s"

# Libraries that log every frame or packet at INFO/DEBUG.
_NETWORK_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.websocket", "paho")


class RoverContextFilter(logging.Filter):
    """Stamps each record with the rover identifier as ``record.rover``."""

    def __init__(self, identifier: str) -> None:
        super().__init__()
        self.identifier = identifier

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "rover"):
            record.rover = self.identifier
        return True


def configure_logging(
    level: str = "INFO",
    *,
    log_path: Optional[Path] = None,
    log_network: bool = False,
    identifier: str = "-",
) -> None:
    """Install console (and optionally file) handlers on the root logger.

    Parameters
    ----------
    level:
        Log level name, e.g. "DEBUG". Unknown names fall back to INFO.
    log_path:
        Optional file to append to in addition to the console.
    log_network:
        Keep websocket and MQTT library chatter at the requested level.
    identifier:
        Rover identifier shown in every line.
    """

    logging.captureWarnings(True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    context = RoverContextFilter(identifier)
    formatter = logging.Formatter(_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)
        root.addHandler(handler)

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not log_network:
        for name in _NETWORK_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
