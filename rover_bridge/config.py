"""Configuration loader for rover-bridge."""

from __future__ import annotations

import os
from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from . import constants


@dataclass(slots=True)
class ServerConfig:
    url: str = constants.DEFAULT_SERVER_URL
    identifier: str = constants.DEFAULT_ROVER_IDENTIFIER


@dataclass(slots=True)
class TimingConfig:
    reconnect_interval_seconds: float = constants.DEFAULT_RECONNECT_INTERVAL_SECONDS
    telemetry_interval_seconds: float = constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS
    connect_timeout_seconds: float = constants.DEFAULT_CONNECT_TIMEOUT_SECONDS


@dataclass(slots=True)
class BusConfig:
    enabled: bool = True
    broker_host: str = constants.DEFAULT_BUS_HOST
    broker_port: int = constants.DEFAULT_BUS_PORT
    client_id: Optional[str] = None
    command_topic: str = constants.DEFAULT_COMMAND_TOPIC
    sensor_topics: Dict[str, str] = field(
        default_factory=lambda: dict(constants.DEFAULT_SENSOR_TOPICS)
    )


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class BridgeConfig:
    server: ServerConfig
    timing: TimingConfig
    bus: BusConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path


def _positive(value: float, default: float) -> float:
    if value <= 0:
        return default
    return max(constants.MIN_INTERVAL_SECONDS, value)


def _getfloat(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        return parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default


def _getint(parser: ConfigParser, section: str, option: str, default: int) -> int:
    try:
        return parser.getint(section, option, fallback=default)
    except ValueError:
        return default


def _getboolean(parser: ConfigParser, section: str, option: str, default: bool) -> bool:
    try:
        return parser.getboolean(section, option, fallback=default)
    except ValueError:
        return default


def load_config(
    path: Optional[Path] = None, *, environ: Optional[Mapping[str, str]] = None
) -> BridgeConfig:
    """Load configuration from disk and the environment, applying defaults."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    parser = ConfigParser()
    parser.read_dict(
        {
            "server": {
                "url": constants.DEFAULT_SERVER_URL,
                "identifier": constants.DEFAULT_ROVER_IDENTIFIER,
            },
            "timing": {
                "reconnect_interval_seconds": str(
                    constants.DEFAULT_RECONNECT_INTERVAL_SECONDS
                ),
                "telemetry_interval_seconds": str(
                    constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS
                ),
                "connect_timeout_seconds": str(
                    constants.DEFAULT_CONNECT_TIMEOUT_SECONDS
                ),
            },
            "bus": {
                "enabled": "true",
                "broker_host": constants.DEFAULT_BUS_HOST,
                "broker_port": str(constants.DEFAULT_BUS_PORT),
                "command_topic": constants.DEFAULT_COMMAND_TOPIC,
                **{
                    f"{name}_topic": topic
                    for name, topic in constants.DEFAULT_SENSOR_TOPICS.items()
                },
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    if env.get(constants.ENV_SERVER_URL):
        parser.set("server", "url", env[constants.ENV_SERVER_URL])
    if env.get(constants.ENV_ROVER_ID):
        parser.set("server", "identifier", env[constants.ENV_ROVER_ID])
    if env.get(constants.ENV_LOG_LEVEL):
        parser.set("logging", "level", env[constants.ENV_LOG_LEVEL])

    server = ServerConfig(
        url=parser.get("server", "url"),
        identifier=parser.get("server", "identifier"),
    )

    timing = TimingConfig(
        reconnect_interval_seconds=_positive(
            _getfloat(
                parser,
                "timing",
                "reconnect_interval_seconds",
                constants.DEFAULT_RECONNECT_INTERVAL_SECONDS,
            ),
            constants.DEFAULT_RECONNECT_INTERVAL_SECONDS,
        ),
        telemetry_interval_seconds=_positive(
            _getfloat(
                parser,
                "timing",
                "telemetry_interval_seconds",
                constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS,
            ),
            constants.DEFAULT_TELEMETRY_INTERVAL_SECONDS,
        ),
        connect_timeout_seconds=_positive(
            _getfloat(
                parser,
                "timing",
                "connect_timeout_seconds",
                constants.DEFAULT_CONNECT_TIMEOUT_SECONDS,
            ),
            constants.DEFAULT_CONNECT_TIMEOUT_SECONDS,
        ),
    )

    bus = BusConfig(
        enabled=_getboolean(parser, "bus", "enabled", True),
        broker_host=parser.get("bus", "broker_host"),
        broker_port=_getint(parser, "bus", "broker_port", constants.DEFAULT_BUS_PORT),
        client_id=parser.get("bus", "client_id", fallback=None),
        command_topic=parser.get("bus", "command_topic"),
        sensor_topics={
            name: parser.get("bus", f"{name}_topic", fallback=default)
            for name, default in constants.DEFAULT_SENSOR_TOPICS.items()
        },
    )

    log_path_value = parser.get("logging", "path", fallback="")
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=_getboolean(parser, "logging", "log_network", False),
    )

    health = HealthConfig(
        enabled=_getboolean(parser, "health", "enabled", False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=_getint(parser, "health", "port", 0),
    )

    return BridgeConfig(
        server=server,
        timing=timing,
        bus=bus,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )
