"""Command-line interface for rover-bridge."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import RoverBridgeApp
from .config import BridgeConfig, load_config

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Rover telemetry and command bridge to the coordination server",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Run the bridge until interrupted")
    start.add_argument("--server-url", help="Override [server] url")
    start.add_argument("--rover-id", help="Override [server] identifier")
    start.add_argument("--log-level", help="Override [logging] level")
    start.add_argument(
        "--no-bus",
        action="store_true",
        help="Run without the actuator bus; every command is reported as failed",
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def apply_overrides(config: BridgeConfig, args: argparse.Namespace) -> BridgeConfig:
    """Apply ``start`` flags on top of the file and environment values."""

    if getattr(args, "server_url", None):
        config.server.url = args.server_url
    if getattr(args, "rover_id", None):
        config.server.identifier = args.rover_id
    if getattr(args, "log_level", None):
        config.logging.level = args.log_level
    if getattr(args, "no_bus", False):
        config.bus.enabled = False
    return config


def _print_config(config: BridgeConfig) -> None:
    source = config.path if config.path.exists() else "built-in defaults"
    print(f"Configuration loaded from {source!s}\n")

    sections = {
        "server": {"url": config.server.url, "identifier": config.server.identifier},
        "timing": {
            "reconnect_interval_seconds": config.timing.reconnect_interval_seconds,
            "telemetry_interval_seconds": config.timing.telemetry_interval_seconds,
            "connect_timeout_seconds": config.timing.connect_timeout_seconds,
        },
        "bus": {
            "enabled": config.bus.enabled,
            "broker": f"{config.bus.broker_host}:{config.bus.broker_port}",
            "command_topic": config.bus.command_topic,
            **{
                f"{name}_topic": topic
                for name, topic in config.bus.sensor_topics.items()
            },
        },
        "logging": {"level": config.logging.level, "path": config.logging.path or "-"},
        "health": {
            "enabled": config.health.enabled,
            "listen": f"{config.health.host}:{config.health.port}",
        },
    }
    for section, values in sections.items():
        print(f"[{section}]")
        for key, value in values.items():
            print(f"{key} = {value}")
        print()


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        RoverBridgeApp.start(apply_overrides(config, args))
        return 0

    if args.command == "show-config":
        _print_config(config)
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
