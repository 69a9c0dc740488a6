"""Constants used across the rover-bridge package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "rover-bridge"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_SERVER_URL = "ws://localhost:5000/ws"
DEFAULT_ROVER_IDENTIFIER = "R_002"

DEFAULT_RECONNECT_INTERVAL_SECONDS = 5.0
DEFAULT_TELEMETRY_INTERVAL_SECONDS = 5.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_WS_CLOSE_TIMEOUT_SECONDS = 1.0
MIN_INTERVAL_SECONDS = 0.1

DEFAULT_BUS_HOST = "localhost"
DEFAULT_BUS_PORT = 1883
DEFAULT_COMMAND_TOPIC = "rover_commands"

DEFAULT_SENSOR_TOPICS = {
    "temperature": "temperature",
    "velocity": "rover_velocity",
    "battery": "battery_state",
    "signal": "signal_strength",
    "cpu": "cpu_usage",
    "memory": "memory_usage",
    "position": "location_on_map",
}

ENV_SERVER_URL = "SERVER_URL"
ENV_ROVER_ID = "ROVER_ID"
ENV_LOG_LEVEL = "ROVER_BRIDGE_LOG_LEVEL"
