"""Rover-side telemetry and command bridge."""

__version__ = "0.1.0"
