"""Duplicate suppression for operator commands.

The server may redeliver the command it sent last (for example after a
missed response). Only the most recently processed command id is
remembered: a command is a duplicate exactly when its id equals that one
slot. An id seen two commands ago is processed again.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger(__name__)


class LastCommandGuard:
    """Single-slot record of the last processed command id."""

    def __init__(self) -> None:
        self._last_command_id: Optional[int] = None

    @property
    def last_command_id(self) -> Optional[int]:
        return self._last_command_id

    def should_process(self, command_id: int) -> bool:
        if self._last_command_id is not None and self._last_command_id == command_id:
            LOGGER.info("Duplicate command ignored (id=%s)", command_id)
            return False
        return True

    def mark_processed(self, command_id: int) -> None:
        """Record ``command_id``; call before executing the command."""

        self._last_command_id = command_id

    def clear(self) -> None:
        self._last_command_id = None
