"""
Connectivity state and a console status reporter.

ConnectivityState is what a status widget renders: the current boolean plus
the last error text and when it happened.
"""

import sys
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TextIO

LOST_MESSAGE = (
    "Database connection lost. Check your network connection or database server status."
)


@dataclass(frozen=True)
class ConnectivityState:
    connected: bool = False
    last_error: str | None = None
    last_error_at: datetime | None = None
    checked_at: datetime | None = None

    def updated(
        self, connected: bool, *, error: str | None = None, at: datetime
    ) -> "ConnectivityState":
        """New state after a probe. A success keeps the last error for display."""
        if connected:
            return replace(self, connected=True, checked_at=at)
        return ConnectivityState(
            connected=False,
            last_error=error or LOST_MESSAGE,
            last_error_at=at,
            checked_at=at,
        )


class StatusReporter:
    """Prints one line per connectivity notification (listener for DatabaseClient)."""

    def __init__(
        self, state_getter: Callable[[], ConnectivityState], out: TextIO | None = None
    ) -> None:
        self._state = state_getter
        self._out = out or sys.stdout

    def __call__(self, connected: bool) -> None:
        self._out.write(self.render(connected, self._state()) + "\n")
        self._out.flush()

    @staticmethod
    def render(connected: bool, state: ConnectivityState) -> str:
        if connected:
            return "Database Connected"
        line = "Connection Lost"
        if state.last_error:
            line += f": {state.last_error}"
        if state.last_error_at:
            line += f" (at {state.last_error_at.isoformat(timespec='seconds')})"
        return line
