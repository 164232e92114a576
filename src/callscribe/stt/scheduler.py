"""Cancellable delayed actions."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol


class ScheduledAction(Protocol):
    """Handle to a pending delayed call."""

    def cancel(self) -> None:
        """Prevent the call if it has not run yet."""
        ...


class Scheduler(Protocol):
    """Runs a callable after a delay."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledAction:
        ...


class TimerScheduler:
    """Scheduler backed by daemon ``threading.Timer`` threads."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledAction:
        timer = threading.Timer(max(0.0, delay_s), callback)
        timer.daemon = True
        timer.start()
        return timer
