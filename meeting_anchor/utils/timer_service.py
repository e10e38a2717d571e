"""Cancellable one-shot timers for Meeting Anchor application.

The scheduler only talks to the TimerService interface; the Qt
implementation runs callbacks on the thread that owns the Qt event loop.
"""

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject, Qt, QTimer

# QTimer intervals are signed 32-bit milliseconds.
MAX_TIMER_INTERVAL_MS = 2**31 - 1


class TimerHandle:
    """Handle to a scheduled one-shot callback."""

    def cancel(self) -> None:
        raise NotImplementedError

    @property
    def active(self) -> bool:
        raise NotImplementedError


class TimerService:
    """Factory for one-shot timers."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """Run `callback` once after `delay_seconds` unless cancelled first."""
        raise NotImplementedError


class QtTimerHandle(TimerHandle):
    def __init__(self, timer: QTimer):
        self._timer: Optional[QTimer] = timer

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None

    @property
    def active(self) -> bool:
        return self._timer is not None and self._timer.isActive()

    def _finished(self) -> None:
        if self._timer is not None:
            self._timer.deleteLater()
            self._timer = None


class QtTimerService(TimerService):
    """Timer service backed by single-shot QTimers.

    Precise timers are used because coarse ones may drift by 5% of the
    interval, which is over an hour for the midnight timer.
    """

    def __init__(self, parent: Optional[QObject] = None):
        self.logger = logging.getLogger(__name__)
        self._parent = parent

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        interval_ms = min(max(0, int(delay_seconds * 1000)), MAX_TIMER_INTERVAL_MS)

        timer = QTimer(self._parent)
        timer.setSingleShot(True)
        timer.setTimerType(Qt.TimerType.PreciseTimer)
        handle = QtTimerHandle(timer)

        def on_timeout():
            handle._finished()
            callback()

        timer.timeout.connect(on_timeout)
        timer.start(interval_ms)
        self.logger.debug(f"Timer scheduled in {interval_ms / 1000:.1f}s")
        return handle
