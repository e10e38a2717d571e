"""Shared fixtures for Meeting Anchor tests.

Time is driven by a FakeClock and timers by a ManualTimerService, so the
scheduler runs without a Qt event loop.
"""

from datetime import datetime, timedelta

import pytest

from meeting_anchor.models.calendar_event import CalendarEvent
from meeting_anchor.models.error_model import ErrorModel
from meeting_anchor.models.event_source import StaticEventSource
from meeting_anchor.models.preferences_model import MemoryStore, PreferencesModel
from meeting_anchor.models.reminder_state import ReminderState
from meeting_anchor.presenters.overlay_presenter import OverlayPresenter, ReminderAction
from meeting_anchor.presenters.reminder_scheduler import ReminderScheduler
from meeting_anchor.utils.timer_service import TimerHandle, TimerService

START_TIME = datetime(2025, 3, 10, 9, 0, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ManualTimerHandle(TimerHandle):
    def __init__(self, due: datetime):
        self.due = due
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired


class ManualTimerService(TimerService):
    """Timer service that fires callbacks when the fake clock is advanced.

    With `honor_cancel=False` cancelled timers still fire, like a timeout
    that was already queued when it got cancelled.
    """

    def __init__(self, clock: FakeClock, honor_cancel: bool = True):
        self.clock = clock
        self.honor_cancel = honor_cancel
        self._timers: list[tuple[datetime, int, ManualTimerHandle, object]] = []
        self._sequence = 0

    def schedule(self, delay_seconds, callback) -> ManualTimerHandle:
        handle = ManualTimerHandle(self.clock.now + timedelta(seconds=max(0.0, delay_seconds)))
        self._sequence += 1
        self._timers.append((handle.due, self._sequence, handle, callback))
        return handle

    def _runnable(self, handle: ManualTimerHandle) -> bool:
        if handle.fired:
            return False
        return not handle.cancelled or not self.honor_cancel

    def active_handles(self) -> list[ManualTimerHandle]:
        return [handle for _, _, handle, _ in self._timers if handle.active]

    def advance_to(self, target: datetime) -> None:
        while True:
            due = [timer for timer in self._timers if self._runnable(timer[2]) and timer[0] <= target]
            if not due:
                break
            when, _, handle, callback = min(due, key=lambda timer: (timer[0], timer[1]))
            self.clock.now = max(self.clock.now, when)
            handle.fired = True
            callback()
        self.clock.now = target

    def advance(self, delta: timedelta) -> None:
        self.advance_to(self.clock.now + delta)


class FakeOverlayPresenter(OverlayPresenter):
    """Records presentations; the test answers them with respond()."""

    def __init__(self):
        self.presented: list[CalendarEvent] = []
        self.hidden = 0
        self._callback = None

    def is_presenting(self) -> bool:
        return self._callback is not None

    def present(self, event, on_action) -> bool:
        if self.is_presenting():
            return False
        self.presented.append(event)
        self._callback = on_action
        return True

    def respond(self, action: ReminderAction) -> None:
        callback, self._callback = self._callback, None
        callback(action)

    def hide(self) -> None:
        if self.is_presenting():
            self.hidden += 1
            self.respond(ReminderAction.none())


@pytest.fixture
def clock():
    return FakeClock(START_TIME)


@pytest.fixture
def timers(clock):
    return ManualTimerService(clock)


@pytest.fixture
def overlay():
    return FakeOverlayPresenter()


@pytest.fixture
def error_model():
    return ErrorModel()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def preferences(store, error_model, clock):
    return PreferencesModel(store, error_model, clock)


@pytest.fixture
def state(preferences):
    return ReminderState(preferences)


@pytest.fixture
def source():
    return StaticEventSource()


@pytest.fixture
def make_event(clock):
    """Build events whose start is given in minutes from the fixture start time."""

    def factory(event_id="evt-1", title="Meeting", starts_in=30, duration=30, is_all_day=False, location=None):
        start = clock.now + timedelta(minutes=starts_in)
        return CalendarEvent(
            event_id=event_id,
            title=title,
            start=start,
            end=start + timedelta(minutes=duration),
            location=location,
            is_all_day=is_all_day,
        )

    return factory


@pytest.fixture
def make_scheduler(preferences, state, overlay, source, error_model, clock):
    def factory(timer_service):
        scheduler = ReminderScheduler(preferences, state, overlay, source, timer_service, error_model, clock)
        scheduler.start()
        return scheduler

    return factory


@pytest.fixture
def scheduler(make_scheduler, timers):
    scheduler = make_scheduler(timers)
    yield scheduler
    scheduler.stop()
