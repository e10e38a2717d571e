"""Event sources for Meeting Anchor application.

An event source returns the calendar events in a time window or raises one
of the AnchorError subclasses. The scheduler treats sources as slow,
fallible and read-only.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .calendar_event import CalendarEvent
from .error_model import AnchorError, EventFetchFailed, PermissionDenied, PermissionRestricted, PermissionUnknown


class EventSource:
    """Read-only provider of calendar events."""

    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[CalendarEvent]:
        """Get events overlapping the window.

        Raises:
            PermissionDenied, PermissionRestricted, PermissionUnknown: calendar access problems
            EventFetchFailed: the query itself failed
        """
        raise NotImplementedError


class StaticEventSource(EventSource):
    """Event source backed by an in-memory list."""

    def __init__(self, events: Optional[Iterable[CalendarEvent]] = None):
        self.logger = logging.getLogger(__name__)
        self._events = list(events or [])
        self._failure: Optional[AnchorError] = None

    def set_events(self, events: Iterable[CalendarEvent]) -> None:
        self._events = list(events)

    def fail_with(self, error: Optional[AnchorError]) -> None:
        """Make subsequent fetches raise `error` (None restores normal behaviour)."""
        self._failure = error

    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[CalendarEvent]:
        if self._failure is not None:
            raise self._failure
        events = [event for event in self._events if event.end > window_start and event.start < window_end]
        self.logger.debug(f"Static source returned {len(events)} of {len(self._events)} events")
        return events


def create_demo_events(now: datetime) -> list[CalendarEvent]:
    """Build a handful of events relative to `now` for demo mode."""
    base = now.replace(second=0, microsecond=0)
    return [
        CalendarEvent(
            "demo-standup", "Team Standup", base + timedelta(minutes=7), base + timedelta(minutes=22), "Zoom", True
        ),
        CalendarEvent(
            "demo-review",
            "Design Review",
            base + timedelta(minutes=45),
            base + timedelta(minutes=105),
            "Room 4B",
            True,
        ),
        CalendarEvent("demo-focus", "Focus Time", base + timedelta(hours=3), base + timedelta(hours=5)),
        CalendarEvent(
            "demo-holiday",
            "Company Holiday",
            base.replace(hour=0, minute=0),
            base.replace(hour=0, minute=0) + timedelta(days=1),
            is_all_day=True,
        ),
    ]


# EKAuthorizationStatus values
EK_STATUS_NOT_DETERMINED = 0
EK_STATUS_RESTRICTED = 1
EK_STATUS_DENIED = 2
EK_STATUS_FULL_ACCESS = 3  # also the legacy "authorized" value
EK_STATUS_WRITE_ONLY = 4


def _nsdate_to_datetime(nsdate) -> datetime:
    return datetime.fromtimestamp(nsdate.timeIntervalSince1970())


def convert_ek_event(ek_event) -> Optional[CalendarEvent]:
    """Convert an EKEvent to a CalendarEvent.

    Returns:
        The converted event, or None when the event has no identifier or dates
    """
    event_id = ek_event.eventIdentifier()
    start = ek_event.startDate()
    end = ek_event.endDate()
    if not event_id or start is None or end is None:
        return None

    location = ek_event.location()
    return CalendarEvent(
        event_id=str(event_id),
        title=str(ek_event.title() or ""),
        start=_nsdate_to_datetime(start),
        end=_nsdate_to_datetime(end),
        location=str(location) if location else None,
        has_attendees=bool(ek_event.hasAttendees()),
        is_all_day=bool(ek_event.isAllDay()),
    )


class EventKitEventSource(EventSource):
    """Event source reading the macOS calendar database through EventKit.

    PyObjC is imported lazily so the rest of the application stays usable
    on other platforms.
    """

    ACCESS_REQUEST_TIMEOUT = 120.0

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._event_store = None
        self._access_lock = threading.Lock()

    def _store(self):
        if self._event_store is None:
            try:
                import EventKit  # type: ignore
            except ImportError as e:
                raise EventFetchFailed(f"EventKit is not available on this system: {e}") from e
            self._event_store = EventKit.EKEventStore.alloc().init()
        return self._event_store

    def ensure_access(self) -> None:
        """Check calendar authorization, asking the user when undetermined.

        Raises:
            PermissionDenied, PermissionRestricted, PermissionUnknown, EventFetchFailed
        """
        import EventKit  # type: ignore

        store = self._store()
        status = EventKit.EKEventStore.authorizationStatusForEntityType_(EventKit.EKEntityTypeEvent)
        self.logger.debug(f"Calendar authorization status: {status}")

        if status == EK_STATUS_FULL_ACCESS:
            return
        if status == EK_STATUS_DENIED:
            raise PermissionDenied()
        if status in (EK_STATUS_RESTRICTED, EK_STATUS_WRITE_ONLY):
            raise PermissionRestricted()
        if status != EK_STATUS_NOT_DETERMINED:
            raise PermissionUnknown(f"status={status}")

        with self._access_lock:
            self._request_access(store)

    def _request_access(self, store) -> None:
        self.logger.info("Calendar access not determined, requesting...")
        done = threading.Event()
        outcome: dict = {}

        def completion(granted, error):
            outcome["granted"] = bool(granted)
            outcome["error"] = error
            done.set()

        if hasattr(store, "requestFullAccessToEventsWithCompletion_"):
            store.requestFullAccessToEventsWithCompletion_(completion)
        else:
            import EventKit  # type: ignore

            store.requestAccessToEntityType_completion_(EventKit.EKEntityTypeEvent, completion)

        if not done.wait(self.ACCESS_REQUEST_TIMEOUT):
            raise PermissionUnknown("Timed out waiting for calendar access response")
        if outcome.get("error") is not None:
            raise EventFetchFailed(str(outcome["error"]))
        if not outcome.get("granted"):
            raise PermissionDenied()
        self.logger.info("Calendar access granted")

    def fetch_events(self, window_start: datetime, window_end: datetime) -> list[CalendarEvent]:
        self.ensure_access()

        try:
            from Foundation import NSDate  # type: ignore

            store = self._store()
            predicate = store.predicateForEventsWithStartDate_endDate_calendars_(
                NSDate.dateWithTimeIntervalSince1970_(window_start.timestamp()),
                NSDate.dateWithTimeIntervalSince1970_(window_end.timestamp()),
                None,
            )
            ek_events = store.eventsMatchingPredicate_(predicate) or []
        except AnchorError:
            raise
        except Exception as e:
            raise EventFetchFailed(str(e)) from e

        events = [event for event in (convert_ek_event(ek_event) for ek_event in ek_events) if event is not None]
        self.logger.info(f"Fetched {len(events)} events from {window_start} to {window_end}")
        return events
