from datetime import datetime, timedelta

import pytest

from meeting_anchor.models.error_model import EventFetchFailed, PermissionDenied
from meeting_anchor.models.event_source import (
    EventKitEventSource,
    StaticEventSource,
    convert_ek_event,
    create_demo_events,
)


class FakeNSDate:
    def __init__(self, value: datetime):
        self._value = value

    def timeIntervalSince1970(self):
        return self._value.timestamp()


class FakeEKEvent:
    def __init__(self, identifier="ek-1", title="Planning", start=None, end=None, location=None, all_day=False):
        self._identifier = identifier
        self._title = title
        self._start = start
        self._end = end
        self._location = location
        self._all_day = all_day

    def eventIdentifier(self):
        return self._identifier

    def title(self):
        return self._title

    def startDate(self):
        return self._start and FakeNSDate(self._start)

    def endDate(self):
        return self._end and FakeNSDate(self._end)

    def location(self):
        return self._location

    def hasAttendees(self):
        return True

    def isAllDay(self):
        return self._all_day


class FakeEventStore:
    def __init__(self, granted, error=None):
        self.granted = granted
        self.error = error

    def requestFullAccessToEventsWithCompletion_(self, completion):
        completion(self.granted, self.error)


def test_static_source_returns_events_overlapping_window(make_event, clock):
    inside = make_event("inside", starts_in=30)
    running = make_event("running", starts_in=-10, duration=30)
    tomorrow = make_event("tomorrow", starts_in=2 * 24 * 60)
    source = StaticEventSource([inside, running, tomorrow])

    events = source.fetch_events(clock.now, clock.now + timedelta(days=1))

    assert events == [inside, running]


def test_static_source_failure(clock):
    source = StaticEventSource()
    source.fail_with(PermissionDenied())

    with pytest.raises(PermissionDenied):
        source.fetch_events(clock.now, clock.now + timedelta(days=1))

    source.fail_with(None)
    assert source.fetch_events(clock.now, clock.now + timedelta(days=1)) == []


def test_demo_events_include_an_all_day_event(clock):
    events = create_demo_events(clock.now)

    assert any(event.is_all_day for event in events)
    assert len({event.event_id for event in events}) == len(events)


def test_convert_ek_event():
    start = datetime(2025, 3, 10, 14, 0)
    event = convert_ek_event(FakeEKEvent(start=start, end=start + timedelta(hours=1), location="Room 1"))

    assert event.event_id == "ek-1"
    assert event.title == "Planning"
    assert event.start == start
    assert event.duration_minutes == 60
    assert event.location == "Room 1"
    assert event.has_attendees is True
    assert event.is_all_day is False


def test_convert_ek_event_without_dates_is_skipped():
    assert convert_ek_event(FakeEKEvent(start=None, end=None)) is None
    assert convert_ek_event(FakeEKEvent(identifier=None, start=datetime(2025, 3, 10), end=datetime(2025, 3, 11))) is None


def test_access_request_granted():
    EventKitEventSource()._request_access(FakeEventStore(granted=True))


def test_access_request_denied():
    with pytest.raises(PermissionDenied):
        EventKitEventSource()._request_access(FakeEventStore(granted=False))


def test_access_request_error():
    with pytest.raises(EventFetchFailed):
        EventKitEventSource()._request_access(FakeEventStore(granted=False, error="sandbox violation"))
