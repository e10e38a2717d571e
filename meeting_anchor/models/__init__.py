"""Models package for Meeting Anchor application.

This package contains the data models and state classes consulted by the
reminder scheduler.
"""

from .calendar_event import CalendarEvent
from .error_model import (
    AnchorError,
    ErrorModel,
    EventFetchFailed,
    OverlayDisplayFailed,
    PermissionDenied,
    PermissionRestricted,
    PermissionUnknown,
    PreferencesLoadFailed,
    PreferencesSaveFailed,
    ReminderScheduleFailed,
)
from .event_source import EventKitEventSource, EventSource, StaticEventSource
from .preferences_model import JsonFileStore, KeyValueStore, MemoryStore, OverlayStyle, PreferencesModel, TimeFormat
from .reminder_state import ReminderState

__all__ = [
    "AnchorError",
    "CalendarEvent",
    "ErrorModel",
    "EventFetchFailed",
    "EventKitEventSource",
    "EventSource",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "OverlayDisplayFailed",
    "OverlayStyle",
    "PermissionDenied",
    "PermissionRestricted",
    "PermissionUnknown",
    "PreferencesLoadFailed",
    "PreferencesModel",
    "PreferencesSaveFailed",
    "ReminderScheduleFailed",
    "ReminderState",
    "TimeFormat",
]
