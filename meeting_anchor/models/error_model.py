"""Error taxonomy and error history for Meeting Anchor application.

Errors are raised by the event source and the preference store, reported to
an ErrorModel and shown to the user. None of them stops the application.
"""

import logging
from datetime import datetime
from typing import Callable, ClassVar, Optional


class AnchorError(Exception):
    """Base class for every user-facing error."""

    error_id: ClassVar[str] = "anchor_error"
    recovery_action: ClassVar[Optional[str]] = None

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail
        self.timestamp = datetime.now()

    @property
    def description(self) -> str:
        """Get the message shown to the user."""
        return self.detail or "An unexpected error occurred."

    def __eq__(self, other) -> bool:
        if not isinstance(other, AnchorError):
            return NotImplemented
        return type(self) is type(other) and self.detail == other.detail

    def __hash__(self) -> int:
        return hash((type(self), self.detail))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(detail='{self.detail}')"


class PermissionDenied(AnchorError):
    error_id = "calendar_access_denied"
    recovery_action = "Open System Settings"

    @property
    def description(self) -> str:
        return "Calendar access was denied. Please grant access in System Settings > Privacy & Security > Calendars."


class PermissionRestricted(AnchorError):
    error_id = "calendar_access_restricted"

    @property
    def description(self) -> str:
        return "Calendar access is restricted by system policies."


class PermissionUnknown(AnchorError):
    error_id = "calendar_access_unknown"

    @property
    def description(self) -> str:
        return "Unknown calendar access status."


class EventFetchFailed(AnchorError):
    error_id = "event_fetch_failed"
    recovery_action = "Try Again"

    @property
    def description(self) -> str:
        return f"Failed to fetch calendar events: {self.detail}"


class ReminderScheduleFailed(AnchorError):
    error_id = "reminder_schedule_failed"
    recovery_action = "Try Again"

    @property
    def description(self) -> str:
        return f"Failed to schedule reminder: {self.detail}"


class OverlayDisplayFailed(AnchorError):
    error_id = "overlay_display_failed"

    @property
    def description(self) -> str:
        return f"Failed to display reminder overlay: {self.detail}"


class PreferencesLoadFailed(AnchorError):
    error_id = "preferences_load_failed"
    recovery_action = "Reset to Defaults"

    @property
    def description(self) -> str:
        return f"Failed to load preferences: {self.detail}"


class PreferencesSaveFailed(AnchorError):
    error_id = "preferences_save_failed"
    recovery_action = "Reset to Defaults"

    @property
    def description(self) -> str:
        return f"Failed to save preferences: {self.detail}"


class ErrorModel:
    """Holds the current error and a bounded, newest-first error history."""

    MAX_HISTORY_COUNT = 10

    def __init__(self, max_history: int = MAX_HISTORY_COUNT):
        self.logger = logging.getLogger(__name__)
        self._max_history = max_history
        self._current_error: Optional[AnchorError] = None
        self._history: list[AnchorError] = []
        self._error_callbacks: list[Callable[[Optional[AnchorError]], None]] = []

    @property
    def current_error(self) -> Optional[AnchorError]:
        return self._current_error

    @property
    def history(self) -> list[AnchorError]:
        return list(self._history)

    @property
    def error_message(self) -> Optional[str]:
        """Get the description of the current error, if any."""
        return self._current_error.description if self._current_error else None

    def report_error(self, error: AnchorError) -> None:
        """Make `error` the current error and prepend it to the history."""
        self.logger.warning(f"Error reported: {error.error_id} - {error.description}")

        self._current_error = error
        self._history.insert(0, error)
        del self._history[self._max_history :]

        self._notify(error)

    def clear_current_error(self) -> None:
        self._current_error = None
        self._notify(None)

    def clear_all_errors(self) -> None:
        self._current_error = None
        self._history.clear()
        self._notify(None)

    def add_error_callback(self, callback: Callable[[Optional[AnchorError]], None]) -> None:
        """Add callback invoked with the new current error (or None when cleared)."""
        self._error_callbacks.append(callback)

    def _notify(self, error: Optional[AnchorError]) -> None:
        for callback in self._error_callbacks:
            try:
                callback(error)
            except Exception:
                self.logger.exception("Error in error-model callback", extra={"callback": str(callback)})
