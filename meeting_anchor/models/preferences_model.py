"""Preferences Model for Meeting Anchor application.

This module contains the key-value stores that persist user preferences and
the PreferencesModel class that exposes them as typed settings: reminder
lead time, per-event enable/disable overrides, snooze timestamps, overlay
style and time format.

Every mutator changes the in-memory value first and then persists
explicitly; there are no observers writing behind the caller's back.
"""

import json
import logging
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .error_model import ErrorModel, PreferencesLoadFailed, PreferencesSaveFailed


class OverlayStyle(Enum):
    """Visual style of the reminder overlay."""

    COMPACT = "compact"
    FULLSCREEN = "fullscreen"

    @property
    def display_name(self) -> str:
        return "Compact Card" if self is OverlayStyle.COMPACT else "Full Screen"

    @property
    def description(self) -> str:
        if self is OverlayStyle.COMPACT:
            return "Centered card on the main screen"
        return "Full screen with vibrant red/orange colors"


class TimeFormat(Enum):
    """Clock format used when showing meeting times."""

    TWELVE_HOUR = "12h"
    TWENTY_FOUR_HOUR = "24h"

    @property
    def display_name(self) -> str:
        return "12-hour (AM/PM)" if self is TimeFormat.TWELVE_HOUR else "24-hour"


def get_config_dir() -> Path:
    """Determine the OS-specific config directory for the application."""
    if sys.platform == "win32":
        config_dir = Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        config_dir = Path.home() / "Library" / "Application Support"
    else:  # Linux and other Unix-like
        config_dir = Path.home() / ".config"
    return config_dir / "meeting_anchor"


class KeyValueStore:
    """Minimal durable key-value store interface."""

    def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def update(self, values: dict[str, Any]) -> None:
        """Set several keys at once."""
        for key, value in values.items():
            self.set(key, value)


class MemoryStore(KeyValueStore):
    """Key-value store kept in memory, used in demo mode and tests."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._values: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class JsonFileStore(KeyValueStore):
    """Key-value store persisted as one JSON document.

    The file is read once, on first access. Every write rewrites the
    whole document.

    Raises:
        PreferencesLoadFailed: when the file exists but cannot be read or parsed
        PreferencesSaveFailed: when the document cannot be written
    """

    DEFAULT_FILE_NAME = "preferences.json"

    def __init__(self, file_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self.file_path = Path(file_path) if file_path else get_config_dir() / self.DEFAULT_FILE_NAME
        self._values: Optional[dict[str, Any]] = None

    def _load(self) -> dict[str, Any]:
        if self._values is not None:
            return self._values

        self._values = {}
        if not self.file_path.exists():
            self.logger.info(f"Preferences file not found, using defaults: {self.file_path}")
            return self._values

        try:
            with open(self.file_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PreferencesLoadFailed(f"{self.file_path}: {e}") from e

        if not isinstance(data, dict):
            raise PreferencesLoadFailed(f"{self.file_path}: expected a JSON object")

        self._values = data
        self.logger.info(f"Preferences loaded from {self.file_path}")
        return self._values

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, values: dict[str, Any]) -> None:
        try:
            document = self._load()
        except PreferencesLoadFailed:
            # Unreadable file: the next write replaces it.
            document = self._values = {}
        document.update(values)
        self._write(document)

    def _write(self, document: dict[str, Any]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError) as e:
            raise PreferencesSaveFailed(f"{self.file_path}: {e}") from e
        self.logger.debug(f"Preferences saved to {self.file_path}")


class PreferencesModel:
    """Model class for the user's reminder preferences.

    Reminders are enabled for every event unless an explicit override for
    its identifier says otherwise. Snooze timestamps are absolute; entries
    that are not in the future are expired and behave as if absent.
    """

    CURRENT_VERSION = "1.0"
    DEFAULT_LEAD_TIME_MINUTES = 5
    DEFAULT_OVERLAY_STYLE = OverlayStyle.COMPACT
    DEFAULT_TIME_FORMAT = TimeFormat.TWELVE_HOUR

    # Keys in the key-value store
    KEY_LEAD_TIME = "reminderMinutesBefore"
    KEY_OVERLAY_STYLE = "overlayStyle"
    KEY_TIME_FORMAT = "timeFormat"
    KEY_REMINDER_OVERRIDES = "reminderOverrides"
    KEY_SNOOZED_EVENTS = "snoozedEvents"
    KEY_LAST_VERSION = "lastAppVersion"

    def __init__(
        self,
        store: KeyValueStore,
        error_model: Optional[ErrorModel] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the PreferencesModel and load persisted values.

        Args:
            store: Key-value store holding the persisted preferences
            error_model: Where load/save failures are reported
            clock: Returns the current local time
        """
        self.logger = logging.getLogger(__name__)
        self._store = store
        self._error_model = error_model
        self._clock = clock

        self._lead_time_minutes = self.DEFAULT_LEAD_TIME_MINUTES
        self._overlay_style = self.DEFAULT_OVERLAY_STYLE
        self._time_format = self.DEFAULT_TIME_FORMAT
        self._reminder_overrides: dict[str, bool] = {}
        self._snoozed_events: dict[str, datetime] = {}

        if self.load_preferences():
            self._perform_migration_if_needed()

    # Properties

    @property
    def lead_time_minutes(self) -> int:
        return self._lead_time_minutes

    @property
    def overlay_style(self) -> OverlayStyle:
        return self._overlay_style

    @property
    def time_format(self) -> TimeFormat:
        return self._time_format

    @property
    def reminder_overrides(self) -> dict[str, bool]:
        return dict(self._reminder_overrides)

    @property
    def snoozed_events(self) -> dict[str, datetime]:
        return dict(self._snoozed_events)

    # Loading and saving

    def load_preferences(self) -> bool:
        """Load all preferences from the store.

        Returns:
            True if preferences were loaded, False if the store failed and defaults are in use
        """
        try:
            self._lead_time_minutes = self._parse_lead_time(
                self._store.get(self.KEY_LEAD_TIME), self.DEFAULT_LEAD_TIME_MINUTES
            )
            self._overlay_style = self._parse_enum(
                OverlayStyle, self._store.get(self.KEY_OVERLAY_STYLE), self.DEFAULT_OVERLAY_STYLE
            )
            self._time_format = self._parse_enum(
                TimeFormat, self._store.get(self.KEY_TIME_FORMAT), self.DEFAULT_TIME_FORMAT
            )
            self._reminder_overrides = self._parse_overrides(self._store.get(self.KEY_REMINDER_OVERRIDES))
            self._snoozed_events = self._parse_snoozes(self._store.get(self.KEY_SNOOZED_EVENTS))
        except PreferencesLoadFailed as e:
            self.logger.warning(f"Using default preferences: {e}")
            self._report(e)
            return False

        self.logger.info(
            f"Preferences loaded: lead_time={self._lead_time_minutes}m, "
            f"overrides={len(self._reminder_overrides)}, snoozes={len(self._snoozed_events)}"
        )
        return True

    def save_preferences(self) -> bool:
        """Persist all preferences.

        Failures are reported and not retried; the next mutation saves again.

        Returns:
            True if preferences were saved successfully, False otherwise
        """
        try:
            self._store.update({
                self.KEY_LEAD_TIME: self._lead_time_minutes,
                self.KEY_OVERLAY_STYLE: self._overlay_style.value,
                self.KEY_TIME_FORMAT: self._time_format.value,
                self.KEY_REMINDER_OVERRIDES: dict(self._reminder_overrides),
                self.KEY_SNOOZED_EVENTS: {
                    event_id: until.isoformat() for event_id, until in self._snoozed_events.items()
                },
            })
        except PreferencesSaveFailed as e:
            self.logger.exception("Error saving preferences")
            self._report(e)
            return False
        return True

    def _perform_migration_if_needed(self) -> None:
        last_version = self._store.get(self.KEY_LAST_VERSION)
        if last_version == self.CURRENT_VERSION:
            return

        self.logger.info(f"Migrating preferences from {last_version or 'none'} to {self.CURRENT_VERSION}")
        try:
            self._store.set(self.KEY_LAST_VERSION, self.CURRENT_VERSION)
        except PreferencesSaveFailed as e:
            self._report(e)

    def _report(self, error: Exception) -> None:
        if self._error_model is not None:
            self._error_model.report_error(error)

    # Parsing helpers

    @staticmethod
    def _parse_lead_time(value: Any, default: int) -> int:
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return default

    @staticmethod
    def _parse_enum(enum_type, value: Any, default):
        try:
            return enum_type(value)
        except ValueError:
            return default

    def _parse_overrides(self, value: Any) -> dict[str, bool]:
        if not isinstance(value, dict):
            return {}
        return {str(event_id): bool(enabled) for event_id, enabled in value.items()}

    def _parse_snoozes(self, value: Any) -> dict[str, datetime]:
        if not isinstance(value, dict):
            return {}

        now = self._clock()
        snoozes = {}
        for event_id, raw in value.items():
            try:
                until = datetime.fromisoformat(raw)
            except (TypeError, ValueError):
                self.logger.warning(f"Ignoring malformed snooze entry for event {event_id}: {raw!r}")
                continue
            if until > now:
                snoozes[str(event_id)] = until
        return snoozes

    # Core settings

    def set_lead_time_minutes(self, minutes: int) -> bool:
        """Set how many minutes before an event its reminder fires.

        Returns:
            True if the value was accepted, False if it was not a positive integer
        """
        if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes <= 0:
            self.logger.error(f"Invalid reminder lead time: {minutes!r}")
            return False

        old_value = self._lead_time_minutes
        self._lead_time_minutes = minutes
        self.logger.info(f"Reminder lead time changed from {old_value}m to {minutes}m")
        self.save_preferences()
        return True

    def set_overlay_style(self, style: OverlayStyle | str) -> bool:
        try:
            self._overlay_style = OverlayStyle(style)
        except ValueError:
            self.logger.error(f"Invalid overlay style: {style!r}")
            return False
        self.save_preferences()
        return True

    def set_time_format(self, time_format: TimeFormat | str) -> bool:
        try:
            self._time_format = TimeFormat(time_format)
        except ValueError:
            self.logger.error(f"Invalid time format: {time_format!r}")
            return False
        self.save_preferences()
        return True

    # Reminder overrides

    def is_reminder_enabled(self, event_id: str) -> bool:
        """Check the override for an event; events without one are enabled."""
        return self._reminder_overrides.get(event_id, True)

    def set_reminder_enabled(self, event_id: str, enabled: bool) -> None:
        self._reminder_overrides[event_id] = enabled
        self.save_preferences()

    # Snoozes

    def get_snooze(self, event_id: str) -> Optional[datetime]:
        """Get the stored snooze-until time, expired or not."""
        return self._snoozed_events.get(event_id)

    def set_snooze(self, event_id: str, until: datetime) -> None:
        self._snoozed_events[event_id] = until
        self.save_preferences()

    def remove_snooze(self, event_id: str) -> None:
        if self._snoozed_events.pop(event_id, None) is not None:
            self.save_preferences()

    def clear_expired_snoozes(self, now: Optional[datetime] = None) -> int:
        """Drop snooze entries that are no longer in the future.

        Returns:
            Number of entries removed
        """
        now = now or self._clock()
        expired = [event_id for event_id, until in self._snoozed_events.items() if until <= now]
        for event_id in expired:
            del self._snoozed_events[event_id]
        if expired:
            self.save_preferences()
        return len(expired)

    # Reset, export and import

    def reset_to_defaults(self) -> None:
        self._lead_time_minutes = self.DEFAULT_LEAD_TIME_MINUTES
        self._overlay_style = self.DEFAULT_OVERLAY_STYLE
        self._time_format = self.DEFAULT_TIME_FORMAT
        self._reminder_overrides.clear()
        self._snoozed_events.clear()
        self.save_preferences()
        self.logger.info("Preferences reset to defaults")

    def export_preferences(self) -> dict[str, Any]:
        """Export the user-editable preferences as a plain dictionary.

        Snoozes are not exported, so an import reproduces reminder
        eligibility only while no snooze is active.
        """
        return {
            self.KEY_LEAD_TIME: self._lead_time_minutes,
            self.KEY_OVERLAY_STYLE: self._overlay_style.value,
            self.KEY_TIME_FORMAT: self._time_format.value,
            self.KEY_REMINDER_OVERRIDES: dict(self._reminder_overrides),
        }

    def import_preferences(self, data: dict[str, Any]) -> bool:
        """Import preferences previously produced by export_preferences.

        Valid fields are applied even when others are missing or invalid.

        Returns:
            True if every field was present and valid, False otherwise
        """
        success = True

        minutes = data.get(self.KEY_LEAD_TIME)
        if self._parse_lead_time(minutes, 0) > 0:
            self._lead_time_minutes = minutes
        else:
            success = False

        try:
            self._overlay_style = OverlayStyle(data.get(self.KEY_OVERLAY_STYLE))
        except ValueError:
            success = False

        try:
            self._time_format = TimeFormat(data.get(self.KEY_TIME_FORMAT))
        except ValueError:
            success = False

        overrides = data.get(self.KEY_REMINDER_OVERRIDES)
        if isinstance(overrides, dict):
            self._reminder_overrides = self._parse_overrides(overrides)
        else:
            success = False

        self.save_preferences()
        self.logger.info(f"Preferences imported (complete={success})")
        return success
