"""Dismissal and snooze state for Meeting Anchor reminders."""

import logging
from datetime import datetime
from typing import Optional

from .preferences_model import PreferencesModel


class ReminderState:
    """Per-event transient reminder state consulted by the scheduler.

    Dismissals hold only for the current calendar day and live in memory;
    they are lost on restart. Snoozes are stored through the preferences
    model and survive restarts until they expire.
    """

    def __init__(self, preferences: PreferencesModel):
        self.logger = logging.getLogger(__name__)
        self._preferences = preferences
        self._dismissed_today: set[str] = set()

    @property
    def dismissed_today(self) -> frozenset[str]:
        return frozenset(self._dismissed_today)

    def is_dismissed_today(self, event_id: str) -> bool:
        return event_id in self._dismissed_today

    def set_dismissed_today(self, event_id: str, dismissed: bool) -> None:
        if dismissed:
            self._dismissed_today.add(event_id)
        else:
            self._dismissed_today.discard(event_id)

    def clear_all_dismissals_for_today(self) -> None:
        """Forget every dismissal. Called at the local-midnight boundary."""
        count = len(self._dismissed_today)
        self._dismissed_today.clear()
        self.logger.info(f"Cleared {count} dismissed-for-today reminders")

    def active_snooze(self, event_id: str, now: datetime) -> Optional[datetime]:
        """Get the snooze-until time if it is still in the future."""
        until = self._preferences.get_snooze(event_id)
        if until is not None and until > now:
            return until
        return None

    def is_snoozed(self, event_id: str, now: datetime) -> bool:
        return self.active_snooze(event_id, now) is not None

    def set_snooze(self, event_id: str, until: datetime) -> None:
        self._preferences.set_snooze(event_id, until)

    def clear_snooze(self, event_id: str) -> None:
        self._preferences.remove_snooze(event_id)

    def reset(self) -> None:
        self._dismissed_today.clear()
