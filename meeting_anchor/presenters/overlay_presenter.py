"""Overlay presenter contract for Meeting Anchor application.

The scheduler hands a matured reminder to an OverlayPresenter and receives
the user's choice back asynchronously as a ReminderAction.
"""

from enum import Enum
from typing import Callable, Optional

from ..models.calendar_event import CalendarEvent


class ReminderActionKind(Enum):
    SNOOZE = "snooze"
    SNOOZE_UNTIL_BEFORE_EVENT = "snooze_until_before_event"
    DISMISS_FOR_TODAY = "dismiss_for_today"
    NONE = "none"


class ReminderAction:
    """User choice reported back from a reminder overlay."""

    def __init__(self, kind: ReminderActionKind, minutes: Optional[int] = None):
        self.kind = kind
        self.minutes = minutes

    @classmethod
    def snooze(cls, minutes: int) -> "ReminderAction":
        return cls(ReminderActionKind.SNOOZE, minutes)

    @classmethod
    def snooze_until_before_event(cls, minutes_before: int) -> "ReminderAction":
        return cls(ReminderActionKind.SNOOZE_UNTIL_BEFORE_EVENT, minutes_before)

    @classmethod
    def dismiss_for_today(cls) -> "ReminderAction":
        return cls(ReminderActionKind.DISMISS_FOR_TODAY)

    @classmethod
    def none(cls) -> "ReminderAction":
        return cls(ReminderActionKind.NONE)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ReminderAction):
            return NotImplemented
        return self.kind == other.kind and self.minutes == other.minutes

    def __hash__(self) -> int:
        return hash((self.kind, self.minutes))

    def __repr__(self) -> str:
        if self.minutes is None:
            return f"ReminderAction({self.kind.value})"
        return f"ReminderAction({self.kind.value}, minutes={self.minutes})"


ActionCallback = Callable[[ReminderAction], None]


class OverlayPresenter:
    """Displays one reminder at a time and reports the user's choice.

    Implementations must clear their presenting flag before invoking the
    action callback, so the scheduler may present again from inside it.
    """

    def is_presenting(self) -> bool:
        raise NotImplementedError

    def present(self, event: CalendarEvent, on_action: ActionCallback) -> bool:
        """Start showing a reminder for `event`.

        Returns:
            True if the overlay was shown, False if one is already outstanding
        """
        raise NotImplementedError

    def hide(self) -> None:
        """Close a visible overlay; the pending callback receives ReminderAction.none()."""
        raise NotImplementedError
