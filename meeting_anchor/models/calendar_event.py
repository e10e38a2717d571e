"""Calendar event data structure for Meeting Anchor application.

Events are produced by an event source on every fetch and are treated as
read-only snapshots by the rest of the application.
"""

from datetime import datetime
from typing import Optional


class CalendarEvent:
    """Data class representing one calendar event."""

    def __init__(
        self,
        event_id: str,
        title: str,
        start: datetime,
        end: datetime,
        location: Optional[str] = None,
        has_attendees: bool = False,
        is_all_day: bool = False,
    ):
        self.event_id = event_id
        self.title = title
        self.start = start
        self.end = end
        self.location = location
        self.has_attendees = has_attendees
        self.is_all_day = is_all_day

    def __str__(self) -> str:
        return f"{self.title} - {self.start.strftime('%Y-%m-%d %H:%M')}"

    def __repr__(self) -> str:
        return f"CalendarEvent(event_id='{self.event_id}', start={self.start}, is_all_day={self.is_all_day})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, CalendarEvent):
            return NotImplemented
        return (
            self.event_id == other.event_id
            and self.title == other.title
            and self.start == other.start
            and self.end == other.end
            and self.location == other.location
            and self.has_attendees == other.has_attendees
            and self.is_all_day == other.is_all_day
        )

    def __hash__(self) -> int:
        return hash((self.event_id, self.start))

    @property
    def display_title(self) -> str:
        """Get the title, falling back for untitled events."""
        return self.title or "Untitled Event"

    @property
    def duration_minutes(self) -> int:
        """Get the event duration in whole minutes."""
        return max(0, int((self.end - self.start).total_seconds() // 60))

    @property
    def formatted_duration(self) -> str:
        """Get formatted duration string such as '1h 30m'."""
        hours, minutes = divmod(self.duration_minutes, 60)
        if hours > 0:
            return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
        return f"{minutes}m"

    def is_upcoming(self, now: datetime) -> bool:
        """Check whether the event has not started yet."""
        return self.start > now
