"""Time formatting helpers for Meeting Anchor views."""

from datetime import datetime

from ..models.preferences_model import TimeFormat

SOON_THRESHOLD_MINUTES = 5


def format_time(value: datetime, time_format: TimeFormat) -> str:
    """Format a clock time as '2:05 PM' or '14:05'."""
    if time_format is TimeFormat.TWENTY_FOUR_HOUR:
        return value.strftime("%H:%M")
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_countdown(start: datetime, now: datetime) -> str:
    """Format the time left until `start` as 'm:ss', or 'Started' once reached."""
    remaining = int((start - now).total_seconds())
    if remaining <= 0:
        return "Started"
    minutes, seconds = divmod(remaining, 60)
    return f"{minutes}:{seconds:02d}"


def format_time_until(start: datetime, now: datetime) -> str:
    """Format the time until `start` for the menu: 'Now', 'Soon', '12m' or '1h 5m'."""
    minutes = int((start - now).total_seconds() // 60)
    if minutes <= 0:
        return "Now"
    if minutes <= SOON_THRESHOLD_MINUTES:
        return "Soon"
    if minutes < 60:
        return f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_duration(start: datetime, end: datetime) -> str:
    minutes = max(0, int((end - start).total_seconds() // 60))
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    return f"{minutes}m"
