"""Utils package for Meeting Anchor application.

This package contains utility functions and configuration modules
shared across the application.
"""

from .event_fetch_thread import EventFetchThread

__all__ = [
    "EventFetchThread",
]
