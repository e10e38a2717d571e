"""Meeting Anchor - Menu Bar Meeting Reminder Application.

This package watches the user's calendar and shows an attention-grabbing
overlay shortly before each meeting, using the MVP
(Model-View-Presenter) architecture pattern.
"""

__version__ = "1.0.0"
__author__ = "Meeting Anchor Team"
__description__ = "Menu bar meeting reminders with snooze and dismiss"
