"""Anchor Presenter for the application.

This module contains the AnchorPresenter class that wires the models, the
reminder scheduler, the background event fetch thread and the views
together.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal
from PyQt6.QtWidgets import QApplication

from ..models.calendar_event import CalendarEvent
from ..models.error_model import AnchorError, ErrorModel
from ..models.event_source import EventSource
from ..models.preferences_model import KeyValueStore, OverlayStyle, PreferencesModel, TimeFormat
from ..models.reminder_state import ReminderState
from ..utils.event_fetch_thread import EventFetchThread
from ..utils.time_formatting import format_time_until
from ..utils.timer_service import QtTimerService
from ..views.reminder_overlay_view import QtOverlayPresenter
from ..views.tray_view import TrayEventItem, TrayView
from .reminder_scheduler import ReminderScheduler


class AnchorPresenter(QObject):
    """Presenter class for Meeting Anchor application.

    This class coordinates between models and views following the MVP
    (Model-View-Presenter) architecture pattern. Fetch results arrive on
    the fetch thread and are handed to the main thread through Qt signals.
    """

    REFRESH_INTERVAL_MS = 5 * 60 * 1000
    MENU_UPDATE_INTERVAL_MS = 60 * 1000

    # Qt signals for thread-safe handoff from the fetch thread
    events_fetched_signal = pyqtSignal(list)  # list of CalendarEvent
    fetch_error_signal = pyqtSignal(object)  # AnchorError

    def __init__(
        self,
        event_source: EventSource,
        preferences_store: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the AnchorPresenter.

        Args:
            event_source: Where calendar events are read from
            preferences_store: Key-value store for the user's preferences
            clock: Returns the current local time
        """
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self._clock = clock

        # Initialize models
        self.error_model = ErrorModel()
        self.preferences = PreferencesModel(preferences_store, self.error_model, clock)
        self.reminder_state = ReminderState(self.preferences)
        self.event_source = event_source

        # Initialize scheduler and overlay
        self.overlay = QtOverlayPresenter(self.preferences, clock)
        self.scheduler = ReminderScheduler(
            self.preferences,
            self.reminder_state,
            self.overlay,
            event_source,
            QtTimerService(self),
            self.error_model,
            clock,
            parent=self,
        )

        # Initialize view
        self.view = TrayView()

        # Background fetch
        self._fetch_thread: Optional[EventFetchThread] = None
        self._last_fetch: Optional[datetime] = None

        self._refresh_timer = QTimer(self)
        self._refresh_timer.timeout.connect(self.refresh_events)
        self._menu_timer = QTimer(self)
        self._menu_timer.timeout.connect(self._update_menu)

        self._connect_view_callbacks()
        self._connect_signals()

        self.logger.info("AnchorPresenter initialized")

    def _connect_view_callbacks(self) -> None:
        """Connect view callbacks to presenter methods."""
        self.view.on_refresh = self.refresh_events
        self.view.on_toggle_reminder = self.scheduler.toggle_reminder
        self.view.on_dismiss_for_today = self.scheduler.dismiss_for_today
        self.view.on_undismiss_for_today = self.scheduler.undismiss_for_today
        self.view.on_clear_snooze = self.scheduler.clear_snooze
        self.view.on_test_reminder = self.scheduler.show_test_reminder
        self.view.on_lead_time_changed = self.scheduler.set_lead_time
        self.view.on_overlay_style_changed = self._handle_overlay_style_changed
        self.view.on_time_format_changed = self._handle_time_format_changed
        self.view.on_reset_preferences = self.scheduler.reset_all_preferences
        self.view.on_quit = self.quit

        self.logger.debug("View callbacks connected")

    def _connect_signals(self) -> None:
        """Connect Qt signals to their handlers."""
        self.events_fetched_signal.connect(self.scheduler.update_events)
        self.fetch_error_signal.connect(self.scheduler.handle_fetch_failure)

        self.scheduler.schedule_updated.connect(lambda _count: self._update_menu())
        self.scheduler.reminder_dropped.connect(self._on_reminder_dropped)

        self.error_model.add_error_callback(self._on_error_changed)

        self.logger.debug("Qt signals connected")

    # Lifecycle

    def start(self) -> None:
        """Show the tray icon, start the scheduler and the first fetch."""
        self._fetch_thread = EventFetchThread(self.event_source)
        self._fetch_thread.set_result_callback(self._on_events_fetched)
        self._fetch_thread.set_error_callback(self._on_fetch_error)
        self._fetch_thread.start()

        self.scheduler.start()
        self.view.show()
        self._update_menu()

        self.refresh_events()
        self._refresh_timer.start(self.REFRESH_INTERVAL_MS)
        self._menu_timer.start(self.MENU_UPDATE_INTERVAL_MS)
        self.logger.info("Meeting Anchor started")

    def refresh_events(self) -> bool:
        """Ask the fetch thread for the next day of events."""
        if self._fetch_thread is None:
            return self.scheduler.refresh_events()

        now = self._clock()
        return self._fetch_thread.request_fetch(now, now + ReminderScheduler.FETCH_WINDOW)

    def quit(self) -> None:
        self.cleanup()
        QApplication.quit()

    def cleanup(self) -> None:
        """Stop timers and the fetch thread."""
        self._refresh_timer.stop()
        self._menu_timer.stop()
        self.scheduler.stop()
        self.overlay.hide()
        if self._fetch_thread is not None:
            self._fetch_thread.stop()
            self._fetch_thread = None
        self.logger.info("AnchorPresenter cleaned up")

    # Fetch thread callbacks (called on the fetch thread)

    def _on_events_fetched(self, events: list[CalendarEvent]) -> None:
        self.events_fetched_signal.emit(events)

    def _on_fetch_error(self, error: AnchorError) -> None:
        self.fetch_error_signal.emit(error)

    # Handlers

    def _handle_overlay_style_changed(self, style: OverlayStyle) -> None:
        if self.preferences.set_overlay_style(style):
            self._update_menu()

    def _handle_time_format_changed(self, time_format: TimeFormat) -> None:
        if self.preferences.set_time_format(time_format):
            self._update_menu()

    def _on_reminder_dropped(self, event: CalendarEvent) -> None:
        self.logger.warning(f"Reminder for {event} was not shown because another reminder is on screen")

    def _on_error_changed(self, error: Optional[AnchorError]) -> None:
        if error is not None:
            message = error.description
            if error.recovery_action:
                message = f"{message}\n{error.recovery_action}"
            self.view.show_message("Meeting Anchor", message)
        self._update_menu()

    def _update_menu(self) -> None:
        now = self._clock()
        items = [
            TrayEventItem(
                event,
                self.scheduler.format_time(event.start),
                format_time_until(event.start, now),
                self.scheduler.reminder_status(event),
            )
            for event in self.scheduler.events
            if event.is_upcoming(now)
        ]

        next_meeting = self.scheduler.get_next_meeting()
        if next_meeting is not None:
            status_text = f"Next: {next_meeting.display_title} in {format_time_until(next_meeting.start, now)}"
        else:
            status_text = f"{len(items)} upcoming events"

        self.view.update_menu(
            items,
            status_text,
            self.preferences.lead_time_minutes,
            self.preferences.overlay_style,
            self.preferences.time_format,
            self.error_model.error_message,
        )

    def get_stats(self) -> dict:
        stats = {
            "events": len(self.scheduler.events),
            "pending_reminders": len(self.scheduler.pending_reminders()),
            "errors": len(self.error_model.history),
        }
        if self._fetch_thread is not None:
            stats.update(self._fetch_thread.get_processing_stats())
        return stats
