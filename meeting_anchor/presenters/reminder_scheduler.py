"""Reminder Scheduler for Meeting Anchor application.

This module contains the ReminderScheduler class that decides, for every
upcoming calendar event, whether and when a reminder overlay is shown, and
keeps one pending timer per eligible event in step with the event list,
the user's preferences and the dismissal/snooze state.

All methods must be called from the thread that owns the Qt event loop;
results of background event fetches are delivered to it through signals.
"""

from datetime import datetime, time, timedelta
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from ..models.calendar_event import CalendarEvent
from ..models.error_model import AnchorError, ErrorModel, OverlayDisplayFailed, ReminderScheduleFailed
from ..models.event_source import EventSource
from ..models.preferences_model import PreferencesModel
from ..models.reminder_state import ReminderState
from ..utils.structured_logging import EnhancedLoggerMixin, timed_operation
from ..utils.time_formatting import format_time
from ..utils.timer_service import TimerHandle, TimerService
from .overlay_presenter import OverlayPresenter, ReminderAction, ReminderActionKind

REMINDER_ENABLED = "enabled"
REMINDER_DISABLED = "disabled"
REMINDER_DISMISSED = "dismissed"
REMINDER_SNOOZED = "snoozed"


def next_local_midnight(now: datetime) -> datetime:
    """Get the first local midnight strictly after `now`."""
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


def target_fire_time(
    event: CalendarEvent, preferences: PreferencesModel, state: ReminderState, now: datetime
) -> Optional[datetime]:
    """Compute when the reminder for `event` should fire.

    An active snooze replaces the lead-time based fire time.

    Returns:
        The fire time, or None when the event is not eligible for a reminder
    """
    if event.is_all_day or event.start <= now:
        return None
    if not preferences.is_reminder_enabled(event.event_id):
        return None
    if state.is_dismissed_today(event.event_id):
        return None

    fire_at = state.active_snooze(event.event_id, now)
    if fire_at is None:
        fire_at = event.start - timedelta(minutes=preferences.lead_time_minutes)
    return fire_at if fire_at > now else None


class ScheduledReminder:
    """A pending reminder timer for one event."""

    def __init__(self, event: CalendarEvent, fire_at: datetime, handle: TimerHandle, generation: int):
        self.event = event
        self.fire_at = fire_at
        self.handle = handle
        self.generation = generation

    def __repr__(self) -> str:
        return f"ScheduledReminder(event_id='{self.event.event_id}', fire_at={self.fire_at}, gen={self.generation})"


class ReminderScheduler(QObject, EnhancedLoggerMixin):
    """Owns the per-event reminder timers and the reminder state machine.

    Every change to events, preferences or state ends in either a full
    recompute, which cancels and rebuilds all per-event timers, or a scoped
    recompute of the single event the user acted on. A generation stamp on
    each timer makes fires from replaced timers no-ops. The midnight timer
    that clears dismissals is kept apart from the per-event timers.
    """

    FETCH_WINDOW = timedelta(days=1)
    TEST_REMINDER_LEAD = timedelta(minutes=5)

    schedule_updated = pyqtSignal(int)  # number of pending reminders
    events_updated = pyqtSignal(list)  # upcoming CalendarEvents, sorted by start
    reminder_fired = pyqtSignal(object)  # CalendarEvent handed to the overlay
    reminder_dropped = pyqtSignal(object)  # CalendarEvent skipped because an overlay was visible

    def __init__(
        self,
        preferences: PreferencesModel,
        state: ReminderState,
        overlay: OverlayPresenter,
        event_source: EventSource,
        timer_service: TimerService,
        error_model: Optional[ErrorModel] = None,
        clock: Callable[[], datetime] = datetime.now,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._preferences = preferences
        self._state = state
        self._overlay = overlay
        self._event_source = event_source
        self._timer_service = timer_service
        self._error_model = error_model
        self._clock = clock

        self._events: list[CalendarEvent] = []
        self._pending: dict[str, ScheduledReminder] = {}
        self._generation = 0
        self._midnight_handle: Optional[TimerHandle] = None
        self._running = False

        self.logger.info("ReminderScheduler initialized")

    # Properties

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events)

    @property
    def preferences(self) -> PreferencesModel:
        return self._preferences

    @property
    def state(self) -> ReminderState:
        return self._state

    def pending_reminders(self) -> dict[str, datetime]:
        """Get the fire time of every pending reminder by event id."""
        return {event_id: entry.fire_at for event_id, entry in self._pending.items()}

    # Lifecycle

    def start(self) -> None:
        """Arm the daily dismissal reset. Events arrive via update_events or refresh_events."""
        if self._running:
            return
        self._running = True
        self._arm_midnight_timer()
        self.logger.info("ReminderScheduler started")

    def stop(self) -> None:
        """Cancel every timer, including the midnight reset."""
        self._running = False
        self._cancel_all_timers()
        if self._midnight_handle is not None:
            self._midnight_handle.cancel()
            self._midnight_handle = None
        self.logger.info("ReminderScheduler stopped")

    # Event list

    @timed_operation("refresh_events")
    def refresh_events(self) -> bool:
        """Fetch events synchronously from the event source and recompute.

        On failure the error is reported and the pending timers are kept.

        Returns:
            True if events were fetched, False otherwise
        """
        now = self._clock()
        try:
            events = self._event_source.fetch_events(now, now + self.FETCH_WINDOW)
        except AnchorError as e:
            self.handle_fetch_failure(e)
            return False

        self.update_events(events)
        return True

    def handle_fetch_failure(self, error: AnchorError) -> None:
        """Report a failed fetch and keep the schedule from the last good fetch."""
        self.log_error_with_context(error, "fetch_events", pending_reminders=len(self._pending))
        if self._error_model is not None:
            self._error_model.report_error(error)

    def update_events(self, events: list[CalendarEvent]) -> None:
        """Replace the event list with a fresh fetch and fully recompute."""
        now = self._clock()
        upcoming = sorted(
            (event for event in events if event.is_upcoming(now) and not event.is_all_day),
            key=lambda event: event.start,
        )
        self.structured_logger.info("Events updated", fetched=len(events), upcoming=len(upcoming))

        self._events = upcoming
        self.events_updated.emit(list(upcoming))
        self.recompute()

    def get_next_meeting(self, within_minutes: int = 30) -> Optional[CalendarEvent]:
        """Get the first event starting within the next `within_minutes` minutes."""
        now = self._clock()
        cutoff = now + timedelta(minutes=within_minutes)
        return next((event for event in self._events if now < event.start <= cutoff), None)

    # Scheduling

    @timed_operation("recompute")
    def recompute(self) -> int:
        """Cancel every per-event timer and schedule one per eligible event.

        Returns:
            Number of pending reminders afterwards
        """
        self._cancel_all_timers()
        now = self._clock()

        for event in self._events:
            fire_at = target_fire_time(event, self._preferences, self._state, now)
            if fire_at is None:
                self.structured_logger.debug("No reminder for event", event_id=event.event_id, title=event.title)
                continue
            self._schedule(event, fire_at, now)

        count = len(self._pending)
        self.structured_logger.info("Reminders recomputed", scheduled=count, events=len(self._events))
        self.schedule_updated.emit(count)
        return count

    def _schedule_snooze(self, event: CalendarEvent, snooze_until: datetime) -> bool:
        """Replace only this event's timer with one at `snooze_until`.

        The event may already have started; a snoozed reminder still fires.
        """
        now = self._clock()
        self._cancel_timer(event.event_id)

        if not self._preferences.is_reminder_enabled(event.event_id):
            self.structured_logger.debug("Snooze recorded for disabled reminder", event_id=event.event_id)
        elif snooze_until > now:
            self._schedule(event, snooze_until, now)

        self.schedule_updated.emit(len(self._pending))
        return event.event_id in self._pending

    def _schedule(self, event: CalendarEvent, fire_at: datetime, now: datetime) -> None:
        self._cancel_timer(event.event_id)
        self._generation += 1
        generation = self._generation
        event_id = event.event_id

        try:
            handle = self._timer_service.schedule(
                (fire_at - now).total_seconds(), lambda: self._on_timer_fired(event_id, generation)
            )
        except Exception as e:
            self.log_error_with_context(e, "schedule_reminder", event_id=event_id)
            if self._error_model is not None:
                self._error_model.report_error(ReminderScheduleFailed(str(e)))
            return

        self._pending[event_id] = ScheduledReminder(event, fire_at, handle, generation)
        self.structured_logger.debug(
            "Reminder scheduled",
            event_id=event_id,
            title=event.title,
            fire_at=fire_at.isoformat(timespec="seconds"),
            in_minutes=f"{(fire_at - now).total_seconds() / 60:.1f}",
        )

    def _cancel_timer(self, event_id: str) -> None:
        entry = self._pending.pop(event_id, None)
        if entry is not None:
            entry.handle.cancel()

    def _cancel_all_timers(self) -> None:
        for entry in self._pending.values():
            entry.handle.cancel()
        self._pending.clear()

    # Firing

    def _on_timer_fired(self, event_id: str, generation: int) -> None:
        entry = self._pending.get(event_id)
        if entry is None or entry.generation != generation:
            self.structured_logger.debug("Ignoring stale reminder timer", event_id=event_id, generation=generation)
            return

        del self._pending[event_id]
        self._fire(entry.event)
        self.schedule_updated.emit(len(self._pending))

    def _fire(self, event: CalendarEvent) -> bool:
        self._preferences.clear_expired_snoozes(self._clock())

        # Only one overlay at a time; a reminder maturing while another is
        # visible is dropped, not queued.
        if self._overlay.is_presenting():
            self.structured_logger.warning("Overlay already visible, dropping reminder", event_id=event.event_id)
            self.reminder_dropped.emit(event)
            return False

        try:
            shown = self._overlay.present(event, lambda action: self.handle_overlay_action(event, action))
        except Exception as e:
            self.logger.exception("Failed to present reminder overlay")
            if self._error_model is not None:
                self._error_model.report_error(OverlayDisplayFailed(str(e)))
            return False

        if not shown:
            self.structured_logger.warning("Overlay refused reminder, dropping it", event_id=event.event_id)
            self.reminder_dropped.emit(event)
            return False

        self.structured_logger.info("Reminder shown", event_id=event.event_id, title=event.title)
        self.reminder_fired.emit(event)
        return True

    def show_test_reminder(self) -> bool:
        """Present a demo reminder immediately, unless an overlay is visible."""
        now = self._clock().replace(microsecond=0)
        test_event = CalendarEvent(
            event_id=f"test-reminder-{int(now.timestamp())}",
            title="Test Meeting - Demo Reminder",
            start=now + self.TEST_REMINDER_LEAD,
            end=now + self.TEST_REMINDER_LEAD + timedelta(minutes=30),
            location="Demo Conference Room",
        )
        self.logger.info("Showing test reminder")
        return self._fire(test_event)

    # User actions

    def handle_overlay_action(self, event: CalendarEvent, action: ReminderAction) -> None:
        """Apply the choice the user made on a reminder overlay."""
        self.structured_logger.info("Overlay action", event_id=event.event_id, action=repr(action))

        if action.kind is ReminderActionKind.SNOOZE:
            self.snooze(event, action.minutes)
        elif action.kind is ReminderActionKind.SNOOZE_UNTIL_BEFORE_EVENT:
            self.snooze_until_before_event(event, action.minutes)
        elif action.kind is ReminderActionKind.DISMISS_FOR_TODAY:
            self.dismiss_for_today(event)

    def snooze(self, event: CalendarEvent, minutes: int) -> bool:
        """Show the reminder again `minutes` from now.

        Returns:
            True if a snoozed reminder is now pending for the event
        """
        if not isinstance(minutes, int) or minutes <= 0:
            self.logger.error(f"Invalid snooze duration: {minutes!r}")
            return False

        snooze_until = self._clock() + timedelta(minutes=minutes)
        self._state.set_snooze(event.event_id, snooze_until)
        self._state.set_dismissed_today(event.event_id, False)
        self.structured_logger.info(
            "Reminder snoozed", event_id=event.event_id, minutes=minutes, until=snooze_until.isoformat(timespec="seconds")
        )
        return self._schedule_snooze(event, snooze_until)

    def snooze_until_before_event(self, event: CalendarEvent, minutes_before: int) -> bool:
        """Show the reminder again `minutes_before` minutes before the event starts.

        Returns:
            False without changing anything when that moment has already passed
        """
        snooze_until = event.start - timedelta(minutes=minutes_before)
        if snooze_until <= self._clock():
            self.structured_logger.info(
                "Cannot snooze - reminder time is in the past", event_id=event.event_id, minutes_before=minutes_before
            )
            return False

        self._state.set_snooze(event.event_id, snooze_until)
        self._state.set_dismissed_today(event.event_id, False)
        self.structured_logger.info(
            "Reminder snoozed until before event",
            event_id=event.event_id,
            minutes_before=minutes_before,
            until=snooze_until.isoformat(timespec="seconds"),
        )
        return self._schedule_snooze(event, snooze_until)

    def dismiss_for_today(self, event: CalendarEvent) -> None:
        """Suppress the event's reminders until the next local midnight."""
        self._state.set_dismissed_today(event.event_id, True)
        self._cancel_timer(event.event_id)
        self.structured_logger.info("Reminder dismissed for today", event_id=event.event_id, title=event.title)
        self.schedule_updated.emit(len(self._pending))

    def undismiss_for_today(self, event: CalendarEvent) -> None:
        self._state.set_dismissed_today(event.event_id, False)
        self.structured_logger.info("Reminder re-enabled for today", event_id=event.event_id)
        self.recompute()

    def toggle_reminder(self, event: CalendarEvent) -> bool:
        """Flip the enable/disable override for the event.

        Returns:
            Whether reminders are now enabled for the event
        """
        enabled = not self._preferences.is_reminder_enabled(event.event_id)
        self._preferences.set_reminder_enabled(event.event_id, enabled)
        self.log_state_change(
            REMINDER_DISABLED if enabled else REMINDER_ENABLED,
            REMINDER_ENABLED if enabled else REMINDER_DISABLED,
            event_id=event.event_id,
        )
        self.recompute()
        return enabled

    def clear_snooze(self, event: CalendarEvent) -> None:
        self._state.clear_snooze(event.event_id)
        self.recompute()

    def set_lead_time(self, minutes: int) -> bool:
        if not self._preferences.set_lead_time_minutes(minutes):
            return False
        self.recompute()
        return True

    def reminder_status(self, event: CalendarEvent) -> str:
        """Describe the reminder state of an event for display."""
        if self._state.is_dismissed_today(event.event_id):
            return REMINDER_DISMISSED
        if not self._preferences.is_reminder_enabled(event.event_id):
            return REMINDER_DISABLED
        if self._state.is_snoozed(event.event_id, self._clock()):
            return REMINDER_SNOOZED
        return REMINDER_ENABLED

    def format_time(self, value: datetime) -> str:
        return format_time(value, self._preferences.time_format)

    def clear_all_reminders(self) -> None:
        """Cancel every pending reminder and close the overlay."""
        self._cancel_all_timers()
        if self._overlay.is_presenting():
            self._overlay.hide()
        self.schedule_updated.emit(0)
        self.logger.info("Cleared all reminders and overlay")

    def reset_all_preferences(self) -> None:
        self._preferences.reset_to_defaults()
        self._state.reset()
        if self._error_model is not None:
            self._error_model.clear_all_errors()
        self.clear_all_reminders()
        self.recompute()
        self.logger.info("Reset all preferences to default values")

    # Daily boundary

    def _arm_midnight_timer(self) -> None:
        now = self._clock()
        midnight = next_local_midnight(now)
        self._midnight_handle = self._timer_service.schedule((midnight - now).total_seconds(), self._on_midnight)
        self.structured_logger.debug("Midnight reset armed", at=midnight.isoformat(timespec="seconds"))

    def _on_midnight(self) -> None:
        self._midnight_handle = None
        if not self._running:
            return

        self._state.clear_all_dismissals_for_today()
        self._preferences.clear_expired_snoozes(self._clock())
        self.recompute()
        self._arm_midnight_timer()
