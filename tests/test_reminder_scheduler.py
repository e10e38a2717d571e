from datetime import datetime, timedelta

from meeting_anchor.models.calendar_event import CalendarEvent
from meeting_anchor.models.error_model import EventFetchFailed, OverlayDisplayFailed, ReminderScheduleFailed
from meeting_anchor.models.preferences_model import JsonFileStore, MemoryStore, PreferencesModel
from meeting_anchor.models.reminder_state import ReminderState
from meeting_anchor.presenters.overlay_presenter import ReminderAction
from meeting_anchor.presenters.reminder_scheduler import (
    REMINDER_DISABLED,
    REMINDER_DISMISSED,
    REMINDER_ENABLED,
    REMINDER_SNOOZED,
    ReminderScheduler,
    next_local_midnight,
    target_fire_time,
)

from .conftest import START_TIME, FakeClock, ManualTimerService


def test_recompute_schedules_one_timer_per_eligible_event(scheduler, make_event):
    first = make_event("a", starts_in=30)
    second = make_event("b", starts_in=90)

    scheduler.update_events([second, first])

    assert scheduler.pending_reminders() == {
        "a": first.start - timedelta(minutes=5),
        "b": second.start - timedelta(minutes=5),
    }
    assert [event.event_id for event in scheduler.events] == ["a", "b"]


def test_recompute_is_idempotent(scheduler, make_event, timers):
    scheduler.update_events([make_event("a", starts_in=30)])
    before = scheduler.pending_reminders()

    scheduler.recompute()
    scheduler.recompute()

    assert scheduler.pending_reminders() == before
    # one per-event timer plus the midnight reset
    assert len(timers.active_handles()) == 2


def test_update_events_drops_started_and_all_day_events(scheduler, make_event):
    started = make_event("started", starts_in=-10)
    all_day = make_event("holiday", starts_in=60, duration=24 * 60, is_all_day=True)
    upcoming = make_event("upcoming", starts_in=60)

    scheduler.update_events([started, all_day, upcoming])

    assert [event.event_id for event in scheduler.events] == ["upcoming"]
    assert list(scheduler.pending_reminders()) == ["upcoming"]


def test_event_too_close_for_lead_time_is_not_scheduled(scheduler, make_event):
    scheduler.update_events([make_event("soon", starts_in=3)])

    assert scheduler.pending_reminders() == {}


def test_event_removed_from_fetch_loses_its_timer(scheduler, make_event):
    keep = make_event("keep", starts_in=30)
    scheduler.update_events([keep, make_event("gone", starts_in=40)])

    scheduler.update_events([keep])

    assert list(scheduler.pending_reminders()) == ["keep"]


def test_toggle_reminder_removes_timer_until_reenabled(scheduler, make_event, preferences):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])

    assert scheduler.toggle_reminder(event) is False
    assert scheduler.pending_reminders() == {}
    assert preferences.reminder_overrides == {"a": False}

    scheduler.update_events([event])
    scheduler.recompute()
    assert scheduler.pending_reminders() == {}

    assert scheduler.toggle_reminder(event) is True
    assert list(scheduler.pending_reminders()) == ["a"]


def test_snooze_while_displayed_fires_again_after_five_minutes(scheduler, make_event, timers, overlay, clock):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])

    timers.advance_to(event.start - timedelta(minutes=5))
    assert overlay.presented == [event]

    snoozed_at = clock.now
    overlay.respond(ReminderAction.snooze(5))
    assert scheduler.pending_reminders() == {"a": snoozed_at + timedelta(minutes=5)}

    timers.advance_to(snoozed_at + timedelta(minutes=5) - timedelta(seconds=1))
    assert len(overlay.presented) == 1

    timers.advance(timedelta(seconds=1))
    assert overlay.presented == [event, event]


def test_dismiss_for_today_holds_until_midnight(overlay, source):
    clock = FakeClock(datetime(2025, 3, 10, 23, 0))
    timers = ManualTimerService(clock)
    preferences = PreferencesModel(MemoryStore(), clock=clock)
    scheduler = ReminderScheduler(preferences, ReminderState(preferences), overlay, source, timers, clock=clock)
    scheduler.start()

    event = CalendarEvent("late", "Late call", datetime(2025, 3, 11, 0, 30), datetime(2025, 3, 11, 1, 0))
    scheduler.update_events([event])
    assert list(scheduler.pending_reminders()) == ["late"]

    scheduler.dismiss_for_today(event)
    assert scheduler.pending_reminders() == {}
    assert preferences.is_reminder_enabled("late") is True

    timers.advance_to(datetime(2025, 3, 10, 23, 59, 59))
    assert overlay.presented == []
    scheduler.recompute()
    assert scheduler.pending_reminders() == {}

    timers.advance_to(datetime(2025, 3, 11, 0, 0, 1))
    assert scheduler.state.dismissed_today == frozenset()
    assert scheduler.pending_reminders() == {"late": datetime(2025, 3, 11, 0, 25)}

    timers.advance_to(datetime(2025, 3, 11, 0, 25))
    assert overlay.presented == [event]
    scheduler.stop()


def test_midnight_reset_rearms_for_following_day(scheduler, timers, clock):
    first_midnight = next_local_midnight(clock.now)
    timers.advance_to(first_midnight + timedelta(minutes=1))

    due = sorted(handle.due for handle in timers.active_handles())
    assert due == [first_midnight + timedelta(days=1)]


def test_undismiss_restores_reminder(scheduler, make_event):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.dismiss_for_today(event)

    scheduler.undismiss_for_today(event)

    assert list(scheduler.pending_reminders()) == ["a"]


def test_second_simultaneous_fire_is_dropped_not_queued(scheduler, make_event, timers, overlay):
    first = make_event("a", starts_in=30)
    second = make_event("b", starts_in=30)
    dropped = []
    scheduler.reminder_dropped.connect(dropped.append)
    scheduler.update_events([first, second])

    timers.advance_to(first.start - timedelta(minutes=5))

    assert len(overlay.presented) == 1
    assert len(dropped) == 1
    assert {overlay.presented[0].event_id, dropped[0].event_id} == {"a", "b"}
    assert scheduler.pending_reminders() == {}

    overlay.respond(ReminderAction.dismiss_for_today())
    timers.advance_to(first.start)
    assert len(overlay.presented) == 1


def test_all_day_events_never_scheduled(preferences, state, clock, make_event):
    event = make_event("holiday", starts_in=60, is_all_day=True)
    preferences.set_reminder_enabled("holiday", True)
    state.set_snooze("holiday", clock.now + timedelta(minutes=10))

    assert target_fire_time(event, preferences, state, clock.now) is None


def test_active_snooze_overrides_lead_time(preferences, state, clock, make_event):
    event = make_event("a", starts_in=30)
    state.set_snooze("a", clock.now + timedelta(minutes=40))

    assert target_fire_time(event, preferences, state, clock.now) == clock.now + timedelta(minutes=40)


def test_expired_snooze_is_ignored(preferences, state, clock, make_event):
    event = make_event("a", starts_in=30)
    state.set_snooze("a", clock.now - timedelta(minutes=1))

    assert target_fire_time(event, preferences, state, clock.now) == event.start - timedelta(minutes=5)


def test_exported_preferences_reproduce_eligibility(preferences, state, clock, make_event):
    events = [make_event("a", starts_in=30), make_event("b", starts_in=45), make_event("c", starts_in=12)]
    preferences.set_lead_time_minutes(10)
    preferences.set_reminder_enabled("b", False)

    imported = PreferencesModel(MemoryStore(), clock=clock)
    assert imported.import_preferences(preferences.export_preferences()) is True
    imported_state = ReminderState(imported)

    for now in (clock.now, clock.now + timedelta(minutes=5), clock.now + timedelta(minutes=25)):
        for event in events:
            assert target_fire_time(event, imported, imported_state, now) == target_fire_time(
                event, preferences, state, now
            )


def test_standup_scenario(scheduler, make_event, timers, overlay, clock):
    start = clock.now
    standup = make_event("standup", title="Standup", starts_in=10)

    scheduler.update_events([standup])
    assert scheduler.pending_reminders() == {"standup": start + timedelta(minutes=5)}

    timers.advance_to(start + timedelta(minutes=5))
    assert overlay.presented == [standup]

    overlay.respond(ReminderAction.snooze(5))
    assert scheduler.pending_reminders() == {"standup": start + timedelta(minutes=10)}

    timers.advance_to(start + timedelta(minutes=10))
    assert overlay.presented == [standup, standup]

    # Snoozing again once the meeting has started still reminds
    overlay.respond(ReminderAction.snooze(5))
    assert scheduler.pending_reminders() == {"standup": start + timedelta(minutes=15)}

    timers.advance_to(start + timedelta(minutes=15))
    assert overlay.presented == [standup, standup, standup]
    assert scheduler.pending_reminders() == {}


def test_stale_timer_fire_is_ignored(make_scheduler, make_event, clock, overlay):
    timers = ManualTimerService(clock, honor_cancel=False)
    scheduler = make_scheduler(timers)
    event = make_event("a", starts_in=30)

    scheduler.update_events([event])
    scheduler.recompute()
    scheduler.recompute()

    timers.advance_to(event.start - timedelta(minutes=5))

    assert overlay.presented == [event]
    scheduler.stop()


def test_refresh_failure_keeps_existing_timers(scheduler, source, make_event, error_model):
    source.set_events([make_event("a", starts_in=30)])
    assert scheduler.refresh_events() is True
    pending = scheduler.pending_reminders()

    source.fail_with(EventFetchFailed("calendar database busy"))
    assert scheduler.refresh_events() is False

    assert scheduler.pending_reminders() == pending
    assert error_model.current_error == EventFetchFailed("calendar database busy")


def test_refresh_only_reads_the_next_day(scheduler, source, make_event):
    source.set_events([make_event("today", starts_in=60), make_event("later", starts_in=2 * 24 * 60)])

    scheduler.refresh_events()

    assert [event.event_id for event in scheduler.events] == ["today"]


def test_snooze_rejects_non_positive_minutes(scheduler, make_event, state, clock):
    event = make_event("a", starts_in=30)

    assert scheduler.snooze(event, 0) is False
    assert state.active_snooze("a", clock.now) is None


def test_snooze_clears_dismissal(scheduler, make_event, state):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.dismiss_for_today(event)

    assert scheduler.snooze(event, 5) is True

    assert not state.is_dismissed_today("a")
    assert "a" in scheduler.pending_reminders()


def test_snooze_on_disabled_reminder_is_recorded_but_not_scheduled(scheduler, make_event, state, clock):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.toggle_reminder(event)

    assert scheduler.snooze(event, 5) is False

    assert state.active_snooze("a", clock.now) == clock.now + timedelta(minutes=5)
    assert scheduler.pending_reminders() == {}


def test_snooze_until_before_event(scheduler, make_event, clock):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])

    assert scheduler.snooze_until_before_event(event, 10) is True
    assert scheduler.pending_reminders() == {"a": event.start - timedelta(minutes=10)}
    assert scheduler.reminder_status(event) == REMINDER_SNOOZED


def test_snooze_until_before_event_in_past_is_noop(scheduler, make_event, state, clock):
    event = make_event("a", starts_in=8)
    scheduler.update_events([event])
    before = scheduler.pending_reminders()

    assert scheduler.snooze_until_before_event(event, 10) is False

    assert scheduler.pending_reminders() == before
    assert state.active_snooze("a", clock.now) is None


def test_fired_snooze_is_cleared_from_preferences(scheduler, make_event, timers, overlay, preferences):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.snooze(event, 3)

    timers.advance(timedelta(minutes=3))

    assert overlay.presented == [event]
    assert preferences.snoozed_events == {}


def test_clear_snooze_restores_lead_time_schedule(scheduler, make_event):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.snooze(event, 20)

    scheduler.clear_snooze(event)

    assert scheduler.pending_reminders() == {"a": event.start - timedelta(minutes=5)}


def test_set_lead_time_reschedules(scheduler, make_event, preferences):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])

    assert scheduler.set_lead_time(15) is True
    assert scheduler.pending_reminders() == {"a": event.start - timedelta(minutes=15)}

    assert scheduler.set_lead_time(0) is False
    assert preferences.lead_time_minutes == 15


def test_reminder_status(scheduler, make_event):
    enabled = make_event("enabled", starts_in=30)
    disabled = make_event("disabled", starts_in=30)
    dismissed = make_event("dismissed", starts_in=30)
    scheduler.update_events([enabled, disabled, dismissed])
    scheduler.toggle_reminder(disabled)
    scheduler.dismiss_for_today(dismissed)

    assert scheduler.reminder_status(enabled) == REMINDER_ENABLED
    assert scheduler.reminder_status(disabled) == REMINDER_DISABLED
    assert scheduler.reminder_status(dismissed) == REMINDER_DISMISSED


def test_get_next_meeting(scheduler, make_event):
    scheduler.update_events([make_event("late", starts_in=45), make_event("soon", starts_in=20)])

    assert scheduler.get_next_meeting().event_id == "soon"
    assert scheduler.get_next_meeting(within_minutes=10) is None


def test_show_test_reminder_respects_visible_overlay(scheduler, overlay):
    assert scheduler.show_test_reminder() is True
    assert overlay.presented[0].title == "Test Meeting - Demo Reminder"

    assert scheduler.show_test_reminder() is False
    assert len(overlay.presented) == 1


def test_clear_all_reminders_hides_overlay(scheduler, make_event, overlay):
    scheduler.update_events([make_event("a", starts_in=30)])
    scheduler.show_test_reminder()

    scheduler.clear_all_reminders()

    assert scheduler.pending_reminders() == {}
    assert overlay.hidden == 1
    assert not overlay.is_presenting()


def test_reset_all_preferences(scheduler, make_event, preferences, state, error_model):
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])
    scheduler.set_lead_time(20)
    scheduler.toggle_reminder(event)
    error_model.report_error(EventFetchFailed("boom"))

    scheduler.reset_all_preferences()

    assert preferences.lead_time_minutes == 5
    assert preferences.reminder_overrides == {}
    assert error_model.history == []
    assert scheduler.pending_reminders() == {"a": event.start - timedelta(minutes=5)}


def test_overlay_failure_is_reported(scheduler, make_event, timers, overlay, error_model):
    def broken_present(event, on_action):
        raise RuntimeError("no screen")

    overlay.present = broken_present
    event = make_event("a", starts_in=30)
    scheduler.update_events([event])

    timers.advance_to(event.start)

    assert isinstance(error_model.current_error, OverlayDisplayFailed)


class FailingTimerService(ManualTimerService):
    fail = False

    def schedule(self, delay_seconds, callback):
        if self.fail:
            raise RuntimeError("timer backend unavailable")
        return super().schedule(delay_seconds, callback)


def test_timer_failure_is_reported_and_next_recompute_recovers(make_scheduler, make_event, clock, error_model):
    timers = FailingTimerService(clock)
    scheduler = make_scheduler(timers)
    timers.fail = True

    scheduler.update_events([make_event("a", starts_in=30)])

    assert scheduler.pending_reminders() == {}
    assert isinstance(error_model.current_error, ReminderScheduleFailed)

    timers.fail = False
    scheduler.update_events([make_event("a", starts_in=30), make_event("b", starts_in=60)])

    assert set(scheduler.pending_reminders()) == {"a", "b"}
    scheduler.stop()


def test_stop_cancels_everything(scheduler, make_event, timers):
    scheduler.update_events([make_event("a", starts_in=30)])

    scheduler.stop()

    assert timers.active_handles() == []
    assert scheduler.pending_reminders() == {}


def test_schedule_updated_signal_reports_count(scheduler, make_event):
    counts = []
    scheduler.schedule_updated.connect(counts.append)

    scheduler.update_events([make_event("a", starts_in=30), make_event("b", starts_in=60)])

    assert counts[-1] == 2


def test_snooze_survives_restart(tmp_path, clock, make_event, overlay, source, error_model):
    path = tmp_path / "preferences.json"
    event = make_event("a", starts_in=60)

    preferences = PreferencesModel(JsonFileStore(str(path)), error_model, clock)
    timers = ManualTimerService(clock)
    scheduler = ReminderScheduler(preferences, ReminderState(preferences), overlay, source, timers, error_model, clock)
    scheduler.start()
    scheduler.update_events([event])
    scheduler.snooze(event, 20)
    scheduler.stop()

    clock.now += timedelta(minutes=2)
    reloaded = PreferencesModel(JsonFileStore(str(path)), error_model, clock)
    restarted_timers = ManualTimerService(clock)
    restarted = ReminderScheduler(
        reloaded, ReminderState(reloaded), overlay, source, restarted_timers, error_model, clock
    )
    restarted.start()
    restarted.update_events([event])

    assert restarted.pending_reminders() == {"a": START_TIME + timedelta(minutes=20)}

    restarted_timers.advance_to(START_TIME + timedelta(minutes=20))
    assert overlay.presented == [event]
    restarted.stop()
