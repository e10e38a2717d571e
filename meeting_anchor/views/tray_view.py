"""Tray View for Meeting Anchor application.

This module contains the TrayView class that puts the application in the
menu bar (system tray) and lists upcoming meetings with their reminder
controls and the settings menus.
"""

import logging
from collections.abc import Callable

from PyQt6.QtCore import QObject
from PyQt6.QtGui import QAction, QActionGroup
from PyQt6.QtWidgets import QApplication, QMenu, QStyle, QSystemTrayIcon

from ..models.calendar_event import CalendarEvent
from ..models.preferences_model import OverlayStyle, TimeFormat

LEAD_TIME_OPTIONS = (1, 2, 5, 10, 15)

STATUS_MARKERS = {
    "enabled": "🔔",
    "disabled": "🔕",
    "dismissed": "✕",
    "snoozed": "💤",
}


class TrayEventItem:
    """Display data for one upcoming event in the tray menu."""

    def __init__(self, event: CalendarEvent, time_text: str, until_text: str, status: str):
        self.event = event
        self.time_text = time_text
        self.until_text = until_text
        self.status = status

    @property
    def label(self) -> str:
        marker = STATUS_MARKERS.get(self.status, "")
        return f"{marker} {self.time_text}  {self.event.display_title}  ({self.until_text})"


class TrayView(QObject):
    """Menu bar view for Meeting Anchor.

    The menu is rebuilt from scratch on every update; all user actions go
    out through callbacks set by the presenter.
    """

    def __init__(self):
        """Initialize the TrayView."""
        super().__init__()
        self.logger = logging.getLogger(__name__)

        # Callback functions (to be set by presenter)
        self.on_refresh: Callable[[], None] | None = None
        self.on_toggle_reminder: Callable[[CalendarEvent], None] | None = None
        self.on_dismiss_for_today: Callable[[CalendarEvent], None] | None = None
        self.on_undismiss_for_today: Callable[[CalendarEvent], None] | None = None
        self.on_clear_snooze: Callable[[CalendarEvent], None] | None = None
        self.on_test_reminder: Callable[[], None] | None = None
        self.on_lead_time_changed: Callable[[int], None] | None = None
        self.on_overlay_style_changed: Callable[[OverlayStyle], None] | None = None
        self.on_time_format_changed: Callable[[TimeFormat], None] | None = None
        self.on_reset_preferences: Callable[[], None] | None = None
        self.on_quit: Callable[[], None] | None = None

        self.tray_icon = QSystemTrayIcon(self)
        self.tray_icon.setIcon(QApplication.style().standardIcon(QStyle.StandardPixmap.SP_MessageBoxInformation))
        self.tray_icon.setToolTip("Meeting Anchor")
        self.menu = QMenu()
        self.tray_icon.setContextMenu(self.menu)

        self.logger.info("TrayView initialized")

    def show(self) -> None:
        self.tray_icon.show()

    def update_menu(
        self,
        items: list[TrayEventItem],
        status_text: str,
        lead_time_minutes: int,
        overlay_style: OverlayStyle,
        time_format: TimeFormat,
        error_message: str | None = None,
    ) -> None:
        """Rebuild the tray menu.

        An open menu is left alone; the next update rebuilds it.
        """
        if self.menu.isVisible():
            return

        old_menu, self.menu = self.menu, QMenu()

        header = self.menu.addAction(status_text)
        header.setEnabled(False)
        if error_message:
            error_action = self.menu.addAction(f"⚠ {error_message}")
            error_action.setEnabled(False)
        self.menu.addSeparator()

        if items:
            for item in items:
                self._add_event_submenu(item)
        else:
            empty = self.menu.addAction("No upcoming events")
            empty.setEnabled(False)
        self.menu.addSeparator()

        self._add_action(self.menu, "Refresh Events", self.on_refresh)
        self._add_action(self.menu, "Show Test Reminder", self.on_test_reminder)
        self.menu.addSeparator()

        self._add_settings_menus(lead_time_minutes, overlay_style, time_format)
        self._add_action(self.menu, "Reset All Settings", self.on_reset_preferences)
        self.menu.addSeparator()
        self._add_action(self.menu, "Quit Meeting Anchor", self.on_quit)

        self.tray_icon.setContextMenu(self.menu)
        old_menu.deleteLater()
        self.tray_icon.setToolTip(f"Meeting Anchor - {status_text}")
        self.logger.debug(f"Tray menu rebuilt with {len(items)} events")

    def _add_event_submenu(self, item: TrayEventItem) -> None:
        submenu = self.menu.addMenu(item.label)
        event = item.event

        toggle = submenu.addAction("Reminder enabled")
        toggle.setCheckable(True)
        toggle.setChecked(item.status != "disabled")
        toggle.triggered.connect(lambda _checked=False: self._call(self.on_toggle_reminder, event))

        if item.status == "dismissed":
            self._add_action(submenu, "Restore for today", self.on_undismiss_for_today, event)
        else:
            self._add_action(submenu, "Dismiss for today", self.on_dismiss_for_today, event)

        if item.status == "snoozed":
            self._add_action(submenu, "Clear snooze", self.on_clear_snooze, event)

        if event.location:
            location = submenu.addAction(event.location)
            location.setEnabled(False)

    def _add_settings_menus(self, lead_time_minutes: int, overlay_style: OverlayStyle, time_format: TimeFormat) -> None:
        lead_menu = self.menu.addMenu("Remind Me")
        lead_group = QActionGroup(lead_menu)
        options = sorted(set(LEAD_TIME_OPTIONS) | {lead_time_minutes})
        for minutes in options:
            action = self._add_action(lead_menu, f"{minutes} min before", self.on_lead_time_changed, minutes)
            action.setCheckable(True)
            action.setChecked(minutes == lead_time_minutes)
            lead_group.addAction(action)

        style_menu = self.menu.addMenu("Reminder Style")
        style_group = QActionGroup(style_menu)
        for style in OverlayStyle:
            action = self._add_action(style_menu, style.display_name, self.on_overlay_style_changed, style)
            action.setCheckable(True)
            action.setChecked(style is overlay_style)
            action.setToolTip(style.description)
            style_group.addAction(action)

        format_menu = self.menu.addMenu("Time Format")
        format_group = QActionGroup(format_menu)
        for option in TimeFormat:
            action = self._add_action(format_menu, option.display_name, self.on_time_format_changed, option)
            action.setCheckable(True)
            action.setChecked(option is time_format)
            format_group.addAction(action)

    def _add_action(self, menu: QMenu, text: str, callback: Callable | None, *args) -> QAction:
        action = menu.addAction(text)
        action.triggered.connect(lambda _checked=False: self._call(callback, *args))
        return action

    def _call(self, callback: Callable | None, *args) -> None:
        if callback:
            callback(*args)

    def show_message(self, title: str, message: str) -> None:
        self.tray_icon.showMessage(title, message, QSystemTrayIcon.MessageIcon.Warning, 5000)
