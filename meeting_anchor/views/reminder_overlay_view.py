"""Reminder Overlay View for Meeting Anchor application.

This module contains the ReminderOverlayView widget that shows an upcoming
meeting on top of every other window, and the QtOverlayPresenter that
exposes it to the scheduler as an OverlayPresenter.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from PyQt6.QtCore import Qt, QTimer
from PyQt6.QtGui import QFont, QKeyEvent
from PyQt6.QtWidgets import QApplication, QFrame, QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget

from ..models.calendar_event import CalendarEvent
from ..models.preferences_model import OverlayStyle, PreferencesModel, TimeFormat
from ..presenters.overlay_presenter import ActionCallback, OverlayPresenter, ReminderAction
from ..utils.time_formatting import format_countdown, format_time

SNOOZE_MINUTES = 5
REMIND_BEFORE_OPTIONS = (10, 2)

COMPACT_WIDTH = 480
COMPACT_HEIGHT = 300
FULLSCREEN_CARD_WIDTH = 640
FULLSCREEN_CARD_HEIGHT = 360


class ReminderOverlayView(QWidget):
    """Frameless, always-on-top reminder window.

    The view reports the user's choice through `on_action` and never
    closes itself; the presenter decides when it goes away.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        """Initialize the ReminderOverlayView."""
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self._clock = clock

        # Callback function (to be set by presenter)
        self.on_action: Callable[[ReminderAction], None] | None = None

        # Current reminder
        self._event: CalendarEvent | None = None
        self._style = OverlayStyle.COMPACT

        # UI components
        self.card: QFrame | None = None
        self.title_label: QLabel | None = None
        self.time_label: QLabel | None = None
        self.location_label: QLabel | None = None
        self.countdown_label: QLabel | None = None
        self.snooze_button: QPushButton | None = None
        self.remind_before_buttons: dict[int, QPushButton] = {}
        self.dismiss_button: QPushButton | None = None

        self._countdown_timer = QTimer(self)
        self._countdown_timer.timeout.connect(self._tick)

        self._setup_ui()
        self.logger.info("ReminderOverlayView initialized")

    def _setup_ui(self) -> None:
        """Set up the user interface."""
        self.setWindowTitle("Meeting Reminder")
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint | Qt.WindowType.WindowStaysOnTopHint | Qt.WindowType.Tool
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

        outer_layout = QVBoxLayout(self)
        outer_layout.setContentsMargins(0, 0, 0, 0)

        self.card = QFrame(self)
        self.card.setObjectName("card")
        outer_layout.addWidget(self.card, alignment=Qt.AlignmentFlag.AlignCenter)

        card_layout = QVBoxLayout(self.card)
        card_layout.setContentsMargins(30, 24, 30, 24)
        card_layout.setSpacing(10)

        header_label = QLabel("Meeting starting soon")
        header_label.setObjectName("header")
        header_label.setFont(QFont("System", 13))
        card_layout.addWidget(header_label, alignment=Qt.AlignmentFlag.AlignCenter)

        self.title_label = QLabel()
        self.title_label.setObjectName("title")
        title_font = QFont("System", 22)
        title_font.setBold(True)
        self.title_label.setFont(title_font)
        self.title_label.setWordWrap(True)
        self.title_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        card_layout.addWidget(self.title_label)

        self.time_label = QLabel()
        self.time_label.setFont(QFont("System", 14))
        card_layout.addWidget(self.time_label, alignment=Qt.AlignmentFlag.AlignCenter)

        self.location_label = QLabel()
        self.location_label.setFont(QFont("System", 13))
        card_layout.addWidget(self.location_label, alignment=Qt.AlignmentFlag.AlignCenter)

        self.countdown_label = QLabel()
        self.countdown_label.setObjectName("countdown")
        countdown_font = QFont("Menlo", 32)
        countdown_font.setBold(True)
        self.countdown_label.setFont(countdown_font)
        card_layout.addWidget(self.countdown_label, alignment=Qt.AlignmentFlag.AlignCenter)

        self._create_buttons(card_layout)

    def _create_buttons(self, card_layout: QVBoxLayout) -> None:
        """Create the snooze, remind-before and dismiss buttons."""
        button_layout = QHBoxLayout()
        button_layout.setSpacing(8)

        self.snooze_button = QPushButton(f"Snooze {SNOOZE_MINUTES} min")
        self.snooze_button.clicked.connect(lambda: self._emit_action(ReminderAction.snooze(SNOOZE_MINUTES)))
        self.snooze_button.setDefault(True)
        button_layout.addWidget(self.snooze_button)

        for minutes in REMIND_BEFORE_OPTIONS:
            button = QPushButton(f"{minutes} min before")
            button.clicked.connect(
                lambda _checked=False, m=minutes: self._emit_action(ReminderAction.snooze_until_before_event(m))
            )
            self.remind_before_buttons[minutes] = button
            button_layout.addWidget(button)

        self.dismiss_button = QPushButton("Dismiss for today")
        self.dismiss_button.setObjectName("dismiss")
        self.dismiss_button.clicked.connect(lambda: self._emit_action(ReminderAction.dismiss_for_today()))
        button_layout.addWidget(self.dismiss_button)

        card_layout.addLayout(button_layout)

    def _apply_styles(self) -> None:
        """Apply the stylesheet for the current overlay style."""
        if self._style is OverlayStyle.FULLSCREEN:
            background = "qlineargradient(x1:0, y1:0, x2:1, y2:1, stop:0 rgba(220, 38, 38, 235), stop:1 rgba(249, 115, 22, 235))"
            card_background = "transparent"
            text_color = "white"
        else:
            background = "transparent"
            card_background = "rgba(30, 30, 34, 240)"
            text_color = "#f5f5f5"

        self.setStyleSheet(f"""
            ReminderOverlayView {{
                background: {background};
            }}
            QFrame#card {{
                background-color: {card_background};
                border-radius: 16px;
            }}
            QLabel {{
                color: {text_color};
                background: transparent;
            }}
            QLabel#header {{
                color: rgba(255, 255, 255, 180);
            }}
            QPushButton {{
                background-color: rgba(255, 255, 255, 40);
                color: {text_color};
                border: 1px solid rgba(255, 255, 255, 80);
                border-radius: 8px;
                padding: 6px 14px;
            }}
            QPushButton:hover {{
                background-color: rgba(255, 255, 255, 80);
            }}
            QPushButton#dismiss {{
                border-color: rgba(255, 255, 255, 40);
            }}
        """)

    def show_reminder(self, event: CalendarEvent, style: OverlayStyle, time_format: TimeFormat) -> None:
        """Display a reminder for the given event."""
        self._event = event
        self._style = style

        self.title_label.setText(event.display_title)
        self.time_label.setText(f"{format_time(event.start, time_format)} · {event.formatted_duration}")
        self.location_label.setText(event.location or "")
        self.location_label.setVisible(bool(event.location))

        self._apply_styles()
        self._apply_geometry()
        self._tick()
        self._countdown_timer.start(1000)

        self.show()
        self.raise_()
        self.activateWindow()
        self.setFocus()
        self.logger.debug(f"Overlay shown for {event!r} in {style.value} style")

    def close_reminder(self) -> None:
        """Stop the countdown and hide the window."""
        self._countdown_timer.stop()
        self._event = None
        self.hide()

    def _apply_geometry(self) -> None:
        screen = QApplication.primaryScreen()
        screen_geometry = screen.geometry() if screen else None

        if self._style is OverlayStyle.FULLSCREEN and screen_geometry is not None:
            self.card.setFixedSize(FULLSCREEN_CARD_WIDTH, FULLSCREEN_CARD_HEIGHT)
            self.setGeometry(screen_geometry)
            return

        self.card.setFixedSize(COMPACT_WIDTH, COMPACT_HEIGHT)
        self.resize(COMPACT_WIDTH, COMPACT_HEIGHT)
        if screen_geometry is not None:
            self.move(
                screen_geometry.center().x() - COMPACT_WIDTH // 2,
                screen_geometry.center().y() - COMPACT_HEIGHT // 2,
            )

    def _tick(self) -> None:
        if self._event is None:
            return

        now = self._clock()
        self.countdown_label.setText(format_countdown(self._event.start, now))
        for minutes, button in self.remind_before_buttons.items():
            button.setVisible(self._event.start - timedelta(minutes=minutes) > now)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() in (Qt.Key.Key_Escape, Qt.Key.Key_Return, Qt.Key.Key_Enter):
            self._emit_action(ReminderAction.snooze(SNOOZE_MINUTES))
            return
        super().keyPressEvent(event)

    def _emit_action(self, action: ReminderAction) -> None:
        if self.on_action:
            self.on_action(action)


class QtOverlayPresenter(OverlayPresenter):
    """OverlayPresenter backed by a single ReminderOverlayView.

    Style and time format are read from the preferences at presentation
    time so changes apply to the next reminder.
    """

    def __init__(self, preferences: PreferencesModel, clock: Callable[[], datetime] = datetime.now):
        self.logger = logging.getLogger(__name__)
        self._preferences = preferences
        self._clock = clock
        self._view: Optional[ReminderOverlayView] = None
        self._callback: Optional[ActionCallback] = None

    @property
    def view(self) -> ReminderOverlayView:
        if self._view is None:
            self._view = ReminderOverlayView(self._clock)
            self._view.on_action = self._finish
        return self._view

    def is_presenting(self) -> bool:
        return self._callback is not None

    def present(self, event: CalendarEvent, on_action: ActionCallback) -> bool:
        if self.is_presenting():
            return False

        # Only a shown overlay counts as presenting
        try:
            self.view.show_reminder(event, self._preferences.overlay_style, self._preferences.time_format)
        except Exception:
            self.view.close_reminder()
            raise
        self._callback = on_action
        self.logger.info(f"Presenting reminder: {event}")
        return True

    def hide(self) -> None:
        if self.is_presenting():
            self._finish(ReminderAction.none())

    def _finish(self, action: ReminderAction) -> None:
        callback, self._callback = self._callback, None
        if self._view is not None:
            self._view.close_reminder()
        if callback is not None:
            callback(action)
