"""Event Fetch Thread for Meeting Anchor application.

This module contains the EventFetchThread class that runs event source
queries off the UI thread. Results and errors are reported through
callbacks invoked on this thread; the receiver is responsible for handing
them over to the Qt main thread.
"""

import logging
import queue
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from ..models.calendar_event import CalendarEvent
from ..models.error_model import AnchorError, EventFetchFailed
from ..models.event_source import EventSource


class FetchRequest:
    """A request to fetch the events overlapping a time window."""

    def __init__(self, window_start: datetime, window_end: datetime):
        self.window_start = window_start
        self.window_end = window_end

    def __repr__(self) -> str:
        return f"FetchRequest({self.window_start} -> {self.window_end})"


class EventFetchThread(threading.Thread):
    """Thread class for non-blocking event source queries.

    Requests are processed one at a time in arrival order. Every request
    ends in exactly one result or error callback.
    """

    def __init__(self, event_source: EventSource, processing_timeout: float = 0.5, max_queue_size: int = 5):
        """Initialize the EventFetchThread.

        Args:
            event_source: Source queried for events
            processing_timeout: Timeout for queue operations in seconds
            max_queue_size: Maximum number of pending requests
        """
        super().__init__(daemon=True, name="EventFetchThread")
        self.logger = logging.getLogger(__name__)

        self.event_source = event_source
        self.processing_timeout = processing_timeout
        self._requests: queue.Queue[FetchRequest] = queue.Queue(maxsize=max_queue_size)
        self._stop_event = threading.Event()

        # Statistics
        self._fetches_completed = 0
        self._fetches_failed = 0
        self._last_fetch_time = 0.0

        # Callbacks
        self._result_callback: Optional[Callable[[list[CalendarEvent]], None]] = None
        self._error_callback: Optional[Callable[[AnchorError], None]] = None

    def set_result_callback(self, callback: Callable[[list[CalendarEvent]], None]) -> None:
        """Set callback for fetched events."""
        self._result_callback = callback

    def set_error_callback(self, callback: Callable[[AnchorError], None]) -> None:
        """Set callback for failed fetches."""
        self._error_callback = callback

    @property
    def fetches_completed(self) -> int:
        return self._fetches_completed

    @property
    def fetches_failed(self) -> int:
        return self._fetches_failed

    @property
    def last_fetch_time(self) -> float:
        return self._last_fetch_time

    def request_fetch(self, window_start: datetime, window_end: datetime) -> bool:
        """Queue a fetch for the given window.

        Returns:
            True if the request was queued, False if the queue is full or the thread is stopping
        """
        if self._stop_event.is_set():
            return False
        try:
            self._requests.put_nowait(FetchRequest(window_start, window_end))
        except queue.Full:
            self.logger.warning("Fetch already pending, ignoring refresh request")
            return False
        return True

    def stop(self) -> None:
        """Stop processing; requests still queued are discarded."""
        self._stop_event.set()
        self.logger.debug("Event fetch thread stop requested")

    def run(self) -> None:
        """Main thread execution method."""
        self.logger.debug("Event fetch thread started")

        while not self._stop_event.is_set():
            try:
                request = self._requests.get(timeout=self.processing_timeout)
            except queue.Empty:
                continue

            self._process_request(request)
            self._requests.task_done()

        self.logger.debug("Event fetch thread finished")

    def _process_request(self, request: FetchRequest) -> None:
        start_time = time.time()
        try:
            events = self.event_source.fetch_events(request.window_start, request.window_end)
        except AnchorError as e:
            self._handle_failure(request, e)
            return
        except Exception as e:
            self.logger.exception(f"Unexpected error fetching events for {request}")
            self._handle_failure(request, EventFetchFailed(str(e)))
            return

        self._last_fetch_time = time.time() - start_time
        self._fetches_completed += 1
        self.logger.debug(f"Fetched {len(events)} events in {self._last_fetch_time:.3f}s")
        if self._result_callback:
            self._result_callback(events)

    def _handle_failure(self, request: FetchRequest, error: AnchorError) -> None:
        self._fetches_failed += 1
        self.logger.warning(f"Event fetch failed for {request}: {error}")
        if self._error_callback:
            self._error_callback(error)

    def get_processing_stats(self) -> dict:
        return {
            "fetches_completed": self._fetches_completed,
            "fetches_failed": self._fetches_failed,
            "last_fetch_time": self._last_fetch_time,
            "pending_requests": self._requests.qsize(),
        }
