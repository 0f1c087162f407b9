"""Event bus: records events and hands them to listeners."""

import logging
import queue
import threading
from typing import Callable, List, Optional

from .exceptions import EventLogClosedError
from .models import FileSystemEvent, StoredEvent
from .store import EventLog

logger = logging.getLogger(__name__)

Listener = Callable[[StoredEvent], None]


def log_event(stored: StoredEvent) -> None:
    """Listener that logs every recorded event."""
    logger.info(
        f"FileSystemEvent received: #{stored.id} {stored.event_class} "
        f"{stored.path} ({stored.event.origin.value})"
    )


class EventBus:
    """
    Appends events to the event log, then dispatches them to listeners.

    In synchronous mode listeners run before ``publish`` returns. In
    asynchronous mode they run on a single worker thread that consumes
    events strictly in append order.
    """

    def __init__(self, log: EventLog, async_dispatch: bool = False):
        """
        Initialize the bus.

        Args:
            log: Event log that every published event is appended to
            async_dispatch: Run listeners on a background worker thread
        """
        self.log = log
        self.async_dispatch = async_dispatch
        self._listeners: List[Listener] = []
        self._queue: "queue.Queue[Optional[StoredEvent]]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = False
        self.published = 0
        self.listener_failures = 0

    def subscribe(self, listener: Listener) -> None:
        """Register a listener called with every stored event."""
        self._listeners.append(listener)

    def publish(self, event: FileSystemEvent) -> StoredEvent:
        """
        Record an event and dispatch it.

        Args:
            event: Event to record

        Returns:
            The stored event

        Raises:
            EventLogClosedError: If the bus has been closed
        """
        if self._closed:
            raise EventLogClosedError("Event bus is closed")

        stored = self.log.append(event)
        self.published += 1

        if self.async_dispatch:
            self._ensure_worker()
            self._queue.put(stored)
        else:
            self._dispatch(stored)

        return stored

    def _dispatch(self, stored: StoredEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(stored)
            except Exception as e:
                self.listener_failures += 1
                name = getattr(listener, "__name__", listener.__class__.__name__)
                logger.error(
                    f"Listener {name} failed for event #{stored.id} "
                    f"{stored.event_class} {stored.path}: {e}",
                    exc_info=True,
                )

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._worker_loop, name="EventBusDispatcher", daemon=True
            )
            self._worker.start()

    def _worker_loop(self) -> None:
        logger.debug("Event dispatcher loop started")
        while True:
            stored = self._queue.get()
            try:
                if stored is None:
                    return
                self._dispatch(stored)
            finally:
                self._queue.task_done()

    def drain(self) -> None:
        """Block until every queued event has been dispatched."""
        if self.async_dispatch:
            self._queue.join()

    @property
    def pending(self) -> int:
        """Number of events waiting for asynchronous dispatch."""
        return self._queue.qsize()

    def close(self, timeout: float = 30.0) -> None:
        """
        Stop accepting events and finish dispatching queued ones.

        Args:
            timeout: Seconds to wait for the worker thread
        """
        if self._closed:
            return
        self._closed = True

        worker = self._worker
        if worker is not None and worker.is_alive():
            self._queue.put(None)
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"Event dispatcher still busy with {self.pending} event(s)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
