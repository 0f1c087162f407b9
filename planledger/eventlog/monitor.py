"""Live console view of the event log."""

import logging
import threading
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .models import StoredEvent
from .store import EventLog

logger = logging.getLogger(__name__)

MIN_DELAY = 0.5
IDLE_WAIT = 0.5

# event class -> (icon, label, colour)
EVENT_STYLES = {
    "FileCreated": ("📄", "FILE CREATED", "green"),
    "FileModified": ("🔄", "FILE MODIFIED", "blue"),
    "FileDeleted": ("❌", "FILE DELETED", "red"),
    "DirectoryCreated": ("📁", "DIRECTORY CREATED", "green"),
    "DirectoryDeleted": ("🗑️", "DIRECTORY DELETED", "red"),
    "FileRenamed": ("❓", "FILE RENAMED", "yellow"),
    "DirectoryRenamed": ("❓", "DIRECTORY RENAMED", "yellow"),
}


def format_event(stored: StoredEvent, live: bool = False) -> str:
    """
    Format a stored event as one line of rich markup.

    Args:
        stored: Event to format
        live: Mark the line as live instead of historical

    Returns:
        e.g. ``[HIST] [14:02:11] 📄 FILE CREATED: plans/PUMP_revA.par``
    """
    icon, label, colour = EVENT_STYLES.get(
        stored.event_class, ("❓", stored.event_class.upper(), "white")
    )
    marker = "[LIVE]" if live else "[HIST]"
    clock = datetime.fromtimestamp(stored.stored_at).strftime("%H:%M:%S")

    target = stored.path
    old_path = getattr(stored.event, "old_path", None)
    if old_path:
        target = f"{old_path} -> {stored.path}"

    return (
        f"{escape(marker)} {escape(f'[{clock}]')} {icon} "
        f"[{colour}]{label}[/{colour}]: {escape(target)}"
    )


class EventMonitor:
    """Prints recent events, then tails the event log for new ones."""

    def __init__(
        self,
        log: EventLog,
        console: Optional[Console] = None,
        delay: float = 1.0,
        last: int = 10,
    ):
        self.log = log
        self.console = console or Console()
        self.delay = max(MIN_DELAY, delay)
        self.last = max(0, last)
        self._last_id = 0

    def show_history(self) -> int:
        """Print the most recent events. Returns the number printed."""
        events = self.log.latest(self.last) if self.last else []
        for stored in events:
            self.console.print(format_event(stored, live=False))
        if events:
            self._last_id = max(self._last_id, events[-1].id)
        else:
            self._last_id = max(self._last_id, self.log.last_id())
        self.console.print("-" * 60)
        return len(events)

    def poll(self) -> int:
        """Print events appended since the last call. Returns the number printed."""
        events = self.log.query(after_id=self._last_id)
        for stored in events:
            self.console.print(format_event(stored, live=True))
            self._last_id = stored.id
        return len(events)

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Show history, then tail the log until ``stop_event`` is set.

        Args:
            stop_event: Cooperative stop signal
        """
        stop_event = stop_event or threading.Event()

        self.console.print(f"[bold]Monitoring events[/bold] (delay {self.delay:.1f}s, Ctrl+C to stop)")
        self.show_history()

        while not stop_event.is_set():
            try:
                printed = self.poll()
            except Exception as e:
                logger.error(f"Failed to read event log: {e}")
                printed = 0
            stop_event.wait(timeout=self.delay if printed else IDLE_WAIT)
