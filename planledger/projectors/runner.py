"""Runs the projector chain over stored events."""

import logging
import threading
from typing import List, Optional

from ..eventlog.models import StoredEvent
from ..eventlog.store import EventLog
from .base import Projector
from .config import ProjectorsConfig
from .files import FileProjection
from .masters import MasterFilesProjection
from .parts import PartsProjection
from .store import ProjectionStore

logger = logging.getLogger(__name__)

CHECKPOINT_NAME = "projector_chain"


def default_projectors(store: ProjectionStore, config: ProjectorsConfig) -> List[Projector]:
    """The file, master files and parts projectors, configured explicitly."""
    return [
        FileProjection(store, config.filesystem),
        MasterFilesProjection(store, config.masterfiles),
        PartsProjection(store, config.parts, config.masterfiles),
    ]


class ProjectionRunner:
    """
    Applies stored events to every projector in weight order.

    One event is applied by the whole chain inside a single transaction that
    also advances the checkpoint, so a later projector always sees the
    earlier projectors' writes and an event is never half-applied. Events at
    or below the checkpoint are skipped, which makes replays harmless.

    Instances are callable and can be subscribed to an EventBus.
    """

    def __init__(
        self,
        store: ProjectionStore,
        config: Optional[ProjectorsConfig] = None,
        log: Optional[EventLog] = None,
        projectors: Optional[List[Projector]] = None,
    ):
        """
        Initialize the runner.

        Args:
            store: Projection store shared by the projectors
            config: Projector configuration
            log: Event log used to catch up on missed events
            projectors: Projectors to run instead of the default chain
        """
        self.store = store
        self.config = config or ProjectorsConfig()
        self.log = log
        chain = projectors if projectors is not None else default_projectors(store, self.config)
        self.projectors = sorted(chain, key=lambda p: p.weight)
        self._lock = threading.Lock()
        self.applied = 0
        self.failures = 0

    @property
    def checkpoint(self) -> int:
        """Id of the last event applied."""
        return self.store.get_checkpoint(CHECKPOINT_NAME)

    def apply(self, stored: StoredEvent) -> bool:
        """
        Apply one event through the whole chain.

        Returns:
            True if applied, False if the event was already applied

        Raises:
            Exception: Whatever a projector raised; the transaction is
                rolled back and the checkpoint is left unchanged
        """
        with self._lock:
            return self._apply(stored)

    def _apply(self, stored: StoredEvent) -> bool:
        if stored.id <= self.checkpoint:
            logger.debug(f"Event #{stored.id} already projected, skipping")
            return False

        with self.store.transaction():
            for projector in self.projectors:
                projector.apply(stored)
            self.store.set_checkpoint(CHECKPOINT_NAME, stored.id)

        self.applied += 1
        return True

    def __call__(self, stored: StoredEvent) -> None:
        """Listener entry point: catch up on any gap, then apply the event."""
        with self._lock:
            if self.log is not None and stored.id > self.checkpoint + 1:
                self._catch_up(upto=stored.id - 1)
            self._apply(stored)

    def catch_up(self, upto: Optional[int] = None) -> int:
        """
        Apply every logged event after the checkpoint.

        An event that fails is logged and skipped so later events still
        get projected.

        Args:
            upto: Stop after this event id

        Returns:
            Number of events applied
        """
        with self._lock:
            return self._catch_up(upto)

    def _catch_up(self, upto: Optional[int] = None) -> int:
        if self.log is None:
            return 0

        applied = 0
        for stored in self.log.iter_events(after_id=self.checkpoint):
            if upto is not None and stored.id > upto:
                break
            try:
                if self._apply(stored):
                    applied += 1
            except Exception as e:
                self.failures += 1
                logger.error(f"Projection failed for event #{stored.id} {stored.event_class} {stored.path}: {e}")
                self.store.set_checkpoint(CHECKPOINT_NAME, stored.id)

        if applied:
            logger.info(f"Projected {applied} event(s) from the log")
        return applied

    def rebuild(self) -> int:
        """
        Clear the projections and replay the whole log.

        Returns:
            Number of events applied
        """
        with self._lock:
            self.store.reset()
            return self._catch_up()
