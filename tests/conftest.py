"""Shared fixtures."""

import pytest

from planledger.eventlog.store import EventLog
from planledger.projectors.config import ProjectorsConfig
from planledger.projectors.runner import ProjectionRunner
from planledger.projectors.store import ProjectionStore


class Ledger:
    """Event log and projections on one database, applied synchronously."""

    def __init__(self, db_path, config=None):
        self.log = EventLog(db_path)
        self.store = ProjectionStore(db_path)
        self.runner = ProjectionRunner(self.store, config or ProjectorsConfig(), log=self.log)

    def record(self, *events):
        stored = None
        for event in events:
            stored = self.log.append(event)
            self.runner(stored)
        return stored

    def rows(self, table):
        return {row["path"]: row for row in self.store.all_rows(table)}

    def close(self):
        self.store.close()
        self.log.close()


@pytest.fixture
def ledger(tmp_path):
    ledger = Ledger(tmp_path / "ledger.db")
    yield ledger
    ledger.close()


@pytest.fixture
def make_ledger(tmp_path):
    """Factory for ledgers with a custom projector configuration."""
    created = []

    def factory(config):
        ledger = Ledger(tmp_path / f"ledger{len(created)}.db", config)
        created.append(ledger)
        return ledger

    yield factory
    for ledger in created:
        ledger.close()
