"""Tests for the projection runner."""

import pytest

from planledger.eventlog.models import (
    DirectoryCreated,
    DirectoryDeleted,
    DirectoryRenamed,
    FileCreated,
    FileDeleted,
    FileModified,
    StoredEvent,
)
from planledger.projectors.base import Projector
from planledger.projectors.files import FileProjection
from planledger.projectors.runner import CHECKPOINT_NAME, ProjectionRunner


HISTORY = [
    DirectoryCreated(path="d"),
    FileCreated(path="d/PART_rev1.par", content_hash="m1", modified_at=1.0),
    FileCreated(path="d/PART_rev1.pdf", content_hash="s1", modified_at=1.0),
    FileCreated(path="assy/PART_rev1.par", content_hash="m1", modified_at=2.0),
    FileModified(path="assy/PART_rev1.par", content_hash="m2", previous_hash="m1", modified_at=3.0),
    DirectoryRenamed(path="released", old_path="d"),
    FileCreated(path="tmp/x.par", modified_at=4.0),
    DirectoryDeleted(path="tmp"),
]


class FailingProjector(Projector):
    name = "failing"
    weight = 10

    def on_file_created(self, event, stored):
        raise RuntimeError("boom")


def snapshot(ledger):
    return {table: ledger.rows(table) for table in ("files", "masters", "parts")}


class TestProjectionRunner:
    """Tests for ProjectionRunner class."""

    def test_apply_advances_checkpoint(self, ledger):
        stored = ledger.log.append(FileCreated(path="a.par"))

        assert ledger.runner.apply(stored) is True
        assert ledger.runner.checkpoint == stored.id
        assert ledger.store.get_checkpoint(CHECKPOINT_NAME) == stored.id

    def test_already_applied_event_skipped(self, ledger):
        stored = ledger.record(FileCreated(path="a.par", content_hash="h1"))

        assert ledger.runner.apply(stored) is False
        assert ledger.runner.applied == 1

    def test_replay_is_deterministic(self, ledger):
        ledger.record(*HISTORY)
        first = snapshot(ledger)

        ledger.runner.rebuild()
        assert snapshot(ledger) == first

        ledger.runner.rebuild()
        assert snapshot(ledger) == first

    def test_history_outcome(self, ledger):
        ledger.record(*HISTORY)

        assert set(ledger.rows("files")) == {
            "released",
            "released/PART_rev1.par",
            "released/PART_rev1.pdf",
            "assy/PART_rev1.par",
        }
        assert set(ledger.rows("masters")) == {"released/PART_rev1.par"}
        part = ledger.store.get_part("assy/PART_rev1.par")
        assert part.master_path == "released/PART_rev1.par"
        assert part.content_as_master is False

    def test_directory_delete_leaves_nothing_under_it(self, ledger):
        ledger.record(*HISTORY)

        for table in ("files", "masters", "parts"):
            assert not [p for p in ledger.rows(table) if p == "tmp" or p.startswith("tmp/")]

    def test_catch_up(self, ledger):
        for event in HISTORY:
            ledger.log.append(event)

        applied = ledger.runner.catch_up()

        assert applied == len(HISTORY)
        assert ledger.runner.checkpoint == ledger.log.last_id()
        assert ledger.runner.catch_up() == 0

    def test_catch_up_upto(self, ledger):
        for event in HISTORY:
            ledger.log.append(event)

        assert ledger.runner.catch_up(upto=2) == 2
        assert ledger.runner.checkpoint == 2

    def test_gap_is_filled_before_applying(self, ledger):
        ledger.log.append(FileCreated(path="a.par"))
        ledger.log.append(FileCreated(path="b.par"))
        stored = ledger.log.append(FileCreated(path="c.par"))

        ledger.runner(stored)

        assert set(ledger.rows("files")) == {"a.par", "b.par", "c.par"}
        assert ledger.runner.checkpoint == stored.id

    def test_rebuild_matches_live_projection(self, ledger):
        ledger.record(*HISTORY)
        live = snapshot(ledger)

        ledger.store.reset()
        assert ledger.store.counts() == {"files": 0, "masters": 0, "parts": 0}
        assert ledger.runner.checkpoint == 0

        assert ledger.runner.rebuild() == len(HISTORY)
        assert snapshot(ledger) == live

    def test_failure_rolls_back_whole_chain(self, ledger):
        runner = ProjectionRunner(
            ledger.store,
            log=ledger.log,
            projectors=[FailingProjector(ledger.store), FileProjection(ledger.store)],
        )
        stored = ledger.log.append(FileCreated(path="a.par"))

        with pytest.raises(RuntimeError):
            runner.apply(stored)

        assert ledger.store.get_file("a.par") is None
        assert runner.checkpoint == 0

    def test_catch_up_skips_failing_event(self, ledger):
        runner = ProjectionRunner(
            ledger.store,
            log=ledger.log,
            projectors=[FileProjection(ledger.store), FailingProjector(ledger.store)],
        )
        ledger.log.append(FileCreated(path="a.par"))
        ledger.log.append(FileDeleted(path="a.par"))
        ledger.log.append(DirectoryCreated(path="d"))

        assert runner.catch_up() == 2
        assert runner.failures == 1
        assert runner.checkpoint == 3
        assert set(ledger.rows("files")) == {"d"}

    def test_projectors_sorted_by_weight(self, ledger):
        runner = ProjectionRunner(
            ledger.store,
            projectors=[FailingProjector(ledger.store), FileProjection(ledger.store)],
        )
        assert [p.name for p in runner.projectors] == ["files", "failing"]

    def test_unknown_event_type(self, ledger):
        stored = StoredEvent(id=1, event=object())

        with pytest.raises(TypeError):
            ledger.runner.apply(stored)
        assert ledger.runner.checkpoint == 0
