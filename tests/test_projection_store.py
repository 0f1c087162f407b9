"""Tests for the projection store."""

import pytest

from planledger.projectors.exceptions import ProjectionStoreError
from planledger.projectors.models import FileRecord, MasterRecord, PartRecord
from planledger.projectors.store import ProjectionStore


def file_record(path, **kwargs):
    parent, _, name = path.rpartition("/")
    defaults = dict(
        name=name.rsplit(".", 1)[0],
        file_type="file",
        extension=name.rsplit(".", 1)[-1] if "." in name else None,
        part_name=name.rsplit(".", 1)[0],
        parent_path=parent or None,
    )
    defaults.update(kwargs)
    return FileRecord(path=path, **defaults)


@pytest.fixture
def store(tmp_path):
    with ProjectionStore(tmp_path / "ledger.db") as store:
        yield store


class TestProjectionStoreFiles:
    """Tests for file rows."""

    def test_upsert_and_get(self, store):
        record = file_record("PUMPS/PUMP.par", content_hash="h1", size=3)
        store.upsert_file(record)

        assert store.get_file("PUMPS/PUMP.par") == record
        assert store.get_file("missing") is None

    def test_upsert_replaces(self, store):
        store.upsert_file(file_record("a.par", content_hash="h1"))
        store.upsert_file(file_record("a.par", content_hash="h2"))

        assert store.get_file("a.par").content_hash == "h2"
        assert store.counts()["files"] == 1

    def test_delete_under_prefix_only(self, store):
        for path in ("d", "d/a.par", "d/sub/b.par", "d2/c.par", "dx.par"):
            store.upsert_file(file_record(path))

        removed = store.delete_files_under("d")

        assert removed == 3
        assert {r["path"] for r in store.all_rows("files")} == {"d2/c.par", "dx.par"}

    def test_prefix_with_wildcard_characters(self, store):
        store.upsert_file(file_record("100%_done/a.par"))
        store.upsert_file(file_record("100x_done/a.par"))

        store.delete_files_under("100%_done")

        assert store.get_file("100x_done/a.par") is not None

    def test_find_files(self, store):
        store.upsert_file(file_record("d/PUMP_rev1.par", part_name="PUMP"))
        store.upsert_file(file_record("d/PUMP_rev1.pdf", part_name="PUMP", extension="pdf"))
        store.upsert_file(file_record("e/PUMP_rev1.pdf", part_name="PUMP", extension="pdf"))
        store.upsert_file(file_record("d", file_type="directory", extension=None, part_name=None))

        pdfs = store.find_files(parent_path="d", part_name="PUMP", extensions=["pdf"])
        assert [f.path for f in pdfs] == ["d/PUMP_rev1.pdf"]

        in_d = store.find_files(parent_path="d")
        assert [f.path for f in in_d] == ["d/PUMP_rev1.par", "d/PUMP_rev1.pdf"]

        assert store.find_files(extensions=[]) == []

    def test_find_root_level_files(self, store):
        store.upsert_file(file_record("a.par"))
        store.upsert_file(file_record("d/b.par"))

        assert [f.path for f in store.find_files(parent_path=None)] == ["a.par"]

    def test_file_hashes(self, store):
        store.upsert_file(file_record("a.par", content_hash="h1"))
        store.upsert_file(file_record("b.par"))

        assert store.file_hashes() == {"a.par": "h1"}


class TestProjectionStoreMastersAndParts:
    """Tests for master and part rows."""

    def test_masters_referencing(self, store):
        store.upsert_master(MasterRecord(path="d/P.par", name="P", slave_path="d/P.pdf"))
        store.upsert_master(MasterRecord(path="d/Q.par", name="Q", slave_path="d/Q.pdf"))

        assert store.delete_masters_referencing("d/P.pdf") == 1
        assert store.get_master("d/P.par") is None
        assert store.get_master("d/Q.par") is not None

    def test_masters_under(self, store):
        store.upsert_master(MasterRecord(path="d/P.par", name="P", slave_path="d/P.pdf"))
        store.upsert_master(MasterRecord(path="e/Q.par", name="Q", slave_path="e/Q.pdf"))

        store.delete_masters_under("d")

        assert [m["path"] for m in store.all_rows("masters")] == ["e/Q.par"]

    def test_find_masters_by_name_or_hash(self, store):
        store.upsert_master(MasterRecord(path="a/P.par", name="P", part_name="P", content_hash="h1"))
        store.upsert_master(MasterRecord(path="b/X.par", name="X", part_name="X", content_hash="h2"))

        assert [m.path for m in store.find_masters("P", None)] == ["a/P.par"]
        assert [m.path for m in store.find_masters("Z", "h2")] == ["b/X.par"]

    def test_part_bool_round_trip(self, store):
        store.upsert_part(PartRecord(path="p.par", name="p", content_as_master=True))
        assert store.get_part("p.par").content_as_master is True

    def test_part_paths_linked_under(self, store):
        store.upsert_part(PartRecord(path="x/p.par", name="p", master_path="d/P.par"))
        store.upsert_part(PartRecord(path="x/q.par", name="q", slave_path="d/Q.pdf"))
        store.upsert_part(PartRecord(path="x/r.par", name="r", master_path="e/R.par"))

        assert store.part_paths_linked_under("d") == ["x/p.par", "x/q.par"]


class TestProjectionStoreMaintenance:
    """Tests for checkpoints, transactions and reset."""

    def test_checkpoint(self, store):
        assert store.get_checkpoint("chain") == 0
        store.set_checkpoint("chain", 42)
        assert store.get_checkpoint("chain") == 42

    def test_transaction_rolls_back(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.upsert_file(file_record("a.par"))
                raise RuntimeError("projector failed")

        assert store.get_file("a.par") is None

    def test_nested_transaction_joins_outer(self, store):
        with store.transaction():
            store.upsert_file(file_record("a.par"))
            with store.transaction():
                store.upsert_file(file_record("b.par"))

        assert store.counts()["files"] == 2

    def test_reset(self, store):
        store.upsert_file(file_record("a.par"))
        store.set_checkpoint("chain", 5)

        store.reset()

        assert store.counts() == {"files": 0, "masters": 0, "parts": 0}
        assert store.get_checkpoint("chain") == 0

    def test_unknown_table(self, store):
        with pytest.raises(ProjectionStoreError):
            store.all_rows("stored_events")

    def test_closed_store(self, tmp_path):
        store = ProjectionStore(tmp_path / "ledger.db")
        store.close()

        with pytest.raises(ProjectionStoreError):
            store.get_file("a.par")
