"""Unit tests for mapping upload paths onto hierarchy nodes."""

import pytest

from bomtree.errors import InvalidPath, PersistenceFailure
from bomtree.ingest.reconciler import HierarchyReconciler
from bomtree.models import AssetMetadata
from bomtree.schema import LINE_ITEMS_TABLE, NODES_TABLE, SHEETS_TABLE


def node_at(db, path):
    rows = db.rows(NODES_TABLE, path=path)
    assert len(rows) == 1, f"expected one node at {path!r}, found {len(rows)}"
    return rows[0]


class TestEnsurePath:

    def test_creates_one_node_per_segment(self, db):
        leaf_id = HierarchyReconciler(db).ensure_path(["Plant", "Unit1", "pump"])

        plant = node_at(db, "Plant")
        unit = node_at(db, "Plant/Unit1")
        pump = node_at(db, "Plant/Unit1/pump")

        assert (plant["level"], unit["level"], pump["level"]) == (0, 1, 2)
        assert plant["parent_id"] is None
        assert unit["parent_id"] == plant["id"]
        assert pump["parent_id"] == unit["id"]
        assert pump["id"] == leaf_id
        assert pump["name"] == "pump"

    def test_shared_ancestors_reused(self, db):
        reconciler = HierarchyReconciler(db)
        reconciler.ensure_path(["Plant", "Unit1", "pump"])
        reconciler.ensure_path(["Plant", "Unit2", "fan"])

        assert len(db.rows(NODES_TABLE, path="Plant")) == 1
        assert len(db.tables[NODES_TABLE]) == 5
        assert node_at(db, "Plant/Unit2")["parent_id"] == node_at(db, "Plant")["id"]

    def test_bare_filename_is_a_root(self, db):
        leaf_id = HierarchyReconciler(db).ensure_path(["pump"])
        pump = node_at(db, "pump")
        assert pump["id"] == leaf_id
        assert pump["parent_id"] is None
        assert pump["level"] == 0

    def test_metadata_written_to_leaf_only(self, db):
        metadata = AssetMetadata(assembly_name="Feed Pump", total_cost=10.0)
        HierarchyReconciler(db).ensure_path(["Plant", "pump"], metadata)

        assert node_at(db, "Plant/pump")["assembly_name"] == "Feed Pump"
        assert node_at(db, "Plant/pump")["total_cost"] == 10.0
        assert "assembly_name" not in node_at(db, "Plant")

    def test_empty_segments_rejected(self, db):
        with pytest.raises(InvalidPath):
            HierarchyReconciler(db).ensure_path([])
        assert db.calls == []

    def test_reupload_reuses_leaf(self, db):
        reconciler = HierarchyReconciler(db)
        first = reconciler.ensure_path(["Plant", "pump"], AssetMetadata(system="Old"))
        second = reconciler.ensure_path(["Plant", "pump"], AssetMetadata(system="New"))

        assert first == second
        assert len(db.tables[NODES_TABLE]) == 2
        assert node_at(db, "Plant/pump")["system"] == "New"

    def test_ancestors_kept_when_leaf_fails(self, db):
        db.fail_on.add(("update", NODES_TABLE))
        reconciler = HierarchyReconciler(db)
        reconciler.ensure_path(["Plant", "pump"])

        with pytest.raises(PersistenceFailure):
            reconciler.ensure_path(["Plant", "pump"])

        assert db.rollbacks == 1
        assert not db.in_transaction
        assert len(db.tables[NODES_TABLE]) == 2

    def test_failed_rollback_keeps_original_error(self, rollback_failing_db):
        db = rollback_failing_db
        reconciler = HierarchyReconciler(db)
        reconciler.ensure_path(["Plant", "pump"])
        db.fail_on.add(("update", NODES_TABLE))

        with pytest.raises(PersistenceFailure, match="simulated update failure"):
            reconciler.ensure_path(["Plant", "pump"])
        assert not db.in_transaction

    def test_ancestor_failure_propagates(self, db):
        db.fail_on.add(("insert", NODES_TABLE))
        with pytest.raises(PersistenceFailure):
            HierarchyReconciler(db).ensure_path(["Plant", "pump"])
        assert db.tables[NODES_TABLE] == []


class TestUpsertLeaf:

    def test_replacement_clears_sheets_and_items(self, db):
        reconciler = HierarchyReconciler(db)
        leaf_id = reconciler.ensure_path(["pump"])
        sheet = db.insert(SHEETS_TABLE, {"asset_id": leaf_id, "sheet_name": "Parts", "sheet_index": 0})
        db.insert(LINE_ITEMS_TABLE, [
            {"asset_id": leaf_id, "sheet_id": sheet["id"], "item_no": "1"},
            {"asset_id": leaf_id, "sheet_id": None, "item_no": "legacy"},
        ])
        other = reconciler.ensure_path(["fan"])
        db.insert(LINE_ITEMS_TABLE, {"asset_id": other, "sheet_id": None, "item_no": "1"})

        same_id, replaced = reconciler.upsert_leaf(["pump"], None)

        assert same_id == leaf_id
        assert replaced is True
        assert db.rows(SHEETS_TABLE, asset_id=leaf_id) == []
        assert db.rows(LINE_ITEMS_TABLE, asset_id=leaf_id) == []
        assert len(db.rows(LINE_ITEMS_TABLE, asset_id=other)) == 1

    def test_new_leaf_not_replaced(self, db):
        _, replaced = HierarchyReconciler(db).upsert_leaf(["pump"], None)
        assert replaced is False

    def test_debug_logging(self, db, caplog):
        caplog.set_level("INFO")
        reconciler = HierarchyReconciler(db, debug=True)
        reconciler.ensure_path(["Plant", "pump"])
        reconciler.ensure_path(["Plant", "pump"])

        assert "Folder created: 'Plant'" in caplog.text
        assert "Folder reused: 'Plant'" in caplog.text
        assert "Asset replaced: 'Plant/pump'" in caplog.text
