"""
Hierarchy reconciliation: map an uploaded file's path onto hierarchy nodes.

Folder segments are found-or-created one by one, so uploading
"Plant/Unit1/pump.xlsx" and later "Plant/Unit2/fan.xlsx" shares the "Plant"
node. The final segment is the asset itself and is upserted by path: a
re-upload of the same file reuses its node, overwrites its metadata
(last write wins) and drops its old sheets and line items so they can be
written again.

Each ancestor insert is committed on its own. If a later step fails the
ancestors already created stay in place; ingestion is not atomic across
the whole path.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

from ..errors import InvalidPath
from ..models import AssetMetadata
from ..paths import join_path
from ..schema import LINE_ITEMS_TABLE, NODES_TABLE, SHEETS_TABLE
from .record_store import RecordStore, rollback_after_error, select_one

logger = logging.getLogger(__name__)


class HierarchyReconciler:
    """Find-or-create walk over path segments."""

    def __init__(self, db: RecordStore, debug: bool = False):
        """
        Args:
            db: Record store holding the asset_hierarchy table
            debug: Log every reuse/create/replace decision at INFO level
        """
        self.db = db
        self.debug = debug

    def ensure_ancestors(self, segments: Sequence[str]) -> Tuple[Optional[Any], str]:
        """
        Find or create the folder nodes for every segment except the last.

        Args:
            segments: Path segments, leaf last

        Returns:
            (parent_id, parent_path) for the leaf; (None, "") for a bare filename
        """
        current_parent_id = None
        accumulated_path = ""

        for index, segment in enumerate(segments[:-1]):
            candidate_path = f"{accumulated_path}/{segment}" if accumulated_path else segment

            existing = select_one(self.db, NODES_TABLE, {"path": candidate_path})
            if existing:
                current_parent_id = existing["id"]
                if self.debug:
                    logger.info(f"Folder reused: '{candidate_path}' → {current_parent_id}")
            else:
                created = self.db.insert(NODES_TABLE, {
                    "name": segment,
                    "parent_id": current_parent_id,
                    "path": candidate_path,
                    "level": index,
                })
                current_parent_id = created["id"]
                if self.debug:
                    logger.info(f"Folder created: '{candidate_path}' → {current_parent_id}")

            accumulated_path = candidate_path

        return current_parent_id, accumulated_path

    def upsert_leaf(
        self,
        segments: Sequence[str],
        parent_id: Optional[Any],
        metadata: Optional[AssetMetadata] = None
    ) -> Tuple[Any, bool]:
        """
        Create the asset node for the last segment, or take over the existing one.

        When a node already sits at the leaf path its metadata is overwritten
        and its sheets and line items are deleted; the caller writes the new
        ones. Run this inside a transaction so the replacement is all-or-nothing.

        Returns:
            (leaf_id, replaced) where ``replaced`` is True for a re-upload
        """
        name = segments[-1]
        path = join_path(segments)
        record = (metadata or AssetMetadata()).to_record()

        existing = select_one(self.db, NODES_TABLE, {"path": path})
        if existing:
            leaf_id = existing["id"]
            self.db.update(NODES_TABLE, record, {"id": leaf_id})
            # Legacy line items have no sheet, so clear by asset as well
            self.db.delete(LINE_ITEMS_TABLE, {"asset_id": leaf_id})
            self.db.delete(SHEETS_TABLE, {"asset_id": leaf_id})
            if self.debug:
                logger.info(f"Asset replaced: '{path}' → {leaf_id} (re-upload)")
            return leaf_id, True

        created = self.db.insert(NODES_TABLE, {
            "name": name,
            "parent_id": parent_id,
            "path": path,
            "level": len(segments) - 1,
            **record,
        })
        if self.debug:
            logger.info(f"Asset created: '{path}' → {created['id']}")
        return created["id"], False

    def ensure_path(
        self,
        segments: List[str],
        metadata: Optional[AssetMetadata] = None
    ) -> Any:
        """
        Reconcile a whole path and return the leaf node id.

        Ancestors are committed one by one; the leaf upsert runs in its own
        transaction.

        Raises:
            InvalidPath: If ``segments`` is empty
            PersistenceFailure: If any store call fails
        """
        if not segments:
            raise InvalidPath("Cannot reconcile an empty path")

        parent_id, _ = self.ensure_ancestors(segments)

        self.db.begin_transaction()
        try:
            leaf_id, _ = self.upsert_leaf(segments, parent_id, metadata)
        except Exception:
            rollback_after_error(self.db)
            raise
        self.db.commit_transaction()
        return leaf_id
