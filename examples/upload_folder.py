#!/usr/bin/env python3
"""Example: Upload a folder of BOM workbooks and print the resulting tree.

Connection settings come from the environment or a .env file
(SUPABASE_DB_URL, BOMTREE_BLOB_DIR, ...).
"""

import logging

from bomtree import AssetService, TreeViewState, filter_forest
from bomtree.config import load_settings
from bomtree.ingest import PostgresRecordStore, ingest_batch, iter_folder
from bomtree.storage import LocalBlobStore
from bomtree.tree import collect_ids, iter_visible


def upload_folder(folder: str, query: str = ""):
    """Ingest every workbook under ``folder`` and print the hierarchy.

    Args:
        folder: Folder to upload; its name becomes the top-level node
        query: Optional search text to narrow the printed tree
    """
    settings = load_settings()
    db = PostgresRecordStore.from_settings(settings)
    blobs = LocalBlobStore.from_settings(settings)

    try:
        report = ingest_batch(iter_folder(folder), db, blob_store=blobs, debug=True)
        for result in report.succeeded:
            action = "replaced" if result.replaced else "created"
            print(f"✓ {result.asset_path}: {result.sheet_count} sheets, {result.item_count} items ({action})")
        for path, error in report.failed:
            print(f"✗ {path}: {error}")

        forest = filter_forest(AssetService(db, blob_store=blobs).load_tree(), query)
        state = TreeViewState().expand(collect_ids(forest))
        print("\nHierarchy:")
        for depth, node in iter_visible(forest, state):
            marker = "📄" if node.is_leaf_asset else "📁"
            print(f"{'  ' * depth}{marker} {node.name}")
    finally:
        db.close()

    return report


if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python upload_folder.py <folder> [search]")
        print("\nExample:")
        print("  python upload_folder.py ./Plant pump")
        sys.exit(1)

    logging.basicConfig(level=logging.INFO)
    report = upload_folder(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "")
    sys.exit(0 if report.ok else 1)
