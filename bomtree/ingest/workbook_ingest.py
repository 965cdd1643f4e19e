"""
Workbook ingestion: one uploaded file → hierarchy nodes, sheets and line items.

Flow for a single file:
1. Split the upload path into segments
2. Parse the workbook (nothing is written if this fails)
3. Find or create the folder nodes (each committed on its own)
4. Keep the original bytes in blob storage, if one is configured (restored
   to the previous bytes if step 5 fails)
5. In one transaction: upsert the asset node, then write every sheet in
   workbook order followed by its line items

Batches are processed file by file, in order, so folder lookups see the
folders created for earlier files of the same batch. A failing file is
recorded and skipped; the caller gets a single aggregate report.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

from ..errors import BomTreeError, NotFound, UploadFailed
from ..models import ParsedWorkbook
from ..parser import WorkbookParser, default_parser
from ..paths import join_path, split_asset_path
from ..schema import LINE_ITEMS_TABLE, SHEETS_TABLE
from ..storage import BlobStore
from .reconciler import HierarchyReconciler
from .record_store import RecordStore, rollback_after_error

logger = logging.getLogger(__name__)

WORKBOOK_SUFFIXES = (".xlsx", ".xls", ".xlsm")


@dataclass
class IngestResult:
    """Outcome of ingesting one workbook."""
    upload_path: str
    asset_id: Any
    asset_path: str
    sheet_count: int
    item_count: int
    replaced: bool = False
    storage_path: Optional[str] = None


@dataclass
class UploadReport:
    """Outcome of an upload batch."""
    succeeded: List[IngestResult] = field(default_factory=list)
    failed: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """Raise a single UploadFailed if any file of the batch failed."""
        if self.failed:
            raise UploadFailed(self.failed)


def _write_sheets(
    db: RecordStore,
    asset_id: Any,
    workbook: ParsedWorkbook
) -> None:
    """Insert sheet records in workbook order, each followed by its line items."""
    for sheet in workbook.sheets:
        sheet_row = db.insert(SHEETS_TABLE, {
            "asset_id": asset_id,
            "sheet_name": sheet.sheet_name,
            "sheet_index": sheet.sheet_index,
        })

        if sheet.items:
            db.insert(LINE_ITEMS_TABLE, [
                {**item, "asset_id": asset_id, "sheet_id": sheet_row["id"]}
                for item in sheet.items
            ])


def _stored_blob(blob_store: BlobStore, path: str) -> Optional[bytes]:
    """Bytes currently stored at ``path``, or None."""
    try:
        return blob_store.download(path)
    except NotFound:
        return None


def _restore_blob(blob_store: BlobStore, path: str, previous: Optional[bytes]) -> None:
    """Put back the blob that an aborted ingestion overwrote."""
    try:
        if previous is None:
            blob_store.delete(path)
        else:
            blob_store.upload(path, previous)
    except BomTreeError as e:
        logger.error(f"Could not restore original workbook at '{path}': {e}")


def ingest_workbook(
    upload_path: str,
    data: bytes,
    db: RecordStore,
    blob_store: Optional[BlobStore] = None,
    parser: Optional[WorkbookParser] = None,
    debug: bool = False
) -> IngestResult:
    """
    Ingest one workbook into the hierarchy.

    Args:
        upload_path: Folder-relative path of the file ("Plant/Unit1/pump.xlsx")
            or a bare filename
        data: Raw workbook bytes
        db: Record store
        blob_store: Where to keep the original workbook (optional)
        parser: Workbook parser (defaults to one with the Excel adapter)
        debug: Log reconciliation and write decisions

    Returns:
        IngestResult for the asset node

    Raises:
        InvalidPath: If the path has no usable segment
        ParseFailure: If the workbook can't be read
        PersistenceFailure: If a store call fails. Folder nodes created before
            the failure are kept; the asset transaction is rolled back and
            the previously stored workbook, if any, is put back.
    """
    # ========================================================================
    # STEP 1: Path and workbook (no writes yet)
    # ========================================================================
    segments = split_asset_path(upload_path)
    asset_path = join_path(segments)

    parser = parser or default_parser()
    workbook = parser.parse_workbook(data, filename=Path(upload_path).name)

    if debug:
        logger.info(
            f"Parsed '{upload_path}': {len(workbook.sheets)} sheets, "
            f"{workbook.item_count} line items"
        )

    # ========================================================================
    # STEP 2: Folder nodes (committed one by one)
    # ========================================================================
    reconciler = HierarchyReconciler(db, debug=debug)
    parent_id, _ = reconciler.ensure_ancestors(segments)

    # ========================================================================
    # STEP 3: Original workbook
    # ========================================================================
    metadata = workbook.metadata
    storage_path = None
    previous_blob = None
    if blob_store is not None:
        previous_blob = _stored_blob(blob_store, f"{asset_path}.xlsx")
        storage_path = blob_store.upload(f"{asset_path}.xlsx", data)
        metadata = dataclasses.replace(metadata, storage_path=storage_path)

    # ========================================================================
    # STEP 4: Asset node, sheets and line items (one transaction)
    # ========================================================================
    try:
        db.begin_transaction()
        try:
            asset_id, replaced = reconciler.upsert_leaf(segments, parent_id, metadata)
            _write_sheets(db, asset_id, workbook)
        except Exception:
            rollback_after_error(db)
            raise
        db.commit_transaction()
    except Exception:
        if storage_path is not None:
            _restore_blob(blob_store, storage_path, previous_blob)
        raise

    if debug:
        logger.info(f"Ingestion complete: '{asset_path}' → {asset_id}")

    return IngestResult(
        upload_path=upload_path,
        asset_id=asset_id,
        asset_path=asset_path,
        sheet_count=len(workbook.sheets),
        item_count=workbook.item_count,
        replaced=replaced,
        storage_path=storage_path,
    )


def ingest_batch(
    files: Iterable[Tuple[str, bytes]],
    db: RecordStore,
    blob_store: Optional[BlobStore] = None,
    parser: Optional[WorkbookParser] = None,
    debug: bool = False
) -> UploadReport:
    """
    Ingest an upload batch sequentially.

    A file that fails to parse or persist is logged and recorded in the
    report; the remaining files are still ingested. Rows already committed
    for the failing file are not removed.

    Args:
        files: (upload_path, data) pairs in upload order

    Returns:
        UploadReport; call ``raise_for_failures()`` to turn failures into a
        single UploadFailed
    """
    parser = parser or default_parser()
    report = UploadReport()

    for upload_path, data in files:
        try:
            result = ingest_workbook(
                upload_path,
                data,
                db,
                blob_store=blob_store,
                parser=parser,
                debug=debug
            )
        except BomTreeError as e:
            logger.error(f"Workbook ingestion failed for '{upload_path}': {e}", exc_info=True)
            report.failed.append((upload_path, e))
            continue
        report.succeeded.append(result)

    logger.info(
        f"Upload batch finished: {len(report.succeeded)} succeeded, "
        f"{len(report.failed)} failed"
    )
    return report


def iter_folder(root: Union[str, Path]) -> Iterator[Tuple[str, bytes]]:
    """
    Yield (upload_path, data) for every workbook under a folder.

    Upload paths start with the folder's own name, as a browser folder upload
    reports them ("Plant/Unit1/pump.xlsx" for root "Plant"). Files are
    yielded in sorted path order; Office lock files ("~$...") are skipped.
    """
    root = Path(root)
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.name.startswith("~$"):
            continue
        if file_path.suffix.lower() not in WORKBOOK_SUFFIXES:
            continue
        relative = file_path.relative_to(root.parent).as_posix()
        yield relative, file_path.read_bytes()
