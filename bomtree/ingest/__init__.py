"""Workbook ingestion and hierarchy reconciliation."""

from .record_store import RecordStore
from .reconciler import HierarchyReconciler
from .workbook_ingest import (
    ingest_workbook,
    ingest_batch,
    iter_folder,
    IngestResult,
    UploadReport,
)
from .postgres_client import PostgresRecordStore

__all__ = [
    "RecordStore",
    "PostgresRecordStore",
    "HierarchyReconciler",
    "ingest_workbook",
    "ingest_batch",
    "iter_folder",
    "IngestResult",
    "UploadReport",
]
