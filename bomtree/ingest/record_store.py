"""
Record store interface used by ingestion and browsing.

The store is a generic table service: rows are plain dictionaries, filters are
column -> value equality maps, and inserts return the created rows including
their generated ``id``. Cascading deletes (node -> descendants, sheets, line
items) are the store's job, enforced by referential constraints.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..errors import PersistenceFailure

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Filters = Dict[str, Any]


class RecordStore:
    """
    Abstract record store interface.

    Implement this interface with your actual database client (e.g. psycopg2).
    Every method raises PersistenceFailure when the underlying call is rejected.
    Calls made outside a transaction are committed individually.
    """

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[Union[str, Sequence[str]]] = None
    ) -> List[Row]:
        """
        Fetch rows from a table.

        Args:
            table: Table name
            filters: Column -> value equality filters (None value matches NULL)
            order_by: Column name or names to sort ascending by

        Returns:
            List of row dictionaries
        """
        raise NotImplementedError

    def insert(
        self,
        table: str,
        records: Union[Row, List[Row]]
    ) -> Union[Row, List[Row]]:
        """
        Insert one record or a batch of records.

        Args:
            table: Table name
            records: A single record, or a list of records sharing the same columns

        Returns:
            The created row (for a single record) or rows (for a list),
            each including its generated ``id``
        """
        raise NotImplementedError

    def update(
        self,
        table: str,
        values: Row,
        filters: Filters
    ) -> List[Row]:
        """
        Update matching rows.

        Args:
            table: Table name
            values: Column -> new value
            filters: Column -> value equality filters (must not be empty)

        Returns:
            The updated rows (empty if nothing matched)
        """
        raise NotImplementedError

    def delete(
        self,
        table: str,
        filters: Filters
    ) -> int:
        """
        Delete matching rows.

        Args:
            table: Table name
            filters: Column -> value equality filters (must not be empty)

        Returns:
            Number of rows deleted
        """
        raise NotImplementedError

    def begin_transaction(self) -> None:
        """Begin a transaction; subsequent calls share it until commit or rollback."""
        raise NotImplementedError

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        raise NotImplementedError

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        raise NotImplementedError


def select_one(
    db: RecordStore,
    table: str,
    filters: Filters
) -> Optional[Row]:
    """First row matching ``filters``, or None."""
    rows = db.select(table, filters=filters)
    return rows[0] if rows else None


def rollback_after_error(db: RecordStore) -> None:
    """
    Roll back the open transaction from an error handler.

    A rollback that fails is logged rather than raised, so the error that
    triggered it is the one the caller sees.
    """
    try:
        db.rollback_transaction()
    except PersistenceFailure as e:
        logger.error(f"Rollback failed: {e}")
