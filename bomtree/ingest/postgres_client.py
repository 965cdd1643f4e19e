"""
RecordStore backed by Postgres through psycopg2.

Works against any Postgres database, including the one behind a Supabase
project (Project Settings → Database → connection string, "Session mode").
The URL is taken from the constructor or resolved from the environment by
``bomtree.config.build_db_url``.

Expected tables: asset_hierarchy, asset_sheets, bom_items, with generated
uuid ``id`` columns and ON DELETE CASCADE foreign keys
(asset_hierarchy.parent_id, asset_sheets.asset_id, bom_items.asset_id,
bom_items.sheet_id).
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple, Union

import psycopg2
from psycopg2 import sql
from psycopg2.extras import RealDictCursor, execute_values
from psycopg2.pool import SimpleConnectionPool

from ..config import build_db_url
from ..errors import PersistenceFailure
from .record_store import Filters, RecordStore, Row

logger = logging.getLogger(__name__)


def _where(filters: Optional[Filters]) -> Tuple[sql.Composable, List[Any]]:
    """Build a WHERE clause and its parameters from equality filters."""
    if not filters:
        return sql.SQL(""), []

    clauses = []
    params = []
    for column, value in filters.items():
        if value is None:
            clauses.append(sql.SQL("{} IS NULL").format(sql.Identifier(column)))
        else:
            clauses.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
            params.append(value)
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(clauses), params


def _order(order_by: Optional[Union[str, Sequence[str]]]) -> sql.Composable:
    if not order_by:
        return sql.SQL("")
    if isinstance(order_by, str):
        order_by = [order_by]
    return sql.SQL(" ORDER BY ") + sql.SQL(", ").join(
        sql.Identifier(column) for column in order_by
    )


class PostgresRecordStore(RecordStore):
    """
    Postgres record store.

    Uses a connection pool. Calls made inside begin_transaction() /
    commit_transaction() share one connection; calls outside a transaction
    borrow a connection and commit immediately.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        minconn: int = 1,
        maxconn: int = 10,
        **params
    ):
        """
        Args:
            db_url: Postgres URL. When omitted it is resolved by
                ``bomtree.config.build_db_url`` from SUPABASE_DB_URL or the
                SUPABASE_DB_* parts; ``params`` (host, port, database, user,
                password) override the individual variables.
            minconn: Pool size floor
            maxconn: Pool size ceiling

        Raises:
            ValueError: If no URL can be resolved
        """
        self.db_url = db_url or build_db_url(**params)
        if not self.db_url:
            raise ValueError(
                "No database configured. Pass db_url or set SUPABASE_DB_URL, "
                "or SUPABASE_DB_HOST and SUPABASE_DB_PASSWORD."
            )

        self.minconn = minconn
        self.maxconn = maxconn
        self._pool = None
        self._transaction_conn = None

    @classmethod
    def from_settings(cls, settings) -> "PostgresRecordStore":
        """Build a store from a bomtree.config.Settings instance."""
        return cls(
            db_url=settings.db_url,
            minconn=settings.db_minconn,
            maxconn=settings.db_maxconn
        )

    def _pool_or_create(self) -> SimpleConnectionPool:
        if self._pool is None:
            try:
                self._pool = SimpleConnectionPool(self.minconn, self.maxconn, dsn=self.db_url)
            except psycopg2.Error as e:
                raise PersistenceFailure(f"Could not connect to database: {e}") from e
        return self._pool

    def _release_transaction(self):
        conn, self._transaction_conn = self._transaction_conn, None
        self._pool_or_create().putconn(conn)

    def begin_transaction(self) -> None:
        """Check out a connection that later statements share until commit or rollback."""
        if self._transaction_conn is not None:
            raise RuntimeError("A transaction is already open")
        conn = self._pool_or_create().getconn()
        conn.autocommit = False
        self._transaction_conn = conn

    def commit_transaction(self) -> None:
        """
        Raises:
            PersistenceFailure: If the commit is rejected. The connection is
                released either way.
        """
        if self._transaction_conn is None:
            raise RuntimeError("No open transaction to commit")
        try:
            self._transaction_conn.commit()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Commit failed: {e}") from e
        finally:
            self._release_transaction()

    def rollback_transaction(self) -> None:
        """
        Raises:
            PersistenceFailure: If the rollback is rejected. The connection is
                released either way.
        """
        if self._transaction_conn is None:
            raise RuntimeError("No open transaction to roll back")
        try:
            self._transaction_conn.rollback()
        except psycopg2.Error as e:
            raise PersistenceFailure(f"Rollback failed: {e}") from e
        finally:
            self._release_transaction()

    def _execute(self, query: sql.Composable, params: Sequence[Any], fetch: bool = True, batch=None):
        """
        Run one statement and return (rows, rowcount).

        Inside a transaction the statement runs on the transaction connection
        and is committed with it. Otherwise a pooled connection is borrowed and
        the statement is committed on its own.
        """
        in_transaction = self._transaction_conn is not None
        conn = self._transaction_conn if in_transaction else self._pool_or_create().getconn()
        cursor = conn.cursor(cursor_factory=RealDictCursor)

        try:
            if batch is not None:
                rows = execute_values(cursor, query, batch, fetch=True)
            else:
                cursor.execute(query, params)
                rows = cursor.fetchall() if fetch else []
            rowcount = cursor.rowcount
            if not in_transaction:
                conn.commit()
            return [dict(row) for row in rows], rowcount

        except psycopg2.Error as e:
            logger.error(f"Database statement failed: {e}")
            if not in_transaction:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_error:
                    logger.error(f"Rollback after failed statement failed: {rollback_error}")
            raise PersistenceFailure(str(e)) from e

        finally:
            cursor.close()
            if not in_transaction:
                self._pool_or_create().putconn(conn)

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[Union[str, Sequence[str]]] = None
    ) -> List[Row]:
        where, params = _where(filters)
        query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(table)) + where + _order(order_by)
        rows, _ = self._execute(query, params)
        return rows

    def insert(
        self,
        table: str,
        records: Union[Row, List[Row]]
    ) -> Union[Row, List[Row]]:
        single = isinstance(records, dict)
        batch = [records] if single else list(records)
        if not batch:
            return []

        columns = list(batch[0].keys())
        column_list = sql.SQL(", ").join(sql.Identifier(c) for c in columns)

        if single:
            query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
                sql.Identifier(table),
                column_list,
                sql.SQL(", ").join(sql.Placeholder() for _ in columns)
            )
            rows, _ = self._execute(query, [records[c] for c in columns])
            return rows[0]

        query = sql.SQL("INSERT INTO {} ({}) VALUES %s RETURNING *").format(
            sql.Identifier(table),
            column_list
        )
        values = [tuple(record.get(c) for c in columns) for record in batch]
        rows, _ = self._execute(query, [], batch=values)
        return rows

    def update(
        self,
        table: str,
        values: Row,
        filters: Filters
    ) -> List[Row]:
        if not filters:
            raise ValueError("update() requires filters")
        if not values:
            raise ValueError("update() requires values")

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in values
        )
        where, where_params = _where(filters)
        query = sql.SQL("UPDATE {} SET {}").format(sql.Identifier(table), assignments) + where + sql.SQL(" RETURNING *")
        rows, _ = self._execute(query, list(values.values()) + where_params)
        return rows

    def delete(
        self,
        table: str,
        filters: Filters
    ) -> int:
        if not filters:
            raise ValueError("delete() requires filters")

        where, params = _where(filters)
        query = sql.SQL("DELETE FROM {}").format(sql.Identifier(table)) + where
        _, rowcount = self._execute(query, params, fetch=False)
        return rowcount

    def close(self):
        """Close the connection pool."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
