"""SQLite-backed persistence helpers for the order flow tracker."""

from __future__ import annotations

import pickle
import sqlite3
from typing import Callable, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from .domain import (
    Issue,
    IssueHistoryEntry,
    LogisticsStatus,
    MoveAuditEntry,
    Order,
    ProductionStatus,
    StatusMapping,
)
from .repository import DuplicateRecordError, RecordNotFoundError

T = TypeVar("T")


class SQLiteRepository(Generic[T]):
    """Repository implementation that persists records inside SQLite."""

    def __init__(self, connection: sqlite3.Connection, table: str) -> None:
        self._connection = connection
        self._table = table
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
            "id TEXT PRIMARY KEY, seq INTEGER, payload BLOB NOT NULL)"
        )
        self._connection.commit()

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        cursor = self._connection.execute(
            f"SELECT 1 FROM {self._table} WHERE id = ? LIMIT 1", (item_id,)
        )
        return cursor.fetchone() is not None

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        cursor = self._connection.execute(
            f"SELECT COUNT(1) FROM {self._table}"
        )
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def _next_seq(self) -> int:
        cursor = self._connection.execute(
            f"SELECT COALESCE(MAX(seq), 0) + 1 FROM {self._table}"
        )
        return int(cursor.fetchone()[0])

    def add(self, item_id: str, item: T) -> None:
        if item_id in self:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        payload = pickle.dumps(item)
        self._connection.execute(
            f"INSERT INTO {self._table} (id, seq, payload) VALUES (?, ?, ?)",
            (item_id, self._next_seq(), payload),
        )
        self._connection.commit()

    def upsert(self, item_id: str, item: T) -> None:
        self.upsert_many([(item_id, item)])

    def upsert_many(self, items: Iterable[Tuple[str, T]]) -> None:
        """Write every record inside one transaction."""

        rows = [(item_id, pickle.dumps(item)) for item_id, item in items]
        with self._connection:
            seq = self._next_seq()
            for offset, (item_id, payload) in enumerate(rows):
                self._connection.execute(
                    f"INSERT INTO {self._table} (id, seq, payload) VALUES (?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload",
                    (item_id, seq + offset, payload),
                )

    def replace_all(self, items: Iterable[Tuple[str, T]]) -> None:
        rows = [(item_id, pickle.dumps(item)) for item_id, item in items]
        with self._connection:
            self._connection.execute(f"DELETE FROM {self._table}")
            self._connection.executemany(
                f"INSERT INTO {self._table} (id, seq, payload) VALUES (?, ?, ?)",
                [
                    (item_id, index, payload)
                    for index, (item_id, payload) in enumerate(rows, start=1)
                ],
            )

    def get(self, item_id: str) -> T:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} WHERE id = ?", (item_id,)
        )
        row = cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return pickle.loads(row[0])

    def remove(self, item_id: str) -> None:
        cursor = self._connection.execute(
            f"DELETE FROM {self._table} WHERE id = ?", (item_id,)
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        self._connection.commit()

    def list(self) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} ORDER BY seq"
        )
        return [pickle.loads(row[0]) for row in cursor.fetchall()]


class SQLiteAppendOnlyLog(Generic[T]):
    """Insert-only log table. Rows are never updated or deleted."""

    def __init__(
        self, connection: sqlite3.Connection, table: str, key: Callable[[T], str]
    ) -> None:
        self._connection = connection
        self._table = table
        self._key = key
        self._connection.execute(
            f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
            "seq INTEGER PRIMARY KEY AUTOINCREMENT, record_key TEXT NOT NULL, "
            "payload BLOB NOT NULL)"
        )
        self._connection.commit()

    def __len__(self) -> int:
        cursor = self._connection.execute(f"SELECT COUNT(1) FROM {self._table}")
        value = cursor.fetchone()
        return int(value[0]) if value else 0

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def append(self, entry: T) -> None:
        with self._connection:
            self._connection.execute(
                f"INSERT INTO {self._table} (record_key, payload) VALUES (?, ?)",
                (self._key(entry), pickle.dumps(entry)),
            )

    def list(self) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} ORDER BY seq"
        )
        return [pickle.loads(row[0]) for row in cursor.fetchall()]

    def for_key(self, key: str) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} WHERE record_key = ? ORDER BY seq",
            (key,),
        )
        return [pickle.loads(row[0]) for row in cursor.fetchall()]


class OrderFlowDatabase:
    """Convenience facade bundling SQLite repositories for all aggregates."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        connection.row_factory = sqlite3.Row
        self._connection = connection
        self.orders = SQLiteRepository[Order](connection, "orders")
        self.status_mappings = SQLiteRepository[StatusMapping](
            connection, "status_mappings"
        )
        self.documents = SQLiteRepository[dict](connection, "documents")
        self.move_log = SQLiteAppendOnlyLog[MoveAuditEntry](
            connection, "move_audit_log", key=lambda entry: entry.order_id
        )
        self.issues = SQLiteRepository[Issue](connection, "issues")
        self.issue_history = SQLiteAppendOnlyLog[IssueHistoryEntry](
            connection, "issue_history", key=lambda entry: entry.issue_id
        )
        self.production_status = SQLiteRepository[ProductionStatus](
            connection, "production_status"
        )
        self.logistics_status = SQLiteRepository[LogisticsStatus](
            connection, "logistics_status"
        )

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "OrderFlowDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "SQLiteAppendOnlyLog", "OrderFlowDatabase"]
