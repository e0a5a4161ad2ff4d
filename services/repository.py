"""
Table access behind one interface.

Two implementations:
    SupabaseRepository  remote Postgres tables through supabase-py
    InMemoryRepository  process-local rows for demo mode and tests

Which one is used is decided once in services.backend; services never
check which mode they run in.
"""

from __future__ import annotations

import copy
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Union

import httpx
import structlog

from exceptions import DatabaseError, NetworkError

logger = structlog.get_logger(__name__)

Row = dict[str, Any]
Filters = Optional[dict[str, Any]]

# supabase refuses an unfiltered DELETE; this matches every real row
NIL_UUID = "00000000-0000-0000-0000-000000000000"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Repository(ABC):
    """
    CRUD over one table.

    Filter values that are lists / tuples / sets match any of their
    members; everything else is an equality match.
    """

    table: str

    @abstractmethod
    def list(
        self,
        filters: Filters = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        ...

    @abstractmethod
    def get(self, record_id: str) -> Optional[Row]:
        ...

    @abstractmethod
    def insert(self, rows: Union[Row, list[Row]]) -> list[Row]:
        ...

    @abstractmethod
    def update(self, record_id: str, data: Row) -> Optional[Row]:
        ...

    @abstractmethod
    def delete(self, filters: dict[str, Any]) -> int:
        ...

    @abstractmethod
    def delete_all(self) -> int:
        ...


# ===================
# SUPABASE
# ===================

class SupabaseRepository(Repository):
    """Repository over a Supabase (PostgREST) table."""

    def __init__(self, table: str, client=None):
        self.table = table
        self._client = client

    @property
    def db(self):
        if self._client is None:
            from config.database import get_supabase_client
            self._client = get_supabase_client()
        return self._client

    @contextmanager
    def _operation(self, operation: str, **context) -> Iterator[None]:
        """Log the call and translate client failures into app errors."""
        logger.debug("db_operation_start", table=self.table, operation=operation, **context)
        try:
            yield
        except httpx.TransportError as e:
            logger.error(
                "db_network_failed",
                table=self.table,
                operation=operation,
                error=str(e),
            )
            raise NetworkError("supabase", f"Could not reach database: {e}") from e
        except Exception as e:
            logger.error(
                "db_operation_failed",
                table=self.table,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(operation, str(e), details={"table": self.table}) from e

    @staticmethod
    def _apply_filters(query, filters: Filters):
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                query = query.in_(column, list(value))
            else:
                query = query.eq(column, value)
        return query

    def list(
        self,
        filters: Filters = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        with self._operation("select", filters=filters):
            query = self._apply_filters(self.db.table(self.table).select("*"), filters)
            if order_by:
                query = query.order(order_by, desc=descending)
            if limit:
                query = query.limit(limit)
            result = query.execute()
        return result.data or []

    def get(self, record_id: str) -> Optional[Row]:
        with self._operation("select", record_id=record_id):
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
        return result.data[0] if result.data else None

    def insert(self, rows: Union[Row, list[Row]]) -> list[Row]:
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            return []
        with self._operation("insert", count=len(rows)):
            result = self.db.table(self.table).insert(rows).execute()
        return result.data or []

    def update(self, record_id: str, data: Row) -> Optional[Row]:
        with self._operation("update", record_id=record_id, fields=list(data.keys())):
            result = (
                self.db.table(self.table)
                .update(data)
                .eq("id", record_id)
                .execute()
            )
        return result.data[0] if result.data else None

    def delete(self, filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("delete() needs at least one filter; use delete_all()")
        with self._operation("delete", filters=filters):
            result = self._apply_filters(self.db.table(self.table).delete(), filters).execute()
        return len(result.data) if result.data else 0

    def delete_all(self) -> int:
        with self._operation("delete_all"):
            result = self.db.table(self.table).delete().neq("id", NIL_UUID).execute()
        return len(result.data) if result.data else 0


# ===================
# IN-MEMORY
# ===================

class InMemoryRepository(Repository):
    """
    Process-local table.

    Rows get an `id` and `created_at` on insert, like the Supabase
    defaults. Returned rows are copies.
    """

    def __init__(self, table: str, rows: Optional[list[Row]] = None):
        self.table = table
        self._rows: list[Row] = []
        if rows:
            self.insert(rows)

    @staticmethod
    def _matches(row: Row, filters: Filters) -> bool:
        for column, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set)):
                if row.get(column) not in value:
                    return False
            elif row.get(column) != value:
                return False
        return True

    def list(
        self,
        filters: Filters = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        matched = [(i, row) for i, row in enumerate(self._rows) if self._matches(row, filters)]
        if order_by:
            # None sorts last ascending, first descending (Postgres default);
            # ties fall back to insertion order
            matched.sort(
                key=lambda item: (
                    item[1].get(order_by) is None,
                    "" if item[1].get(order_by) is None else item[1].get(order_by),
                    item[0],
                ),
                reverse=descending,
            )
        rows = [row for _, row in matched]
        if limit:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def get(self, record_id: str) -> Optional[Row]:
        for row in self._rows:
            if row.get("id") == record_id:
                return copy.deepcopy(row)
        return None

    def insert(self, rows: Union[Row, list[Row]]) -> list[Row]:
        if isinstance(rows, dict):
            rows = [rows]
        created = []
        for data in rows:
            row = copy.deepcopy(data)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", _now_iso())
            self._rows.append(row)
            created.append(copy.deepcopy(row))
        return created

    def update(self, record_id: str, data: Row) -> Optional[Row]:
        for row in self._rows:
            if row.get("id") == record_id:
                row.update(copy.deepcopy(data))
                return copy.deepcopy(row)
        return None

    def delete(self, filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("delete() needs at least one filter; use delete_all()")
        kept = [row for row in self._rows if not self._matches(row, filters)]
        deleted = len(self._rows) - len(kept)
        self._rows = kept
        return deleted

    def delete_all(self) -> int:
        deleted = len(self._rows)
        self._rows = []
        return deleted
