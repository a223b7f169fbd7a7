"""HYPOLAB — Video Row Store.

Typed repository over the ``videos`` table. Metric columns are not mapped on
the SQLModel class (they are added at runtime by the bulk-update migration),
so rows are read and written as plain dicts with bound parameters.
Column identifiers come from the field registry, never from request values.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.config import settings
from app.core.logging import get_logger

logger = get_logger("storage.videos")


class StorageFailureError(Exception):
    """Raised when the row store rejects a statement.

    Any open transaction has already been rolled back when this is raised.
    """


class VideoRepository:
    """select / insert / update / delete over the videos table."""

    def __init__(self, session: Session, table: Optional[str] = None):
        self.session = session
        self.table = table or settings.videos_table

    # ── Core Execute ──

    def _quote(self, identifier: str) -> str:
        dialect = self.session.get_bind().dialect
        return dialect.identifier_preparer.quote(identifier)

    def execute(
        self, statement: str, params: Mapping[str, Any] | None = None
    ) -> List[Dict[str, Any]]:
        """Run one parameterized statement, returning rows as dicts."""
        result = self.session.connection().execute(text(statement), dict(params or {}))
        if result.returns_rows:
            return [dict(row) for row in result.mappings().all()]
        return []

    @contextmanager
    def transaction(self) -> Iterator["VideoRepository"]:
        """BEGIN … COMMIT, or ROLLBACK and raise ``StorageFailureError``."""
        if self.session.in_transaction():
            # Close the implicit read transaction left by earlier selects
            self.session.commit()
        try:
            with self.session.begin():
                yield self
        except (SQLAlchemyError, OverflowError) as e:
            logger.error(f"Transaction on {self.table} rolled back: {e}")
            raise StorageFailureError(str(e)) from e

    # ── Schema ──

    def existing_columns(self) -> Set[str]:
        columns = inspect(self.session.connection()).get_columns(self.table)
        return {column["name"] for column in columns}

    def ensure_columns(self, columns: Mapping[str, str]) -> List[str]:
        """Add every missing column. Safe to run repeatedly."""
        added: List[str] = []
        with self.transaction():
            existing = self.existing_columns()
            for column, type_sql in columns.items():
                if column in existing:
                    continue
                self.execute(
                    f"ALTER TABLE {self._quote(self.table)} "
                    f"ADD COLUMN {self._quote(column)} {type_sql}"
                )
                added.append(column)
        if added:
            logger.info(f"Added {len(added)} columns to {self.table}: {added}")
        return added

    # ── Reads ──

    def select_for_user(
        self, user_id: str, hypothesis_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """All videos owned by ``user_id``, optionally for one hypothesis."""
        query = f"SELECT * FROM {self._quote(self.table)} WHERE user_id = :user_id"
        params: Dict[str, Any] = {"user_id": user_id}
        if hypothesis_id is not None:
            query += " AND hypothesis_id = :hypothesis_id"
            params["hypothesis_id"] = hypothesis_id
        return self.execute(query + " ORDER BY id", params)

    def get(self, video_id: int, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self.execute(
            f"SELECT * FROM {self._quote(self.table)} "
            "WHERE id = :video_id AND user_id = :user_id",
            {"video_id": video_id, "user_id": user_id},
        )
        return rows[0] if rows else None

    # ── Writes (call inside ``transaction()``) ──

    def insert(self, values: Mapping[str, Any]) -> int:
        keys = list(values)
        columns = ", ".join(self._quote(k) for k in keys)
        placeholders = ", ".join(f":v{i}" for i in range(len(keys)))
        rows = self.execute(
            f"INSERT INTO {self._quote(self.table)} ({columns}) "
            f"VALUES ({placeholders}) RETURNING id",
            {f"v{i}": values[k] for i, k in enumerate(keys)},
        )
        return rows[0]["id"]

    def update(self, video_id: int, user_id: str, assignments: Mapping[str, Any]) -> None:
        """Assign columns on one video, scoped by id and owner."""
        keys = list(assignments)
        set_sql = ", ".join(f"{self._quote(k)} = :v{i}" for i, k in enumerate(keys))
        params: Dict[str, Any] = {f"v{i}": assignments[k] for i, k in enumerate(keys)}
        params.update(video_id=video_id, user_id=user_id)
        self.execute(
            f"UPDATE {self._quote(self.table)} "
            f"SET {set_sql}, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = :video_id AND user_id = :user_id",
            params,
        )

    def delete(self, video_id: int, user_id: str) -> None:
        self.execute(
            f"DELETE FROM {self._quote(self.table)} "
            "WHERE id = :video_id AND user_id = :user_id",
            {"video_id": video_id, "user_id": user_id},
        )
