from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generator, List, Optional, Tuple

from .errors import StoreCapacityError, StoreError
from .models import CountdownEntity
from .repositories import Clock, apply_update, build_entity
from .schemas import CountdownCreate, CountdownUpdate
from .utils import MonotonicClock, as_utc, new_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "countdowns"
    id: str = "id"
    title: str = "title"
    target_date: str = "target_date"
    timezone: str = "timezone"
    location: str = "location"
    count_type: str = "count_type"
    working_hours: str = "working_hours"
    customization: str = "customization"
    background_images: str = "background_images"
    image_interval: str = "image_interval"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


_COLS = _Cols()

_WRITE_COLUMNS = (
    _COLS.title,
    _COLS.target_date,
    _COLS.timezone,
    _COLS.location,
    _COLS.count_type,
    _COLS.working_hours,
    _COLS.customization,
    _COLS.background_images,
    _COLS.image_interval,
    _COLS.updated_at,
)


def _to_store_error(exc: sqlite3.Error) -> StoreError:
    name = getattr(exc, "sqlite_errorname", "")
    if name == "SQLITE_FULL" or "full" in str(exc).lower():
        return StoreCapacityError(f"SQLite database is full: {exc}", backend="sqlite")
    return StoreError(f"SQLite error: {exc}", backend="sqlite")


def _dump_dt(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="microseconds")


def _dump_json(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value)


class SQLiteCountdownStore:
    """
    SQLite store keeping one row per countdown.

    Nested values (working hours, customization, images) live in JSON text
    columns; instants are ISO-8601 UTC strings, which sort chronologically.
    """

    backend_name = "sqlite"

    def __init__(self, db_path: str, clock: Optional[Clock] = None) -> None:
        try:
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create database directory for {db_path}: {e}", backend="sqlite") from e
        self._db_path = db_path
        self._clock: Clock = clock or MonotonicClock()
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise _to_store_error(e) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.error("SQLite operation failed on %s: %s", self._db_path, e)
            raise _to_store_error(e) from e
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} TEXT PRIMARY KEY,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.target_date} TEXT NOT NULL,
                    {_COLS.timezone} TEXT NOT NULL,
                    {_COLS.location} TEXT NULL,
                    {_COLS.count_type} TEXT NOT NULL,
                    {_COLS.working_hours} TEXT NULL,
                    {_COLS.customization} TEXT NOT NULL,
                    {_COLS.background_images} TEXT NOT NULL DEFAULT '[]',
                    {_COLS.image_interval} INTEGER NOT NULL DEFAULT 5,
                    {_COLS.created_at} TEXT NOT NULL,
                    {_COLS.updated_at} TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{_COLS.table}_created_at ON {_COLS.table}({_COLS.created_at})"
            )

    def _row_to_entity(self, row: sqlite3.Row) -> CountdownEntity:
        def load_json(s: Optional[str]) -> Any:
            return None if s is None else json.loads(s)

        try:
            return {
                "id": str(row[_COLS.id]),
                "title": str(row[_COLS.title]),
                "target_date": datetime.fromisoformat(row[_COLS.target_date]),
                "timezone": str(row[_COLS.timezone]),
                "location": row[_COLS.location],
                "count_type": str(row[_COLS.count_type]),
                "working_hours": load_json(row[_COLS.working_hours]),
                "customization": load_json(row[_COLS.customization]),
                "background_images": load_json(row[_COLS.background_images]) or [],
                "image_interval": int(row[_COLS.image_interval]),
                "created_at": datetime.fromisoformat(row[_COLS.created_at]),
                "updated_at": datetime.fromisoformat(row[_COLS.updated_at]),
            }
        except (ValueError, TypeError) as e:
            raise StoreError(f"Corrupt countdown row {row[_COLS.id]!r}: {e}", backend="sqlite") from e

    def _write_values(self, entity: CountdownEntity) -> Tuple[Any, ...]:
        return (
            entity["title"],
            _dump_dt(entity["target_date"]),
            entity["timezone"],
            entity["location"],
            entity["count_type"],
            _dump_json(entity["working_hours"]),
            _dump_json(entity["customization"]),
            _dump_json(entity["background_images"] or []),
            entity["image_interval"],
            _dump_dt(entity["updated_at"]),
        )

    def create(self, data: CountdownCreate) -> str:
        countdown_id = new_id()
        entity = build_entity(data.to_fields(), countdown_id, self._clock())
        columns = (_COLS.id, *_WRITE_COLUMNS, _COLS.created_at)
        placeholders = ", ".join("?" for _ in columns)
        with self._conn() as conn:
            conn.execute(
                f"INSERT INTO {_COLS.table} ({', '.join(columns)}) VALUES ({placeholders})",
                (countdown_id, *self._write_values(entity), _dump_dt(entity["created_at"])),
            )
        return countdown_id

    def get(self, countdown_id: str) -> Optional[CountdownEntity]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (countdown_id,)
            ).fetchone()
            return self._row_to_entity(row) if row else None

    def update(self, countdown_id: str, data: CountdownUpdate) -> bool:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} = ?", (countdown_id,)
            ).fetchone()
            if not row:
                return False
            updated = apply_update(self._row_to_entity(row), data.changes(), self._clock())
            assignments = ", ".join(f"{col} = ?" for col in _WRITE_COLUMNS)
            conn.execute(
                f"UPDATE {_COLS.table} SET {assignments} WHERE {_COLS.id} = ?",
                (*self._write_values(updated), countdown_id),
            )
            return True

    def delete(self, countdown_id: str) -> None:
        with self._conn() as conn:
            conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (countdown_id,))

    def list_all(self) -> List[CountdownEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.created_at} DESC"
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
