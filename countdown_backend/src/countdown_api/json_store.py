from __future__ import annotations

import errno
import json
import logging
import os
import tempfile
from datetime import datetime
from threading import RLock
from typing import Any, Dict, List, Optional

from .errors import StoreCapacityError, StoreError
from .models import CountdownEntity
from .repositories import Clock, apply_update, build_entity, sort_newest_first
from .schemas import CountdownCreate, CountdownUpdate
from .utils import MonotonicClock, as_utc, new_id

logger = logging.getLogger(__name__)

_DATETIME_FIELDS = ("target_date", "created_at", "updated_at")
_CAPACITY_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC), errno.EFBIG}


def _encode(entity: CountdownEntity) -> Dict[str, Any]:
    record: Dict[str, Any] = dict(entity)
    for key in _DATETIME_FIELDS:
        record[key] = as_utc(entity[key]).isoformat(timespec="microseconds")  # type: ignore[literal-required]
    return record


def _decode(record: Dict[str, Any]) -> CountdownEntity:
    entity = dict(record)
    for key in _DATETIME_FIELDS:
        entity[key] = datetime.fromisoformat(record[key])
    entity.setdefault("background_images", [])
    return entity  # type: ignore[return-value]


class JsonFileCountdownStore:
    """
    Store keeping every countdown in a single JSON document.

    The whole document is rewritten on each change through a temporary file
    and an atomic rename. When max_bytes is set, a write that would grow the
    document past it fails with StoreCapacityError and leaves the file as it was.
    """

    backend_name = "json"

    def __init__(self, path: str, max_bytes: Optional[int] = None, clock: Optional[Clock] = None) -> None:
        self._path = path
        self._max_bytes = max_bytes
        self._clock: Clock = clock or MonotonicClock()
        self._lock = RLock()

    def _load(self) -> Dict[str, CountdownEntity]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StoreError(f"Cannot read {self._path}: {e}", backend="json") from e
        except ValueError as e:
            raise StoreError(f"{self._path} is not valid JSON: {e}", backend="json") from e

        try:
            records = [_decode(r) for r in document.get("countdowns", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"{self._path} holds malformed countdowns: {e}", backend="json") from e
        return {r["id"]: r for r in records}

    def _save(self, items: Dict[str, CountdownEntity]) -> None:
        payload = json.dumps(
            {"countdowns": [_encode(c) for c in items.values()]}, ensure_ascii=False
        ).encode("utf-8")
        if self._max_bytes is not None and len(payload) > self._max_bytes:
            raise StoreCapacityError(
                f"Countdown storage quota exceeded ({len(payload)} > {self._max_bytes} bytes); "
                "remove background images or old countdowns",
                backend="json",
            )

        directory = os.path.dirname(os.path.abspath(self._path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile("wb", dir=directory, delete=False, suffix=".tmp") as tmp:
                tmp_path = tmp.name
                tmp.write(payload)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error("Writing %s failed: %s", self._path, e)
            if e.errno in _CAPACITY_ERRNOS:
                raise StoreCapacityError(f"No space left to write {self._path}: {e}", backend="json") from e
            raise StoreError(f"Cannot write {self._path}: {e}", backend="json") from e

    def create(self, data: CountdownCreate) -> str:
        with self._lock:
            items = self._load()
            countdown_id = new_id()
            while countdown_id in items:
                countdown_id = new_id()
            items[countdown_id] = build_entity(data.to_fields(), countdown_id, self._clock())
            self._save(items)
            return countdown_id

    def get(self, countdown_id: str) -> Optional[CountdownEntity]:
        with self._lock:
            return self._load().get(countdown_id)

    def update(self, countdown_id: str, data: CountdownUpdate) -> bool:
        with self._lock:
            items = self._load()
            existing = items.get(countdown_id)
            if existing is None:
                return False
            items[countdown_id] = apply_update(existing, data.changes(), self._clock())
            self._save(items)
            return True

    def delete(self, countdown_id: str) -> None:
        with self._lock:
            items = self._load()
            if items.pop(countdown_id, None) is not None:
                self._save(items)

    def list_all(self) -> List[CountdownEntity]:
        with self._lock:
            return sort_newest_first(list(self._load().values()))
