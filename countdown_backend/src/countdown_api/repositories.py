from __future__ import annotations

import copy
import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from .models import DEFAULT_WORKING_HOURS, CountdownEntity, CountType
from .schemas import CountdownCreate, CountdownUpdate
from .settings import get_settings
from .utils import MonotonicClock, new_id

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Never taken from an update payload.
PROTECTED_FIELDS = {"id", "created_at", "updated_at"}


# PUBLIC_INTERFACE
@runtime_checkable
class CountdownStore(Protocol):
    """
    Capability contract shared by every countdown storage backend.

    Missing records are reported through return values (None / False). Failures
    of the backing medium raise StoreError (StoreCapacityError when it is full).
    """

    backend_name: str

    def create(self, data: CountdownCreate) -> str:
        """Persist a new countdown stamped with created_at == updated_at and return its id."""
        ...

    def get(self, countdown_id: str) -> Optional[CountdownEntity]:
        """Return the countdown with exactly this id, or None."""
        ...

    def update(self, countdown_id: str, data: CountdownUpdate) -> bool:
        """Merge the supplied fields and refresh updated_at. Return False if the id is unknown."""
        ...

    def delete(self, countdown_id: str) -> None:
        """Remove a countdown; unknown ids are ignored."""
        ...

    def list_all(self) -> List[CountdownEntity]:
        """Return every countdown, newest created_at first."""
        ...


def _normalize_working_hours(entity: Dict[str, Any]) -> Dict[str, Any]:
    """working_hours is present exactly when the countdown counts working time."""
    if entity.get("count_type") == CountType.WORKING.value:
        if not entity.get("working_hours"):
            entity["working_hours"] = dict(DEFAULT_WORKING_HOURS)
    else:
        entity["working_hours"] = None
    return entity


# PUBLIC_INTERFACE
def build_entity(fields: Mapping[str, Any], countdown_id: str, now: datetime) -> CountdownEntity:
    """Assemble a new record from validated create fields."""
    entity = copy.deepcopy(dict(fields))
    for key in PROTECTED_FIELDS:
        entity.pop(key, None)
    entity["id"] = countdown_id
    entity["created_at"] = now
    entity["updated_at"] = now
    return _normalize_working_hours(entity)  # type: ignore[return-value]


# PUBLIC_INTERFACE
def apply_update(existing: CountdownEntity, changes: Mapping[str, Any], now: datetime) -> CountdownEntity:
    """
    Return a copy of existing with changes merged in.

    id and created_at are never modified; updated_at always moves forward,
    even if the clock has not. A naive target_date is read as wall-clock
    time in the record's timezone.
    """
    updated: Dict[str, Any] = copy.deepcopy(dict(existing))
    for key, value in changes.items():
        if key in PROTECTED_FIELDS:
            continue
        updated[key] = copy.deepcopy(value)
    _localize_target(updated)
    _normalize_working_hours(updated)
    previous = existing["updated_at"]
    updated["updated_at"] = now if now > previous else previous + timedelta(microseconds=1)
    return updated  # type: ignore[return-value]


def _localize_target(entity: Dict[str, Any]) -> None:
    target = entity.get("target_date")
    if isinstance(target, datetime) and target.tzinfo is None:
        zone = ZoneInfo(entity.get("timezone") or "UTC")
        entity["target_date"] = target.replace(tzinfo=zone).astimezone(timezone.utc)


def sort_newest_first(items: List[CountdownEntity]) -> List[CountdownEntity]:
    return sorted(items, key=lambda c: c["created_at"], reverse=True)


class InMemoryCountdownStore:
    """
    Thread-safe in-memory store suitable for testing and default runtime.

    Each instance owns its records, so several stores can coexist.
    """

    backend_name = "memory"

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._lock = RLock()
        self._items: dict[str, CountdownEntity] = {}
        self._clock: Clock = clock or MonotonicClock()

    def create(self, data: CountdownCreate) -> str:
        with self._lock:
            countdown_id = new_id()
            while countdown_id in self._items:
                countdown_id = new_id()
            self._items[countdown_id] = build_entity(data.to_fields(), countdown_id, self._clock())
        logger.debug("Stored countdown %s in memory", countdown_id)
        return countdown_id

    def get(self, countdown_id: str) -> Optional[CountdownEntity]:
        with self._lock:
            item = self._items.get(countdown_id)
            return None if item is None else copy.deepcopy(item)

    def update(self, countdown_id: str, data: CountdownUpdate) -> bool:
        with self._lock:
            existing = self._items.get(countdown_id)
            if existing is None:
                return False
            self._items[countdown_id] = apply_update(existing, data.changes(), self._clock())
            return True

    def delete(self, countdown_id: str) -> None:
        with self._lock:
            self._items.pop(countdown_id, None)

    def list_all(self) -> List[CountdownEntity]:
        with self._lock:
            # Return copies to avoid external mutation
            return [copy.deepcopy(c) for c in sort_newest_first(list(self._items.values()))]


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_store() -> CountdownStore:
    """
    Return the process-wide store selected by settings.
    - memory: InMemoryCountdownStore
    - sqlite: SQLiteCountdownStore
    - json: JsonFileCountdownStore
    """
    settings = get_settings()
    logger.info("Using '%s' countdown store", settings.persistence_backend)
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteCountdownStore

        return SQLiteCountdownStore(settings.sqlite_db_path)
    if settings.persistence_backend == "json":
        from .json_store import JsonFileCountdownStore

        return JsonFileCountdownStore(
            settings.json_store_path,
            max_bytes=settings.json_store_max_bytes or None,
        )
    return InMemoryCountdownStore()
