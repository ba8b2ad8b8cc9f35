from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.exceptions import RequestValidationError

from ..models import CountdownEntity
from ..repositories import CountdownStore, get_store
from ..schemas import (
    CountdownCreate,
    CountdownList,
    CountdownOut,
    CountdownUpdate,
    TimeRemainingOut,
)
from ..time_engine import compute_remaining, format_time_remaining
from ..utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/countdowns",
    tags=["countdowns"],
)


def _get_store(store: CountdownStore = Depends(get_store)) -> CountdownStore:
    """
    Dependency wrapper for the store to keep signatures clean.
    """
    return store


def _require(store: CountdownStore, countdown_id: str) -> CountdownEntity:
    item = store.get(countdown_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Countdown not found")
    return item


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=CountdownOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Countdown",
    description="Create a countdown and return the stored record, including its shareable id.",
    responses={
        201: {"description": "Countdown created successfully"},
        422: {"description": "Validation error"},
        507: {"description": "Storage capacity exceeded"},
    },
)
def create_countdown(payload: CountdownCreate, store: CountdownStore = Depends(_get_store)) -> CountdownOut:
    """
    Create a new countdown.
    """
    countdown_id = store.create(payload)
    logger.info("Created countdown %s (%s)", countdown_id, payload.count_type)
    return CountdownOut(**_require(store, countdown_id))


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=CountdownList,
    summary="List Countdowns",
    description="List every countdown, newest first.",
)
def list_countdowns(store: CountdownStore = Depends(_get_store)) -> CountdownList:
    return CountdownList(countdowns=[CountdownOut(**c) for c in store.list_all()])


# PUBLIC_INTERFACE
@router.get(
    "/{countdown_id}",
    response_model=CountdownOut,
    summary="Get Countdown",
    description="Get a single countdown by its id.",
    responses={
        200: {"description": "Countdown found"},
        404: {"description": "Countdown not found"},
    },
)
def get_countdown(countdown_id: str, store: CountdownStore = Depends(_get_store)) -> CountdownOut:
    """
    Retrieve a single countdown by its id.
    """
    return CountdownOut(**_require(store, countdown_id))


# PUBLIC_INTERFACE
@router.put(
    "/{countdown_id}",
    response_model=CountdownOut,
    summary="Replace Countdown",
    description=(
        "Replace an existing countdown. Any fields omitted will be set to their default/null "
        "equivalent as per the schema."
    ),
    responses={
        200: {"description": "Countdown updated"},
        404: {"description": "Countdown not found"},
    },
)
def put_countdown(
    countdown_id: str, payload: CountdownCreate, store: CountdownStore = Depends(_get_store)
) -> CountdownOut:
    """
    Full update (replace) semantics implemented via the partial-update capable store by
    mapping CountdownCreate into CountdownUpdate fields.
    """
    update = CountdownUpdate(**payload.to_fields())
    if not store.update(countdown_id, update):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Countdown not found")
    return CountdownOut(**_require(store, countdown_id))


# PUBLIC_INTERFACE
@router.patch(
    "/{countdown_id}",
    response_model=CountdownOut,
    summary="Update Countdown",
    description="Partially update fields of a countdown.",
    responses={
        200: {"description": "Countdown updated"},
        404: {"description": "Countdown not found"},
    },
)
def patch_countdown(
    countdown_id: str, payload: CountdownUpdate, store: CountdownStore = Depends(_get_store)
) -> CountdownOut:
    """
    Partial update of a countdown. A targetDate without an offset is read in
    the timezone sent alongside it, or else in the countdown's stored timezone.
    """
    existing = _require(store, countdown_id)
    try:
        payload.resolve_target(existing["timezone"])
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "value_error", "loc": ("body", "targetDate"), "msg": str(e), "input": None}]
        ) from e
    if not store.update(countdown_id, payload):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Countdown not found")
    return CountdownOut(**_require(store, countdown_id))


# PUBLIC_INTERFACE
@router.delete(
    "/{countdown_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Countdown",
    description="Delete a countdown by id. Deleting an unknown id also succeeds.",
    responses={204: {"description": "Countdown deleted (or already absent)"}},
)
def delete_countdown(countdown_id: str, store: CountdownStore = Depends(_get_store)) -> Response:
    store.delete(countdown_id)
    logger.info("Deleted countdown %s", countdown_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get(
    "/{countdown_id}/remaining",
    response_model=TimeRemainingOut,
    summary="Time Remaining",
    description=(
        "Time left until the countdown's target. Working-time countdowns count only minutes "
        "inside their daily window, with 8-hour days.\n\n"
        "Query parameters:\n"
        "- now: ISO8601 instant to evaluate at (defaults to the current time, naive values are UTC)"
    ),
    responses={
        200: {"description": "Remaining time computed"},
        404: {"description": "Countdown not found"},
    },
)
def get_remaining(
    countdown_id: str,
    now: Optional[datetime] = Query(None, description="Instant to evaluate at"),
    store: CountdownStore = Depends(_get_store),
) -> TimeRemainingOut:
    """
    Compute the remaining time for one countdown.
    """
    countdown = _require(store, countdown_id)
    remaining = compute_remaining(now or utc_now(), countdown)
    return TimeRemainingOut(**remaining.to_dict(), display=format_time_remaining(remaining))
