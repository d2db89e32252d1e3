"""Event CRUD endpoints for the scheduler client.

Provides ``router`` with the four REST verbs the client's data processor
issues against ``/events``:

- ``GET /events?from=&to=`` — list events, optionally restricted to a window
- ``POST /events`` — create an event
- ``PUT /events/{event_id}`` — update an event
- ``DELETE /events/{event_id}`` — delete an event

Responses keep the client's wire format: a bare JSON array for reads and an
``{"action": ..., "tid": ...}`` object for writes.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from eventstore.api.deps import get_event_store
from eventstore.api.models.events import (
    ActionResponse,
    EventPayload,
    EventRecord,
    WindowQuery,
)
from eventstore.events import EventStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


async def _read_event_payload(request: Request) -> EventPayload:
    """Decode a form-encoded or JSON request body into an ``EventPayload``."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            raw = await request.json()
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed JSON body: {exc.msg}") from exc
    else:
        form = await request.form()
        raw = {key: value for key, value in form.items() if isinstance(value, str)}

    try:
        return EventPayload.model_validate(raw)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


def _window_query(
    start: str | None = Query(default=None, alias="from"),
    end: str | None = Query(default=None, alias="to"),
) -> WindowQuery:
    try:
        return WindowQuery.model_validate({"start": start, "end": end})
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


# ---------------------------------------------------------------------------
# GET /events — list events
# ---------------------------------------------------------------------------


@router.get("", response_model=list[EventRecord])
async def list_events(
    window: WindowQuery = Depends(_window_query),
    store: EventStore = Depends(get_event_store),
) -> list[EventRecord]:
    """Return all events, or only those overlapping ``[from, to)`` when both are given."""
    rows = await store.list(window.to_window())
    return [EventRecord.model_validate(row) for row in rows]


# ---------------------------------------------------------------------------
# POST /events — create event
# ---------------------------------------------------------------------------


@router.post("", response_model=ActionResponse, response_model_exclude_none=True)
async def create_event(
    payload: EventPayload = Depends(_read_event_payload),
    store: EventStore = Depends(get_event_store),
) -> ActionResponse:
    """Create an event and report the generated id as ``tid``."""
    result = await store.insert(payload.to_event_data())
    return ActionResponse.model_validate(result.as_dict())


# ---------------------------------------------------------------------------
# PUT /events/{event_id} — update event
# ---------------------------------------------------------------------------


@router.put("/{event_id}", response_model=ActionResponse, response_model_exclude_none=True)
async def update_event(
    event_id: int,
    payload: EventPayload = Depends(_read_event_payload),
    store: EventStore = Depends(get_event_store),
) -> ActionResponse:
    """Update an event; editing a series master drops its modified occurrences."""
    result = await store.update(event_id, payload.to_event_data())
    return ActionResponse.model_validate(result.as_dict())


# ---------------------------------------------------------------------------
# DELETE /events/{event_id} — delete event
# ---------------------------------------------------------------------------


@router.delete("/{event_id}", response_model=ActionResponse, response_model_exclude_none=True)
async def delete_event(
    event_id: int,
    store: EventStore = Depends(get_event_store),
) -> ActionResponse:
    """Delete an event; an occurrence of a series is kept as an excluded date."""
    result = await store.delete(event_id)
    return ActionResponse.model_validate(result.as_dict())
