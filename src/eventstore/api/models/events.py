"""Event-specific Pydantic models.

Request bodies arrive either form-encoded (as the scheduler client posts
them) or as JSON; both are validated through ``EventPayload``. Responses use
the scheduler client's wire shapes: a bare list of events for reads and an
``{"action": ..., "tid": ...}`` object for writes.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from eventstore.events import EventData, EventWindow

_UNIX_TIMESTAMP = re.compile(r"-?\d+(\.\d+)?")


def parse_timestamp(value: Any) -> Any:
    """Parse client timestamp strings; other inputs are left to pydantic.

    Accepts ISO 8601 as well as the ``YYYY-MM-DD HH:MM`` form the client
    sends. Blank strings count as missing; numeric strings are Unix timestamps.
    """
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.fromisoformat(text)
        except ValueError as exc:
            if _UNIX_TIMESTAMP.fullmatch(text):
                return text
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    return value


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC, matching the ``TIMESTAMP`` columns.

    Runs after pydantic coercion, so Unix timestamps (which pydantic decodes
    as aware UTC values) are normalized the same way as offset strings.
    """
    if value is not None and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


class EventPayload(BaseModel):
    """Request body for creating or updating an event.

    Unknown client bookkeeping fields (``id``, ``!nativeeditor_status``, ...)
    are ignored. ``rec_type`` is intentionally left optional here: a missing
    value is passed to storage as NULL and rejected there.
    """

    model_config = ConfigDict(extra="ignore")

    start_date: datetime
    end_date: datetime
    text: str | None = None
    rec_type: str | None = None
    event_pid: int | None = 0
    event_length: int | None = 0

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @field_validator("start_date", "end_date", mode="after")
    @classmethod
    def _naive_dates(cls, value: datetime) -> datetime:
        return as_naive_utc(value)

    @field_validator("event_pid", "event_length", mode="before")
    @classmethod
    def _blank_as_zero(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0
        return value

    def to_event_data(self) -> EventData:
        return EventData(
            start_date=self.start_date,
            end_date=self.end_date,
            text=self.text,
            rec_type=self.rec_type,
            event_pid=self.event_pid,
            event_length=self.event_length,
        )


class EventRecord(BaseModel):
    """A stored event as returned by the list endpoint."""

    id: int
    start_date: str
    end_date: str
    text: str | None = None
    event_pid: int = 0
    event_length: int = 0
    rec_type: str | None = None


class ActionResponse(BaseModel):
    """Result of a write, in the client protocol's ``action`` shape."""

    action: str
    tid: int | None = None
    message: str | None = None


class WindowQuery(BaseModel):
    """Optional ``from``/``to`` bounds for the list endpoint."""

    start: datetime | None = None
    end: datetime | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _parse_bounds(cls, value: Any) -> Any:
        return parse_timestamp(value)

    @field_validator("start", "end", mode="after")
    @classmethod
    def _naive_bounds(cls, value: datetime | None) -> datetime | None:
        return as_naive_utc(value)

    def to_window(self) -> EventWindow:
        return EventWindow(start=self.start, end=self.end)
