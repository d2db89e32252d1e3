"""Event storage with recurring-series consistency rules.

A row in the events table plays exactly one of three roles, derived from the
``event_pid`` and ``rec_type`` columns:

- **plain**: ``event_pid = 0`` and no recurrence rule
- **master**: ``event_pid = 0`` and ``rec_type`` holds a recurrence rule
- **occurrence**: ``event_pid > 0``, a single date detached from the master
  whose id it references

Editing a master purges its detached occurrences before the master is
rewritten. Deleting an occurrence never removes its row; the row is kept with
``rec_type = "none"`` so the series remembers the excluded date. Deleting a
master removes its occurrences with it.

Each multi-step operation runs in a single transaction on one pooled
connection, so a failure part-way through leaves the table untouched.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any

import asyncpg

from eventstore.db import Database, quote_identifier

logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"
REC_TYPE_NONE = "none"
DISPLAY_DATE_FORMAT = "%Y-%m-%d %H:%M"

_COLUMNS = "id, start_date, end_date, text, event_pid, event_length, rec_type"


class EventAction(enum.StrEnum):
    """Action tags reported back to the scheduler client."""

    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"
    ERROR = "error"


class EventRole(enum.StrEnum):
    """Role a stored row plays relative to a recurring series."""

    PLAIN = "plain"
    MASTER = "master"
    OCCURRENCE = "occurrence"


class EventNotFoundError(LookupError):
    """Raised when an operation targets an event id that does not exist."""

    def __init__(self, event_id: int) -> None:
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


def has_recurrence_rule(rec_type: str | None) -> bool:
    """True when *rec_type* names a recurrence rule (non-empty and not ``"none"``)."""
    return bool(rec_type) and rec_type != REC_TYPE_NONE


def classify(event_pid: int | None, rec_type: str | None) -> EventRole:
    """Decode the row role from its two physical columns.

    A missing ``event_pid`` is treated exactly like ``0``; only a positive
    parent id makes a row an occurrence.
    """
    if event_pid is not None and event_pid > 0:
        return EventRole.OCCURRENCE
    if has_recurrence_rule(rec_type):
        return EventRole.MASTER
    return EventRole.PLAIN


def format_display_date(value: datetime) -> str:
    """Render a timestamp as ``YYYY-MM-DD HH:MM`` for list output."""
    return value.strftime(DISPLAY_DATE_FORMAT)


@dataclass(frozen=True)
class EventWindow:
    """Half-open ``[start, end)`` query window for ``EventStore.list``."""

    start: datetime | None = None
    end: datetime | None = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True)
class EventData:
    """Writable event fields, as supplied by a caller on insert or update.

    ``rec_type`` has no default: callers must pass it explicitly, and a
    ``None`` is forwarded to storage unchanged.
    """

    start_date: datetime
    end_date: datetime
    text: str | None
    rec_type: str | None
    event_pid: int | None = 0
    event_length: int | None = 0

    def storage_args(self) -> tuple[Any, ...]:
        """Column values in write order, with parent/length defaulted to 0."""
        return (
            self.start_date,
            self.end_date,
            self.text,
            self.event_pid or 0,
            self.event_length or 0,
            self.rec_type,
        )


@dataclass(frozen=True)
class StoredEvent:
    """A row read back from storage, decoded once into its role."""

    id: int
    start_date: datetime
    end_date: datetime
    text: str | None
    event_pid: int
    event_length: int
    rec_type: str | None

    @classmethod
    def from_record(cls, row: Any) -> StoredEvent:
        return cls(
            id=row["id"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            text=row["text"],
            event_pid=row["event_pid"] or 0,
            event_length=row["event_length"] or 0,
            rec_type=row["rec_type"],
        )

    @property
    def role(self) -> EventRole:
        return classify(self.event_pid, self.rec_type)

    def to_data(self) -> EventData:
        return EventData(
            start_date=self.start_date,
            end_date=self.end_date,
            text=self.text,
            rec_type=self.rec_type,
            event_pid=self.event_pid,
            event_length=self.event_length,
        )

    def to_display(self) -> dict[str, Any]:
        """Serialize for list output with dates rendered as display strings."""
        payload = asdict(self)
        payload["start_date"] = format_display_date(self.start_date)
        payload["end_date"] = format_display_date(self.end_date)
        return payload


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a mutating operation: the action tag and, on insert, the new id."""

    action: EventAction
    tid: int | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"action": str(self.action)}
        if self.tid is not None:
            payload["tid"] = self.tid
        return payload


def _affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg command status such as ``DELETE 3``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


class EventStore:
    """Reads and writes events, enforcing the recurring-series rules.

    Usage::

        store = EventStore(db)
        result = await store.insert(EventData(start, end, "Standup", rec_type="week_1___1"))
        await store.delete(result.tid)
    """

    def __init__(self, db: Database, table: str = EVENTS_TABLE) -> None:
        self._db = db
        self.table = table
        self._table_sql = quote_identifier(table)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self, window: EventWindow | None = None) -> list[dict[str, Any]]:
        """Return events, restricted to those overlapping *window* when it is bounded.

        A row overlaps ``[start, end)`` iff ``end_date >= start AND start_date < end``.
        """
        query = f"SELECT {_COLUMNS} FROM {self._table_sql}"
        args: list[Any] = []
        if window is not None and window.is_bounded:
            query += " WHERE end_date >= $1 AND start_date < $2"
            args.extend([window.start, window.end])
        query += " ORDER BY id"

        rows = await self._db.fetch(query, *args)
        return [StoredEvent.from_record(row).to_display() for row in rows]

    async def get(self, event_id: int) -> StoredEvent | None:
        """Fetch a single event by id, or None when it does not exist."""
        row = await self._db.fetchrow(
            f"SELECT {_COLUMNS} FROM {self._table_sql} WHERE id = $1 LIMIT 1",
            event_id,
        )
        return StoredEvent.from_record(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, data: EventData) -> ActionResult:
        """Create one row and report its generated id.

        Inserting a ``rec_type == "none"`` row is how the client excludes a
        single date from a series, so that case reports ``deleted``.
        """
        new_id = await self._db.fetchval(
            f"INSERT INTO {self._table_sql} "
            "(start_date, end_date, text, event_pid, event_length, rec_type) "
            "VALUES ($1, $2, $3, $4, $5, $6) RETURNING id",
            *data.storage_args(),
        )
        action = EventAction.DELETED if data.rec_type == REC_TYPE_NONE else EventAction.INSERTED
        logger.info("Inserted event %s (action=%s, event_pid=%s)", new_id, action, data.event_pid)
        return ActionResult(action=action, tid=new_id)

    async def update(self, event_id: int, data: EventData) -> ActionResult:
        """Rewrite an event; editing a series master first purges its occurrences."""
        async with self._db.transaction() as conn:
            await self._update(conn, event_id, data)
        logger.info("Updated event %s", event_id)
        return ActionResult(action=EventAction.UPDATED)

    async def delete(self, event_id: int) -> ActionResult:
        """Delete an event according to its role.

        Detached occurrences are turned into ``rec_type = "none"`` rows through
        ``update`` and report ``updated``; masters take their occurrences with
        them; plain rows are removed with no cascade.
        """
        async with self._db.transaction() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM {self._table_sql} WHERE id = $1 LIMIT 1 FOR UPDATE",
                event_id,
            )
            if row is None:
                raise EventNotFoundError(event_id)
            event = StoredEvent.from_record(row)

            if event.role is EventRole.OCCURRENCE:
                await self._update(conn, event_id, replace(event.to_data(), rec_type=REC_TYPE_NONE))
                logger.info(
                    "Excluded occurrence %s from series %s instead of deleting it",
                    event_id,
                    event.event_pid,
                )
                return ActionResult(action=EventAction.UPDATED)

            if event.role is EventRole.MASTER:
                await self._delete_occurrences(conn, event_id)

            await conn.execute(f"DELETE FROM {self._table_sql} WHERE id = $1", event_id)

        logger.info("Deleted event %s (role=%s)", event_id, event.role)
        return ActionResult(action=EventAction.DELETED)

    # ------------------------------------------------------------------
    # Statement helpers (run on the caller's transaction connection)
    # ------------------------------------------------------------------

    async def _update(self, conn: asyncpg.Connection, event_id: int, data: EventData) -> None:
        # the cascade must run before the row update, while event_pid = id
        # still matches the series' old children
        if has_recurrence_rule(data.rec_type):
            await self._delete_occurrences(conn, event_id)

        status = await conn.execute(
            f"UPDATE {self._table_sql} SET "
            "start_date = $1, end_date = $2, text = $3, "
            "event_pid = $4, event_length = $5, rec_type = $6 "
            "WHERE id = $7",
            *data.storage_args(),
            event_id,
        )
        if _affected_rows(status) == 0:
            logger.debug("Update matched no rows for event %s", event_id)

    async def _delete_occurrences(self, conn: asyncpg.Connection, master_id: int) -> int:
        status = await conn.execute(
            f"DELETE FROM {self._table_sql} WHERE event_pid = $1",
            master_id,
        )
        removed = _affected_rows(status)
        if removed:
            logger.info("Removed %d detached occurrence(s) of series %s", removed, master_id)
        return removed
