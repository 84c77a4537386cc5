"""Card-scan attendance: resolve, store, match and accrue."""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Protocol

from timecredit_core.exceptions import TimeCreditNotFoundError, TimeCreditValidationError
from timecredit_core.models import AccessEvent, AccessEventType, AttendanceRecord

from .checkout import AccrualOutcome, CheckoutAccrualService

logger = logging.getLogger(__name__)


class CardDirectory(Protocol):
    async def resolve(self, card_id: str) -> Optional[str]:
        """User code the card is assigned to, or None."""


class InMemoryCardDirectory:
    def __init__(self, assignments: Optional[dict[str, str]] = None) -> None:
        self._cards: dict[str, str] = dict(assignments or {})

    def assign(self, card_id: str, user_code: str) -> None:
        self._cards[card_id] = user_code

    def unassign(self, card_id: str) -> None:
        self._cards.pop(card_id, None)

    async def resolve(self, card_id: str) -> Optional[str]:
        return self._cards.get(card_id)


class AccessLogStore:
    """Attendance event storage supporting SQLite (dev) and in-memory (tests)."""

    def __init__(self, dsn: str = "memory://"):
        self._dsn = dsn
        self._sqlite_conn: Optional[sqlite3.Connection] = None
        self._records: list[AttendanceRecord] = []
        self._lock = threading.Lock()

        if dsn.startswith("sqlite:///"):
            path = Path(dsn.removeprefix("sqlite:///"))
            path.parent.mkdir(parents=True, exist_ok=True)
            self._sqlite_conn = sqlite3.connect(path, check_same_thread=False)
            self._sqlite_conn.execute(
                """
                CREATE TABLE IF NOT EXISTS access_log (
                    record_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_code TEXT NOT NULL,
                    card_id TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    matched INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            self._sqlite_conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_access_user_time ON access_log(user_code, timestamp)"
            )
            self._sqlite_conn.commit()
        elif dsn != "memory://":
            raise TimeCreditValidationError(f"Unsupported access log DSN: {dsn}", field="access_log_dsn")

    def append(self, record: AttendanceRecord) -> AttendanceRecord:
        with self._lock:
            if self._sqlite_conn:
                cur = self._sqlite_conn.execute(
                    "INSERT INTO access_log (user_code, card_id, event_type, timestamp, matched)"
                    " VALUES (?, ?, ?, ?, ?)",
                    (
                        record.user_code,
                        record.card_id,
                        record.event_type.value,
                        record.timestamp,
                        int(record.matched),
                    ),
                )
                self._sqlite_conn.commit()
                record.record_id = cur.lastrowid
            else:
                record.record_id = len(self._records) + 1
                self._records.append(record)
        return record

    def latest_unmatched_entry(self, user_code: str, before: int) -> Optional[AttendanceRecord]:
        """Most recent unmatched ENTRY at or before `before`."""
        if self._sqlite_conn:
            row = self._sqlite_conn.execute(
                "SELECT record_id, user_code, card_id, event_type, timestamp, matched FROM access_log"
                " WHERE user_code = ? AND event_type = ? AND matched = 0 AND timestamp <= ?"
                " ORDER BY timestamp DESC, record_id DESC LIMIT 1",
                (user_code, AccessEventType.ENTRY.value, before),
            ).fetchone()
            return _row_to_record(row) if row else None

        candidates = [
            r for r in self._records
            if r.user_code == user_code
            and r.event_type is AccessEventType.ENTRY
            and not r.matched
            and r.timestamp <= before
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: (r.timestamp, r.record_id))

    def mark_matched(self, *record_ids: int) -> None:
        with self._lock:
            if self._sqlite_conn:
                self._sqlite_conn.executemany(
                    "UPDATE access_log SET matched = 1 WHERE record_id = ?",
                    [(rid,) for rid in record_ids],
                )
                self._sqlite_conn.commit()
                return
            for record in self._records:
                if record.record_id in record_ids:
                    record.matched = True

    def list_records(self, user_code: Optional[str] = None) -> list[AttendanceRecord]:
        if self._sqlite_conn:
            query = "SELECT record_id, user_code, card_id, event_type, timestamp, matched FROM access_log"
            params: tuple = ()
            if user_code is not None:
                query += " WHERE user_code = ?"
                params = (user_code,)
            rows = self._sqlite_conn.execute(query + " ORDER BY record_id", params).fetchall()
            return [_row_to_record(row) for row in rows]
        return [r for r in self._records if user_code is None or r.user_code == user_code]

    def close(self) -> None:
        if self._sqlite_conn:
            self._sqlite_conn.close()
            self._sqlite_conn = None


def _row_to_record(row) -> AttendanceRecord:
    record_id, user_code, card_id, event_type, timestamp, matched = row
    return AttendanceRecord(
        user_code=user_code,
        card_id=card_id,
        event_type=AccessEventType(event_type),
        timestamp=timestamp,
        matched=bool(matched),
        record_id=record_id,
    )


class AttendanceTracker:
    """Consumes card scans and credits completed shifts.

    Every scan is stored. An EXIT is paired with the employee's latest
    unmatched ENTRY; both are marked matched once the accrual has run.
    Matching and accrual for one employee run under that employee's lock,
    so a repeated EXIT cannot claim the same ENTRY.
    """

    def __init__(
        self,
        *,
        directory: CardDirectory,
        store: AccessLogStore,
        accrual: CheckoutAccrualService,
    ) -> None:
        self._directory = directory
        self._store = store
        self._accrual = accrual
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_code: str) -> asyncio.Lock:
        lock = self._locks.get(user_code)
        if lock is None:
            lock = self._locks[user_code] = asyncio.Lock()
        return lock

    async def handle_scan(self, event: AccessEvent) -> Optional[AccrualOutcome]:
        try:
            event_type = AccessEventType(event.event_type)
        except ValueError as exc:
            raise TimeCreditValidationError(
                f"Unknown event type: {event.event_type!r}", field="event_type",
            ) from exc

        user_code = await self._directory.resolve(event.card_id)
        if not user_code:
            logger.warning("Scan from unassigned card %s", event.card_id)
            raise TimeCreditNotFoundError("Card", event.card_id)

        record = self._store.append(
            AttendanceRecord(
                user_code=user_code,
                card_id=event.card_id,
                event_type=event_type,
                timestamp=event.timestamp,
            )
        )
        if event_type is AccessEventType.ENTRY:
            logger.debug("Entry for %s at %d", user_code, event.timestamp)
            return None

        async with self._lock_for(user_code):
            entry = self._store.latest_unmatched_entry(user_code, before=event.timestamp)
            if entry is None:
                logger.warning("Exit for %s at %d has no matching entry", user_code, event.timestamp)
                return None

            outcome = await self._accrual.accrue(user_code, entry.timestamp, event.timestamp)
            self._store.mark_matched(entry.record_id, record.record_id)
        return outcome
