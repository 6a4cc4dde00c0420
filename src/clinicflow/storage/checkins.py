"""Check-in record store: protocol plus in-memory and PostgreSQL implementations.

Records are never deleted: historical analytics depend on them.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from clinicflow.models import CheckinRecord, CheckinStatus, PaymentMethod

if TYPE_CHECKING:
    import psycopg

__all__ = [
    "CheckinStoreProtocol",
    "InMemoryCheckinStore",
    "PostgresCheckinStore",
    "WaitingCheckinExists",
]

Transition = Callable[[CheckinRecord], CheckinRecord]


class WaitingCheckinExists(Exception):
    """The patient already has a check-in in ``waiting`` status."""

    def __init__(self, patient_id: int) -> None:
        super().__init__(f"patient {patient_id} already waiting")
        self.patient_id = patient_id


class CheckinStoreProtocol(Protocol):
    """Minimal contract for the check-in record store."""

    def insert_waiting(
        self,
        patient_id: int,
        payment_method: PaymentMethod,
        checkin_time: datetime,
        amount: float | None = None,
        notes: str | None = None,
    ) -> CheckinRecord:
        """Insert a ``waiting`` record. Raises WaitingCheckinExists."""
        ...

    def get(self, checkin_id: int) -> CheckinRecord | None:
        ...

    def find_waiting(self, patient_id: int) -> CheckinRecord | None:
        """The patient's current waiting record, if any."""
        ...

    def update_if_status(
        self,
        checkin_id: int,
        expected: CheckinStatus,
        transition: Transition,
    ) -> CheckinRecord | None:
        """Apply *transition* only if the record still has status *expected*.

        Returns the updated record, or None when the record is missing or its
        status already moved on.
        """
        ...

    def list_waiting(self, limit: int) -> list[CheckinRecord]:
        """Waiting records, earliest ``checkin_time`` first."""
        ...

    def list_between(self, start: datetime, end: datetime) -> list[CheckinRecord]:
        """Records with ``start <= checkin_time < end``."""
        ...


# ── In-memory implementation (dev / tests) ──────────────


class InMemoryCheckinStore:
    """Dict-backed store; a single lock makes every write a compare-and-swap."""

    def __init__(self) -> None:
        self._records: dict[int, CheckinRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def insert_waiting(
        self,
        patient_id: int,
        payment_method: PaymentMethod,
        checkin_time: datetime,
        amount: float | None = None,
        notes: str | None = None,
    ) -> CheckinRecord:
        with self._lock:
            if self._waiting_for(patient_id) is not None:
                raise WaitingCheckinExists(patient_id)
            record = CheckinRecord(
                id=next(self._ids),
                patient_id=patient_id,
                checkin_time=checkin_time,
                payment_method=payment_method,
                status=CheckinStatus.WAITING,
                amount=amount,
                notes=notes,
                created_at=checkin_time,
                updated_at=checkin_time,
            )
            self._records[record.id] = record
            return record

    def load(self, records: list[CheckinRecord]) -> None:
        """Bulk-load historical records (ids are kept; the id sequence moves past them)."""
        with self._lock:
            for record in records:
                self._records[record.id] = record
            top = max(self._records, default=0)
            self._ids = itertools.count(top + 1)

    def get(self, checkin_id: int) -> CheckinRecord | None:
        return self._records.get(checkin_id)

    def find_waiting(self, patient_id: int) -> CheckinRecord | None:
        with self._lock:
            return self._waiting_for(patient_id)

    def _waiting_for(self, patient_id: int) -> CheckinRecord | None:
        for record in self._records.values():
            if record.patient_id == patient_id and record.status is CheckinStatus.WAITING:
                return record
        return None

    def update_if_status(
        self,
        checkin_id: int,
        expected: CheckinStatus,
        transition: Transition,
    ) -> CheckinRecord | None:
        with self._lock:
            current = self._records.get(checkin_id)
            if current is None or current.status is not expected:
                return None
            updated = transition(current)
            self._records[checkin_id] = updated
            return updated

    def list_waiting(self, limit: int) -> list[CheckinRecord]:
        with self._lock:
            waiting = [r for r in self._records.values() if r.status is CheckinStatus.WAITING]
        waiting.sort(key=lambda r: (r.checkin_time, r.id))
        return waiting[:limit]

    def list_between(self, start: datetime, end: datetime) -> list[CheckinRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        return sorted(
            (r for r in snapshot if start <= r.checkin_time < end),
            key=lambda r: (r.checkin_time, r.id),
        )


# ── PostgreSQL implementation ────────────────────────────

_COLUMNS = (
    "id, patient_id, checkin_time, payment_method, status, amount, notes, "
    "attended_at, waiting_time_minutes, created_at, updated_at"
)


def _row_to_record(row: tuple[Any, ...]) -> CheckinRecord:
    return CheckinRecord(
        id=row[0],
        patient_id=row[1],
        checkin_time=row[2],
        payment_method=PaymentMethod(row[3]),
        status=CheckinStatus(row[4]),
        amount=float(row[5]) if row[5] is not None else None,
        notes=row[6],
        attended_at=row[7],
        waiting_time_minutes=row[8],
        created_at=row[9],
        updated_at=row[10],
    )


class PostgresCheckinStore:
    """Check-in records in PostgreSQL.

    One connection per operation, so concurrent requests never share a
    transaction. The partial unique index on ``(patient_id) WHERE status =
    'waiting'`` backs the one-waiting-record rule; ``SELECT ... FOR UPDATE``
    backs the compare-and-swap transitions.
    """

    def __init__(self, connect: Callable[[], psycopg.Connection[Any]]) -> None:
        self._connect = connect

    def insert_waiting(
        self,
        patient_id: int,
        payment_method: PaymentMethod,
        checkin_time: datetime,
        amount: float | None = None,
        notes: str | None = None,
    ) -> CheckinRecord:
        import psycopg as _pg

        try:
            with self._connect() as conn, conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO checkins
                        (patient_id, checkin_time, payment_method, status,
                         amount, notes, created_at, updated_at)
                    VALUES (%s, %s, %s, 'waiting', %s, %s, %s, %s)
                    RETURNING {_COLUMNS}
                    """,  # noqa: S608
                    (
                        patient_id,
                        checkin_time,
                        payment_method.value,
                        amount,
                        notes,
                        checkin_time,
                        checkin_time,
                    ),
                )
                row = cur.fetchone()
        except _pg.errors.UniqueViolation as e:
            raise WaitingCheckinExists(patient_id) from e
        assert row is not None
        return _row_to_record(row)

    def get(self, checkin_id: int) -> CheckinRecord | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM checkins WHERE id = %s", (checkin_id,))  # noqa: S608

    def find_waiting(self, patient_id: int) -> CheckinRecord | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM checkins WHERE patient_id = %s AND status = 'waiting'",  # noqa: S608
            (patient_id,),
        )

    def update_if_status(
        self,
        checkin_id: int,
        expected: CheckinStatus,
        transition: Transition,
    ) -> CheckinRecord | None:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {_COLUMNS} FROM checkins WHERE id = %s FOR UPDATE",  # noqa: S608
                (checkin_id,),
            )
            row = cur.fetchone()
            if row is None:
                return None
            current = _row_to_record(row)
            if current.status is not expected:
                return None
            updated = transition(current)
            cur.execute(
                """
                UPDATE checkins
                   SET status = %s, attended_at = %s, waiting_time_minutes = %s,
                       notes = %s, updated_at = %s
                 WHERE id = %s AND status = %s
                """,
                (
                    updated.status.value,
                    updated.attended_at,
                    updated.waiting_time_minutes,
                    updated.notes,
                    updated.updated_at,
                    checkin_id,
                    expected.value,
                ),
            )
            if cur.rowcount != 1:
                return None
        return updated

    def list_waiting(self, limit: int) -> list[CheckinRecord]:
        return self._fetch_all(
            f"SELECT {_COLUMNS} FROM checkins WHERE status = 'waiting' "  # noqa: S608
            "ORDER BY checkin_time ASC, id ASC LIMIT %s",
            (limit,),
        )

    def list_between(self, start: datetime, end: datetime) -> list[CheckinRecord]:
        return self._fetch_all(
            f"SELECT {_COLUMNS} FROM checkins "  # noqa: S608
            "WHERE checkin_time >= %s AND checkin_time < %s ORDER BY checkin_time, id",
            (start, end),
        )

    def _fetch_one(self, sql: str, params: tuple[Any, ...]) -> CheckinRecord | None:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(sql, params)  # type: ignore[arg-type]
            row = cur.fetchone()
        return _row_to_record(row) if row is not None else None

    def _fetch_all(self, sql: str, params: tuple[Any, ...]) -> list[CheckinRecord]:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(sql, params)  # type: ignore[arg-type]
            rows = cur.fetchall()
        return [_row_to_record(r) for r in rows]
