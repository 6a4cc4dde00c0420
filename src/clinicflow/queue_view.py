"""FIFO view of patients currently waiting."""

from __future__ import annotations

import math
from collections.abc import Iterator
from datetime import datetime
from typing import TYPE_CHECKING, Any

from clinicflow.clock import Clock, utc_now
from clinicflow.errors import ValidationError
from clinicflow.models import QueueEntry

if TYPE_CHECKING:
    from clinicflow.storage.checkins import CheckinStoreProtocol
    from clinicflow.storage.patients import PatientDirectoryProtocol

__all__ = ["QueueView", "live_waiting_minutes", "parse_limit"]

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def live_waiting_minutes(checkin_time: datetime, now: datetime) -> int:
    """In-progress wait: whole minutes elapsed (floor, unlike the finalized round)."""
    return math.floor((now - checkin_time).total_seconds() / 60)


def parse_limit(value: Any, *, default: int = DEFAULT_LIMIT, cap: int = MAX_LIMIT) -> int:
    """Positive integer, silently capped; absent → *default*."""
    if value is None or value == "":
        return default
    parsed: int | None = None
    if isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        parsed = int(value.strip())
    if parsed is None or parsed <= 0:
        raise ValidationError("INVALID_LIMIT", "Limit must be a positive integer")
    return min(parsed, cap)


class QueueView:
    def __init__(
        self,
        store: CheckinStoreProtocol,
        patients: PatientDirectoryProtocol,
        *,
        clock: Clock = utc_now,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self._store = store
        self._patients = patients
        self._clock = clock
        self._default_limit = default_limit
        self._max_limit = max_limit

    def list(self, limit: Any = None, *, now: datetime | None = None) -> Iterator[QueueEntry]:
        """Waiting patients, earliest arrival first.

        The limit is validated eagerly; entries are produced lazily from one
        snapshot taken at call time. Call again for fresh waiting times.
        Check-ins whose patient is unknown to the directory are skipped.
        """
        size = parse_limit(limit, default=self._default_limit, cap=self._max_limit)
        at = now or self._clock()
        waiting = self._store.list_waiting(size)
        patients = self._patients.get_patients(r.patient_id for r in waiting)
        return (
            QueueEntry(
                checkin=record,
                patient=patients[record.patient_id],
                waiting_time_minutes=live_waiting_minutes(record.checkin_time, at),
            )
            for record in waiting
            if record.patient_id in patients
        )
