"""Check-in lifecycle: ``waiting --attend--> attended``, ``waiting --cancel--> cancelled``.

Creation is serialized per patient (keyed lock plus the store's own
insert-if-no-waiting guard). Every transition is a compare-and-swap on the
current status, so two concurrent ``attend`` calls cannot both win.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any

from clinicflow.clock import Clock, utc_now
from clinicflow.errors import NotFoundError, StateConflictError, ValidationError
from clinicflow.logging import bind_checkin_context, get_logger
from clinicflow.models import CheckinRecord, CheckinStatus, Patient, PaymentMethod
from clinicflow.rounding import round_half_up, round_money
from clinicflow.storage.checkins import WaitingCheckinExists
from clinicflow.storage.locks import InProcessKeyedLock, LockBusy

if TYPE_CHECKING:
    from clinicflow.storage.checkins import CheckinStoreProtocol
    from clinicflow.storage.locks import KeyedLock
    from clinicflow.storage.patients import PatientDirectoryProtocol

__all__ = [
    "CheckinLifecycle",
    "CheckinWithPatient",
    "parse_amount",
    "parse_positive_id",
    "waiting_minutes",
]

DEFAULT_MAX_AMOUNT = 999_999.99


@dataclass(frozen=True)
class CheckinWithPatient:
    """A freshly created check-in joined with patient display fields."""

    checkin: CheckinRecord
    patient: Patient

    def to_dict(self) -> dict[str, Any]:
        return {**self.checkin.to_dict(), "patient": self.patient.display_summary()}


# ── input parsing ────────────────────────────────────────────


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_positive_id(value: Any, *, missing_code: str, invalid_code: str, label: str) -> int:
    """Accept an int or a string of digits greater than zero."""
    if _is_missing(value):
        raise ValidationError(missing_code, f"{label} is required")
    parsed: int | None = None
    if isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    if parsed is None or parsed <= 0:
        raise ValidationError(invalid_code, f"{label} must be a positive integer")
    return parsed


def parse_payment_method(value: Any) -> PaymentMethod:
    if _is_missing(value):
        raise ValidationError("MISSING_PAYMENT_METHOD", "Payment method is required")
    try:
        return PaymentMethod(value)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(
            "INVALID_PAYMENT_METHOD", f"Payment method must be one of: {allowed}"
        ) from None


def parse_amount(value: Any, *, max_amount: float = DEFAULT_MAX_AMOUNT) -> float:
    """Finite, non-negative, within the ceiling; rounded half-up to cents."""
    if isinstance(value, bool):
        raise ValidationError("INVALID_AMOUNT", "Amount must be a valid non-negative number")
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "INVALID_AMOUNT", "Amount must be a valid non-negative number"
        ) from None
    if not math.isfinite(parsed) or parsed < 0:
        raise ValidationError("INVALID_AMOUNT", "Amount must be a valid non-negative number")
    if parsed > max_amount:
        raise ValidationError(
            "AMOUNT_TOO_LARGE",
            f"Amount cannot exceed {max_amount:,.2f}",
            details={"max_amount": max_amount},
        )
    return round_money(parsed)


def waiting_minutes(checkin_time: datetime, until: datetime) -> int:
    """Finalized wait: elapsed minutes rounded half-up."""
    return int(round_half_up((until - checkin_time).total_seconds() / 60))


def _append_note(existing: str | None, note: str | None) -> str | None:
    if note is None:
        return existing
    if existing:
        return f"{existing}\n{note}"
    return note


# ── lifecycle ────────────────────────────────────────────────


class CheckinLifecycle:
    """Creates check-ins and drives them to a terminal status."""

    def __init__(
        self,
        store: CheckinStoreProtocol,
        patients: PatientDirectoryProtocol,
        *,
        lock: KeyedLock | None = None,
        clock: Clock = utc_now,
        max_amount: float = DEFAULT_MAX_AMOUNT,
    ) -> None:
        self._store = store
        self._patients = patients
        self._lock = lock or InProcessKeyedLock()
        self._clock = clock
        self._max_amount = max_amount
        self._log = get_logger(component="checkin_lifecycle")

    def create(
        self,
        patient_id: Any,
        payment_method: Any,
        amount: Any = None,
        notes: str | None = None,
    ) -> CheckinWithPatient:
        """Check a patient in.

        Validation order matters for the error a caller sees: presence of
        both required fields, then their format, then the amount, then the
        patient lookup, then medical-aid details, then the duplicate guard.
        """
        if _is_missing(patient_id):
            raise ValidationError("MISSING_PATIENT_ID", "Patient ID is required")
        if _is_missing(payment_method):
            raise ValidationError("MISSING_PAYMENT_METHOD", "Payment method is required")
        pid = parse_positive_id(
            patient_id,
            missing_code="MISSING_PATIENT_ID",
            invalid_code="INVALID_PATIENT_ID",
            label="Patient ID",
        )
        method = parse_payment_method(payment_method)

        validated_amount: float | None = None
        if method.requires_payment:
            if _is_missing(amount):
                raise ValidationError(
                    "MISSING_AMOUNT",
                    f"Amount is required when payment method is '{method.value}'",
                )
            validated_amount = parse_amount(amount, max_amount=self._max_amount)
        elif not _is_missing(amount):
            validated_amount = parse_amount(amount, max_amount=self._max_amount)

        patient = self._patients.get_patient(pid)
        if patient is None or not patient.active:
            raise NotFoundError("PATIENT_NOT_FOUND", "Patient not found or inactive")

        if method.involves_medical_aid and not patient.has_medical_aid:
            raise ValidationError(
                "MISSING_MEDICAL_AID_INFO",
                "Patient must have medical aid and medical aid number for this payment method",
            )

        bind_checkin_context(patient_id=pid)
        try:
            with self._lock.hold(f"patient:{pid}"):
                if self._store.find_waiting(pid) is not None:
                    raise _duplicate()
                record = self._store.insert_waiting(
                    pid,
                    method,
                    self._clock(),
                    amount=validated_amount,
                    notes=notes or None,
                )
        except (LockBusy, WaitingCheckinExists):
            raise _duplicate() from None

        self._log.info(
            "checkin_created",
            checkin_id=record.id,
            patient_id=pid,
            payment_method=method.value,
            amount=validated_amount,
        )
        return CheckinWithPatient(checkin=record, patient=patient)

    def attend(self, checkin_id: Any, notes: str | None = None) -> CheckinRecord:
        """Mark a waiting check-in as attended and finalize its waiting time.

        Not idempotent: attending an attended or cancelled record fails with
        ``CHECKIN_NOT_FOUND``, as does the loser of a concurrent attend.
        """
        cid = parse_positive_id(
            checkin_id,
            missing_code="MISSING_CHECKIN_ID",
            invalid_code="INVALID_CHECKIN_ID",
            label="checkin_id",
        )
        bind_checkin_context(checkin_id=cid)
        now = self._clock()

        def to_attended(current: CheckinRecord) -> CheckinRecord:
            return replace(
                current,
                status=CheckinStatus.ATTENDED,
                attended_at=now,
                waiting_time_minutes=waiting_minutes(current.checkin_time, now),
                notes=_append_note(current.notes, notes),
                updated_at=now,
            )

        updated = self._store.update_if_status(cid, CheckinStatus.WAITING, to_attended)
        if updated is None:
            raise NotFoundError(
                "CHECKIN_NOT_FOUND", "Check-in not found or already attended/cancelled"
            )
        self._log.info(
            "checkin_attended",
            checkin_id=cid,
            patient_id=updated.patient_id,
            waiting_time_minutes=updated.waiting_time_minutes,
        )
        return updated

    def cancel(self, checkin_id: Any, notes: str | None = None) -> CheckinRecord:
        """Terminal cancel, for collaborators that own cancellation (no HTTP route)."""
        cid = parse_positive_id(
            checkin_id,
            missing_code="MISSING_CHECKIN_ID",
            invalid_code="INVALID_CHECKIN_ID",
            label="checkin_id",
        )
        now = self._clock()

        def to_cancelled(current: CheckinRecord) -> CheckinRecord:
            return replace(
                current,
                status=CheckinStatus.CANCELLED,
                notes=_append_note(current.notes, notes),
                updated_at=now,
            )

        updated = self._store.update_if_status(cid, CheckinStatus.WAITING, to_cancelled)
        if updated is None:
            raise NotFoundError(
                "CHECKIN_NOT_FOUND", "Check-in not found or already attended/cancelled"
            )
        self._log.info("checkin_cancelled", checkin_id=cid, patient_id=updated.patient_id)
        return updated


def _duplicate() -> StateConflictError:
    return StateConflictError("DUPLICATE_CHECKIN", "Patient already has an active check-in")
