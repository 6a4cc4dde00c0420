"""Check-in domain types.

``status`` and ``payment_method`` are closed enums; report breakdowns iterate
over them so every member is always present in the output.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

__all__ = [
    "AppointmentRecord",
    "AppointmentStatus",
    "CheckinRecord",
    "CheckinStatus",
    "IdType",
    "Patient",
    "PaymentMethod",
    "QueueEntry",
]


class PaymentMethod(StrEnum):
    MEDICAL_AID = "medical_aid"
    CASH = "cash"
    BOTH = "both"

    @property
    def requires_payment(self) -> bool:
        """Cash is collected at the desk, so an amount is mandatory."""
        return self in (PaymentMethod.CASH, PaymentMethod.BOTH)

    @property
    def involves_medical_aid(self) -> bool:
        return self in (PaymentMethod.MEDICAL_AID, PaymentMethod.BOTH)


class CheckinStatus(StrEnum):
    WAITING = "waiting"
    ATTENDED = "attended"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not CheckinStatus.WAITING


class AppointmentStatus(StrEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_missed(self) -> bool:
        return self in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class IdType(StrEnum):
    SA_ID = "sa_id"
    PASSPORT = "passport"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Patient:
    """Patient as seen through the directory collaborator (not owned here)."""

    id: int
    first_name: str
    last_name: str
    phone: str | None = None
    email: str | None = None
    id_type: IdType | None = None
    sa_id_number: str | None = None
    passport_number: str | None = None
    medical_aid: str | None = None
    medical_aid_number: str | None = None
    active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def id_value(self) -> str | None:
        if self.id_type is IdType.SA_ID:
            return self.sa_id_number
        return self.passport_number

    @property
    def has_medical_aid(self) -> bool:
        return bool(self.medical_aid) and bool(self.medical_aid_number)

    def display_summary(self) -> dict[str, Any]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "medical_aid": self.medical_aid,
            "medical_aid_number": self.medical_aid_number,
        }


@dataclass(frozen=True)
class CheckinRecord:
    """One arrival event. Replaced, never mutated in place."""

    id: int
    patient_id: int
    checkin_time: datetime
    payment_method: PaymentMethod
    status: CheckinStatus = CheckinStatus.WAITING
    amount: float | None = None
    notes: str | None = None
    attended_at: datetime | None = None
    waiting_time_minutes: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "checkin_time": self.checkin_time.isoformat(),
            "payment_method": self.payment_method.value,
            "status": self.status.value,
            "amount": self.amount,
            "notes": self.notes,
            "attended_at": _iso(self.attended_at),
            "waiting_time_minutes": self.waiting_time_minutes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class AppointmentRecord:
    id: int
    patient_id: int
    appointment_date: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


@dataclass(frozen=True)
class QueueEntry:
    """A waiting check-in joined with patient display fields."""

    checkin: CheckinRecord
    patient: Patient
    waiting_time_minutes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.checkin.id,
            "checkin_time": self.checkin.checkin_time.isoformat(),
            "payment_method": self.checkin.payment_method.value,
            "status": self.checkin.status.value,
            "amount": self.checkin.amount,
            "notes": self.checkin.notes,
            "patient_id": self.patient.id,
            "first_name": self.patient.first_name,
            "last_name": self.patient.last_name,
            "phone": self.patient.phone,
            "email": self.patient.email,
            "id_value": self.patient.id_value,
            "medical_aid": self.patient.medical_aid,
            "medical_aid_number": self.patient.medical_aid_number,
            "waiting_time_minutes": self.waiting_time_minutes,
        }
