"""Appointment history collaborator, read by no-show and volume analytics."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from clinicflow.models import AppointmentRecord, AppointmentStatus

if TYPE_CHECKING:
    import psycopg

__all__ = ["AppointmentStoreProtocol", "InMemoryAppointmentStore", "PostgresAppointmentStore"]


class AppointmentStoreProtocol(Protocol):
    def list_between(self, start: datetime, end: datetime) -> list[AppointmentRecord]:
        """Appointments with ``start <= appointment_date < end``."""
        ...


class InMemoryAppointmentStore:
    def __init__(self, appointments: Iterable[AppointmentRecord] = ()) -> None:
        self._appointments: list[AppointmentRecord] = list(appointments)

    def add(self, appointment: AppointmentRecord) -> None:
        self._appointments.append(appointment)

    def list_between(self, start: datetime, end: datetime) -> list[AppointmentRecord]:
        return sorted(
            (a for a in self._appointments if start <= a.appointment_date < end),
            key=lambda a: (a.appointment_date, a.id),
        )


class PostgresAppointmentStore:
    def __init__(self, connect: Callable[[], psycopg.Connection[Any]]) -> None:
        self._connect = connect

    def list_between(self, start: datetime, end: datetime) -> list[AppointmentRecord]:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(
                "SELECT id, patient_id, appointment_date, status FROM appointments "
                "WHERE appointment_date >= %s AND appointment_date < %s "
                "ORDER BY appointment_date, id",
                (start, end),
            )
            rows = cur.fetchall()
        return [
            AppointmentRecord(
                id=r[0],
                patient_id=r[1],
                appointment_date=r[2],
                status=AppointmentStatus(r[3]),
            )
            for r in rows
        ]
