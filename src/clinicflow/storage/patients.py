"""Patient directory: lookup only, patients are owned elsewhere."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Protocol

from clinicflow.models import IdType, Patient

if TYPE_CHECKING:
    import psycopg

__all__ = ["InMemoryPatientDirectory", "PatientDirectoryProtocol", "PostgresPatientDirectory"]


class PatientDirectoryProtocol(Protocol):
    def get_patient(self, patient_id: int) -> Patient | None:
        """Return the patient (active or not), or None if unknown."""
        ...

    def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        """Batch lookup; unknown ids are omitted."""
        ...


class InMemoryPatientDirectory:
    def __init__(self, patients: Iterable[Patient] = ()) -> None:
        self._patients: dict[int, Patient] = {p.id: p for p in patients}

    def add(self, patient: Patient) -> None:
        self._patients[patient.id] = patient

    def get_patient(self, patient_id: int) -> Patient | None:
        return self._patients.get(patient_id)

    def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        return {pid: self._patients[pid] for pid in set(patient_ids) if pid in self._patients}


_COLUMNS = (
    "id, first_name, last_name, phone, email, id_type, sa_id_number, "
    "passport_number, medical_aid, medical_aid_number, active"
)


def _row_to_patient(row: tuple[Any, ...]) -> Patient:
    return Patient(
        id=row[0],
        first_name=row[1],
        last_name=row[2],
        phone=row[3],
        email=row[4],
        id_type=IdType(row[5]) if row[5] else None,
        sa_id_number=row[6],
        passport_number=row[7],
        medical_aid=row[8],
        medical_aid_number=row[9],
        active=bool(row[10]),
    )


class PostgresPatientDirectory:
    def __init__(self, connect: Callable[[], psycopg.Connection[Any]]) -> None:
        self._connect = connect

    def get_patient(self, patient_id: int) -> Patient | None:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM patients WHERE id = %s", (patient_id,))  # noqa: S608
            row = cur.fetchone()
        return _row_to_patient(row) if row is not None else None

    def get_patients(self, patient_ids: Iterable[int]) -> dict[int, Patient]:
        ids = sorted(set(patient_ids))
        if not ids:
            return {}
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM patients WHERE id = ANY(%s)", (ids,))  # noqa: S608
            rows = cur.fetchall()
        return {row[0]: _row_to_patient(row) for row in rows}
