"""Shared fixtures: a frozen clock, a small patient roster and in-memory stores."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from clinicflow.clock import Clock, fixed_clock
from clinicflow.lifecycle import CheckinLifecycle
from clinicflow.models import IdType, Patient
from clinicflow.queue_view import QueueView
from clinicflow.settings import Settings
from clinicflow.storage.appointments import InMemoryAppointmentStore
from clinicflow.storage.checkins import InMemoryCheckinStore
from clinicflow.storage.patients import InMemoryPatientDirectory

# Friday
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

INSURED_ID = 1
CASH_ONLY_ID = 2
INACTIVE_ID = 3
PARTIAL_AID_ID = 4


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def clock() -> Clock:
    return fixed_clock(NOW)


@pytest.fixture()
def roster() -> list[Patient]:
    return [
        Patient(
            id=INSURED_ID,
            first_name="Thandi",
            last_name="Nkosi",
            phone="+27 82 555 0101",
            email="thandi@example.org",
            id_type=IdType.SA_ID,
            sa_id_number="8001015009087",
            medical_aid="Discovery",
            medical_aid_number="MA1234567",
        ),
        Patient(
            id=CASH_ONLY_ID,
            first_name="Johan",
            last_name="Botha",
            id_type=IdType.PASSPORT,
            passport_number="P12345678",
        ),
        Patient(id=INACTIVE_ID, first_name="Archived", last_name="Patient", active=False),
        # Scheme name on file but no membership number
        Patient(id=PARTIAL_AID_ID, first_name="Naledi", last_name="Mokoena", medical_aid="Bonitas"),
    ]


@pytest.fixture()
def patients(roster: list[Patient]) -> InMemoryPatientDirectory:
    return InMemoryPatientDirectory(roster)


@pytest.fixture()
def checkin_store() -> InMemoryCheckinStore:
    return InMemoryCheckinStore()


@pytest.fixture()
def appointment_store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture()
def lifecycle(
    checkin_store: InMemoryCheckinStore, patients: InMemoryPatientDirectory, clock: Clock
) -> CheckinLifecycle:
    return CheckinLifecycle(checkin_store, patients, clock=clock)


@pytest.fixture()
def queue(
    checkin_store: InMemoryCheckinStore, patients: InMemoryPatientDirectory, clock: Clock
) -> QueueView:
    return QueueView(checkin_store, patients, clock=clock)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(environment="test", pg_dsn="", redis_url="", log_json=False)
