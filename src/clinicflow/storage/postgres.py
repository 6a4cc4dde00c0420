"""PostgreSQL connection management and schema."""

from __future__ import annotations

import psycopg

__all__ = ["SCHEMA_SQL", "ensure_schema", "get_connection"]

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS patients (
    id                  BIGSERIAL PRIMARY KEY,
    first_name          TEXT NOT NULL,
    last_name           TEXT NOT NULL,
    phone               TEXT,
    email               TEXT,
    id_type             TEXT,
    sa_id_number        TEXT,
    passport_number     TEXT,
    medical_aid         TEXT,
    medical_aid_number  TEXT,
    active              BOOLEAN NOT NULL DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS checkins (
    id                   BIGSERIAL PRIMARY KEY,
    patient_id           BIGINT NOT NULL REFERENCES patients (id),
    checkin_time         TIMESTAMPTZ NOT NULL,
    payment_method       TEXT NOT NULL CHECK (payment_method IN ('medical_aid', 'cash', 'both')),
    status               TEXT NOT NULL DEFAULT 'waiting'
                         CHECK (status IN ('waiting', 'attended', 'cancelled')),
    amount               NUMERIC(8, 2) CHECK (amount >= 0),
    notes                TEXT,
    attended_at          TIMESTAMPTZ,
    waiting_time_minutes INTEGER,
    created_at           TIMESTAMPTZ NOT NULL,
    updated_at           TIMESTAMPTZ NOT NULL
);

-- At most one waiting check-in per patient
CREATE UNIQUE INDEX IF NOT EXISTS checkins_one_waiting_per_patient
    ON checkins (patient_id) WHERE status = 'waiting';
CREATE INDEX IF NOT EXISTS checkins_checkin_time ON checkins (checkin_time);

CREATE TABLE IF NOT EXISTS appointments (
    id                BIGSERIAL PRIMARY KEY,
    patient_id        BIGINT REFERENCES patients (id),
    appointment_date  TIMESTAMPTZ NOT NULL,
    status            TEXT NOT NULL DEFAULT 'scheduled'
);
CREATE INDEX IF NOT EXISTS appointments_date ON appointments (appointment_date);
"""


def get_connection(dsn: str, statement_timeout_ms: int = 5000) -> psycopg.Connection[tuple[object, ...]]:
    """Open a connection with a bounded statement timeout."""
    return psycopg.connect(
        dsn,
        autocommit=False,
        options=f"-c statement_timeout={statement_timeout_ms}",
    )


def ensure_schema(dsn: str) -> None:
    with get_connection(dsn) as conn:
        conn.execute(SCHEMA_SQL)  # type: ignore[arg-type]
