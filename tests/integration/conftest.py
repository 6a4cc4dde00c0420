"""Shared fixtures for integration tests.

These tests exercise the real service end-to-end through the app lifespan:
    settings → logging → store wiring → demo seed → routes → reports

No mocks on internal components. PostgreSQL and Redis are left
unconfigured so the in-process stores and lock are used.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from clinicflow.api.app import create_app
from clinicflow.models import Patient

_WALK_IN_ID = 9001


# ── Deterministic environment (no external deps) ─────────────────


@pytest.fixture()
def integration_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINICFLOW_ENVIRONMENT", "test")
    monkeypatch.setenv("CLINICFLOW_PG_DSN", "")
    monkeypatch.setenv("CLINICFLOW_REDIS_URL", "")
    monkeypatch.setenv("CLINICFLOW_LOG_JSON", "false")
    monkeypatch.setenv("CLINICFLOW_SEED_DEMO_DATA", "true")


@pytest.fixture()
def walk_in_id() -> int:
    return _WALK_IN_ID


@pytest.fixture()
def app(integration_env: None) -> FastAPI:
    return create_app()


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Full ASGI client against the real FastAPI app, lifespan included.

    A walk-in patient with medical aid is registered after startup so the
    flow never collides with a seeded waiting check-in.
    """
    transport = ASGITransport(app=app)
    async with app.router.lifespan_context(app):
        app.state.patients.add(
            Patient(
                id=_WALK_IN_ID,
                first_name="Lerato",
                last_name="Dlamini",
                medical_aid="Medshield",
                medical_aid_number="MS7654321",
            )
        )
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
