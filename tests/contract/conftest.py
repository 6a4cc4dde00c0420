"""Shared fixtures for contract tests.

Contract tests validate that payloads produced by this service conform to
the schemas published under ``specs/contracts/``.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from clinicflow.api.app import build_services, create_app
from clinicflow.clock import fixed_clock
from clinicflow.models import Patient
from clinicflow.settings import Settings

# ── Schema resolution ────────────────────────────────────────────

_REPO_ROOT = Path(__file__).resolve().parents[2]
_LOCAL_SPECS = _REPO_ROOT / "specs" / "contracts"


def _load_schema(name: str) -> dict[str, Any]:
    candidate = _LOCAL_SPECS / name
    if not candidate.is_file():
        msg = f"Schema '{name}' not found in: {_LOCAL_SPECS}"
        raise FileNotFoundError(msg)
    return json.loads(candidate.read_text(encoding="utf-8"))  # type: ignore[no-any-return]


# ── Fixtures ─────────────────────────────────────────────────────


@pytest.fixture()
def error_schema() -> dict[str, Any]:
    """The error payload schema every non-2xx response must satisfy."""
    return _load_schema("error.schema.json")


@pytest.fixture()
def wired_app() -> FastAPI:
    """App with in-memory services and one cash-only patient."""
    app = create_app()
    settings = Settings(environment="test", pg_dsn="", redis_url="", log_json=False)
    build_services(app, settings, clock=fixed_clock(datetime(2024, 3, 15, 12, 0, tzinfo=UTC)))
    app.state.patients.add(Patient(id=2, first_name="Johan", last_name="Botha"))
    return app
