"""Contract tests: runtime API errors must conform to local error schema."""

from __future__ import annotations

from typing import Any

import jsonschema
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from clinicflow.api.app import create_app


@pytest.mark.anyio
async def test_422_validation_error_conforms_local_schema(error_schema: dict[str, Any]) -> None:
    app = create_app()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.post(
            "/checkin", content=b"[", headers={"content-type": "application/json"}
        )

    assert resp.status_code == 422
    jsonschema.validate(instance=resp.json(), schema=error_schema)


@pytest.mark.anyio
async def test_404_http_error_conforms_local_schema(error_schema: dict[str, Any]) -> None:
    app = create_app()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/does-not-exist")

    assert resp.status_code == 404
    jsonschema.validate(instance=resp.json(), schema=error_schema)


@pytest.mark.anyio
async def test_500_unhandled_error_conforms_local_schema(error_schema: dict[str, Any]) -> None:
    app = create_app()

    @app.get("/__contract_boom")
    async def boom() -> dict[str, str]:
        raise RuntimeError("boom")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/__contract_boom")

    assert resp.status_code == 500
    jsonschema.validate(instance=resp.json(), schema=error_schema)


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("method", "path", "kwargs"),
    [
        ("POST", "/checkin", {"json": {}}),
        ("POST", "/checkin", {"json": {"patient_id": 2, "payment_method": "cash", "amount": 2_000_000}}),
        ("POST", "/checkin", {"json": {"patient_id": 41, "payment_method": "cash", "amount": 5}}),
        ("PUT", "/queue/attend", {"json": {"checkin_id": 12}}),
        ("GET", "/queue", {"params": {"limit": "0"}}),
        ("GET", "/checkin-stats/monthly", {"params": {"start_date": "2024/01/01"}}),
        ("GET", "/checkin-stats/daily", {"params": {"start_date": "2020-01-01"}}),
        ("GET", "/stats/appointments", {"params": {"period": "hourly"}}),
    ],
)
async def test_domain_errors_conform_local_schema(
    wired_app: FastAPI,
    error_schema: dict[str, Any],
    method: str,
    path: str,
    kwargs: dict[str, Any],
) -> None:
    async with AsyncClient(transport=ASGITransport(app=wired_app), base_url="http://test") as client:
        resp = await client.request(method, path, **kwargs)

    assert 400 <= resp.status_code < 500
    jsonschema.validate(instance=resp.json(), schema=error_schema)


@pytest.mark.anyio
async def test_duplicate_checkin_conforms_local_schema(
    wired_app: FastAPI, error_schema: dict[str, Any]
) -> None:
    payload = {"patient_id": 2, "payment_method": "cash", "amount": 50}
    async with AsyncClient(transport=ASGITransport(app=wired_app), base_url="http://test") as client:
        await client.post("/checkin", json=payload)
        resp = await client.post("/checkin", json=payload)

    assert resp.status_code == 409
    jsonschema.validate(instance=resp.json(), schema=error_schema)
