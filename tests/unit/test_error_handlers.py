"""Error payloads produced by the application-wide exception handlers."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from clinicflow.api.app import create_app
from clinicflow.errors import NotFoundError, StoreUnavailableError


@pytest.mark.anyio()
async def test_malformed_attend_body_is_422_with_details() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.put(
            "/queue/attend", content=b"{", headers={"content-type": "application/json"}
        )

    assert resp.status_code == 422
    body = resp.json()
    assert body["error_code"] == "INVALID_REQUEST"
    assert body["message"] == "Request validation failed"
    assert body["request_id"]
    assert isinstance(body.get("details"), list)
    assert resp.headers["x-correlation-id"] == body["request_id"]


@pytest.mark.anyio()
async def test_unknown_route_maps_to_invalid_request() -> None:
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/appointments/unknown")

    assert resp.status_code == 404
    body = resp.json()
    assert body["error_code"] == "INVALID_REQUEST"
    assert body["request_id"]


@pytest.mark.anyio()
async def test_domain_error_keeps_code_and_details() -> None:
    app = create_app()

    @app.get("/__missing")
    async def missing() -> dict[str, str]:
        raise NotFoundError("CHECKIN_NOT_FOUND", "gone", details={"checkin_id": 9})

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/__missing", headers={"x-correlation-id": "req-123"})

    assert resp.status_code == 404
    assert resp.json() == {
        "error_code": "CHECKIN_NOT_FOUND",
        "message": "gone",
        "request_id": "req-123",
        "details": {"checkin_id": 9},
    }


@pytest.mark.anyio()
async def test_store_unavailable_hides_cause() -> None:
    app = create_app()

    @app.get("/__store")
    async def store() -> dict[str, str]:
        raise StoreUnavailableError("list_between timed out after 5.0s")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/__store")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error_code"] == "INTERNAL_ERROR"
    assert "timed out" not in body["message"]


@pytest.mark.anyio()
async def test_crash_in_route_is_masked_as_internal_error() -> None:
    app = create_app()

    @app.get("/__crash")
    async def crash() -> dict[str, str]:
        raise RuntimeError("queue exploded")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/__crash")

    assert resp.status_code == 500
    body = resp.json()
    assert body["error_code"] == "INTERNAL_ERROR"
    assert body["message"] == "Internal server error"
    assert body["request_id"]
