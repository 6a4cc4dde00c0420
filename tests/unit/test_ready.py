"""Tests for readiness endpoint with real dependency checks."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from clinicflow.api.app import create_app
from clinicflow.settings import Settings


def _app(settings: Settings) -> object:
    a = create_app()
    a.state.settings = settings
    return a


async def _get_ready(app: object) -> tuple[int, dict[str, object]]:
    async with AsyncClient(
        transport=ASGITransport(app=app),  # type: ignore[arg-type]
        base_url="http://test",
    ) as client:
        resp = await client.get("/ready")
    return resp.status_code, resp.json()


@pytest.fixture()
def app() -> object:
    return _app(Settings(pg_dsn="postgresql://test", redis_url="redis://test"))


# ── in-memory mode ──────────────────────────────────────


@pytest.mark.anyio()
async def test_ready_without_backends_skips_probes() -> None:
    app = _app(Settings(pg_dsn="", redis_url=""))
    with (
        patch("clinicflow.healthchecks.check_postgres", new_callable=AsyncMock) as pg,
        patch("clinicflow.healthchecks.check_redis", new_callable=AsyncMock) as rd,
    ):
        status, body = await _get_ready(app)

    assert status == 200
    assert body == {"ready": True, "checks": {"postgres": True, "redis": True}}
    pg.assert_not_awaited()
    rd.assert_not_awaited()


# ── all healthy ─────────────────────────────────────────


@pytest.mark.anyio()
async def test_ready_all_ok(app: object) -> None:
    with (
        patch("clinicflow.healthchecks.check_postgres", new_callable=AsyncMock, return_value=True),
        patch("clinicflow.healthchecks.check_redis", new_callable=AsyncMock, return_value=True),
    ):
        status, body = await _get_ready(app)

    assert status == 200
    assert body["ready"] is True


# ── postgres down ───────────────────────────────────────


@pytest.mark.anyio()
async def test_ready_postgres_down(app: object) -> None:
    with (
        patch("clinicflow.healthchecks.check_postgres", new_callable=AsyncMock, return_value=False),
        patch("clinicflow.healthchecks.check_redis", new_callable=AsyncMock, return_value=True),
    ):
        status, body = await _get_ready(app)

    assert status == 503
    assert body["ready"] is False
    assert body["checks"] == {"postgres": False, "redis": True}


# ── redis down ──────────────────────────────────────────


@pytest.mark.anyio()
async def test_ready_redis_down(app: object) -> None:
    with (
        patch("clinicflow.healthchecks.check_postgres", new_callable=AsyncMock, return_value=True),
        patch("clinicflow.healthchecks.check_redis", new_callable=AsyncMock, return_value=False),
    ):
        status, body = await _get_ready(app)

    assert status == 503
    assert body["checks"]["redis"] is False


# ── probe internals ─────────────────────────────────────


@pytest.mark.anyio()
async def test_check_postgres_swallows_connection_errors() -> None:
    from clinicflow.healthchecks import check_postgres

    with patch("clinicflow.healthchecks._sync_check_postgres", side_effect=OSError("refused")):
        assert await check_postgres("postgresql://nowhere") is False


@pytest.mark.anyio()
async def test_check_redis_empty_url_is_not_ready() -> None:
    from clinicflow.healthchecks import check_redis

    assert await check_redis("") is False
