"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from clinicflow.settings import Settings


def test_defaults_run_in_memory(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CLINICFLOW_PG_DSN", raising=False)
    monkeypatch.delenv("CLINICFLOW_REDIS_URL", raising=False)
    settings = Settings()
    assert settings.pg_dsn == ""
    assert settings.redis_url == ""
    assert settings.max_amount == 999_999.99
    assert settings.trend_dead_band == 5.0


def test_env_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINICFLOW_QUEUE_MAX_LIMIT", "25")
    monkeypatch.setenv("CLINICFLOW_SEED_DEMO_DATA", "true")
    monkeypatch.setenv("QUEUE_MAX_LIMIT", "7")
    settings = Settings()
    assert settings.queue_max_limit == 25
    assert settings.seed_demo_data is True
