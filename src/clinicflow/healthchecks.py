"""Readiness probes for the configured backends.

Each probe runs its blocking client in a worker thread under a deadline and
reports ``False`` rather than raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import psycopg
import redis

__all__ = ["check_postgres", "check_redis", "probe_backends"]

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 2.0


def _sync_check_postgres(dsn: str) -> bool:
    with psycopg.connect(dsn, connect_timeout=int(PROBE_TIMEOUT_SECONDS)) as conn:
        conn.execute("SELECT 1")
    return True


def _sync_check_redis(url: str) -> bool:
    client = redis.Redis.from_url(
        url,
        socket_timeout=PROBE_TIMEOUT_SECONDS,
        socket_connect_timeout=PROBE_TIMEOUT_SECONDS,
    )
    try:
        return bool(client.ping())
    finally:
        client.close()


async def _probe(backend: str, check: Callable[[str], bool], target: str) -> bool:
    if not target:
        return False
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(check, target), timeout=PROBE_TIMEOUT_SECONDS * 2
        )
    except Exception:
        logger.warning("%s readiness probe failed", backend, exc_info=True)
        return False


async def check_postgres(dsn: str) -> bool:
    """``SELECT 1`` against PostgreSQL."""
    return await _probe("postgres", _sync_check_postgres, dsn)


async def check_redis(url: str) -> bool:
    """``PING`` the Redis instance."""
    return await _probe("redis", _sync_check_redis, url)


async def probe_backends(pg_dsn: str, redis_url: str) -> dict[str, bool]:
    """Probe only the backends that are configured.

    An unconfigured backend is reported as ready: the service runs on its
    in-process replacement.
    """
    targets = {"postgres": (check_postgres, pg_dsn), "redis": (check_redis, redis_url)}
    configured = [name for name, (_, target) in targets.items() if target]
    results = await asyncio.gather(*(targets[name][0](targets[name][1]) for name in configured))
    checks = dict.fromkeys(targets, True)
    checks.update(zip(configured, results, strict=True))
    return checks
