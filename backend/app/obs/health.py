"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Tuple

from app.infra import postgres
from app.infra.redis import redis_client
from app.settings import settings

LOGGER = logging.getLogger(__name__)


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
		return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}
	except Exception as exc:  # pragma: no cover - depends on runtime
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def _postgres_status(timeout: float = 0.3) -> Dict[str, Any]:
	start = perf_counter()
	try:
		pool = await postgres.get_pool()
		async with pool.acquire() as conn:
			await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)
		return {"ok": True, "latency_ms": round((perf_counter() - start) * 1000, 2)}
	except Exception as exc:  # pragma: no cover - depends on runtime
		LOGGER.warning("Postgres readiness query failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def liveness() -> Dict[str, str]:
	return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}


async def readiness(backend: str, connections: int) -> Tuple[int, Dict[str, Any]]:
	checks: Dict[str, Any] = {"redis": await _redis_status()}
	if backend == "postgres":
		checks["postgres"] = await _postgres_status()
	ok = all(check.get("ok") for check in checks.values())
	payload = {"status": "ok" if ok else "degraded", "checks": checks, "connections": connections}
	return (200 if ok else 503), payload
