"""Audit helpers for matching requests."""

from __future__ import annotations

from typing import Dict

from app.infra.redis import redis_client
from app.obs import metrics as obs_metrics

STREAM = "x:matching.events"


async def log_matching_event(event: str, fields: Dict[str, str]) -> None:
	payload = {"event": event, **{key: str(value) for key, value in fields.items() if value is not None}}
	await redis_client.xadd(STREAM, payload)


def inc_request(action: str, result: str) -> None:
	obs_metrics.match_request(action, result)


def observe_score(score: float) -> None:
	obs_metrics.match_score(score)
