"""Guard checks for matching requests."""

from __future__ import annotations

from app.domain.errors import ValidationError
from app.domain.profiles.models import ProfileProjection
from app.infra import rate_limit
from app.settings import settings

DAY_SECONDS = 86_400


async def enforce_request_quota(member_id: str) -> None:
	allowed = await rate_limit.allow(
		"matching:create",
		member_id,
		limit=settings.match_requests_per_day,
		window_seconds=DAY_SECONDS,
	)
	if not allowed:
		raise rate_limit.RateLimitExceeded("per_day")


def guard_not_self(member_id: str, sponsor_id: str) -> None:
	if str(member_id) == str(sponsor_id):
		raise ValidationError("self_request")


def ensure_profile_complete(profile: ProfileProjection) -> None:
	if profile.missing_fields():
		raise ValidationError("profile_incomplete")
