"""Lifecycle of sponsor matching requests.

A request starts Pending and moves once to Accepted or Declined. A member
holds at most one Pending request; creation and withdrawal for a member run
under that member's lock, and the repository's conditional writes decide
every race on the request itself. Announcements and audit events are emitted
after the state change and never undo it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID, uuid4

from app.domain.announcements.models import Announcement, AnnouncementKind, TargetKind
from app.domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.domain.matching import audit, policy
from app.domain.matching.models import Decision, MatchingRequest, MatchingStatus
from app.domain.matching.ranking import RankedCandidate, rank
from app.domain.matching.repo import MatchingRepository
from app.domain.matching.scoring import MatchScorer
from app.domain.profiles.directory import ProfileDirectory
from app.domain.profiles.models import ProfileProjection, UserRole
from app.infra.locks import KeyedLocks, LockTimeout
from app.settings import settings

logger = logging.getLogger(__name__)

_OUTCOME_KINDS = {
	MatchingStatus.ACCEPTED: AnnouncementKind.MATCHING_REQUEST_ACCEPTED,
	MatchingStatus.DECLINED: AnnouncementKind.MATCHING_REQUEST_DECLINED,
}
_OUTCOME_MESSAGES = {
	MatchingStatus.ACCEPTED: "Your sponsor request was accepted.",
	MatchingStatus.DECLINED: "Your sponsor request was declined.",
}


class Announcer(Protocol):
	async def publish(self, announcement: Announcement) -> UUID: ...


def _now() -> datetime:
	return datetime.now(timezone.utc)


class MatchingService:
	def __init__(
		self,
		repository: MatchingRepository,
		directory: ProfileDirectory,
		announcer: Announcer,
		*,
		scorer: Optional[MatchScorer] = None,
		locks: Optional[KeyedLocks] = None,
		enforce_limits: bool = True,
	) -> None:
		self.repo = repository
		self.directory = directory
		self.announcer = announcer
		self.scorer = scorer or MatchScorer.from_settings()
		self.locks = locks or KeyedLocks(timeout=settings.member_lock_timeout_seconds)
		self.enforce_limits = enforce_limits

	async def _member_profile(self, member_id: str) -> ProfileProjection:
		profile = await self.directory.get_profile(member_id)
		if profile is None:
			raise NotFoundError("member_not_found")
		return profile

	async def recommend(self, member_id: str, *, limit: Optional[int] = None) -> List[RankedCandidate]:
		"""Rank every sponsor for `member_id`, skipping those already asked."""
		member = await self._member_profile(member_id)
		pool = await self.directory.list_profiles(UserRole.SPONSOR)
		exclude = await self.repo.pending_sponsor_ids(member_id)
		return rank(
			member,
			pool,
			exclude=exclude,
			scorer=self.scorer,
			limit=limit if limit is not None else settings.match_recommendation_limit,
		)

	async def create(self, member_id: str, sponsor_id: Optional[str] = None) -> MatchingRequest:
		"""Open a Pending request against `sponsor_id`, or the best-ranked sponsor when omitted."""
		member_id = str(member_id)
		try:
			async with self.locks.hold(member_id):
				request = await self._create_locked(member_id, sponsor_id)
		except LockTimeout:
			audit.inc_request("create", "busy")
			raise ConflictError("request_in_progress") from None
		except Exception as exc:
			audit.inc_request("create", getattr(exc, "reason", "error"))
			raise
		audit.inc_request("create", "ok")
		if request.match_score is not None:
			audit.observe_score(request.match_score)
		await self._audit(
			"request_created",
			{"request_id": str(request.id), "member_id": member_id, "sponsor_id": request.sponsor_id},
		)
		await self._announce(
			AnnouncementKind.MATCHING_REQUEST_SUBMITTED,
			"You have a new sponsor request.",
			recipient_id=request.sponsor_id,
			request=request,
			payload={"member_id": member_id, "match_score": request.match_score},
		)
		return request

	async def _create_locked(self, member_id: str, sponsor_id: Optional[str]) -> MatchingRequest:
		if await self.repo.get_pending_for_member(member_id) is not None:
			raise ConflictError("pending_request_exists")
		member = await self._member_profile(member_id)
		if settings.match_require_complete_profile:
			policy.ensure_profile_complete(member)
		if sponsor_id:
			sponsor_id = str(sponsor_id)
			policy.guard_not_self(member_id, sponsor_id)
			role = await self.directory.get_role(sponsor_id)
			if role is None:
				raise NotFoundError("sponsor_not_found")
			if role is not UserRole.SPONSOR:
				raise ValidationError("not_a_sponsor")
			sponsor = await self.directory.get_profile(sponsor_id)
			if sponsor is None:
				raise NotFoundError("sponsor_not_found")
			score = self.scorer.score(member, sponsor)
		else:
			pool = await self.directory.list_profiles(UserRole.SPONSOR)
			best = rank(member, pool, scorer=self.scorer, limit=1)
			if not best:
				raise NotFoundError("no_sponsor_available")
			sponsor_id, score = best[0].user_id, best[0].score
		# Only requests that are about to be stored count against the daily quota.
		if self.enforce_limits:
			await policy.enforce_request_quota(member_id)
		request = MatchingRequest(
			id=uuid4(),
			member_id=member_id,
			sponsor_id=sponsor_id,
			status=MatchingStatus.PENDING,
			match_score=score,
			created_at=_now(),
		)
		return await self.repo.insert_pending(request)

	async def respond(self, request_id: UUID, responder_id: str, decision: Decision | bool) -> MatchingRequest:
		"""Record the assigned sponsor's decision; the first response wins."""
		if isinstance(decision, bool):
			decision = Decision.ACCEPT if decision else Decision.DECLINE
		request = await self.repo.get(request_id)
		if request is None:
			raise NotFoundError("request_not_found")
		if request.sponsor_id != str(responder_id):
			raise ForbiddenError("not_assigned_sponsor")
		if request.status.is_terminal:
			raise ConflictError("already_responded")
		updated = await self.repo.resolve(request_id, decision.outcome, _now())
		if updated is None:
			audit.inc_request("respond", "conflict")
			raise ConflictError("already_responded")
		audit.inc_request("respond", updated.status.value)
		await self._audit(
			"request_responded",
			{"request_id": str(updated.id), "sponsor_id": updated.sponsor_id, "status": updated.status.value},
		)
		await self._announce(
			_OUTCOME_KINDS[updated.status],
			_OUTCOME_MESSAGES[updated.status],
			recipient_id=updated.member_id,
			request=updated,
			payload={"sponsor_id": updated.sponsor_id, "status": updated.status.value},
		)
		return updated

	async def withdraw(self, request_id: UUID, member_id: str) -> None:
		"""Delete a Pending request owned by `member_id`."""
		member_id = str(member_id)
		request = await self.repo.get(request_id)
		if request is None:
			raise NotFoundError("request_not_found")
		if request.member_id != member_id:
			raise ForbiddenError("not_request_owner")
		try:
			async with self.locks.hold(member_id):
				if not await self.repo.delete_pending(request_id):
					raise ConflictError("not_pending")
		except LockTimeout:
			raise ConflictError("request_in_progress") from None
		audit.inc_request("withdraw", "ok")
		await self._audit("request_withdrawn", {"request_id": str(request_id), "member_id": member_id})

	async def list_requests(self, user_id: str, role: UserRole | str) -> List[MatchingRequest]:
		"""Sponsors see requests addressed to them; everyone else sees their own."""
		if getattr(role, "value", role) == UserRole.SPONSOR.value:
			return await self.repo.list_for_sponsor(str(user_id))
		return await self.repo.list_for_member(str(user_id))

	async def _announce(
		self,
		kind: AnnouncementKind,
		message: str,
		*,
		recipient_id: Optional[str],
		request: MatchingRequest,
		payload: Dict[str, Any],
	) -> None:
		try:
			announcement = Announcement.create(
				kind,
				message,
				recipient_id=recipient_id,
				target_kind=TargetKind.MATCHING_REQUEST,
				target_id=request.id,
				payload={"matching_request_id": str(request.id), **payload},
			)
			await self.announcer.publish(announcement)
		except Exception:
			logger.exception(
				"matching.announce_failed",
				extra={"request_id": str(request.id), "kind": kind.value},
			)

	async def _audit(self, event: str, fields: Dict[str, Optional[str]]) -> None:
		try:
			await audit.log_matching_event(event, fields)
		except Exception:
			logger.exception("matching.audit_failed", extra={"event": event})
