import asyncio
from uuid import uuid4

import pytest

from app.domain.announcements.models import AnnouncementKind
from app.domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.domain.matching.models import Decision, MatchingStatus
from app.domain.profiles.models import UserRole
from app.infra.rate_limit import RateLimitExceeded
from app.settings import settings


@pytest.fixture
def seeded(add_profile):
	add_profile("member-1", interests={"anxiety"}, languages={"en"}, days={"Mon", "Wed"})
	add_profile("sponsor-1", UserRole.SPONSOR, interests={"anxiety", "grief"}, languages={"en", "es"}, days={"Mon"})
	add_profile("sponsor-2", UserRole.SPONSOR, interests={"cooking"}, languages={"fr"}, days={"Fri"})


async def _announcements_for(services, user_id):
	return await services.announcements.list_for_recipient(user_id, None)


@pytest.mark.asyncio
async def test_create_freezes_score_and_notifies_sponsor(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")

	assert request.status is MatchingStatus.PENDING
	assert request.match_score == pytest.approx(60.0)
	notes = await _announcements_for(services, "sponsor-1")
	assert [note.kind for note in notes] == [AnnouncementKind.MATCHING_REQUEST_SUBMITTED]
	assert notes[0].target_id == str(request.id)


@pytest.mark.asyncio
async def test_create_without_sponsor_picks_best_ranked(services, seeded):
	request = await services.matching.create("member-1")
	assert request.sponsor_id == "sponsor-1"


@pytest.mark.asyncio
async def test_create_without_any_sponsor_fails(services, add_profile):
	add_profile("lonely")
	with pytest.raises(NotFoundError) as exc:
		await services.matching.create("lonely")
	assert exc.value.reason == "no_sponsor_available"


@pytest.mark.asyncio
async def test_create_rejects_second_pending_request(services, seeded):
	await services.matching.create("member-1", "sponsor-1")
	with pytest.raises(ConflictError):
		await services.matching.create("member-1", "sponsor-2")


@pytest.mark.asyncio
async def test_concurrent_creates_have_exactly_one_winner(services, seeded):
	results = await asyncio.gather(
		services.matching.create("member-1", "sponsor-1"),
		services.matching.create("member-1", "sponsor-2"),
		return_exceptions=True,
	)
	winners = [r for r in results if not isinstance(r, Exception)]
	losers = [r for r in results if isinstance(r, Exception)]
	assert len(winners) == 1
	assert len(losers) == 1 and isinstance(losers[0], ConflictError)
	assert len(await services.requests.list_for_member("member-1")) == 1


@pytest.mark.asyncio
async def test_create_validates_target(services, seeded):
	with pytest.raises(ValidationError) as self_exc:
		await services.matching.create("member-1", "member-1")
	assert self_exc.value.reason == "self_request"
	with pytest.raises(NotFoundError):
		await services.matching.create("member-1", "ghost")
	with pytest.raises(NotFoundError):
		await services.matching.create("ghost", "sponsor-1")


@pytest.mark.asyncio
async def test_create_rejects_non_sponsor_target(services, seeded, add_profile):
	add_profile("member-2")
	with pytest.raises(ValidationError) as exc:
		await services.matching.create("member-1", "member-2")
	assert exc.value.reason == "not_a_sponsor"


@pytest.mark.asyncio
async def test_complete_profile_gate(services, add_profile, monkeypatch):
	monkeypatch.setattr(settings, "match_require_complete_profile", True)
	add_profile("sparse")
	add_profile("sponsor-1", UserRole.SPONSOR)
	with pytest.raises(ValidationError) as exc:
		await services.matching.create("sparse", "sponsor-1")
	assert exc.value.reason == "profile_incomplete"


@pytest.mark.asyncio
async def test_daily_quota_is_enforced(services, seeded, monkeypatch):
	monkeypatch.setattr(settings, "match_requests_per_day", 1)
	request = await services.matching.create("member-1", "sponsor-1")
	await services.matching.withdraw(request.id, "member-1")
	with pytest.raises(RateLimitExceeded):
		await services.matching.create("member-1", "sponsor-1")


@pytest.mark.asyncio
async def test_rejected_creates_do_not_use_daily_quota(services, seeded, monkeypatch):
	monkeypatch.setattr(settings, "match_requests_per_day", 2)
	first = await services.matching.create("member-1", "sponsor-1")
	with pytest.raises(ConflictError):
		await services.matching.create("member-1", "sponsor-2")
	await services.matching.withdraw(first.id, "member-1")
	with pytest.raises(ValidationError):
		await services.matching.create("member-1", "member-1")
	with pytest.raises(NotFoundError):
		await services.matching.create("member-1", "ghost")

	second = await services.matching.create("member-1", "sponsor-2")
	assert second.status is MatchingStatus.PENDING
	await services.matching.withdraw(second.id, "member-1")
	with pytest.raises(RateLimitExceeded):
		await services.matching.create("member-1", "sponsor-1")


@pytest.mark.asyncio
async def test_decline_notifies_member_once_and_allows_new_request(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")

	declined = await services.matching.respond(request.id, "sponsor-1", Decision.DECLINE)

	assert declined.status is MatchingStatus.DECLINED
	assert declined.responded_at is not None
	notes = await _announcements_for(services, "member-1")
	assert [note.kind for note in notes] == [AnnouncementKind.MATCHING_REQUEST_DECLINED]
	again = await services.matching.create("member-1", "sponsor-1")
	assert again.id != request.id
	assert again.status is MatchingStatus.PENDING


@pytest.mark.asyncio
async def test_accept_accepts_boolean_decision(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")
	accepted = await services.matching.respond(request.id, "sponsor-1", True)
	assert accepted.status is MatchingStatus.ACCEPTED
	notes = await _announcements_for(services, "member-1")
	assert notes[0].kind is AnnouncementKind.MATCHING_REQUEST_ACCEPTED


@pytest.mark.asyncio
async def test_terminal_request_cannot_be_answered_again(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")
	await services.matching.respond(request.id, "sponsor-1", Decision.ACCEPT)
	with pytest.raises(ConflictError):
		await services.matching.respond(request.id, "sponsor-1", Decision.DECLINE)
	stored = await services.requests.get(request.id)
	assert stored.status is MatchingStatus.ACCEPTED


@pytest.mark.asyncio
async def test_concurrent_responses_have_one_winner(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")
	results = await asyncio.gather(
		services.matching.respond(request.id, "sponsor-1", Decision.ACCEPT),
		services.matching.respond(request.id, "sponsor-1", Decision.DECLINE),
		return_exceptions=True,
	)
	assert sum(1 for r in results if isinstance(r, ConflictError)) == 1


@pytest.mark.asyncio
async def test_respond_errors(services, seeded):
	with pytest.raises(NotFoundError):
		await services.matching.respond(uuid4(), "sponsor-1", Decision.ACCEPT)
	request = await services.matching.create("member-1", "sponsor-1")
	with pytest.raises(ForbiddenError):
		await services.matching.respond(request.id, "sponsor-2", Decision.ACCEPT)


@pytest.mark.asyncio
async def test_withdraw_deletes_pending_only(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")
	with pytest.raises(ForbiddenError):
		await services.matching.withdraw(request.id, "someone-else")
	await services.matching.withdraw(request.id, "member-1")
	assert await services.requests.get(request.id) is None

	second = await services.matching.create("member-1", "sponsor-1")
	await services.matching.respond(second.id, "sponsor-1", Decision.ACCEPT)
	with pytest.raises(ConflictError):
		await services.matching.withdraw(second.id, "member-1")


@pytest.mark.asyncio
async def test_announce_failure_does_not_roll_back(services, seeded, monkeypatch):
	async def broken_publish(announcement):
		raise RuntimeError("store down")

	monkeypatch.setattr(services.matching.announcer, "publish", broken_publish)
	request = await services.matching.create("member-1", "sponsor-1")
	stored = await services.requests.get(request.id)
	assert stored is not None and stored.is_pending


@pytest.mark.asyncio
async def test_recommend_excludes_pending_sponsor(services, seeded):
	ranked = await services.matching.recommend("member-1")
	assert [item.user_id for item in ranked] == ["sponsor-1", "sponsor-2"]
	await services.matching.create("member-1", "sponsor-1")
	ranked = await services.matching.recommend("member-1")
	assert [item.user_id for item in ranked] == ["sponsor-2"]


@pytest.mark.asyncio
async def test_list_requests_by_role(services, seeded):
	request = await services.matching.create("member-1", "sponsor-1")
	assert [r.id for r in await services.matching.list_requests("member-1", UserRole.MEMBER)] == [request.id]
	assert [r.id for r in await services.matching.list_requests("sponsor-1", "sponsor")] == [request.id]
	assert await services.matching.list_requests("sponsor-2", "sponsor") == []


@pytest.mark.asyncio
async def test_create_writes_audit_event(services, seeded, fake_redis):
	await services.matching.create("member-1", "sponsor-1")
	entries = await fake_redis.xrange("x:matching.events")
	assert entries and entries[0][1]["event"] == "request_created"
