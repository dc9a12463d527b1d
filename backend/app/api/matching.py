"""REST API surface for sponsor matching."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import get_matching_service
from app.api.errors import map_domain_error
from app.domain.errors import DomainError
from app.domain.matching.schemas import (
	MatchingRequestSummary,
	SponsorRecommendation,
	SponsorRequestCreate,
	SponsorResponse,
)
from app.domain.matching.service import MatchingService
from app.infra.auth import AuthenticatedUser, get_current_user
from app.infra.rate_limit import RateLimitExceeded

router = APIRouter(prefix="/matching", tags=["matching"])


@router.get("/recommend-sponsors", response_model=List[SponsorRecommendation])
async def recommend_sponsors(
	limit: Optional[int] = Query(default=None, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	matching: MatchingService = Depends(get_matching_service),
) -> List[SponsorRecommendation]:
	try:
		ranked = await matching.recommend(auth_user.id, limit=limit)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	return [SponsorRecommendation.from_domain(candidate) for candidate in ranked]


@router.post("/request-sponsor", response_model=MatchingRequestSummary, status_code=status.HTTP_201_CREATED)
async def request_sponsor(
	payload: SponsorRequestCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	matching: MatchingService = Depends(get_matching_service),
) -> MatchingRequestSummary:
	try:
		request = await matching.create(auth_user.id, payload.sponsor_id)
	except (DomainError, RateLimitExceeded) as exc:
		raise map_domain_error(exc) from None
	return MatchingRequestSummary.from_domain(request)


@router.get("/status", response_model=List[MatchingRequestSummary])
async def matching_status(
	auth_user: AuthenticatedUser = Depends(get_current_user),
	matching: MatchingService = Depends(get_matching_service),
) -> List[MatchingRequestSummary]:
	requests = await matching.list_requests(auth_user.id, auth_user.role)
	return [MatchingRequestSummary.from_domain(request) for request in requests]


@router.patch("/respond", response_model=MatchingRequestSummary)
async def respond_to_request(
	payload: SponsorResponse,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	matching: MatchingService = Depends(get_matching_service),
) -> MatchingRequestSummary:
	try:
		request = await matching.respond(payload.matching_request_id, auth_user.id, payload.accept)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	return MatchingRequestSummary.from_domain(request)


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_request(
	request_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
	matching: MatchingService = Depends(get_matching_service),
) -> Response:
	try:
		await matching.withdraw(request_id, auth_user.id)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	return Response(status_code=status.HTTP_204_NO_CONTENT)
