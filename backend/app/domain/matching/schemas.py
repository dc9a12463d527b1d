"""Pydantic schemas for the matching API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.matching.models import MatchingRequest
from app.domain.matching.ranking import RankedCandidate


class SponsorRequestCreate(BaseModel):
	sponsor_id: Optional[str] = Field(default=None, description="Target sponsor; omit for auto-match")


class SponsorResponse(BaseModel):
	matching_request_id: UUID
	accept: bool


class MatchingRequestSummary(BaseModel):
	matching_request_id: UUID
	member_id: str
	sponsor_id: Optional[str] = None
	status: Literal["pending", "accepted", "declined"]
	match_score: Optional[float] = None
	created_at: datetime
	responded_at: Optional[datetime] = None

	@classmethod
	def from_domain(cls, request: MatchingRequest) -> "MatchingRequestSummary":
		return cls(
			matching_request_id=request.id,
			member_id=request.member_id,
			sponsor_id=request.sponsor_id,
			status=request.status.value,
			match_score=round(request.match_score, 2) if request.match_score is not None else None,
			created_at=request.created_at,
			responded_at=request.responded_at,
		)


class SponsorRecommendation(BaseModel):
	user_id: str
	score: float

	@classmethod
	def from_domain(cls, candidate: RankedCandidate) -> "SponsorRecommendation":
		return cls(user_id=candidate.user_id, score=round(candidate.score, 2))
