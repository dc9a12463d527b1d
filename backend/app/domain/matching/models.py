"""Domain models for sponsor matching requests."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID


class MatchingStatus(str, Enum):
	"""Pending is the only non-terminal state."""

	PENDING = "pending"
	ACCEPTED = "accepted"
	DECLINED = "declined"

	@property
	def is_terminal(self) -> bool:
		return self is not MatchingStatus.PENDING


class Decision(str, Enum):
	ACCEPT = "accept"
	DECLINE = "decline"

	@property
	def outcome(self) -> MatchingStatus:
		return MatchingStatus.ACCEPTED if self is Decision.ACCEPT else MatchingStatus.DECLINED


@dataclass(slots=True, frozen=True)
class MatchingRequest:
	id: UUID
	member_id: str
	sponsor_id: Optional[str]
	status: MatchingStatus
	match_score: Optional[float]
	created_at: datetime
	responded_at: Optional[datetime] = None

	@property
	def is_pending(self) -> bool:
		return self.status is MatchingStatus.PENDING

	def with_status(self, status: MatchingStatus, *, at: datetime) -> "MatchingRequest":
		return replace(self, status=status, responded_at=at)

	@classmethod
	def from_record(cls, record) -> "MatchingRequest":
		sponsor = record["sponsor_id"]
		score = record["match_score"]
		return cls(
			id=UUID(str(record["matching_request_id"])),
			member_id=str(record["member_id"]),
			sponsor_id=str(sponsor) if sponsor else None,
			status=MatchingStatus(record["status"]),
			match_score=float(score) if score is not None else None,
			created_at=record["created_at"],
			responded_at=record["responded_at"],
		)
