"""Order sponsor candidates for a requesting member."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from app.domain.matching.scoring import MatchScorer
from app.domain.profiles.models import ProfileProjection


@dataclass(slots=True, frozen=True)
class RankedCandidate:
	user_id: str
	score: float


def rank(
	member: ProfileProjection,
	pool: Sequence[ProfileProjection],
	*,
	exclude: Iterable[str] = (),
	scorer: Optional[MatchScorer] = None,
	limit: Optional[int] = None,
) -> List[RankedCandidate]:
	"""Return candidates by descending score, ties broken by ascending id.

	`exclude` is supplied by the caller (sponsors already holding a pending
	request from this member); the member is always dropped from the pool.
	"""
	scorer = scorer or MatchScorer.from_settings()
	skipped = {str(user_id) for user_id in exclude}
	skipped.add(member.user_id)
	seen: set[str] = set()
	ranked: List[RankedCandidate] = []
	for candidate in pool:
		if candidate.user_id in skipped or candidate.user_id in seen:
			continue
		seen.add(candidate.user_id)
		ranked.append(RankedCandidate(user_id=candidate.user_id, score=scorer.score(member, candidate)))
	ranked.sort(key=lambda item: (-item.score, item.user_id))
	if limit is not None:
		return ranked[: max(0, limit)]
	return ranked
