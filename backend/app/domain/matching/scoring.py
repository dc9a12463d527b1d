"""Pairwise compatibility scoring between two profile projections.

Every sub-score is normalised to [0, 1] and weighted by `DEFAULT_WEIGHTS`; the
weighted sum is scaled to [0, 100]. Missing data is neutral: a sparse profile
never crashes the calculator and never drags a component to a hard zero on
absence alone.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import AbstractSet, Callable, Dict, Mapping, Optional

from app.domain.profiles.models import ProfileProjection
from app.settings import settings

NEUTRAL = 0.5
_DAYS_PER_YEAR = 365.2425


class Component(str, Enum):
	INTERESTS = "interests"
	EXPERIENCE = "experience"
	AVAILABILITY = "availability"
	LANGUAGES = "languages"
	LOCATION = "location"
	AGE = "age"


DEFAULT_WEIGHTS: Mapping[Component, float] = MappingProxyType(
	{
		Component.INTERESTS: 0.30,
		Component.EXPERIENCE: 0.20,
		Component.AVAILABILITY: 0.20,
		Component.LANGUAGES: 0.10,
		Component.LOCATION: 0.10,
		Component.AGE: 0.10,
	}
)


def validate_weights(weights: Mapping[Component, float]) -> Mapping[Component, float]:
	missing = set(Component) - set(weights)
	if missing:
		raise ValueError(f"missing weights for: {sorted(c.value for c in missing)}")
	if any(value < 0 for value in weights.values()):
		raise ValueError("weights must be non-negative")
	total = math.fsum(weights.values())
	if not math.isclose(total, 1.0, abs_tol=1e-9):
		raise ValueError(f"weights must sum to 1.0, got {total}")
	return MappingProxyType(dict(weights))


def jaccard(a: AbstractSet, b: AbstractSet) -> float:
	"""Intersection over union; two empty sets are a neutral full match."""
	if not a and not b:
		return 1.0
	return len(a & b) / len(a | b)


def age_in_years(earlier: date, later: date) -> float:
	return abs((later - earlier).days) / _DAYS_PER_YEAR


@dataclass(frozen=True)
class MatchScorer:
	"""Weighted compatibility calculator; instances are immutable and reusable."""

	weights: Mapping[Component, float] = field(default_factory=lambda: DEFAULT_WEIGHTS)
	location_mismatch: float = 0.3
	age_max_gap_years: float = 30.0
	age_floor: float = 0.1

	def __post_init__(self) -> None:
		object.__setattr__(self, "weights", validate_weights(self.weights))
		if not 0.0 <= self.location_mismatch <= 1.0:
			raise ValueError("location_mismatch must be within [0, 1]")
		if not 0.0 <= self.age_floor <= 1.0:
			raise ValueError("age_floor must be within [0, 1]")
		if self.age_max_gap_years <= 0:
			raise ValueError("age_max_gap_years must be positive")

	@classmethod
	def from_settings(cls) -> "MatchScorer":
		return cls(
			location_mismatch=settings.match_location_mismatch_score,
			age_max_gap_years=settings.match_age_max_gap_years,
			age_floor=settings.match_age_floor,
		)

	def interests(self, a: ProfileProjection, b: ProfileProjection) -> float:
		return jaccard(a.interests, b.interests)

	def experience(self, a: ProfileProjection, b: ProfileProjection) -> float:
		return jaccard(a.experience, b.experience)

	def availability(self, a: ProfileProjection, b: ProfileProjection) -> float:
		return jaccard(a.available_days, b.available_days)

	def languages(self, a: ProfileProjection, b: ProfileProjection) -> float:
		if not a.languages or not b.languages:
			return NEUTRAL
		return jaccard(a.languages, b.languages)

	def location(self, a: ProfileProjection, b: ProfileProjection) -> float:
		left = a.location.locality_key if a.location else None
		right = b.location.locality_key if b.location else None
		if left is None or right is None:
			return NEUTRAL
		return 1.0 if left == right else self.location_mismatch

	def age(self, a: ProfileProjection, b: ProfileProjection) -> float:
		if a.birth_date is None or b.birth_date is None:
			return NEUTRAL
		gap = age_in_years(a.birth_date, b.birth_date)
		return max(self.age_floor, 1.0 - gap / self.age_max_gap_years)

	def components(self, a: ProfileProjection, b: ProfileProjection) -> Dict[Component, float]:
		calculators: Dict[Component, Callable[[ProfileProjection, ProfileProjection], float]] = {
			Component.INTERESTS: self.interests,
			Component.EXPERIENCE: self.experience,
			Component.AVAILABILITY: self.availability,
			Component.LANGUAGES: self.languages,
			Component.LOCATION: self.location,
			Component.AGE: self.age,
		}
		return {component: min(1.0, max(0.0, fn(a, b))) for component, fn in calculators.items()}

	def score(self, a: ProfileProjection, b: ProfileProjection) -> float:
		parts = self.components(a, b)
		total = math.fsum(self.weights[component] * value for component, value in parts.items())
		return min(100.0, max(0.0, total * 100.0))


_default_scorer: Optional[MatchScorer] = None


def score(a: ProfileProjection, b: ProfileProjection) -> float:
	"""Score two profiles with the settings-configured scorer."""
	global _default_scorer
	if _default_scorer is None:
		_default_scorer = MatchScorer.from_settings()
	return _default_scorer.score(a, b)
