"""Profile projection types consumed by the matching engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, FrozenSet, Iterable, Mapping, Optional

from app.domain.errors import ValidationError


class UserRole(str, Enum):
	MEMBER = "member"
	SPONSOR = "sponsor"
	ADMIN = "admin"


class Weekday(str, Enum):
	MON = "mon"
	TUE = "tue"
	WED = "wed"
	THU = "thu"
	FRI = "fri"
	SAT = "sat"
	SUN = "sun"

	@classmethod
	def parse(cls, value: str) -> "Weekday":
		"""Accept three-letter abbreviations and full day names in any case."""
		day = _WEEKDAY_NAMES.get((value or "").strip().lower())
		if day is None:
			raise ValidationError("unknown_weekday")
		return day


_FULL_DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WEEKDAY_NAMES = {
	**{day.value: day for day in Weekday},
	**{name: Weekday(name[:3]) for name in _FULL_DAY_NAMES},
}


def normalise_tags(values: Optional[Iterable[str]]) -> FrozenSet[str]:
	if not values:
		return frozenset()
	return frozenset(norm for norm in ((value or "").strip().lower() for value in values) if norm)


@dataclass(slots=True, frozen=True)
class Location:
	locality: Optional[str] = None
	country: Optional[str] = None
	latitude: Optional[float] = None
	longitude: Optional[float] = None

	@property
	def locality_key(self) -> Optional[str]:
		text = (self.locality or "").strip().casefold()
		return text or None

	@classmethod
	def from_json(cls, payload: Optional[Mapping[str, Any]]) -> Optional["Location"]:
		if not payload:
			return None
		locality = payload.get("locality") or payload.get("city")
		lat = payload.get("latitude", payload.get("lat"))
		lon = payload.get("longitude", payload.get("lon"))
		location = cls(
			locality=str(locality).strip() if locality else None,
			country=str(payload["country"]).strip() if payload.get("country") else None,
			latitude=float(lat) if lat is not None else None,
			longitude=float(lon) if lon is not None else None,
		)
		if location.locality_key is None and location.latitude is None:
			return None
		return location


@dataclass(slots=True, frozen=True)
class ProfileProjection:
	"""Snapshot of the attributes used for compatibility scoring."""

	user_id: str
	birth_date: Optional[date] = None
	location: Optional[Location] = None
	interests: FrozenSet[str] = field(default_factory=frozenset)
	experience: FrozenSet[str] = field(default_factory=frozenset)
	available_days: FrozenSet[Weekday] = field(default_factory=frozenset)
	languages: FrozenSet[str] = field(default_factory=frozenset)

	@classmethod
	def build(
		cls,
		user_id: str,
		*,
		birth_date: Optional[date] = None,
		location: Optional[Location] = None,
		interests: Optional[Iterable[str]] = None,
		experience: Optional[Iterable[str]] = None,
		available_days: Optional[Iterable[str | Weekday]] = None,
		languages: Optional[Iterable[str]] = None,
	) -> "ProfileProjection":
		if not str(user_id or "").strip():
			raise ValidationError("missing_user_id")
		days = frozenset(
			day if isinstance(day, Weekday) else Weekday.parse(day) for day in (available_days or ())
		)
		return cls(
			user_id=str(user_id),
			birth_date=birth_date,
			location=location,
			interests=normalise_tags(interests),
			experience=normalise_tags(experience),
			available_days=days,
			languages=normalise_tags(languages),
		)

	def missing_fields(self) -> list[str]:
		"""Name the optional attributes this profile has not filled in."""
		missing = []
		if self.location is None or self.location.locality_key is None:
			missing.append("location")
		for name in ("interests", "experience", "available_days", "languages"):
			if not getattr(self, name):
				missing.append(name)
		return missing
