"""Profile and role lookups backed by the user-management tables."""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

import asyncpg

from app.domain.errors import ValidationError
from app.domain.profiles.models import Location, ProfileProjection, UserRole, Weekday
from app.infra.postgres import get_pool

logger = logging.getLogger(__name__)


class ProfileDirectory(Protocol):
	async def get_profile(self, user_id: str) -> Optional[ProfileProjection]: ...

	async def list_profiles(self, role: UserRole) -> List[ProfileProjection]: ...

	async def get_role(self, user_id: str) -> Optional[UserRole]: ...

	async def get_roles(self, user_ids: Sequence[str]) -> Dict[str, UserRole]: ...


class MemoryProfileDirectory:
	"""Dictionary-backed directory for the memory backend and tests."""

	def __init__(self) -> None:
		self._profiles: Dict[str, ProfileProjection] = {}
		self._roles: Dict[str, UserRole] = {}

	def put(self, profile: ProfileProjection, role: UserRole = UserRole.MEMBER) -> ProfileProjection:
		self._profiles[profile.user_id] = profile
		self._roles[profile.user_id] = role
		return profile

	def set_role(self, user_id: str, role: UserRole) -> None:
		self._roles[user_id] = role

	async def get_profile(self, user_id: str) -> Optional[ProfileProjection]:
		return self._profiles.get(str(user_id))

	async def list_profiles(self, role: UserRole) -> List[ProfileProjection]:
		return [profile for user_id, profile in self._profiles.items() if self._roles.get(user_id) == role]

	async def get_role(self, user_id: str) -> Optional[UserRole]:
		return self._roles.get(str(user_id))

	async def get_roles(self, user_ids: Sequence[str]) -> Dict[str, UserRole]:
		return {uid: self._roles[uid] for uid in user_ids if uid in self._roles}


_PROFILE_COLUMNS = "user_id, dob, location, interests, experience, available_days, languages"


def _parse_days(values: Optional[Sequence[str]], user_id: str) -> Tuple[Weekday, ...]:
	days: list[Weekday] = []
	for value in values or ():
		try:
			days.append(Weekday.parse(value))
		except ValidationError:
			logger.warning("profiles.unknown_weekday", extra={"user": user_id, "day": value})
	return tuple(days)


def _record_to_profile(record: asyncpg.Record) -> ProfileProjection:
	user_id = str(record["user_id"])
	location_raw = record["location"]
	if isinstance(location_raw, str):
		location_raw = json.loads(location_raw or "null")
	return ProfileProjection.build(
		user_id,
		birth_date=record["dob"],
		location=Location.from_json(location_raw),
		interests=record["interests"],
		experience=record["experience"],
		available_days=_parse_days(record["available_days"], user_id),
		languages=record["languages"],
	)


def _canonical_uuid(value: str) -> Optional[str]:
	"""Return the canonical text form of a UUID, or None when `value` is not one."""
	try:
		return str(UUID(str(value)))
	except ValueError:
		return None


class PostgresProfileDirectory:
	"""Reads projections straight from the `users` table on every call."""

	async def get_profile(self, user_id: str) -> Optional[ProfileProjection]:
		if _canonical_uuid(user_id) is None:
			return None
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"SELECT {_PROFILE_COLUMNS} FROM users WHERE user_id = $1",
				user_id,
			)
		return _record_to_profile(record) if record else None

	async def list_profiles(self, role: UserRole) -> List[ProfileProjection]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_PROFILE_COLUMNS} FROM users WHERE role = $1::user_role",
				role.value,
			)
		return [_record_to_profile(row) for row in rows]

	async def get_role(self, user_id: str) -> Optional[UserRole]:
		roles = await self.get_roles([user_id])
		return roles.get(str(user_id))

	async def get_roles(self, user_ids: Sequence[str]) -> Dict[str, UserRole]:
		# Identities that are not UUIDs cannot exist in `users`, and a single one
		# would make asyncpg reject the whole array parameter.
		wanted: Dict[str, str] = {}
		for uid in user_ids:
			canonical = _canonical_uuid(uid)
			if canonical is not None:
				wanted[canonical] = str(uid)
		if not wanted:
			return {}
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"SELECT user_id, role::text AS role FROM users WHERE user_id = ANY($1::uuid[])",
				list(wanted),
			)
		return {wanted[str(row["user_id"])]: UserRole(row["role"]) for row in rows}
