from contextlib import asynccontextmanager
from uuid import uuid4

import pytest

from app.domain.errors import ValidationError
from app.domain.profiles import directory as directory_module
from app.domain.profiles.directory import PostgresProfileDirectory
from app.domain.profiles.models import Location, ProfileProjection, UserRole, Weekday


def test_weekday_parsing_is_lenient():
	assert Weekday.parse("Monday") is Weekday.MON
	assert Weekday.parse(" sat ") is Weekday.SAT
	with pytest.raises(ValidationError):
		Weekday.parse("someday")


def test_weekday_parsing_rejects_words_sharing_a_prefix():
	assert Weekday.parse("WEDNESDAY") is Weekday.WED
	for text in ("month", "sunshine", "thursdays", "tu"):
		with pytest.raises(ValidationError):
			Weekday.parse(text)


def test_build_normalises_tags():
	profile = ProfileProjection.build("u1", interests=[" Grief ", "grief", ""], available_days=["Mon", "monday"])
	assert profile.interests == frozenset({"grief"})
	assert profile.available_days == frozenset({Weekday.MON})


def test_build_requires_identity():
	with pytest.raises(ValidationError):
		ProfileProjection.build("  ")


def test_location_from_json_accepts_city_alias():
	location = Location.from_json({"city": "Accra", "lat": 5.6, "lon": -0.2})
	assert location.locality_key == "accra"
	assert location.latitude == pytest.approx(5.6)
	assert Location.from_json({}) is None
	assert Location.from_json({"country": "GH"}) is None


def test_missing_fields_names_unfilled_attributes():
	profile = ProfileProjection.build("u1", interests=["grief"])
	assert profile.missing_fields() == ["location", "experience", "available_days", "languages"]


@pytest.mark.asyncio
async def test_memory_directory_roles(directory, add_profile):
	add_profile("s1", UserRole.SPONSOR)
	add_profile("m1")
	assert [p.user_id for p in await directory.list_profiles(UserRole.SPONSOR)] == ["s1"]
	assert await directory.get_roles(["s1", "m1", "ghost"]) == {"s1": UserRole.SPONSOR, "m1": UserRole.MEMBER}
	assert await directory.get_role("ghost") is None


class _RecordingPool:
	def __init__(self, rows):
		self.rows = rows
		self.calls = []

	@asynccontextmanager
	async def acquire(self):
		yield self

	async def fetch(self, query, *args):
		self.calls.append(args)
		return self.rows

	async def fetchrow(self, query, *args):
		self.calls.append(args)
		return None


@pytest.mark.asyncio
async def test_postgres_roles_skip_identities_that_are_not_uuids(monkeypatch):
	admin_id = uuid4()
	pool = _RecordingPool([{"user_id": admin_id, "role": "admin"}])

	async def _get_pool():
		return pool

	monkeypatch.setattr(directory_module, "get_pool", _get_pool)
	lookup = PostgresProfileDirectory()

	roles = await lookup.get_roles(["abc", str(admin_id).upper()])

	assert roles == {str(admin_id).upper(): UserRole.ADMIN}
	assert pool.calls == [([str(admin_id)],)]
	assert await lookup.get_roles(["abc"]) == {}
	assert await lookup.get_profile("abc") is None
	assert len(pool.calls) == 1
