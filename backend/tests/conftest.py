import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.container import build_services
from app.domain.profiles.directory import MemoryProfileDirectory
from app.domain.profiles.models import Location, ProfileProjection, UserRole
from app.infra import postgres
from app.main import create_app
from app.settings import settings


class FakeTransport:
	"""In-memory transport recording pushed frames.

	`fail` makes every send raise; `delay` makes sends hang for that long.
	"""

	def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
		self.fail = fail
		self.delay = delay
		self.sent: List[Tuple[str, Dict[str, Any]]] = []
		self.closed = False

	async def send(self, event: str, data: Dict[str, Any]) -> None:
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.fail:
			raise ConnectionResetError("socket closed")
		self.sent.append((event, data))

	async def close(self) -> None:
		self.closed = True

	def events(self, name: str) -> List[Dict[str, Any]]:
		return [data for event, data in self.sent if event == name]


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings(monkeypatch):
	"""Pin the matching policy knobs so tests do not depend on the environment."""
	monkeypatch.setattr(settings, "environment", "dev")
	monkeypatch.setattr(settings, "match_require_complete_profile", False)
	monkeypatch.setattr(settings, "match_requests_per_day", 10)
	monkeypatch.setattr(settings, "match_recommendation_limit", 20)
	monkeypatch.setattr(settings, "obs_metrics_public", True)


@pytest.fixture
def directory() -> MemoryProfileDirectory:
	return MemoryProfileDirectory()


@pytest.fixture
def add_profile(directory):
	def _add(
		user_id: str,
		role: UserRole = UserRole.MEMBER,
		*,
		interests=(),
		experience=(),
		days=(),
		languages=(),
		city: Optional[str] = None,
		birth_date=None,
	) -> ProfileProjection:
		profile = ProfileProjection.build(
			user_id,
			birth_date=birth_date,
			location=Location(locality=city) if city else None,
			interests=interests,
			experience=experience,
			available_days=days,
			languages=languages,
		)
		return directory.put(profile, role)

	return _add


@pytest.fixture
def services(directory):
	return build_services(backend="memory", directory=directory)


@pytest.fixture
def transport_factory():
	return FakeTransport


@pytest_asyncio.fixture
async def api_client(services):
	app = create_app(services)
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
