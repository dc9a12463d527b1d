"""Explicit wiring of the registry, repositories and services.

Everything here is built once per application and handed to its consumers;
nothing reaches for a module-level registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from app.domain.announcements.dispatcher import AnnouncementDispatcher
from app.domain.announcements.repo import MemoryAnnouncementRepository, PostgresAnnouncementRepository
from app.domain.matching.repo import MemoryMatchingRepository, PostgresMatchingRepository
from app.domain.matching.scoring import MatchScorer
from app.domain.matching.service import MatchingService
from app.domain.profiles.directory import MemoryProfileDirectory, PostgresProfileDirectory, ProfileDirectory
from app.infra.locks import KeyedLocks
from app.obs import metrics as obs_metrics
from app.realtime.heartbeat import HeartbeatMonitor
from app.realtime.registry import ConnectionRegistry
from app.realtime.sockets import NotificationsNamespace
from app.settings import settings

AnnouncementRepo = Union[MemoryAnnouncementRepository, PostgresAnnouncementRepository]
MatchingRepo = Union[MemoryMatchingRepository, PostgresMatchingRepository]


@dataclass(slots=True)
class Services:
	backend: str
	registry: ConnectionRegistry
	directory: ProfileDirectory
	announcements: AnnouncementRepo
	requests: MatchingRepo
	dispatcher: AnnouncementDispatcher
	matching: MatchingService
	monitor: HeartbeatMonitor
	namespace: NotificationsNamespace

	async def ensure_schema(self) -> None:
		for repo in (self.requests, self.announcements):
			ensure = getattr(repo, "ensure_schema", None)
			if ensure is not None:
				await ensure()


def build_services(
	*,
	backend: Optional[str] = None,
	directory: Optional[ProfileDirectory] = None,
	enforce_limits: bool = True,
) -> Services:
	backend = (backend or settings.storage_backend).lower()
	if backend == "memory":
		announcements: AnnouncementRepo = MemoryAnnouncementRepository()
		requests: MatchingRepo = MemoryMatchingRepository()
		directory = directory or MemoryProfileDirectory()
	elif backend == "postgres":
		announcements = PostgresAnnouncementRepository()
		requests = PostgresMatchingRepository()
		directory = directory or PostgresProfileDirectory()
	else:
		raise ValueError(f"unsupported storage backend: {backend}")

	registry = ConnectionRegistry(
		lock_timeout=settings.registry_lock_timeout_seconds,
		on_change=obs_metrics.registry_size,
	)
	dispatcher = AnnouncementDispatcher(
		announcements,
		registry,
		directory,
		write_timeout=settings.push_write_timeout_seconds,
		close_timeout=settings.transport_close_timeout_seconds,
	)
	matching = MatchingService(
		requests,
		directory,
		dispatcher,
		scorer=MatchScorer.from_settings(),
		locks=KeyedLocks(timeout=settings.member_lock_timeout_seconds),
		enforce_limits=enforce_limits,
	)
	monitor = HeartbeatMonitor(
		registry,
		interval=settings.heartbeat_interval_seconds,
		timeout=settings.heartbeat_timeout_seconds,
		close_timeout=settings.transport_close_timeout_seconds,
		write_timeout=settings.push_write_timeout_seconds,
	)
	return Services(
		backend=backend,
		registry=registry,
		directory=directory,
		announcements=announcements,
		requests=requests,
		dispatcher=dispatcher,
		matching=matching,
		monitor=monitor,
		namespace=NotificationsNamespace(registry),
	)
