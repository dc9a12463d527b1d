"""Durable-first announcement fan-out.

`publish` persists the announcement before anything else; the stored row is
the delivery guarantee. Pushing to live connections is a best-effort step:
each connection is written independently with its own timeout, failing
connections are evicted, and nothing from the push path reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, FrozenSet, List, Protocol, Sequence
from uuid import UUID

from app.domain.announcements.models import Announcement, Audience
from app.domain.announcements.repo import AnnouncementRepository
from app.domain.errors import DeliveryFailure
from app.domain.profiles.models import UserRole
from app.obs import metrics as obs_metrics
from app.realtime.frames import ANNOUNCEMENT_EVENT
from app.realtime.registry import Connection, ConnectionRegistry
from app.realtime.transport import close_quietly

logger = logging.getLogger(__name__)


class RoleLookup(Protocol):
	async def get_roles(self, user_ids: Sequence[str]) -> Dict[str, UserRole]: ...


class AnnouncementDispatcher:
	def __init__(
		self,
		repository: AnnouncementRepository,
		registry: ConnectionRegistry,
		roles: RoleLookup,
		*,
		write_timeout: float = 2.0,
		close_timeout: float = 2.0,
	) -> None:
		self.repo = repository
		self.registry = registry
		self.roles = roles
		self.write_timeout = write_timeout
		self.close_timeout = close_timeout

	async def publish(self, announcement: Announcement) -> UUID:
		"""Persist, then push to every resolved live connection.

		Persistence errors propagate; push errors never do.
		"""
		saved = await self.repo.insert(announcement)
		fanout = 0
		try:
			handles = await self.resolve_audience(saved)
			fanout = len(handles)
			await self.deliver(saved, handles)
		except Exception:
			logger.exception(
				"announcements.fanout_failed",
				extra={"announcement_id": str(saved.id), "kind": saved.kind.value},
			)
		obs_metrics.announcement_published(saved.kind.value, saved.audience.value, fanout)
		return saved.id

	async def resolve_audience(self, announcement: Announcement) -> FrozenSet[str]:
		audience = announcement.audience
		if audience is Audience.USER:
			return self.registry.connections_for(announcement.recipient_id or "")
		if audience is Audience.ROOM:
			room = announcement.room
			return self.registry.connections_in_room(room) if room else frozenset()
		if audience is Audience.GLOBAL:
			return self.registry.all_handles()
		# Role membership is looked up now, never cached on the connection.
		snapshot = self.registry.users_snapshot()
		if not snapshot:
			return frozenset()
		roles = await self._lookup_roles(list(snapshot))
		handles: set[str] = set()
		for user_id, user_handles in snapshot.items():
			if roles.get(user_id) == announcement.recipient_role:
				handles.update(user_handles)
		return frozenset(handles)

	async def _lookup_roles(self, user_ids: List[str]) -> Dict[str, UserRole]:
		"""Batch lookup, falling back to one lookup per user so a bad identity only drops itself."""
		try:
			return await self.roles.get_roles(user_ids)
		except Exception:
			logger.warning("announcements.role_lookup_failed", extra={"users": len(user_ids)}, exc_info=True)
		roles: Dict[str, UserRole] = {}
		for user_id in user_ids:
			try:
				roles.update(await self.roles.get_roles([user_id]))
			except Exception:
				logger.warning("announcements.role_lookup_skipped", extra={"user": user_id})
		return roles

	async def deliver(self, announcement: Announcement, handles: FrozenSet[str]) -> int:
		"""Push to each handle concurrently; returns the number of successful writes."""
		connections = self.registry.resolve(handles)
		if not connections:
			return 0
		envelope = announcement.to_envelope()
		results = await asyncio.gather(
			*(self._push(connection, envelope) for connection in connections),
			return_exceptions=True,
		)
		delivered = 0
		failed: List[Connection] = []
		for connection, result in zip(connections, results):
			if result is None:
				delivered += 1
				obs_metrics.announcement_delivery("ok")
				continue
			obs_metrics.announcement_delivery("failed")
			reason = result.reason if isinstance(result, DeliveryFailure) else type(result).__name__
			logger.warning(
				"announcements.delivery_failed",
				extra={
					"announcement_id": str(announcement.id),
					"handle": connection.handle,
					"user": connection.user_id,
					"reason": reason,
				},
			)
			failed.append(connection)
		if failed:
			await asyncio.gather(*(self._evict(connection) for connection in failed))
		return delivered

	async def _push(self, connection: Connection, envelope: dict) -> None:
		try:
			await asyncio.wait_for(
				connection.transport.send(ANNOUNCEMENT_EVENT, envelope),
				timeout=self.write_timeout,
			)
		except asyncio.TimeoutError:
			raise DeliveryFailure(connection.handle, "write_timeout") from None
		except Exception as exc:
			raise DeliveryFailure(connection.handle, "send_error") from exc

	async def _evict(self, connection: Connection) -> None:
		if self.registry.discard(connection):
			await close_quietly(connection.transport, timeout=self.close_timeout)
