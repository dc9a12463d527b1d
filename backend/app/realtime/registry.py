"""Concurrency-safe directory of live client connections.

Two indexes (user -> handles, room -> handles) are maintained next to the
handle table and updated together under one lock, so a connection is never
visible in one index but missing from another. Lookups return snapshots; the
lock is never held across an await.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set
from uuid import uuid4

from app.domain.errors import NotFoundError
from app.realtime.transport import Transport


class RegistryBusy(TimeoutError):
	"""Raised when the registry lock could not be taken within its timeout."""


@dataclass(slots=True)
class Connection:
	handle: str
	user_id: str
	transport: Transport
	created_at: datetime
	last_heartbeat: float
	rooms: Set[str] = field(default_factory=set)


class ConnectionRegistry:
	def __init__(
		self,
		*,
		lock_timeout: float = 1.0,
		clock: Callable[[], float] = time.monotonic,
		on_change: Optional[Callable[[int], None]] = None,
	) -> None:
		self._lock = threading.Lock()
		self._lock_timeout = lock_timeout
		self._clock = clock
		self._on_change = on_change
		self._connections: Dict[str, Connection] = {}
		self._by_user: Dict[str, Set[str]] = {}
		self._by_room: Dict[str, Set[str]] = {}

	@contextmanager
	def _locked(self) -> Iterator[None]:
		if not self._lock.acquire(timeout=self._lock_timeout):
			raise RegistryBusy("connection registry lock timeout")
		try:
			yield
		finally:
			self._lock.release()

	def _notify(self, size: int) -> None:
		if self._on_change is not None:
			self._on_change(size)

	# -- index maintenance (caller holds the lock) --

	def _index_add(self, index: Dict[str, Set[str]], key: str, handle: str) -> None:
		index.setdefault(key, set()).add(handle)

	def _index_discard(self, index: Dict[str, Set[str]], key: str, handle: str) -> None:
		members = index.get(key)
		if members is None:
			return
		members.discard(handle)
		if not members:
			del index[key]

	def _drop(self, handle: str) -> Optional[Connection]:
		connection = self._connections.pop(handle, None)
		if connection is None:
			return None
		self._index_discard(self._by_user, connection.user_id, handle)
		for room in connection.rooms:
			self._index_discard(self._by_room, room, handle)
		return connection

	# -- public API --

	def register(self, user_id: str, transport: Transport, *, handle: Optional[str] = None) -> str:
		"""Add a connection; re-registering a known handle replaces it cleanly."""
		handle = handle or uuid4().hex
		connection = Connection(
			handle=handle,
			user_id=str(user_id),
			transport=transport,
			created_at=datetime.now(timezone.utc),
			last_heartbeat=self._clock(),
		)
		with self._locked():
			self._drop(handle)
			self._connections[handle] = connection
			self._index_add(self._by_user, connection.user_id, handle)
			size = len(self._connections)
		self._notify(size)
		return handle

	def unregister(self, handle: str) -> Optional[Connection]:
		"""Remove a connection from every index; unknown handles are ignored."""
		with self._locked():
			connection = self._drop(handle)
			size = len(self._connections)
		if connection is not None:
			self._notify(size)
		return connection

	def discard(self, connection: Connection) -> bool:
		"""Unregister only if `handle` still refers to this exact connection."""
		with self._locked():
			if self._connections.get(connection.handle) is not connection:
				return False
			self._drop(connection.handle)
			size = len(self._connections)
		self._notify(size)
		return True

	def join_room(self, handle: str, room: str) -> None:
		with self._locked():
			connection = self._connections.get(handle)
			if connection is None:
				raise NotFoundError("connection_missing")
			connection.rooms.add(room)
			self._index_add(self._by_room, room, handle)

	def leave_room(self, handle: str, room: str) -> None:
		with self._locked():
			connection = self._connections.get(handle)
			if connection is None:
				raise NotFoundError("connection_missing")
			connection.rooms.discard(room)
			self._index_discard(self._by_room, room, handle)

	def touch(self, handle: str) -> bool:
		"""Record a heartbeat; returns False for unknown handles."""
		with self._locked():
			connection = self._connections.get(handle)
			if connection is None:
				return False
			connection.last_heartbeat = self._clock()
			return True

	def get(self, handle: str) -> Optional[Connection]:
		with self._locked():
			return self._connections.get(handle)

	def connections_for(self, user_id: str) -> FrozenSet[str]:
		with self._locked():
			return frozenset(self._by_user.get(str(user_id), ()))

	def connections_in_room(self, room: str) -> FrozenSet[str]:
		with self._locked():
			return frozenset(self._by_room.get(room, ()))

	def rooms_for(self, handle: str) -> FrozenSet[str]:
		with self._locked():
			connection = self._connections.get(handle)
			return frozenset(connection.rooms) if connection else frozenset()

	def resolve(self, handles: Iterable[str]) -> List[Connection]:
		"""Map handles to the connections still registered under them."""
		with self._locked():
			return [self._connections[h] for h in handles if h in self._connections]

	def users_snapshot(self) -> Dict[str, FrozenSet[str]]:
		with self._locked():
			return {user_id: frozenset(handles) for user_id, handles in self._by_user.items()}

	def all_handles(self) -> FrozenSet[str]:
		with self._locked():
			return frozenset(self._connections)

	def stale(self, cutoff: float) -> List[Connection]:
		"""Connections whose last heartbeat is older than `cutoff` (clock units)."""
		with self._locked():
			return [conn for conn in self._connections.values() if conn.last_heartbeat < cutoff]

	def live(self) -> List[Connection]:
		with self._locked():
			return list(self._connections.values())

	def __len__(self) -> int:
		with self._locked():
			return len(self._connections)

	def __contains__(self, handle: object) -> bool:
		with self._locked():
			return handle in self._connections
