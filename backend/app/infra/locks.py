"""Per-key asyncio mutual exclusion with bounded waits."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class LockTimeout(TimeoutError):
	"""Raised when a keyed lock could not be acquired in time."""


class KeyedLocks:
	"""Hand out one asyncio.Lock per key; idle locks are dropped on release."""

	def __init__(self, *, timeout: float = 5.0) -> None:
		self.timeout = timeout
		self._locks: Dict[str, asyncio.Lock] = {}
		self._waiters: Dict[str, int] = {}

	@asynccontextmanager
	async def hold(self, key: str) -> AsyncIterator[None]:
		lock = self._locks.setdefault(key, asyncio.Lock())
		self._waiters[key] = self._waiters.get(key, 0) + 1
		try:
			try:
				await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
			except asyncio.TimeoutError:
				raise LockTimeout(key) from None
			try:
				yield
			finally:
				lock.release()
		finally:
			remaining = self._waiters.get(key, 1) - 1
			if remaining <= 0:
				self._waiters.pop(key, None)
				self._locks.pop(key, None)
			else:
				self._waiters[key] = remaining

	def __len__(self) -> int:
		return len(self._locks)
