"""Liveness monitor for registered connections."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from typing import Callable, List, Optional

from app.obs import metrics as obs_metrics
from app.realtime.frames import PING_EVENT
from app.realtime.registry import Connection, ConnectionRegistry
from app.realtime.transport import close_quietly

_LOG = logging.getLogger(__name__)


class HeartbeatMonitor:
	"""Evicts connections that stopped heartbeating and pings the rest.

	A connection is stale once `timeout` seconds pass without a heartbeat.
	Each sweep runs every `interval` seconds; `timeout` must exceed `interval`
	so a client that answers every ping is never evicted.
	"""

	def __init__(
		self,
		registry: ConnectionRegistry,
		*,
		interval: float = 25.0,
		timeout: float = 60.0,
		close_timeout: float = 2.0,
		write_timeout: float = 2.0,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		if interval <= 0:
			raise ValueError("heartbeat interval must be positive")
		if timeout <= interval:
			raise ValueError("heartbeat timeout must exceed the interval")
		self.registry = registry
		self.interval = interval
		self.timeout = timeout
		self.close_timeout = close_timeout
		self.write_timeout = write_timeout
		self._clock = clock
		self._running = False
		self._task: Optional[asyncio.Task] = None

	async def sweep_once(self) -> List[str]:
		"""Run one eviction pass; returns the handles that were evicted."""
		cutoff = self._clock() - self.timeout
		evicted: List[str] = []
		for connection in self.registry.stale(cutoff):
			if not self.registry.discard(connection):
				continue
			evicted.append(connection.handle)
			_LOG.info(
				"heartbeat.evicted",
				extra={"handle": connection.handle, "user": connection.user_id},
			)
			await close_quietly(connection.transport, timeout=self.close_timeout)
		live = self.registry.live()
		if live:
			await asyncio.gather(*(self._ping(connection) for connection in live))
		obs_metrics.heartbeat_sweep(len(evicted))
		return evicted

	async def _ping(self, connection: Connection) -> None:
		# A failed ping is not an eviction; the missing heartbeat will be.
		try:
			await asyncio.wait_for(
				connection.transport.send(PING_EVENT, {"ts": int(time.time() * 1000)}),
				timeout=self.write_timeout,
			)
		except Exception:
			_LOG.debug("heartbeat.ping_failed", extra={"handle": connection.handle}, exc_info=True)

	async def run_forever(self) -> None:
		"""Sweep every `interval` seconds until :meth:`stop` is called."""
		self._running = True
		while self._running:
			await asyncio.sleep(self.interval)
			try:
				await self.sweep_once()
			except Exception:
				_LOG.exception("heartbeat.sweep_failed")

	def start(self) -> asyncio.Task:
		if self._task is None or self._task.done():
			self._task = asyncio.create_task(self.run_forever(), name="notifications-heartbeat")
		return self._task

	async def stop(self) -> None:
		self._running = False
		task, self._task = self._task, None
		if task is None:
			return
		task.cancel()
		with suppress(asyncio.CancelledError):
			await task
