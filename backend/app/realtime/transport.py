"""Transport seam between the registry and the wire protocol."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Protocol

logger = logging.getLogger(__name__)


class Transport(Protocol):
	"""A single live client session able to receive pushed frames."""

	async def send(self, event: str, data: Dict[str, Any]) -> None: ...

	async def close(self) -> None: ...


async def close_quietly(transport: Transport, *, timeout: float) -> bool:
	"""Close a transport with a bounded wait; failures are logged, not raised."""
	try:
		await asyncio.wait_for(transport.close(), timeout=timeout)
		return True
	except asyncio.TimeoutError:
		logger.warning("realtime.close_timeout")
	except Exception:
		logger.debug("realtime.close_failed", exc_info=True)
	return False
