"""Socket.IO namespace that feeds the connection registry."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import socketio

from app.domain.announcements.models import room_for_prefix
from app.domain.errors import DomainError
from app.obs import metrics as obs_metrics
from app.realtime.frames import ERROR_EVENT, READY_EVENT, FrameKind, classify_frame
from app.realtime.registry import ConnectionRegistry, RegistryBusy

_LOG = logging.getLogger(__name__)

NAMESPACE = "/notifications"


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


class SocketIOTransport:
	"""Transport bound to one Socket.IO session id."""

	def __init__(self, namespace: socketio.AsyncNamespace, sid: str) -> None:
		self._namespace = namespace
		self.sid = sid

	async def send(self, event: str, data: Dict[str, Any]) -> None:
		await self._namespace.emit(event, data, to=self.sid)

	async def close(self) -> None:
		await self._namespace.disconnect(self.sid)


class NotificationsNamespace(socketio.AsyncNamespace):
	"""Registers each session under its user and keeps its liveness fresh.

	Every inbound frame counts as a sign of life. Heartbeat frames are only
	acknowledged; application frames are routed to their handlers afterwards.
	"""

	def __init__(self, registry: ConnectionRegistry, namespace: str = NAMESPACE) -> None:
		super().__init__(namespace)
		self.registry = registry

	async def trigger_event(self, event: str, *args):
		if args and classify_frame(event) is not FrameKind.LIFECYCLE:
			sid = args[0]
			if not self.registry.touch(sid):
				_LOG.debug("notifications.frame_from_unknown_session", extra={"handle": sid, "event": event})
		return await super().trigger_event(event, *args)

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		obs_metrics.socket_connected(self.namespace)
		scope = environ.get("asgi.scope", environ)
		auth_payload = auth or environ.get("auth") or scope.get("auth") or {}
		user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
		if not user_id:
			obs_metrics.socket_disconnected(self.namespace)
			raise ConnectionRefusedError("missing user id")
		try:
			self.registry.register(str(user_id), SocketIOTransport(self, sid), handle=sid)
		except RegistryBusy:
			obs_metrics.socket_disconnected(self.namespace)
			_LOG.warning("notifications.registry_busy", extra={"user": user_id})
			raise ConnectionRefusedError("registry busy") from None
		await self.emit(READY_EVENT, {"user_id": str(user_id), "handle": sid}, to=sid)

	async def on_disconnect(self, sid: str, reason: Any = None) -> None:
		obs_metrics.socket_disconnected(self.namespace)
		try:
			self.registry.unregister(sid)
		except RegistryBusy:
			# The heartbeat sweep removes the entry once it goes stale.
			_LOG.warning("notifications.unregister_busy", extra={"handle": sid})

	async def _heartbeat_ack(self, sid: str, event: str) -> Dict[str, Any]:
		obs_metrics.socket_event(self.namespace, event)
		return {"ok": sid in self.registry, "ts": int(time.time() * 1000)}

	async def on_heartbeat(self, sid: str, payload: Any = None) -> Dict[str, Any]:
		return await self._heartbeat_ack(sid, "heartbeat")

	async def on_ping(self, sid: str, payload: Any = None) -> Dict[str, Any]:
		return await self._heartbeat_ack(sid, "ping")

	async def on_pong(self, sid: str, payload: Any = None) -> Dict[str, Any]:
		return await self._heartbeat_ack(sid, "pong")

	async def on_join_room(self, sid: str, payload: Optional[dict] = None) -> Dict[str, Any]:
		obs_metrics.socket_event(self.namespace, "join_room")
		return await self._change_room(sid, payload, join=True)

	async def on_leave_room(self, sid: str, payload: Optional[dict] = None) -> Dict[str, Any]:
		obs_metrics.socket_event(self.namespace, "leave_room")
		return await self._change_room(sid, payload, join=False)

	async def _change_room(self, sid: str, payload: Optional[dict], *, join: bool) -> Dict[str, Any]:
		payload = payload or {}
		kind = str(payload.get("kind") or "")
		room_id = str(payload.get("id") or "")
		try:
			if not room_id:
				raise DomainError("room_id_required")
			room = room_for_prefix(kind, room_id)
			if join:
				self.registry.join_room(sid, room)
			else:
				self.registry.leave_room(sid, room)
		except DomainError as exc:
			await self.emit(ERROR_EVENT, {"error": exc.reason}, to=sid)
			return {"ok": False, "error": exc.reason}
		except RegistryBusy:
			return {"ok": False, "error": "registry_busy"}
		return {"ok": True, "room": room}
