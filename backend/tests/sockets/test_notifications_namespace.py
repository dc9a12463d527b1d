from unittest.mock import AsyncMock

import pytest
import socketio

from app.domain.announcements.dispatcher import AnnouncementDispatcher
from app.domain.announcements.models import Announcement, AnnouncementKind, TargetKind
from app.domain.announcements.repo import MemoryAnnouncementRepository
from app.realtime.frames import ANNOUNCEMENT_EVENT, ERROR_EVENT, READY_EVENT, FrameKind, classify_frame
from app.realtime.registry import ConnectionRegistry
from app.realtime.sockets import NotificationsNamespace


def _scope(user_id: str | None = None) -> dict:
	headers = [(b"x-user-id", user_id.encode())] if user_id else []
	return {"asgi.scope": {"headers": headers}}


@pytest.fixture
def registry():
	return ConnectionRegistry()


@pytest.fixture
def namespace(registry):
	server = socketio.AsyncServer(async_mode="asgi")
	ns = NotificationsNamespace(registry)
	server.register_namespace(ns)
	ns.emit = AsyncMock()
	ns.disconnect = AsyncMock()
	return ns


def _emitted(namespace, event):
	return [call for call in namespace.emit.await_args_list if call.args[0] == event]


def test_frame_classification():
	assert classify_frame("heartbeat") is FrameKind.HEARTBEAT
	assert classify_frame("PONG") is FrameKind.HEARTBEAT
	assert classify_frame("join_room") is FrameKind.APPLICATION
	assert classify_frame("disconnect") is FrameKind.LIFECYCLE


@pytest.mark.asyncio
async def test_connect_requires_identity(namespace, registry):
	with pytest.raises(ConnectionRefusedError):
		await namespace.trigger_event("connect", "sid-1", _scope())
	assert len(registry) == 0


@pytest.mark.asyncio
async def test_connect_registers_and_emits_ready(namespace, registry):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))

	assert registry.connections_for("user-1") == {"sid-1"}
	ready = _emitted(namespace, READY_EVENT)
	assert ready and ready[0].args[1]["user_id"] == "user-1"


@pytest.mark.asyncio
async def test_connect_accepts_auth_payload(namespace, registry):
	await namespace.trigger_event("connect", "sid-2", _scope(), {"userId": "user-2"})
	assert registry.connections_for("user-2") == {"sid-2"}


@pytest.mark.asyncio
async def test_heartbeat_refreshes_liveness_and_acks(namespace, registry):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))
	registry.get("sid-1").last_heartbeat = 0.0

	ack = await namespace.trigger_event("heartbeat", "sid-1", {})

	assert ack["ok"] is True
	assert registry.get("sid-1").last_heartbeat > 0.0


@pytest.mark.asyncio
async def test_join_and_leave_room(namespace, registry):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))

	joined = await namespace.trigger_event("join_room", "sid-1", {"kind": "group_chat", "id": "g1"})
	assert joined == {"ok": True, "room": "group_chat:g1"}
	assert registry.connections_in_room("group_chat:g1") == {"sid-1"}

	left = await namespace.trigger_event("leave_room", "sid-1", {"kind": "group_chat", "id": "g1"})
	assert left["ok"] is True
	assert registry.connections_in_room("group_chat:g1") == frozenset()


@pytest.mark.asyncio
async def test_join_unknown_room_kind_reports_error(namespace):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))
	result = await namespace.trigger_event("join_room", "sid-1", {"kind": "post", "id": "p1"})
	assert result == {"ok": False, "error": "unknown_room_kind"}
	assert _emitted(namespace, ERROR_EVENT)


@pytest.mark.asyncio
async def test_disconnect_unregisters_everywhere(namespace, registry):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))
	await namespace.trigger_event("join_room", "sid-1", {"kind": "meeting", "id": "m1"})

	await namespace.trigger_event("disconnect", "sid-1")

	assert "sid-1" not in registry
	assert registry.connections_for("user-1") == frozenset()
	assert registry.connections_in_room("meeting:m1") == frozenset()


@pytest.mark.asyncio
async def test_dispatcher_pushes_through_socket_transport(namespace, registry, directory):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))
	await namespace.trigger_event("join_room", "sid-1", {"kind": "meeting", "id": "m1"})
	dispatcher = AnnouncementDispatcher(MemoryAnnouncementRepository(), registry, directory)

	await dispatcher.publish(
		Announcement.create(
			AnnouncementKind.MEETING_STARTED,
			"Your meeting has started",
			target_kind=TargetKind.GROUP_MEETING,
			target_id="m1",
		)
	)

	pushed = _emitted(namespace, ANNOUNCEMENT_EVENT)
	assert len(pushed) == 1
	assert pushed[0].args[1]["kind"] == "meeting_started"
	assert pushed[0].kwargs["to"] == "sid-1"


@pytest.mark.asyncio
async def test_failed_push_evicts_and_disconnects(namespace, registry, directory):
	await namespace.trigger_event("connect", "sid-1", _scope("user-1"))
	namespace.emit.side_effect = RuntimeError("transport gone")
	dispatcher = AnnouncementDispatcher(MemoryAnnouncementRepository(), registry, directory)

	await dispatcher.publish(Announcement.create(AnnouncementKind.NEW_MESSAGE, "You have a new message", recipient_id="user-1"))

	assert "sid-1" not in registry
	namespace.disconnect.assert_awaited_once_with("sid-1")
