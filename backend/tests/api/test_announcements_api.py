import pytest

from app.realtime.frames import ANNOUNCEMENT_EVENT

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
MEMBER = {"X-User-Id": "member-1", "X-User-Role": "member"}


@pytest.mark.asyncio
async def test_publish_requires_privileged_role(api_client):
	response = await api_client.post(
		"/announcements",
		json={"kind": "general", "message": "Scheduled maintenance tonight"},
		headers=MEMBER,
	)
	assert response.status_code == 403


@pytest.mark.asyncio
async def test_publish_pushes_to_live_connection_and_persists(api_client, services, transport_factory):
	transport = transport_factory()
	services.registry.register("member-1", transport)

	response = await api_client.post(
		"/announcements",
		json={
			"kind": "new_message",
			"message": "You have a new message",
			"recipient_id": "member-1",
			"target_kind": "chat",
			"target_id": "c-1",
			"payload": {"chat_id": "c-1"},
		},
		headers=ADMIN,
	)

	assert response.status_code == 201
	announcement_id = response.json()["id"]
	pushed = transport.events(ANNOUNCEMENT_EVENT)
	assert [item["id"] for item in pushed] == [announcement_id]
	inbox = await api_client.get("/announcements", headers=MEMBER)
	assert [row["id"] for row in inbox.json()] == [announcement_id]


@pytest.mark.asyncio
async def test_publish_rejects_invalid_addressing(api_client):
	response = await api_client.post(
		"/announcements",
		json={"kind": "new_post", "message": "A new post was made"},
		headers={"X-User-Id": "svc", "X-User-Role": "service"},
	)
	assert response.status_code == 400
	assert response.json()["detail"] == "recipient_required"


@pytest.mark.asyncio
async def test_short_message_fails_validation(api_client):
	response = await api_client.post("/announcements", json={"kind": "general", "message": "hey"}, headers=ADMIN)
	assert response.status_code == 422


@pytest.mark.asyncio
async def test_role_and_room_pull(api_client):
	await api_client.post(
		"/announcements",
		json={"kind": "new_sponsor_application", "message": "Sponsor application pending", "recipient_role": "admin"},
		headers=ADMIN,
	)
	await api_client.post(
		"/announcements",
		json={
			"kind": "new_group_chat_message",
			"message": "New group chat message",
			"target_kind": "group_chat",
			"target_id": "g-1",
		},
		headers=ADMIN,
	)

	admin_inbox = await api_client.get("/announcements", headers=ADMIN)
	member_inbox = await api_client.get("/announcements", headers=MEMBER)
	room = await api_client.get("/announcements/rooms/group_chat/g-1", headers=MEMBER)
	bad_room = await api_client.get("/announcements/rooms/post/g-1", headers=MEMBER)

	assert [row["kind"] for row in admin_inbox.json()] == ["new_sponsor_application"]
	assert member_inbox.json() == []
	assert [row["kind"] for row in room.json()] == ["new_group_chat_message"]
	assert bad_room.status_code == 400
