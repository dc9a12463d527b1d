import pytest

from app.domain.announcements.models import (
	Announcement,
	AnnouncementKind,
	Audience,
	TargetKind,
	room_for_prefix,
	room_name,
)
from app.domain.errors import ValidationError


def test_direct_announcement_envelope_carries_kind_and_payload():
	announcement = Announcement.create(
		"matching_request_accepted",
		"Your request was accepted",
		recipient_id="m1",
		target_kind="matching_request",
		target_id="r1",
		payload={"status": "accepted"},
	)
	envelope = announcement.to_envelope()
	assert announcement.audience is Audience.USER
	assert envelope["kind"] == "matching_request_accepted"
	assert envelope["payload"] == {"status": "accepted"}
	assert envelope["target_id"] == "r1"


@pytest.mark.parametrize(
	"kwargs, reason",
	[
		({"kind": "new_post", "message": "short"}, "message_too_short"),
		({"kind": "new_post", "message": "A new post", "recipient_id": "u", "recipient_role": "admin"}, "ambiguous_recipient"),
		({"kind": "new_post", "message": "A new post"}, "recipient_required"),
		({"kind": "general", "message": "Hello everyone", "recipient_id": "u"}, "broadcast_kind_has_recipient"),
		({"kind": "meeting_started", "message": "Meeting started"}, "room_target_required"),
		({"kind": "new_post", "message": "A new post", "recipient_id": "u", "target_kind": "post"}, "target_incomplete"),
		({"kind": "new_post", "message": "A new post", "recipient_id": "u", "payload": {"x": object()}}, "payload_not_serialisable"),
		({"kind": "bogus", "message": "A new post", "recipient_id": "u"}, "unknown_enum_value"),
	],
)
def test_invalid_announcements_are_rejected(kwargs, reason):
	kind = kwargs.pop("kind")
	message = kwargs.pop("message")
	with pytest.raises(ValidationError) as exc:
		Announcement.create(kind, message, **kwargs)
	assert exc.value.reason == reason


def test_message_length_boundary():
	Announcement.create(AnnouncementKind.GENERAL, "sixsix")
	with pytest.raises(ValidationError):
		Announcement.create(AnnouncementKind.GENERAL, "  five  ")


def test_room_scoped_kind_resolves_room():
	announcement = Announcement.create(
		AnnouncementKind.MEETING_ENDED,
		"The meeting has ended",
		target_kind=TargetKind.GROUP_MEETING,
		target_id="42",
	)
	assert announcement.audience is Audience.ROOM
	assert announcement.room == "meeting:42"


def test_room_names():
	assert room_name(TargetKind.GROUP_CHAT, "9") == "group_chat:9"
	assert room_for_prefix("meeting", "3") == "meeting:3"
	with pytest.raises(ValidationError):
		room_for_prefix("post", "3")
	with pytest.raises(ValidationError):
		room_name(TargetKind.POST, "1")
