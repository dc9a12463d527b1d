"""Announcement records: typed, addressed, immutable notifications."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from uuid import UUID, uuid4

from app.domain.errors import ValidationError
from app.domain.profiles.models import UserRole

MIN_MESSAGE_LENGTH = 6


class AnnouncementKind(str, Enum):
	GENERAL = "general"
	NEW_SPONSOR_APPLICATION = "new_sponsor_application"
	SPONSOR_APPLICATION_APPROVED = "sponsor_application_approved"
	SPONSOR_APPLICATION_REJECTED = "sponsor_application_rejected"
	SUPPORT_GROUP_SUGGESTION = "support_group_suggestion"
	SUPPORT_GROUP_APPROVED = "support_group_approved"
	SUPPORT_GROUP_REJECTED = "support_group_rejected"
	MEETING_SCHEDULED = "meeting_scheduled"
	MEETING_REMINDER = "meeting_reminder"
	MEETING_STARTED = "meeting_started"
	MEETING_ENDED = "meeting_ended"
	GROUP_CHAT_INVITATION = "group_chat_invitation"
	PRIVATE_CHAT_INVITATION = "private_chat_invitation"
	NEW_MESSAGE = "new_message"
	NEW_GROUP_CHAT_MESSAGE = "new_group_chat_message"
	NEW_POST = "new_post"
	NEW_COMMENT = "new_comment"
	POST_LIKE = "post_like"
	COMMENT_REPLY = "comment_reply"
	NEW_RESOURCE = "new_resource"
	MATCHING_REQUEST_SUBMITTED = "matching_request_submitted"
	MATCHING_REQUEST_ACCEPTED = "matching_request_accepted"
	MATCHING_REQUEST_DECLINED = "matching_request_declined"
	ADMIN_ACTION = "admin_action"


class TargetKind(str, Enum):
	USER = "user"
	SPONSOR_APPLICATION = "sponsor_application"
	SUPPORT_GROUP = "support_group"
	GROUP_MEETING = "group_meeting"
	GROUP_CHAT = "group_chat"
	CHAT = "chat"
	POST = "post"
	COMMENT = "comment"
	RESOURCE = "resource"
	MATCHING_REQUEST = "matching_request"


class Audience(str, Enum):
	USER = "user"
	ROLE = "role"
	ROOM = "room"
	GLOBAL = "global"


# Kinds addressed to nobody in particular: every live connection receives them.
GLOBAL_KINDS = frozenset({AnnouncementKind.GENERAL})

# Kinds delivered to the subscribers of the room named by their target.
ROOM_SCOPED_KINDS: Mapping[AnnouncementKind, TargetKind] = {
	AnnouncementKind.NEW_GROUP_CHAT_MESSAGE: TargetKind.GROUP_CHAT,
	AnnouncementKind.MEETING_STARTED: TargetKind.GROUP_MEETING,
	AnnouncementKind.MEETING_ENDED: TargetKind.GROUP_MEETING,
}

_ROOM_PREFIXES: Mapping[TargetKind, str] = {
	TargetKind.GROUP_CHAT: "group_chat",
	TargetKind.GROUP_MEETING: "meeting",
}


def room_name(target_kind: TargetKind, target_id: str) -> str:
	prefix = _ROOM_PREFIXES.get(target_kind)
	if prefix is None:
		raise ValidationError("target_not_a_room")
	return f"{prefix}:{target_id}"


def room_for_prefix(prefix: str, room_id: str) -> str:
	"""Build a room key from its client-facing prefix (`group_chat`, `meeting`)."""
	for target_kind, known in _ROOM_PREFIXES.items():
		if known == prefix:
			return room_name(target_kind, room_id)
	raise ValidationError("unknown_room_kind")


@dataclass(slots=True, frozen=True)
class Announcement:
	id: UUID
	kind: AnnouncementKind
	message: str
	created_at: datetime
	target_kind: Optional[TargetKind] = None
	target_id: Optional[str] = None
	recipient_role: Optional[UserRole] = None
	recipient_id: Optional[str] = None
	payload: Dict[str, Any] = field(default_factory=dict)

	@classmethod
	def create(
		cls,
		kind: AnnouncementKind | str,
		message: str,
		*,
		recipient_id: Optional[str] = None,
		recipient_role: Optional[UserRole | str] = None,
		target_kind: Optional[TargetKind | str] = None,
		target_id: Optional[str | UUID] = None,
		payload: Optional[Mapping[str, Any]] = None,
		created_at: Optional[datetime] = None,
	) -> "Announcement":
		"""Validate and build a new announcement; raises ValidationError."""
		try:
			kind = AnnouncementKind(kind)
			role = UserRole(recipient_role) if recipient_role is not None else None
			target = TargetKind(target_kind) if target_kind is not None else None
		except ValueError:
			raise ValidationError("unknown_enum_value") from None
		announcement = cls(
			id=uuid4(),
			kind=kind,
			message=(message or "").strip(),
			created_at=created_at or datetime.now(timezone.utc),
			target_kind=target,
			target_id=str(target_id) if target_id is not None else None,
			recipient_role=role,
			recipient_id=str(recipient_id) if recipient_id else None,
			payload=dict(payload or {}),
		)
		announcement.validate()
		return announcement

	def validate(self) -> None:
		if len(self.message) < MIN_MESSAGE_LENGTH:
			raise ValidationError("message_too_short")
		if (self.target_kind is None) != (self.target_id is None):
			raise ValidationError("target_incomplete")
		try:
			json.dumps(self.payload)
		except (TypeError, ValueError):
			raise ValidationError("payload_not_serialisable") from None
		addressed = (self.recipient_id is not None) + (self.recipient_role is not None)
		if addressed > 1:
			raise ValidationError("ambiguous_recipient")
		if self.kind in GLOBAL_KINDS or self.kind in ROOM_SCOPED_KINDS:
			if addressed:
				raise ValidationError("broadcast_kind_has_recipient")
			if self.kind in ROOM_SCOPED_KINDS and self.target_kind is not ROOM_SCOPED_KINDS[self.kind]:
				raise ValidationError("room_target_required")
			return
		if not addressed:
			raise ValidationError("recipient_required")

	@property
	def audience(self) -> Audience:
		if self.recipient_id is not None:
			return Audience.USER
		if self.recipient_role is not None:
			return Audience.ROLE
		if self.kind in ROOM_SCOPED_KINDS:
			return Audience.ROOM
		return Audience.GLOBAL

	@property
	def room(self) -> Optional[str]:
		if self.audience is not Audience.ROOM or self.target_kind is None or self.target_id is None:
			return None
		return room_name(self.target_kind, self.target_id)

	def to_envelope(self) -> Dict[str, Any]:
		"""Outbound push body; kind and payload travel verbatim."""
		return {
			"id": str(self.id),
			"kind": self.kind.value,
			"payload": self.payload,
			"message": self.message,
			"target_kind": self.target_kind.value if self.target_kind else None,
			"target_id": self.target_id,
			"created_at": self.created_at.isoformat(),
		}

	@classmethod
	def from_record(cls, record) -> "Announcement":
		payload = record["extra_data"]
		if isinstance(payload, str):
			payload = json.loads(payload or "null")
		target_kind = record["announcement_target"]
		role = record["recipient_role"]
		recipient = record["recipient_id"]
		target_id = record["announcement_target_id"]
		return cls(
			id=UUID(str(record["announcement_id"])),
			kind=AnnouncementKind(record["announcement_type"]),
			message=record["message"],
			created_at=record["created_at"],
			target_kind=TargetKind(target_kind) if target_kind else None,
			target_id=str(target_id) if target_id else None,
			recipient_role=UserRole(role) if role else None,
			recipient_id=str(recipient) if recipient else None,
			payload=payload or {},
		)
