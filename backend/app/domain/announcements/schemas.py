"""Pydantic schemas for the announcements API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.announcements.models import MIN_MESSAGE_LENGTH, Announcement, AnnouncementKind, TargetKind
from app.domain.profiles.models import UserRole


class AnnouncementCreate(BaseModel):
	kind: AnnouncementKind
	message: str = Field(..., min_length=MIN_MESSAGE_LENGTH)
	recipient_id: Optional[str] = Field(default=None, description="Direct recipient; excludes recipient_role")
	recipient_role: Optional[UserRole] = Field(default=None, description="Broadcast to every user holding the role")
	target_kind: Optional[TargetKind] = None
	target_id: Optional[str] = None
	payload: Dict[str, Any] = Field(default_factory=dict)


class AnnouncementCreated(BaseModel):
	id: UUID


class AnnouncementOut(BaseModel):
	id: UUID
	kind: str
	message: str
	target_kind: Optional[str] = None
	target_id: Optional[str] = None
	recipient_role: Optional[str] = None
	recipient_id: Optional[str] = None
	payload: Dict[str, Any] = Field(default_factory=dict)
	created_at: datetime

	@classmethod
	def from_domain(cls, announcement: Announcement) -> "AnnouncementOut":
		return cls(
			id=announcement.id,
			kind=announcement.kind.value,
			message=announcement.message,
			target_kind=announcement.target_kind.value if announcement.target_kind else None,
			target_id=announcement.target_id,
			recipient_role=announcement.recipient_role.value if announcement.recipient_role else None,
			recipient_id=announcement.recipient_id,
			payload=announcement.payload,
			created_at=announcement.created_at,
		)
