"""REST API surface for announcements: pull queries and collaborator publishing."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_dispatcher, get_services
from app.api.errors import map_domain_error
from app.container import Services
from app.domain.announcements.dispatcher import AnnouncementDispatcher
from app.domain.announcements.models import Announcement, TargetKind, room_for_prefix
from app.domain.announcements.schemas import AnnouncementCreate, AnnouncementCreated, AnnouncementOut
from app.domain.errors import DomainError
from app.domain.profiles.models import UserRole
from app.infra.auth import ROLE_ADMIN, ROLE_SERVICE, AuthenticatedUser, get_current_user, require_roles

router = APIRouter(prefix="/announcements", tags=["announcements"])
logger = logging.getLogger(__name__)

_ROOM_TARGETS = {
	"group_chat": TargetKind.GROUP_CHAT,
	"meeting": TargetKind.GROUP_MEETING,
}


def _platform_role(user: AuthenticatedUser) -> UserRole | None:
	try:
		return UserRole(user.role)
	except ValueError:
		return None


@router.get("", response_model=List[AnnouncementOut])
async def list_my_announcements(
	limit: int = Query(default=50, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> List[AnnouncementOut]:
	rows = await services.announcements.list_for_recipient(auth_user.id, _platform_role(auth_user), limit=limit)
	return [AnnouncementOut.from_domain(row) for row in rows]


@router.get("/rooms/{room_kind}/{room_id}", response_model=List[AnnouncementOut])
async def list_room_announcements(
	room_kind: str,
	room_id: str,
	limit: int = Query(default=50, ge=1, le=100),
	_: AuthenticatedUser = Depends(get_current_user),
	services: Services = Depends(get_services),
) -> List[AnnouncementOut]:
	try:
		room_for_prefix(room_kind, room_id)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	rows = await services.announcements.list_for_room(_ROOM_TARGETS[room_kind].value, room_id, limit=limit)
	return [AnnouncementOut.from_domain(row) for row in rows]


@router.post("", response_model=AnnouncementCreated, status_code=status.HTTP_201_CREATED)
async def publish_announcement(
	payload: AnnouncementCreate,
	auth_user: AuthenticatedUser = Depends(require_roles(ROLE_ADMIN, ROLE_SERVICE)),
	dispatcher: AnnouncementDispatcher = Depends(get_dispatcher),
) -> AnnouncementCreated:
	try:
		announcement = Announcement.create(
			payload.kind,
			payload.message,
			recipient_id=payload.recipient_id,
			recipient_role=payload.recipient_role,
			target_kind=payload.target_kind,
			target_id=payload.target_id,
			payload=payload.payload,
		)
	except DomainError as exc:
		raise map_domain_error(exc) from None
	announcement_id = await dispatcher.publish(announcement)
	logger.info(
		"announcements.published",
		extra={"announcement_id": str(announcement_id), "kind": announcement.kind.value, "user": auth_user.id},
	)
	return AnnouncementCreated(id=announcement_id)
