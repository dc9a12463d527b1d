"""Announcements domain exports."""

from .dispatcher import AnnouncementDispatcher  # noqa: F401
from .models import (  # noqa: F401
	MIN_MESSAGE_LENGTH,
	Announcement,
	AnnouncementKind,
	Audience,
	TargetKind,
)
from .repo import MemoryAnnouncementRepository, PostgresAnnouncementRepository  # noqa: F401
