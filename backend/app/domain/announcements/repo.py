"""Durable storage and pull queries for announcements."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import List, Optional, Protocol
from uuid import UUID

from app.domain.announcements.models import ROOM_SCOPED_KINDS, Announcement, Audience
from app.domain.profiles.models import UserRole
from app.infra.postgres import get_pool, run_ddl

SCHEMA: tuple[str, ...] = (
	"""
	CREATE TABLE IF NOT EXISTS announcements (
		announcement_id UUID PRIMARY KEY,
		announcement_type TEXT NOT NULL,
		announcement_target TEXT,
		announcement_target_id TEXT,
		recipient_role TEXT,
		recipient_id UUID,
		extra_data JSONB,
		message TEXT NOT NULL CHECK (char_length(message) > 5),
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		CHECK (recipient_role IS NULL OR recipient_id IS NULL)
	)
	""",
	"CREATE INDEX IF NOT EXISTS idx_announcements_recipient ON announcements (recipient_id, created_at DESC)",
	"CREATE INDEX IF NOT EXISTS idx_announcements_role ON announcements (recipient_role, created_at DESC)",
	"""
	CREATE INDEX IF NOT EXISTS idx_announcements_target
		ON announcements (announcement_target, announcement_target_id, created_at DESC)
	""",
)

MAX_PAGE = 100


class AnnouncementRepository(Protocol):
	async def insert(self, announcement: Announcement) -> Announcement: ...

	async def get(self, announcement_id: UUID) -> Optional[Announcement]: ...

	async def list_for_recipient(
		self,
		user_id: str,
		role: Optional[UserRole],
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]: ...

	async def list_for_room(
		self,
		target_kind: str,
		target_id: str,
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]: ...


def _clamp(limit: int) -> int:
	return max(1, min(int(limit), MAX_PAGE))


class MemoryAnnouncementRepository:
	def __init__(self) -> None:
		self._rows: List[Announcement] = []
		self._lock = asyncio.Lock()

	async def insert(self, announcement: Announcement) -> Announcement:
		announcement.validate()
		async with self._lock:
			self._rows.append(announcement)
		return announcement

	async def get(self, announcement_id: UUID) -> Optional[Announcement]:
		return next((row for row in self._rows if row.id == announcement_id), None)

	def _page(self, rows: List[Announcement], limit: int, before: Optional[datetime]) -> List[Announcement]:
		if before is not None:
			rows = [row for row in rows if row.created_at < before]
		rows.sort(key=lambda row: row.created_at, reverse=True)
		return rows[: _clamp(limit)]

	async def list_for_recipient(
		self,
		user_id: str,
		role: Optional[UserRole],
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]:
		rows = [
			row
			for row in self._rows
			if row.recipient_id == user_id
			or (role is not None and row.recipient_role == role)
			or row.audience is Audience.GLOBAL
		]
		return self._page(rows, limit, before)

	async def list_for_room(
		self,
		target_kind: str,
		target_id: str,
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]:
		rows = [
			row
			for row in self._rows
			if row.audience is Audience.ROOM
			and row.target_kind is not None
			and row.target_kind.value == target_kind
			and row.target_id == target_id
		]
		return self._page(rows, limit, before)


_COLUMNS = (
	"announcement_id, announcement_type, announcement_target, announcement_target_id, "
	"recipient_role, recipient_id, extra_data, message, created_at"
)
_ROOM_KIND_VALUES = sorted(kind.value for kind in ROOM_SCOPED_KINDS)


class PostgresAnnouncementRepository:
	async def ensure_schema(self) -> None:
		await run_ddl(SCHEMA)

	async def insert(self, announcement: Announcement) -> Announcement:
		announcement.validate()
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				INSERT INTO announcements (
					announcement_id, announcement_type, announcement_target, announcement_target_id,
					recipient_role, recipient_id, extra_data, message, created_at
				)
				VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8, $9)
				RETURNING {_COLUMNS}
				""",
				announcement.id,
				announcement.kind.value,
				announcement.target_kind.value if announcement.target_kind else None,
				announcement.target_id,
				announcement.recipient_role.value if announcement.recipient_role else None,
				announcement.recipient_id,
				json.dumps(announcement.payload),
				announcement.message,
				announcement.created_at,
			)
		return Announcement.from_record(record)

	async def get(self, announcement_id: UUID) -> Optional[Announcement]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"SELECT {_COLUMNS} FROM announcements WHERE announcement_id = $1",
				announcement_id,
			)
		return Announcement.from_record(record) if record else None

	async def list_for_recipient(
		self,
		user_id: str,
		role: Optional[UserRole],
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_COLUMNS} FROM announcements
				WHERE (
					recipient_id = $1::uuid
					OR ($2::text IS NOT NULL AND recipient_role = $2::text)
					OR (recipient_id IS NULL AND recipient_role IS NULL AND NOT (announcement_type = ANY($3::text[])))
				)
				AND ($4::timestamptz IS NULL OR created_at < $4::timestamptz)
				ORDER BY created_at DESC
				LIMIT $5
				""",
				user_id,
				role.value if role else None,
				_ROOM_KIND_VALUES,
				before,
				_clamp(limit),
			)
		return [Announcement.from_record(row) for row in rows]

	async def list_for_room(
		self,
		target_kind: str,
		target_id: str,
		*,
		limit: int = 50,
		before: Optional[datetime] = None,
	) -> List[Announcement]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"""
				SELECT {_COLUMNS} FROM announcements
				WHERE announcement_target = $1 AND announcement_target_id = $2
				  AND announcement_type = ANY($3::text[])
				  AND ($4::timestamptz IS NULL OR created_at < $4::timestamptz)
				ORDER BY created_at DESC
				LIMIT $5
				""",
				target_kind,
				target_id,
				_ROOM_KIND_VALUES,
				before,
				_clamp(limit),
			)
		return [Announcement.from_record(row) for row in rows]
