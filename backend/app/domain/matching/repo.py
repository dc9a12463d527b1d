"""Persistence for matching requests."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Set
from uuid import UUID

import asyncpg

from app.domain.errors import ConflictError
from app.domain.matching.models import MatchingRequest, MatchingStatus
from app.infra.postgres import get_pool, run_ddl

SCHEMA: tuple[str, ...] = (
	"""
	DO $$ BEGIN
		CREATE TYPE matching_status AS ENUM ('pending', 'accepted', 'declined');
	EXCEPTION WHEN duplicate_object THEN NULL;
	END $$;
	""",
	"""
	CREATE TABLE IF NOT EXISTS matching_requests (
		matching_request_id UUID PRIMARY KEY,
		member_id UUID NOT NULL,
		sponsor_id UUID,
		status matching_status NOT NULL DEFAULT 'pending',
		match_score REAL CHECK (match_score >= 0 AND match_score <= 100),
		created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
		responded_at TIMESTAMPTZ
	)
	""",
	# Backstop for the one-pending-request-per-member rule across processes.
	"""
	CREATE UNIQUE INDEX IF NOT EXISTS uq_matching_requests_member_pending
		ON matching_requests (member_id) WHERE status = 'pending'
	""",
	"CREATE INDEX IF NOT EXISTS idx_matching_requests_sponsor ON matching_requests (sponsor_id, created_at DESC)",
)


class MatchingRepository(Protocol):
	async def insert_pending(self, request: MatchingRequest) -> MatchingRequest: ...

	async def get(self, request_id: UUID) -> Optional[MatchingRequest]: ...

	async def get_pending_for_member(self, member_id: str) -> Optional[MatchingRequest]: ...

	async def pending_sponsor_ids(self, member_id: str) -> Set[str]: ...

	async def list_for_member(self, member_id: str) -> List[MatchingRequest]: ...

	async def list_for_sponsor(self, sponsor_id: str) -> List[MatchingRequest]: ...

	async def resolve(self, request_id: UUID, status: MatchingStatus, at: datetime) -> Optional[MatchingRequest]: ...

	async def delete_pending(self, request_id: UUID) -> bool: ...


class MemoryMatchingRepository:
	"""In-process store with the same check-and-set semantics as the SQL one."""

	def __init__(self) -> None:
		self._rows: Dict[UUID, MatchingRequest] = {}
		self._lock = asyncio.Lock()

	async def insert_pending(self, request: MatchingRequest) -> MatchingRequest:
		async with self._lock:
			if any(row.member_id == request.member_id and row.is_pending for row in self._rows.values()):
				raise ConflictError("pending_request_exists")
			self._rows[request.id] = request
			return request

	async def get(self, request_id: UUID) -> Optional[MatchingRequest]:
		return self._rows.get(request_id)

	async def get_pending_for_member(self, member_id: str) -> Optional[MatchingRequest]:
		for row in self._rows.values():
			if row.member_id == member_id and row.is_pending:
				return row
		return None

	async def pending_sponsor_ids(self, member_id: str) -> Set[str]:
		return {
			row.sponsor_id
			for row in self._rows.values()
			if row.member_id == member_id and row.is_pending and row.sponsor_id
		}

	async def list_for_member(self, member_id: str) -> List[MatchingRequest]:
		rows = [row for row in self._rows.values() if row.member_id == member_id]
		return sorted(rows, key=lambda row: row.created_at, reverse=True)

	async def list_for_sponsor(self, sponsor_id: str) -> List[MatchingRequest]:
		rows = [row for row in self._rows.values() if row.sponsor_id == sponsor_id]
		return sorted(rows, key=lambda row: row.created_at, reverse=True)

	async def resolve(self, request_id: UUID, status: MatchingStatus, at: datetime) -> Optional[MatchingRequest]:
		async with self._lock:
			row = self._rows.get(request_id)
			if row is None or not row.is_pending:
				return None
			updated = row.with_status(status, at=at)
			self._rows[request_id] = updated
			return updated

	async def delete_pending(self, request_id: UUID) -> bool:
		async with self._lock:
			row = self._rows.get(request_id)
			if row is None or not row.is_pending:
				return False
			del self._rows[request_id]
			return True


_COLUMNS = "matching_request_id, member_id, sponsor_id, status::text AS status, match_score, created_at, responded_at"


class PostgresMatchingRepository:
	async def ensure_schema(self) -> None:
		await run_ddl(SCHEMA)

	async def insert_pending(self, request: MatchingRequest) -> MatchingRequest:
		pool = await get_pool()
		async with pool.acquire() as conn:
			try:
				record = await conn.fetchrow(
					f"""
					INSERT INTO matching_requests (matching_request_id, member_id, sponsor_id, status, match_score, created_at)
					VALUES ($1, $2, $3, 'pending', $4, $5)
					RETURNING {_COLUMNS}
					""",
					request.id,
					request.member_id,
					request.sponsor_id,
					request.match_score,
					request.created_at,
				)
			except asyncpg.UniqueViolationError:
				raise ConflictError("pending_request_exists") from None
		return MatchingRequest.from_record(record)

	async def get(self, request_id: UUID) -> Optional[MatchingRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"SELECT {_COLUMNS} FROM matching_requests WHERE matching_request_id = $1",
				request_id,
			)
		return MatchingRequest.from_record(record) if record else None

	async def get_pending_for_member(self, member_id: str) -> Optional[MatchingRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"SELECT {_COLUMNS} FROM matching_requests WHERE member_id = $1 AND status = 'pending' LIMIT 1",
				member_id,
			)
		return MatchingRequest.from_record(record) if record else None

	async def pending_sponsor_ids(self, member_id: str) -> Set[str]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				"""
				SELECT sponsor_id FROM matching_requests
				WHERE member_id = $1 AND status = 'pending' AND sponsor_id IS NOT NULL
				""",
				member_id,
			)
		return {str(row["sponsor_id"]) for row in rows}

	async def list_for_member(self, member_id: str) -> List[MatchingRequest]:
		return await self._list("member_id", member_id)

	async def list_for_sponsor(self, sponsor_id: str) -> List[MatchingRequest]:
		return await self._list("sponsor_id", sponsor_id)

	async def _list(self, column: str, user_id: str) -> List[MatchingRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			rows = await conn.fetch(
				f"SELECT {_COLUMNS} FROM matching_requests WHERE {column} = $1 ORDER BY created_at DESC",
				user_id,
			)
		return [MatchingRequest.from_record(row) for row in rows]

	async def resolve(self, request_id: UUID, status: MatchingStatus, at: datetime) -> Optional[MatchingRequest]:
		pool = await get_pool()
		async with pool.acquire() as conn:
			record = await conn.fetchrow(
				f"""
				UPDATE matching_requests
				SET status = $2::matching_status, responded_at = $3
				WHERE matching_request_id = $1 AND status = 'pending'
				RETURNING {_COLUMNS}
				""",
				request_id,
				status.value,
				at,
			)
		return MatchingRequest.from_record(record) if record else None

	async def delete_pending(self, request_id: UUID) -> bool:
		pool = await get_pool()
		async with pool.acquire() as conn:
			result = await conn.execute(
				"DELETE FROM matching_requests WHERE matching_request_id = $1 AND status = 'pending'",
				request_id,
			)
		return result.endswith(" 1")
