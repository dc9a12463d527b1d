"""Identity resolution for HTTP endpoints and socket handshakes.

Credentials are verified by the upstream gateway; requests reach this service
already tagged with the caller's identity and role through trusted headers
(`X-User-Id`, `X-User-Role`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

ROLE_MEMBER = "member"
ROLE_SPONSOR = "sponsor"
ROLE_ADMIN = "admin"
ROLE_SERVICE = "service"

KNOWN_ROLES = frozenset({ROLE_MEMBER, ROLE_SPONSOR, ROLE_ADMIN, ROLE_SERVICE})


@dataclass(slots=True, frozen=True)
class AuthenticatedUser:
	id: str
	role: str = ROLE_MEMBER

	def has_role(self, *roles: str) -> bool:
		return self.role in roles


def _normalise_role(raw: Optional[str]) -> str:
	role = (raw or ROLE_MEMBER).strip().lower()
	if role not in KNOWN_ROLES:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unknown_role")
	return role


def user_from_claims(user_id: Optional[str], role: Optional[str]) -> AuthenticatedUser:
	user_id = (user_id or "").strip()
	if not user_id:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing_identity")
	return AuthenticatedUser(id=user_id, role=_normalise_role(role))


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> AuthenticatedUser:
	"""Resolve the gateway-verified caller."""
	return user_from_claims(x_user_id, x_user_role)


def require_roles(*required: str):
	"""Return a dependency that enforces any of the given roles.

	Usage:
		@router.post("/announcements", dependencies=[Depends(require_roles("admin"))])
	"""
	required_set = {str(r).strip() for r in required if str(r).strip()}

	async def _dep(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
		if not required_set or user.has_role(*required_set):
			return user
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")

	return _dep
