"""Error taxonomy shared by the matching and notification domains."""

from __future__ import annotations


class DomainError(Exception):
	"""Base class for domain failures surfaced to callers."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ValidationError(DomainError):
	"""Malformed or missing fields; raised before any state mutation."""

	reason = "invalid"


class ConflictError(DomainError):
	reason = "conflict"


class ForbiddenError(DomainError):
	reason = "forbidden"


class NotFoundError(DomainError):
	reason = "not_found"


class DeliveryFailure(DomainError):
	"""A push to a single connection failed.

	Raised and handled inside the dispatcher; never reaches publish callers.
	"""

	reason = "delivery_failed"

	def __init__(self, handle: str, reason: str | None = None) -> None:
		super().__init__(reason)
		self.handle = handle
