"""Observability package bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from app.obs import logging as obs_logging
from app.obs import middleware
from app.settings import settings


def init(app: FastAPI) -> None:
	"""Install logging and the HTTP middleware on a freshly built app."""
	if settings.obs_enabled:
		obs_logging.configure_logging()
	middleware.install(app, enabled=settings.obs_enabled)


__all__ = ["init"]
