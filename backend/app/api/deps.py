"""FastAPI dependencies resolving the per-application services."""

from __future__ import annotations

from fastapi import Request

from app.container import Services
from app.domain.announcements.dispatcher import AnnouncementDispatcher
from app.domain.matching.service import MatchingService


def get_services(request: Request) -> Services:
	return request.app.state.services


def get_matching_service(request: Request) -> MatchingService:
	return get_services(request).matching


def get_dispatcher(request: Request) -> AnnouncementDispatcher:
	return get_services(request).dispatcher
