"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import announcements, matching, ops
from app.api.errors import install_error_handlers
from app.container import Services, build_services
from app.infra import postgres
from app.infra.redis import close_redis
from app.obs import init as obs_init
from app.settings import settings

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
	allow_origins = list(settings.cors_allow_origins)
	if not allow_origins:
		allow_origins = ["http://localhost:3000"] if settings.is_dev() else []
	# Starlette disallows wildcard '*' with allow_credentials=True.
	if "*" in allow_origins:
		allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []
	return allow_origins


def _lifespan(services: Services):
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		if services.backend == "postgres":
			await postgres.init_pool()
			await services.ensure_schema()
		services.monitor.start()
		logger.info("app.started", extra={"backend": services.backend})
		try:
			yield
		finally:
			await services.monitor.stop()
			if services.backend == "postgres":
				await postgres.close_pool()
			await close_redis()

	return lifespan


def create_app(services: Optional[Services] = None) -> FastAPI:
	services = services or build_services()
	app = FastAPI(title="Fellowship Realtime", lifespan=_lifespan(services))
	app.state.services = services
	install_error_handlers(app)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=_allowed_origins(),
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	obs_init(app)
	app.include_router(matching.router)
	app.include_router(announcements.router)
	app.include_router(ops.router)
	return app


def create_socket_app(app: FastAPI) -> socketio.ASGIApp:
	"""Mount the notifications namespace next to the REST API."""
	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=_allowed_origins())
	sio.register_namespace(app.state.services.namespace)
	app.state.sio = sio
	return socketio.ASGIApp(sio, other_asgi_app=app)


app = create_app()
socket_app = create_socket_app(app)
