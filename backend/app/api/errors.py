"""Error mapping and global handlers that stamp the request id on JSON errors."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.domain.errors import ConflictError, DomainError, ForbiddenError, NotFoundError, ValidationError
from app.infra.rate_limit import RateLimitExceeded
from app.obs import logging as obs_logging

_STATUS_BY_ERROR = (
	(ValidationError, status.HTTP_400_BAD_REQUEST),
	(ConflictError, status.HTTP_409_CONFLICT),
	(ForbiddenError, status.HTTP_403_FORBIDDEN),
	(NotFoundError, status.HTTP_404_NOT_FOUND),
)


def map_domain_error(exc: Exception) -> HTTPException:
	if isinstance(exc, RateLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=exc.reason)
	for error_type, code in _STATUS_BY_ERROR:
		if isinstance(exc, error_type):
			return HTTPException(code, detail=exc.reason)
	if isinstance(exc, DomainError):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal_error")


def get_request_id(request: Request, default: str = "unknown") -> str:
	rid = getattr(request.state, "request_id", None) or obs_logging.current_request_id()
	return rid or default


def install_error_handlers(app: FastAPI) -> None:
	@app.exception_handler(StarletteHTTPException)
	async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
		payload = {"detail": exc.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

	@app.exception_handler(RequestValidationError)
	async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
		payload = {"detail": "validation_error", "errors": jsonable_encoder(exc.errors()), "request_id": get_request_id(request)}
		return JSONResponse(status_code=422, content=payload)

	@app.exception_handler(DomainError)
	async def domain_exc_handler(request: Request, exc: DomainError):  # type: ignore[override]
		mapped = map_domain_error(exc)
		payload = {"detail": mapped.detail, "request_id": get_request_id(request)}
		return JSONResponse(status_code=mapped.status_code, content=payload)
