from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.videos.api.routes import router
from backend.videos.dependencies import get_database, get_registry, get_settings, get_telemetry
from backend.videos.errors import VideosError
from backend.videos.logging_config import configure_application_logging
from backend.videos.repositories.cache_repository import CacheRepository

LOGGER = logging.getLogger("video_gateways.app")

REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    purged = CacheRepository(get_database()).purge_expired()
    handles = get_registry().handles()
    LOGGER.info("app started gateways=%s purged_cache_entries=%s", ",".join(handles), purged)
    get_telemetry().emit("app.start", gateway_count=len(handles))
    yield


async def unhandled_gateway_error(_request: Request, exc: Exception) -> JSONResponse:
    LOGGER.warning("app unhandled gateway error type=%s", type(exc).__name__, exc_info=exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def _request_id_for(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return incoming or uuid4().hex


async def request_context_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = _request_id_for(request)
    context_tokens = bind_contextvars(
        http_request_id=request_id,
        http_method=request.method,
        http_path=request.url.path,
    )
    started_at = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        get_telemetry().emit(
            "http.request",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=int((perf_counter() - started_at) * 1000),
        )
        reset_contextvars(**context_tokens)


def create_app() -> FastAPI:
    app = FastAPI(title="Video Gateways API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(VideosError, unhandled_gateway_error)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
