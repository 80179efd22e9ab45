from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from llm_trace_replay.api.routes import envelope, router
from llm_trace_replay.bootstrap import AppRuntime
from llm_trace_replay.errors import (
    ErrorRecordingError,
    NotFoundError,
    PersistenceError,
    ProviderCallError,
    ProviderConfigError,
    TraceReplayError,
    ValidationError,
)
from llm_trace_replay.logging_config import request_context

_STATUS_CODES: tuple[tuple[type[TraceReplayError], int], ...] = (
    (ValidationError, 400),
    (ProviderConfigError, 400),
    (NotFoundError, 404),
    (ProviderCallError, 502),
    (PersistenceError, 500),
)


def _status_for(exc: TraceReplayError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 500


async def _handle_core_error(request: Request, exc: TraceReplayError) -> JSONResponse:
    status = _status_for(exc)
    data = None
    if isinstance(exc, ErrorRecordingError):
        data = {"provider_error": str(exc.provider_error)}
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({status}): {exc}")
    return JSONResponse(status_code=status, content=envelope(data, str(exc), success=False))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=envelope(message=f"Invalid request format: {details}", success=False))


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=envelope(message=f"Internal error: {exc}", success=False))


def create_app(runtime: AppRuntime) -> FastAPI:
    app = FastAPI(title="LLM Trace Replay", version="0.1.0")
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        with request_context(request.headers.get("x-request-id")) as request_id:
            started = time.perf_counter()
            response = await call_next(request)
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({(time.perf_counter() - started) * 1000:.1f} ms)"
            )
            response.headers["X-Request-ID"] = request_id
            return response

    app.add_exception_handler(TraceReplayError, _handle_core_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)

    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
