"""FastAPI wiring for an application that owns one ConnectionHandle."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import APIRouter, FastAPI, Request, Response
from loguru import logger

from mongootils.application.connection_handle import ConnectionHandle
from mongootils.constants import ConnectionState
from mongootils.core import SERVICE_NAME

READINESS_PING_TIMEOUT_SECONDS = 5.0

health_router = APIRouter(tags=["Health"])


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def create_lifespan(handle: ConnectionHandle) -> Callable[[FastAPI], Any]:
    """Connect on startup, expose the handle as app.state.database, disconnect on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        _log("database_starting", uri=handle.uri)
        await handle.connect()
        app.state.database = handle
        try:
            yield
        finally:
            _log("database_stopping", uri=handle.uri)
            await handle.disconnect()

    return lifespan


@health_router.get(
    "/health/live",
    summary="Liveness probe",
    description="Returns 200 if the process is running.",
    responses={200: {"description": "Service is alive."}},
)
async def live() -> dict:
    return {"status": "ok"}


@health_router.get(
    "/health/ready",
    summary="Readiness probe",
    description="Returns 200 only when the database handle is connected and the server answers ping.",
    responses={
        200: {"description": "Database is ready."},
        503: {"description": "Database not ready."},
    },
)
async def ready(request: Request) -> Response:
    handle = getattr(request.app.state, "database", None)
    if handle is None:
        _log("components_not_initialized")
        return Response(status_code=503, content="Not ready")
    if not handle.is_state(ConnectionState.CONNECTED):
        _log("db_not_connected", state=handle.state.value)
        return Response(status_code=503, content="Database not ready")

    ping = getattr(handle.get_connection(), "ping", None)
    if ping is not None:
        try:
            ping_ok = await asyncio.wait_for(ping(), timeout=READINESS_PING_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            _log("db_ping_timeout")
            return Response(status_code=503, content="Database not ready")
        if not ping_ok:
            _log("db_not_ready")
            return Response(status_code=503, content="Database not ready")
    return Response(status_code=200, content="OK")
