"""
Motor-backed driver connection.

Lifecycle:
  UNINITIALIZED -> CONNECTING -> CONNECTED (emits "connected", "open").
  Failed open: CONNECTING -> DISCONNECTED (emits "error").
  close(): CONNECTED -> DISCONNECTING -> DISCONNECTED (emits "disconnecting",
  "disconnected", "close"). A closed connection may be opened again.
"""
from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Mapping

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, InvalidURI

from mongootils.core import SERVICE_NAME
from mongootils.core.uri import HostPort, parse_uri
from mongootils.infrastructure.mongo.constants import ReadyState
from mongootils.infrastructure.mongo.events import EventEmitter

DEFAULT_PORT = 27017

ClientFactory = Callable[..., AsyncIOMotorClient]

_STATE_EVENTS = {
    ReadyState.CONNECTING: "connecting",
    ReadyState.CONNECTED: "connected",
    ReadyState.DISCONNECTING: "disconnecting",
    ReadyState.DISCONNECTED: "disconnected",
}


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).debug("")


async def _close_client(client: AsyncIOMotorClient) -> None:
    res = client.close()
    if inspect.isawaitable(res):
        await res


class MotorConnection(EventEmitter):
    """Connection object wrapped by ConnectionHandle; one AsyncIOMotorClient per open session."""

    def __init__(
        self,
        *,
        client_factory: ClientFactory | None = None,
        default_options: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self._client_factory = client_factory or AsyncIOMotorClient
        self._default_options = dict(default_options or {})
        self._ready_state = ReadyState.UNINITIALIZED
        self._client: AsyncIOMotorClient | None = None
        self._open_task: asyncio.Task | None = None
        self.host: str | None = None
        self.port: int | None = None
        self.hosts: list[HostPort] | None = None
        self.user: str | None = None
        self.password: str | None = None
        self.name: str | None = None
        self.options: dict[str, Any] = {}

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None or self._ready_state != ReadyState.CONNECTED:
            raise RuntimeError("db_not_connected")
        return self._client

    def get_database(self, name: str | None = None) -> AsyncIOMotorDatabase:
        return self.client[name or self.name or "test"]

    def _set_state(self, state: ReadyState) -> None:
        self._ready_state = state
        _log("ready_state_changed", ready_state=state.name.lower())
        self.emit(_STATE_EVENTS[state])

    def open(self, uri: str | None, options: Mapping[str, Any] | None = None) -> "MotorConnection":
        """Start opening `uri`; the outcome is reported through "open" or "error"."""
        if self._ready_state in (ReadyState.CONNECTING, ReadyState.CONNECTED):
            return self
        self.options = dict(options or {})
        try:
            self._describe(uri)
        except InvalidURI:
            # raised again, and reported through "error", by the open task
            pass
        self._set_state(ReadyState.CONNECTING)
        self._open_task = asyncio.get_running_loop().create_task(self._open(uri))
        return self

    def _describe(self, uri: str) -> None:
        descriptor = parse_uri(uri)
        first = descriptor.hosts[0]
        self.host = first.host
        self.port = first.port or DEFAULT_PORT
        self.hosts = (
            [HostPort(h.host, h.port or DEFAULT_PORT) for h in descriptor.hosts]
            if len(descriptor.hosts) > 1
            else None
        )
        self.user = descriptor.username
        self.password = descriptor.password
        self.name = descriptor.database

    async def _open(self, uri: str | None) -> None:
        client: AsyncIOMotorClient | None = None
        try:
            self._describe(uri)
            client = self._client_factory(uri, **{**self._default_options, **self.options})
            await client.admin.command("ping")
        except asyncio.CancelledError:
            if client is not None:
                await _close_client(client)
            raise
        except Exception as exc:
            logger.warning("mongo connect failed: {}", exc)
            if client is not None:
                await _close_client(client)
            self._set_state(ReadyState.DISCONNECTED)
            self.emit("error", exc)
            return
        self._client = client
        self._set_state(ReadyState.CONNECTED)
        self.emit("open")

    async def ping(self) -> bool:
        """Return True if the server responds to ping; False if not connected or any error."""
        if self._client is None or self._ready_state != ReadyState.CONNECTED:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception:
            return False

    async def close(self) -> None:
        if self._ready_state in (ReadyState.DISCONNECTED, ReadyState.UNINITIALIZED):
            return
        if self._ready_state == ReadyState.DISCONNECTING:
            closed = asyncio.get_running_loop().create_future()

            def _on_disconnected() -> None:
                if not closed.done():
                    closed.set_result(None)

            self.once("disconnected", _on_disconnected)
            try:
                await closed
            finally:
                self.remove_listener("disconnected", _on_disconnected)
            return
        if self._open_task is not None and not self._open_task.done():
            self._open_task.cancel()
            try:
                await self._open_task
            except asyncio.CancelledError:
                pass
            self.emit("error", ConnectionFailure("connection closed before it was opened"))
        self._open_task = None

        self._set_state(ReadyState.DISCONNECTING)
        client, self._client = self._client, None
        try:
            if client is not None:
                await _close_client(client)
        except Exception as exc:
            logger.warning("mongo close failed: {}", exc)
            self._set_state(ReadyState.DISCONNECTED)
            self.emit("error", exc)
            raise
        self._set_state(ReadyState.DISCONNECTED)
        self.emit("close")
