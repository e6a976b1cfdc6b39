"""
ConnectionHandle: awaitable connect/disconnect over one driver connection.

States come from the wrapped connection's ready state:
  uninitialized/disconnected -> connect() opens (default slot or new connection)
  connecting                 -> connect() joins the in-flight attempt
  connected                  -> connect() returns the connection
  disconnecting              -> disconnect() joins the in-flight close
Failures are the driver's own exceptions, raised unchanged. Nothing is retried.
"""
from __future__ import annotations

import asyncio
from typing import Any, Mapping

from loguru import logger

from mongootils import constants
from mongootils.config.settings import Settings
from mongootils.constants import ConnectionState
from mongootils.core import SERVICE_NAME
from mongootils.core.uri import HostPort, UriDescriptor, format_driver_uri, format_uri
from mongootils.infrastructure.factory import get_default_provider
from mongootils.ports.connection import Connection, ConnectionProvider, Listener


class ConnectionHandle:
    def __init__(
        self,
        uri: str | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
        provider: ConnectionProvider | None = None,
    ) -> None:
        self._provider = provider or get_default_provider()
        self._connection = connection
        self._listeners: dict[str, Listener] = {}
        self._connecting: asyncio.Future | None = None
        self._disconnecting: asyncio.Future | None = None
        self._close_task: asyncio.Future | None = None
        if connection is not None:
            self.uri = self.get_connection_uri()
            self.options = dict(connection.options or {})
        else:
            self.uri = uri
            self.options = dict(options or {})

    @classmethod
    def from_connection(cls, connection: Connection, *, provider: ConnectionProvider | None = None) -> "ConnectionHandle":
        """Wrap an existing, possibly already open, connection."""
        return cls(connection=connection, provider=provider)

    @classmethod
    def from_uri(
        cls,
        uri: str,
        options: Mapping[str, Any] | None = None,
        *,
        provider: ConnectionProvider | None = None,
    ) -> "ConnectionHandle":
        """No connection is created until connect()."""
        return cls(uri, options, provider=provider)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        provider: ConnectionProvider | None = None,
    ) -> "ConnectionHandle":
        _settings = settings or Settings()
        return cls(_settings.database_uri, _settings.connection_options(), provider=provider)

    def _log(self, event: str, message: str) -> None:
        logger.bind(service_name=SERVICE_NAME, event=event, uri=self.uri).debug(message, self.uri)

    @property
    def state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.UNINITIALIZED
        return ConnectionState[self._provider.STATES(self._connection.ready_state).name]

    def is_state(self, state: str | ConnectionState) -> bool:
        try:
            state = ConnectionState(state)
        except ValueError:
            return False
        if state in (ConnectionState.DISCONNECTED, ConnectionState.UNINITIALIZED):
            return self._connection is None or self._reports(state)
        return self._connection is not None and self._reports(state)

    def _reports(self, state: ConnectionState) -> bool:
        return self._connection.ready_state == self._provider.STATES[state.name]

    def get_connection(self) -> Connection | None:
        return self._connection

    def get_connection_uri(self) -> str | None:
        connection = self._connection
        if connection is None:
            return None
        if connection.hosts:
            hosts = list(connection.hosts)
        elif connection.host:
            hosts = [HostPort(connection.host, connection.port)]
        else:
            return None
        descriptor = UriDescriptor(
            username=connection.user,
            password=connection.password,
            database=connection.name,
            hosts=hosts,
        )
        return format_driver_uri(format_uri(descriptor))

    def add_connection_listener(self, event: str, handler: Listener) -> None:
        """Attach `handler` unless this handle already listens for `event`. Only "error" is persistent."""
        if self._connection is None or event in self._listeners:
            return
        self._listeners[event] = handler
        if event == "error":
            self._connection.on(event, handler)
        else:
            self._connection.once(event, handler)

    def remove_listeners(self, event: str, handler: Listener | None = None) -> None:
        """Detach what this handle registered for `event` (only `handler`, when given)."""
        registered = self._listeners.get(event)
        if registered is None or (handler is not None and registered is not handler):
            return
        del self._listeners[event]
        if self._connection is not None:
            self._connection.remove_listener(event, registered)

    async def connect(self) -> Connection:
        if self.is_state(ConnectionState.CONNECTED):
            self._log("already_connected", constants.ALREADY_CONNECTED)
            return self._connection

        if self._connecting is not None and not self._connecting.done():
            self._log("already_connecting", constants.ALREADY_CONNECTING)
        elif self.is_state(ConnectionState.CONNECTING):
            self._log("already_connecting", constants.ALREADY_CONNECTING)
            self._connecting = self._watch_connect()
        else:
            self._log("connecting", constants.CONNECTING)
            if self._provider.default_slot_available():
                self._connection = self._provider.connect(self.uri, self.options)
            else:
                self._connection = self._provider.create_connection(self.uri, self.options)
            self._connecting = self._watch_connect()

        return await asyncio.shield(self._connecting)

    def _watch_connect(self) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()

        def on_error(exc: BaseException) -> None:
            self._log("connection_error", constants.CONNECTION_ERROR)
            if not future.done():
                future.set_exception(exc)
            cleanup()

        def on_open() -> None:
            self._log("connected", constants.CONNECTED)
            if not future.done():
                future.set_result(self._connection)
            cleanup()

        def cleanup() -> None:
            self.remove_listeners("error", on_error)
            self.remove_listeners("open", on_open)
            self.remove_listeners("close", cleanup)

        self.add_connection_listener("error", on_error)
        self.add_connection_listener("open", on_open)
        self.add_connection_listener("close", cleanup)
        return future

    async def disconnect(self) -> str | None:
        if self.is_state(ConnectionState.DISCONNECTED) or self.is_state(ConnectionState.UNINITIALIZED):
            self._log("already_disconnected", constants.ALREADY_DISCONNECTED)
            self._connection = None
            return self.uri

        if self._disconnecting is not None and not self._disconnecting.done():
            self._log("already_disconnecting", constants.ALREADY_DISCONNECTING)
        elif self.is_state(ConnectionState.DISCONNECTING):
            self._log("already_disconnecting", constants.ALREADY_DISCONNECTING)
            self._disconnecting = self._watch_disconnect(request_close=False)
        else:
            self._log("disconnecting", constants.DISCONNECTING)
            self._disconnecting = self._watch_disconnect(request_close=True)

        return await asyncio.shield(self._disconnecting)

    def _watch_disconnect(self, *, request_close: bool) -> asyncio.Future:
        """
        With request_close the close task's outcome settles the future; "error"
        events seen meanwhile (e.g. a cancelled open) are only logged.
        """
        future = asyncio.get_running_loop().create_future()
        connection = self._connection

        def reject(exc: BaseException) -> None:
            self._log("disconnection_error", constants.DISCONNECTION_ERROR)
            if not future.done():
                future.set_exception(exc)
            cleanup()

        def on_error(exc: BaseException) -> None:
            if request_close:
                logger.bind(service_name=SERVICE_NAME, event="error_while_closing", uri=self.uri).debug(
                    "error while closing {}: {}", self.uri, exc
                )
                return
            reject(exc)

        def on_disconnected() -> None:
            self._log("disconnected", constants.DISCONNECTED)

        def cleanup() -> None:
            self.remove_listeners("error", on_error)
            self.remove_listeners("disconnected", on_disconnected)
            self.remove_listeners("close", on_close)

        def finish() -> None:
            cleanup()
            if self._connection is connection:
                self._connection = None
            if not future.done():
                future.set_result(self.uri)

        def on_close() -> None:
            if request_close:
                cleanup()
            else:
                finish()

        def on_close_done(task: asyncio.Task) -> None:
            if self._close_task is task:
                self._close_task = None
            if task.cancelled():
                if not future.done():
                    future.cancel()
                cleanup()
                return
            exc = task.exception()
            if exc is not None:
                reject(exc)
                return
            finish()

        self.add_connection_listener("error", on_error)
        self.add_connection_listener("disconnected", on_disconnected)
        self.add_connection_listener("close", on_close)

        if request_close:
            self._close_task = asyncio.ensure_future(connection.close())
            self._close_task.add_done_callback(on_close_done)
        return future

    def __repr__(self) -> str:
        return f"<ConnectionHandle uri={self.uri!r} state={self.state.value}>"
