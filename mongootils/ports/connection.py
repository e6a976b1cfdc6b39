"""Ports: the driver connection and the provider that creates it. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence

from mongootils.core.uri import HostPort
from mongootils.infrastructure.mongo.constants import ReadyState

Listener = Callable[..., None]


class Connection(Protocol):
    """Event-emitting connection object wrapped by a ConnectionHandle."""

    host: str | None
    port: int | None
    hosts: Sequence[HostPort] | None
    user: str | None
    password: str | None
    name: str | None
    options: Mapping[str, Any]

    @property
    def ready_state(self) -> ReadyState: ...

    def on(self, event: str, listener: Listener) -> None: ...

    def once(self, event: str, listener: Listener) -> None: ...

    def remove_listener(self, event: str, listener: Listener) -> None: ...

    def listeners(self, event: str) -> list[Listener]: ...

    async def close(self) -> None: ...


class ConnectionProvider(Protocol):
    """Creates and opens connections; owns the shared default slot."""

    STATES: type[ReadyState]

    @property
    def connections(self) -> list[Connection]: ...

    def default_slot_available(self) -> bool: ...

    def connect(self, uri: str | None, options: Mapping[str, Any] | None = None) -> Connection: ...

    def create_connection(self, uri: str | None, options: Mapping[str, Any] | None = None) -> Connection: ...
