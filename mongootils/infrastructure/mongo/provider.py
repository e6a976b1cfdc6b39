"""Motor connection provider: creates connections and owns the shared default slot."""
from __future__ import annotations

from typing import Any, Mapping

from loguru import logger

from mongootils.config.settings import Settings
from mongootils.core import SERVICE_NAME
from mongootils.infrastructure.mongo.constants import ReadyState
from mongootils.infrastructure.mongo.motor_connection import ClientFactory, MotorConnection

_REUSABLE_STATES = (ReadyState.UNINITIALIZED, ReadyState.DISCONNECTED)


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).debug("")


class MotorConnectionProvider:
    """
    Keeps every connection it created in `connections`. The first entry is the
    default slot: while it is the only known connection and it is not in use,
    `connect()` opens it instead of creating an independent connection.
    """

    STATES = ReadyState

    def __init__(self, settings: Settings | None = None, *, client_factory: ClientFactory | None = None) -> None:
        self._settings = settings or Settings()
        self._client_factory = client_factory
        self._connections: list[MotorConnection] = [self._new_connection()]

    def _new_connection(self) -> MotorConnection:
        return MotorConnection(
            client_factory=self._client_factory,
            default_options=self._settings.connection_options(),
        )

    @property
    def connections(self) -> list[MotorConnection]:
        return self._connections

    @property
    def connection(self) -> MotorConnection:
        """The default slot."""
        return self._connections[0]

    def default_slot_available(self) -> bool:
        return len(self._connections) == 1 and self.connection.ready_state in _REUSABLE_STATES

    def connect(self, uri: str | None, options: Mapping[str, Any] | None = None) -> MotorConnection:
        _log("default_connection_open")
        return self.connection.open(uri, options)

    def _prune(self) -> None:
        """Drop closed connections other than the default slot."""
        self._connections[1:] = [c for c in self._connections[1:] if c.ready_state != ReadyState.DISCONNECTED]

    def create_connection(self, uri: str | None, options: Mapping[str, Any] | None = None) -> MotorConnection:
        self._prune()
        connection = self._new_connection()
        self._connections.append(connection)
        _log("connection_created", count=len(self._connections))
        return connection.open(uri, options)

    async def disconnect(self) -> None:
        """Close every known connection."""
        for connection in list(self._connections):
            await connection.close()

    def reset(self) -> None:
        """Forget every connection and start over with a fresh default slot. Does not close anything."""
        self._connections = [self._new_connection()]
