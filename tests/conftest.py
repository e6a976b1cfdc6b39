from __future__ import annotations

import asyncio
from typing import Any

import pytest

from mongootils.config.settings import Settings
from mongootils.infrastructure.factory import reset_default_provider
from mongootils.infrastructure.mongo.provider import MotorConnectionProvider

TEST_URI = "mongodb://localhost:27017/mongootils_test"

EVENTS = ("connecting", "connected", "open", "disconnecting", "disconnected", "close", "error")


class FakeMotorClient:
    """Stands in for AsyncIOMotorClient; connect/close behaviour is driven by its factory."""

    def __init__(self, factory: "FakeClientFactory", uri: str, options: dict[str, Any]) -> None:
        self._factory = factory
        self.uri = uri
        self.options = options
        self.admin = self
        self.ping_calls = 0
        self.close_calls = 0
        self.closed = False

    async def command(self, name: str) -> dict[str, Any]:
        if self._factory.ping_gate is not None:
            await self._factory.ping_gate.wait()
        if self._factory.ping_error is not None:
            raise self._factory.ping_error
        self.ping_calls += 1
        return {"ok": 1.0}

    def close(self) -> Any:
        self.close_calls += 1
        if self._factory.close_error is not None:
            raise self._factory.close_error
        if self._factory.close_gate is not None:
            return self._gated_close()
        self.closed = True
        return None

    async def _gated_close(self) -> None:
        await self._factory.close_gate.wait()
        self.closed = True

    def __getitem__(self, name: str) -> dict[str, str]:
        return {"database": name}


class FakeClientFactory:
    """Callable passed as client_factory; records every client it builds."""

    def __init__(self) -> None:
        self.clients: list[FakeMotorClient] = []
        self.ping_error: Exception | None = None
        self.close_error: Exception | None = None
        self.ping_gate: asyncio.Event | None = None
        self.close_gate: asyncio.Event | None = None

    def __call__(self, uri: str, **options: Any) -> FakeMotorClient:
        client = FakeMotorClient(self, uri, options)
        self.clients.append(client)
        return client


class EventRecorder:
    """Subscribes to every lifecycle event of a connection and keeps their names in order."""

    def __init__(self, connection: Any) -> None:
        self.events: list[str] = []
        self.errors: list[BaseException] = []
        for name in EVENTS:
            connection.on(name, self._make_listener(name))

    def _make_listener(self, name: str):
        def _listener(*args: Any) -> None:
            self.events.append(name)
            if name == "error":
                self.errors.append(args[0])

        return _listener


def listener_counts(connection: Any, *events: str) -> dict[str, int]:
    return {event: connection.listener_count(event) for event in events}


@pytest.fixture(autouse=True)
def _isolated_default_provider():
    reset_default_provider()
    yield
    reset_default_provider()


@pytest.fixture()
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_uri=TEST_URI, database_connection_timeout_ms=1500, database_backend="mongo")


@pytest.fixture()
def provider(settings: Settings, client_factory: FakeClientFactory) -> MotorConnectionProvider:
    return MotorConnectionProvider(settings, client_factory=client_factory)
