from __future__ import annotations

import pytest

from mongootils.application.connection_handle import ConnectionHandle
from mongootils.config.settings import Settings
from mongootils.infrastructure.factory import (
    create_connection_provider,
    get_default_provider,
    reset_default_provider,
    set_default_provider,
)
from mongootils.infrastructure.mongo.constants import ReadyState
from mongootils.infrastructure.mongo.provider import MotorConnectionProvider
from tests.conftest import TEST_URI


def test_provider_starts_with_uninitialized_default_slot(provider):
    assert len(provider.connections) == 1
    assert provider.connection.ready_state == ReadyState.UNINITIALIZED
    assert provider.default_slot_available() is True
    assert provider.STATES is ReadyState


@pytest.mark.asyncio
async def test_connect_opens_default_slot(provider, client_factory):
    connection = provider.connect(TEST_URI)

    assert connection is provider.connection
    assert connection.ready_state == ReadyState.CONNECTING
    assert provider.default_slot_available() is False


@pytest.mark.asyncio
async def test_create_connection_adds_independent_connection(provider):
    connection = provider.create_connection(TEST_URI, {"appname": "jobs"})

    assert connection is not provider.connection
    assert provider.connections == [provider.connection, connection]
    assert connection.options == {"appname": "jobs"}
    assert provider.default_slot_available() is False


@pytest.mark.asyncio
async def test_create_connection_drops_closed_connections_but_keeps_default_slot(provider):
    first = provider.create_connection(TEST_URI)
    await first._open_task
    await first.close()
    open_one = provider.create_connection(TEST_URI)
    await open_one._open_task

    second = provider.create_connection(TEST_URI)

    assert provider.connections == [provider.connection, open_one, second]
    assert first not in provider.connections


@pytest.mark.asyncio
async def test_disconnect_closes_every_connection_and_reset_restores_slot(provider, client_factory):
    first = provider.connect(TEST_URI)
    second = provider.create_connection(TEST_URI)
    for connection in (first, second):
        await connection._open_task

    await provider.disconnect()

    assert first.ready_state == ReadyState.DISCONNECTED
    assert second.ready_state == ReadyState.DISCONNECTED
    assert all(client.closed for client in client_factory.clients)

    provider.reset()
    assert len(provider.connections) == 1
    assert provider.connection is not first
    assert provider.default_slot_available() is True


def test_settings_options_reach_new_connections(client_factory):
    settings = Settings(database_connection_timeout_ms=250, database_app_name="billing")
    provider = MotorConnectionProvider(settings, client_factory=client_factory)

    assert provider.connection._default_options == {"serverSelectionTimeoutMS": 250, "appname": "billing"}


def test_default_provider_is_lazily_created_and_replaceable(provider):
    created = get_default_provider()
    assert isinstance(created, MotorConnectionProvider)
    assert get_default_provider() is created

    set_default_provider(provider)
    assert get_default_provider() is provider

    reset_default_provider()
    assert get_default_provider() is not provider


def test_factory_builds_motor_provider(settings, client_factory):
    provider = create_connection_provider(settings, client_factory=client_factory)

    assert isinstance(provider, MotorConnectionProvider)


def test_default_provider_follows_configured_backend(monkeypatch):
    monkeypatch.setenv("DATABASE_BACKEND", "mongo")

    assert isinstance(get_default_provider(), MotorConnectionProvider)


def test_default_provider_rejects_unknown_backend(monkeypatch):
    monkeypatch.setenv("DATABASE_BACKEND", "redis")
    reset_default_provider()

    with pytest.raises(ValueError, match="Unsupported database backend: redis"):
        get_default_provider()
    with pytest.raises(ValueError, match="Unsupported database backend: redis"):
        ConnectionHandle.from_uri(TEST_URI)


def test_factory_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported database backend: redis"):
        create_connection_provider(Settings(database_backend=" Redis "))
