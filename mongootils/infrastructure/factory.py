"""Connection provider factory: selects implementation from config. Only place that imports concrete providers."""
from __future__ import annotations

from mongootils.config.settings import Settings
from mongootils.infrastructure.mongo.motor_connection import ClientFactory
from mongootils.infrastructure.mongo.provider import MotorConnectionProvider
from mongootils.ports.connection import ConnectionProvider


def create_connection_provider(
    settings: Settings | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> ConnectionProvider:
    _settings = settings or Settings()
    backend = _settings.database_backend.strip().lower()

    if backend in ("mongo", "motor"):
        return MotorConnectionProvider(_settings, client_factory=client_factory)

    raise ValueError(f"Unsupported database backend: {backend}")


_default_provider: ConnectionProvider | None = None


def get_default_provider() -> ConnectionProvider:
    """Process-wide provider used by handles built without an explicit one; created from Settings on first use."""
    global _default_provider
    if _default_provider is None:
        _default_provider = create_connection_provider()
    return _default_provider


def set_default_provider(provider: ConnectionProvider | None) -> None:
    global _default_provider
    _default_provider = provider


def reset_default_provider() -> None:
    set_default_provider(None)
