"""Awaitable connect/disconnect lifecycle for a single MongoDB connection.

Example::

    from mongootils import ConnectionHandle

    db = ConnectionHandle.from_uri("mongodb://localhost/database")
    connection = await db.connect()
    print("Connected to", db.get_connection_uri())
    uri = await db.disconnect()
    print("Disconnected from", uri)

Log records are bound with ``service_name="mongootils"`` and are disabled by
default; call ``logger.enable("mongootils")`` to see them.
"""
from loguru import logger

from mongootils.application.connection_handle import ConnectionHandle
from mongootils.constants import ConnectionState
from mongootils.infrastructure.factory import get_default_provider, reset_default_provider, set_default_provider
from mongootils.infrastructure.mongo.constants import ReadyState
from mongootils.infrastructure.mongo.provider import MotorConnectionProvider

logger.disable("mongootils")

__all__ = [
    "ConnectionHandle",
    "ConnectionState",
    "MotorConnectionProvider",
    "ReadyState",
    "get_default_provider",
    "reset_default_provider",
    "set_default_provider",
]
