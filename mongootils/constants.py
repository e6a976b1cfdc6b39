"""Handle-level connection states and log message templates."""
from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"


CONNECTING = "Connecting to {}..."
ALREADY_CONNECTED = "Already connected to {}."
ALREADY_CONNECTING = "Already connecting to {}."
CONNECTED = "Successfully connected to {}."
CONNECTION_ERROR = "An error has occured while connecting to {}."
DISCONNECTING = "Disconnecting from {}..."
ALREADY_DISCONNECTED = "Already disconnected from {}."
ALREADY_DISCONNECTING = "Already disconnecting from {}."
DISCONNECTED = "Successfully disconnected from {}."
DISCONNECTION_ERROR = "An error has occured while disconnecting from {}."
