"""Ready-state codes reported by driver connections."""
from enum import IntEnum


class ReadyState(IntEnum):
    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3
    UNINITIALIZED = 99
