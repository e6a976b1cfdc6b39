"""Listener registry for driver connection lifecycle events."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger

from mongootils.core import SERVICE_NAME

Listener = Callable[..., None]


@dataclass(slots=True)
class _Registration:
    listener: Listener
    once: bool


class EventEmitter:
    """Minimal synchronous emitter: listeners run in registration order inside emit()."""

    def __init__(self) -> None:
        self._registrations: dict[str, list[_Registration]] = {}

    def on(self, event: str, listener: Listener) -> None:
        self._registrations.setdefault(event, []).append(_Registration(listener, once=False))

    def once(self, event: str, listener: Listener) -> None:
        self._registrations.setdefault(event, []).append(_Registration(listener, once=True))

    def remove_listener(self, event: str, listener: Listener) -> None:
        registrations = self._registrations.get(event)
        if not registrations:
            return
        for index, registration in enumerate(registrations):
            if registration.listener is listener:
                del registrations[index]
                break
        if not registrations:
            del self._registrations[event]

    def listeners(self, event: str) -> list[Listener]:
        return [registration.listener for registration in self._registrations.get(event, ())]

    def listener_count(self, event: str) -> int:
        return len(self._registrations.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener for `event`; returns False when nobody was listening."""
        registrations = self._registrations.get(event)
        if not registrations:
            if event == "error" and args:
                logger.bind(service_name=SERVICE_NAME, event="unhandled_connection_error").warning(
                    "connection error with no listener: {}", args[0]
                )
            return False
        for registration in tuple(registrations):
            if registration.once:
                self.remove_listener(event, registration.listener)
            registration.listener(*args)
        return True
