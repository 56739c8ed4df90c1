"""
Typed publish/subscribe used by the registry and the circuit breakers.

Event names are enum members rather than free-form strings, so a listener can
only subscribe to events a component actually emits.
"""

from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

E = TypeVar("E", bound=Enum)

Listener = Callable[[Any, Any], None]


class EventEmitter(Generic[E]):
    """Dispatches ``(event, payload)`` to listeners registered per event."""

    def __init__(self, event_type: type[E], source: str):
        self._event_type = event_type
        self._source = source
        self._listeners: dict[E, list[Listener]] = {event: [] for event in event_type}

    def _coerce(self, event: E | str) -> E:
        try:
            return self._event_type(event)
        except ValueError:
            raise ValueError(
                f"Unknown {self._event_type.__name__} '{event}' for {self._source}"
            ) from None

    def on(self, event: E | str, listener: Listener) -> None:
        """Subscribe ``listener`` to ``event``."""
        self._listeners[self._coerce(event)].append(listener)

    def off(self, event: E | str, listener: Listener) -> None:
        """Unsubscribe ``listener``; unknown listeners are ignored."""
        listeners = self._listeners[self._coerce(event)]
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: E | str) -> int:
        return len(self._listeners[self._coerce(event)])

    def emit(self, event: E, payload: Any = None) -> None:
        """Call every listener of ``event`` in subscription order."""
        for listener in list(self._listeners[event]):
            try:
                listener(event, payload)
            except Exception as e:
                logger.error(
                    "Event listener failed",
                    source=self._source,
                    event_name=event.value,
                    error=str(e),
                    exc_info=True,
                )
