"""Authentication state events consumed by the task engine."""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    """Auth transitions the engine reacts to."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


AuthListener = Callable[[AuthEvent], None]


class AuthEventSource(Protocol):
    """Protocol for something that announces auth transitions."""

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register listener; returns a callable that unsubscribes it."""
        ...


class AuthEventBus:
    """In-process auth event source."""

    def __init__(self) -> None:
        """Initialize with no listeners."""
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: AuthEvent) -> None:
        """Deliver event to every listener; a failing listener does not stop the rest."""
        logger.info(f"[AuthEventBus] {event.value} -> {len(self._listeners)} listener(s)")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"[AuthEventBus] Listener error: {e}", exc_info=True)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
