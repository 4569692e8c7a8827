"""EventBus and event types for drive mutations."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of drive mutations that listeners can react to."""

    DIRECTORY_CREATED = "directory_created"
    ENTRY_DELETED = "entry_deleted"
    FILE_UPLOADED = "file_uploaded"


@dataclass(frozen=True, slots=True)
class DriveEvent:
    """Immutable record of a drive mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        root: Namespace root the mutation happened in.
        path: Drive path of the affected entry.
        size: Bytes written (uploads only), None otherwise.
        token: Share token of the caller, if the mutation came through a link.
    """

    event_type: EventType
    root: str
    path: str
    size: int | None = None
    token: str | None = None


class EventBus:
    """Dispatches drive events to registered handlers.

    Handlers run one at a time in registration order. A handler that
    raises is logged and skipped; the mutation that produced the event
    has already been committed.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(
        self, event_type: EventType, handler: Callable[..., Any]
    ) -> Callable[..., Any]:
        """Subscribe *handler* to *event_type* and return it unchanged."""
        self._handlers[event_type].append(handler)
        return handler

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        if handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    async def emit(self, event: DriveEvent) -> None:
        """Dispatch *event* to all registered handlers for its type.

        Handlers may be plain callables or coroutine functions.
        """
        for handler in self._handlers[event.event_type]:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
