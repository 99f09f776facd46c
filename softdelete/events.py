"""Repository lifecycle events with stoppable listeners"""

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class RepositoryEvent(str, Enum):
    BEFORE_FIND = "before_find"
    BEFORE_SAVE = "before_save"
    AFTER_SAVE = "after_save"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"


@dataclass(frozen=True)
class Continue:
    """Let the operation proceed"""


@dataclass(frozen=True)
class Stopped:
    """Stop the operation; the caller returns `result` instead"""

    result: Any = False


EventResult = Continue | Stopped
Listener = Callable[[dict[str, Any]], "EventResult | None | Awaitable[EventResult | None]"]


class EventManager:
    """
    Registry of listeners per repository event.

    Listeners receive the event payload and may be plain functions or
    coroutine functions. Returning None or Continue() hands over to the next
    listener; returning Stopped(result) ends the dispatch.

    Usage:
        events.on(RepositoryEvent.BEFORE_DELETE, lambda payload: Stopped(False))
        outcome = await events.dispatch(RepositoryEvent.BEFORE_DELETE, {...})
    """

    def __init__(self):
        self._listeners: dict[RepositoryEvent, list[Listener]] = defaultdict(list)

    def on(self, event: RepositoryEvent, listener: Listener) -> Listener:
        self._listeners[RepositoryEvent(event)].append(listener)
        return listener

    def off(self, event: RepositoryEvent, listener: Listener) -> None:
        listeners = self._listeners[RepositoryEvent(event)]
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: RepositoryEvent) -> list[Listener]:
        return list(self._listeners[RepositoryEvent(event)])

    async def dispatch(self, event: RepositoryEvent, payload: dict[str, Any]) -> EventResult:
        for listener in self.listeners(event):
            outcome = listener(payload)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if isinstance(outcome, Stopped):
                logger.info("Event stopped by listener", event=RepositoryEvent(event).value)
                return outcome
        return Continue()
