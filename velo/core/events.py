"""Typed fire-and-forget events published by the mutation engine."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, List, Type

from velo.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Event:
    """Base class for engine events."""


@dataclass(frozen=True)
class SyncDone(Event):
    """Local data changed; views should re-read."""


@dataclass(frozen=True)
class InlineReplyRequested(Event):
    """Open the inline composer for a thread. ``mode`` is reply, replyAll or forward."""

    thread_id: str
    account_id: str
    mode: str


@dataclass(frozen=True)
class PendingCountChanged(Event):
    count: int


Listener = Callable[[Event], None]


class EventBus:
    """Synchronous observer registry keyed by event class.

    Publishing never fails: listener errors are logged and the remaining
    listeners still run.
    """

    def __init__(self):
        self._listeners: DefaultDict[Type[Event], List[Listener]] = defaultdict(list)

    def subscribe(self, event_type: Type[Event], callback: Listener) -> None:
        if not (isinstance(event_type, type) and issubclass(event_type, Event)):
            raise ValueError(f"Unsupported event: {event_type!r}")
        if callback not in self._listeners[event_type]:
            self._listeners[event_type].append(callback)

    def unsubscribe(self, event_type: Type[Event], callback: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def publish(self, event: Event) -> None:
        for listener in list(self._listeners.get(type(event), [])):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener for {type(event).__name__} failed")
