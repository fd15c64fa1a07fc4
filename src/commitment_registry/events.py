"""
commitment_registry/events.py
Append-only observer surface for accumulator insertions.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitmentAdded:
    """Published for every successful insertion."""
    commitment: bytes
    leaf_index: int
    root: bytes  # root after the insertion


@dataclass(frozen=True)
class RootUpdated:
    """Root transition caused by a single insertion."""
    old_root: bytes
    new_root: bytes


Event = Union[CommitmentAdded, RootUpdated]
Listener = Callable[[Event], None]


class EventLog:
    """Ordered event history with listener fan-out.

    record() appends to the history and queues the event; flush() delivers
    queued events to listeners in record order. Only one thread delivers
    at a time, and a flush that finds delivery already running leaves its
    events to that thread, so callers never wait on listeners they did
    not trigger.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._pending: Deque[Event] = deque()
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._delivering = threading.Lock()

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    def record(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)
            self._pending.append(event)

    def flush(self) -> None:
        while True:
            if not self._delivering.acquire(blocking=False):
                return
            try:
                self._drain()
            finally:
                self._delivering.release()
            # An event recorded after the drain but before the release
            # would otherwise wait for the next flush.
            with self._lock:
                if not self._pending:
                    return

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    return
                event = self._pending.popleft()
                listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Listener %r failed on %s", listener, type(event).__name__
                    )

    @property
    def events(self) -> Tuple[Event, ...]:
        with self._lock:
            return tuple(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
