"""Event log: the last N builds and reload broadcasts.

A ring buffer of ``StackEvent`` objects, newest last.  The rebuild loop
appends from the event loop, the initial build appends from the main
thread and the stats endpoint reads from request handlers, so every
access holds one ``threading.Lock``.

"""

import threading
from collections import Counter, deque
from typing import Any

from mdlive.observability.events import (
    BuildCompleted,
    BuildFailed,
    ReloadBroadcast,
    StackEvent,
)


def _matches(
    event: StackEvent,
    event_type: type | None,
    since_ns: int,
    path: str | None,
) -> bool:
    if event_type is not None and not isinstance(event, event_type):
        return False
    if event.timestamp_ns < since_ns:
        return False
    # ReloadBroadcast has no trigger path, so a path filter excludes it.
    return path is None or path in getattr(event, "trigger_path", "")


class EventLog:
    """Bounded, thread-safe store of build and reload events.

    Args:
        max_events: How many events to keep; older ones are discarded.

    """

    __slots__ = ("_events", "_lock", "_max_events")

    def __init__(self, max_events: int = 1_000) -> None:
        self._max_events = max_events
        self._events: deque[StackEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _snapshot(self) -> list[StackEvent]:
        with self._lock:
            return list(self._events)

    def append(self, event: StackEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        path: str | None = None,
        limit: int = 100,
    ) -> list[StackEvent]:
        """Return up to *limit* matching events, newest first.

        *path* is a substring of the source file that triggered a build.
        """
        matched = (
            event for event in reversed(self._snapshot())
            if _matches(event, event_type, since_ns, path)
        )
        return [event for _, event in zip(range(limit), matched)]

    def recent(self, n: int = 20) -> list[StackEvent]:
        """The *n* newest events, oldest first."""
        return self._snapshot()[-n:]

    def last_build(self) -> BuildCompleted | BuildFailed | None:
        """The outcome of the most recent build, if any was recorded."""
        for event in reversed(self._snapshot()):
            if isinstance(event, BuildCompleted | BuildFailed):
                return event
        return None

    def clear(self) -> int:
        """Drop every event; return how many there were."""
        with self._lock:
            count = len(self._events)
            self._events.clear()
        return count

    def stats(self) -> dict[str, Any]:
        """Summarize the stored events for the stats endpoint."""
        events = self._snapshot()
        failed = [e for e in events if isinstance(e, BuildFailed)]
        broadcasts = [e for e in events if isinstance(e, ReloadBroadcast)]
        last = self.last_build()
        return {
            "total": len(events),
            "max_events": self._max_events,
            "by_type": dict(Counter(type(e).__name__ for e in events)),
            "suppressed_failures": sum(e.suppressed for e in failed),
            "clients_dropped": sum(e.clients_dropped for e in broadcasts),
            "last_build_ok": None if last is None else isinstance(last, BuildCompleted),
        }
