"""Observability: an in-process record of builds and reload broadcasts.

Quick Start:
    >>> from mdlive.observability import EventLog, BuildCompleted, now_ns
    >>> log = EventLog()
    >>> log.append(BuildCompleted("post.md", "output.html", 3.2, now_ns()))
    >>> log.stats()["by_type"]
    {'BuildCompleted': 1}

"""

from mdlive.observability.events import (
    BuildCompleted,
    BuildFailed,
    ReloadBroadcast,
    StackEvent,
    now_ns,
)
from mdlive.observability.log import EventLog

__all__ = [
    "BuildCompleted",
    "BuildFailed",
    "EventLog",
    "ReloadBroadcast",
    "StackEvent",
    "now_ns",
]
