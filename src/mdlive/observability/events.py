"""Build and reload events.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Build events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BuildCompleted:
    """The output file was rendered and written.

    Attributes:
        trigger_path: Source file whose change triggered the build
            (empty for the initial build).
        output_path: The written output file.
        duration_ms: Time spent building in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger_path: str
    output_path: str
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class BuildFailed:
    """A build raised a BuildError.

    Attributes:
        trigger_path: Source file whose change triggered the build.
        error_type: Name of the BuildError subclass.
        message: The error message.
        suppressed: True if the failure followed a rename/remove and was not logged.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    trigger_path: str
    error_type: str
    message: str
    suppressed: bool
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Reload events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ReloadBroadcast:
    """A payload was fanned out to live-reload clients.

    Attributes:
        payload: The payload sent (``reload``).
        clients_notified: Clients that accepted the write.
        clients_dropped: Clients removed because their write failed.
        duration_ms: Time spent on the broadcast pass.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    payload: str
    clients_notified: int
    clients_dropped: int
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type StackEvent = BuildCompleted | BuildFailed | ReloadBroadcast


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
