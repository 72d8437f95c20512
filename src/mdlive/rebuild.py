"""Rebuild loop: connects the watcher to the builder and the hub.

Consumes the watcher's stream one item at a time:

    1. SourceWatcher emits a ChangeEvent (or a WatchError)
    2. The document is rebuilt via ``build_document``
    3. On success, the hub (server mode only) is asked to broadcast ``reload``

Build failures are logged and the loop carries on; the next change retries.
A failure right after a rename/remove is expected while an editor swaps the
file in, and is not logged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from mdlive._errors import BuildError, WatchError
from mdlive.builder import BuildRequest, build_document
from mdlive.hub import RELOAD
from mdlive.log import get_logger, log_event
from mdlive.observability.events import BuildCompleted, BuildFailed, now_ns

if TYPE_CHECKING:
    from collections.abc import AsyncIterable

    from mdlive.hub import Hub
    from mdlive.observability.log import EventLog
    from mdlive.watcher import ChangeEvent

logger = get_logger("rebuild")


@dataclass(frozen=True, slots=True)
class RebuildOutcome:
    """Result of handling one ChangeEvent.

    Attributes:
        event: The change that triggered the rebuild.
        error: The BuildError raised, or None on success.

    """

    event: ChangeEvent
    error: BuildError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RebuildLoop:
    """Rebuilds the document for every change and notifies the hub.

    Builds run in a worker thread but are awaited one at a time, so two
    builds never overlap.

    Args:
        request: The build to repeat on every change.
        hub: Hub to notify after a successful rebuild (None in watch-only mode).
        event_log: Optional log receiving BuildCompleted/BuildFailed events.
        builder: The build function (``build_document`` unless overridden).

    """

    def __init__(
        self,
        request: BuildRequest,
        *,
        hub: Hub | None = None,
        event_log: EventLog | None = None,
        builder: Callable[[BuildRequest], None] = build_document,
    ) -> None:
        self._request = request
        self._hub = hub
        self._event_log = event_log
        self._builder = builder

    async def run(self, changes: AsyncIterable[ChangeEvent | WatchError]) -> None:
        """Handle every item of *changes* until the stream ends."""
        async for item in changes:
            if isinstance(item, WatchError):
                log_event(logger, logging.ERROR, "error watching files", err=item)
                continue
            await self.handle_change(item)

    async def handle_change(self, event: ChangeEvent) -> RebuildOutcome:
        """Rebuild for one change."""
        log_event(
            logger, logging.INFO, "change detected, rebuilding...",
            file=event.path, op=event.kind,
        )
        start = time.perf_counter()
        try:
            await asyncio.to_thread(self._builder, self._request)
        except BuildError as exc:
            self._record_failure(event, exc)
            return RebuildOutcome(event=event, error=exc)

        log_event(logger, logging.INFO, "rebuild successful")
        if self._event_log is not None:
            self._event_log.append(BuildCompleted(
                trigger_path=str(event.path),
                output_path=str(self._request.output),
                duration_ms=(time.perf_counter() - start) * 1000,
                timestamp_ns=now_ns(),
            ))
        if self._hub is not None:
            self._hub.broadcast(RELOAD)
        return RebuildOutcome(event=event)

    def _record_failure(self, event: ChangeEvent, exc: BuildError) -> None:
        suppressed = event.is_rename_or_remove
        if suppressed:
            # The file is expected to reappear; the follow-up event rebuilds.
            log_event(logger, logging.DEBUG, "rebuild failed during rename", err=exc)
        else:
            log_event(logger, logging.ERROR, "error rebuilding document", err=exc)
        if self._event_log is not None:
            self._event_log.append(BuildFailed(
                trigger_path=str(event.path),
                error_type=type(exc).__name__,
                message=str(exc),
                suppressed=suppressed,
                timestamp_ns=now_ns(),
            ))
