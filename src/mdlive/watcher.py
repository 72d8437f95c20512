"""File watcher: turns filesystem notifications into rebuild triggers.

Watches exactly two files, the markdown source and the template, and
normalizes watchfiles' raw changes into two kinds:

- ``write``: the file was modified or re-created in place
- ``rename_or_remove``: the file was renamed away or deleted

Editors often save by renaming a temporary file over the original, so the
watched path briefly does not exist.  A ``rename_or_remove`` change is
therefore held for a short settle delay before it is emitted, and the
watch is re-registered on both paths afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change

from mdlive._errors import WatchAddError, WatchError, WatchSetupError
from mdlive.log import get_logger, log_event

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence

    from mdlive._types import ChangeKind

logger = get_logger("watcher")


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A normalized change to one of the watched files.

    Attributes:
        path: Absolute path to the changed file.
        kind: ``write`` or ``rename_or_remove``.

    """

    path: Path
    kind: ChangeKind

    @property
    def is_rename_or_remove(self) -> bool:
        return self.kind == "rename_or_remove"


# Mapping from watchfiles Change enum to our kind literals.
_CHANGE_KIND_MAP: dict[Change, ChangeKind] = {
    Change.added: "write",
    Change.modified: "write",
    Change.deleted: "rename_or_remove",
}


def classify_change(change: Change) -> ChangeKind | None:
    """Return the normalized kind for a watchfiles change, or None to discard it."""
    return _CHANGE_KIND_MAP.get(change)


class SourceWatcher:
    """Watches the markdown and template files and streams ChangeEvents.

    Uses watchfiles on the parent directories of the two sources, filtered
    down to the two files themselves, so a watch survives the file being
    replaced.  watchfiles runs in a background thread; events are bridged
    to an asyncio queue on the loop that called ``start()``.

    Watcher errors travel on the same stream as ``WatchError`` instances.
    The stream ends once the watcher has stopped.

    Args:
        paths: The files to watch.
        settle_delay: Seconds to wait after a rename/remove before emitting it.
        debounce_ms: watchfiles debounce window.
        step_ms: watchfiles polling step.

    """

    def __init__(
        self,
        paths: Sequence[Path],
        *,
        settle_delay: float = 0.1,
        debounce_ms: int = 50,
        step_ms: int = 50,
    ) -> None:
        self._paths = tuple(dict.fromkeys(Path(p).resolve() for p in paths))
        self._dirs = tuple(dict.fromkeys(p.parent for p in self._paths))
        self._settle_delay = settle_delay
        self._debounce_ms = debounce_ms
        self._step_ms = step_ms
        self._queue: asyncio.Queue[ChangeEvent | WatchError | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def paths(self) -> tuple[Path, ...]:
        """The resolved files being watched."""
        return self._paths

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def check(self) -> None:
        """Verify both files can be watched.

        Raises:
            WatchAddError: If a watched file does not exist.
            WatchSetupError: If a parent directory cannot be watched.

        """
        for directory in self._dirs:
            if not directory.is_dir():
                msg = f"error creating the file watcher: {directory} is not a directory"
                raise WatchSetupError(msg)
        for path in self._paths:
            if not path.is_file():
                msg = f"error adding {path} to watcher: no such file"
                raise WatchAddError(msg)

    def start(self) -> None:
        """Start watching in a background thread.

        Must be called from a running event loop.  Runs ``check()`` first.

        """
        if self.is_running:
            return

        self.check()

        self._loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="mdlive-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    async def changes(self) -> AsyncIterator[ChangeEvent | WatchError]:
        """Async iterator over ChangeEvents and watcher errors.

        Blocks until a change is available; ends when the watcher stops.

        """
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item

    def is_watched(self, change: Change, path: str) -> bool:
        """watchfiles filter: only the two source files, only known change kinds."""
        return classify_change(change) is not None and Path(path).resolve() in self._paths

    def dispatch(self, raw_changes: Iterable[tuple[Change, str]]) -> bool:
        """Emit events for one batch of raw watchfiles changes.

        Runs on the watcher thread.  A batch is folded to one event per
        watched path: a path that was removed anywhere in the batch yields
        a single ``rename_or_remove``, held for the settle delay so the
        replacement file is in place; any other path yields one ``write``.

        Returns:
            True if the batch contained a rename/remove, meaning the watch
            must be re-registered.

        """
        kinds: dict[Path, ChangeKind] = {}
        for change, path_str in raw_changes:
            kind = classify_change(change)
            path = Path(path_str).resolve()
            if kind is None or path not in self._paths:
                continue
            if kinds.get(path) != "rename_or_remove":
                kinds[path] = kind

        rearm = False
        # watchfiles batches are sets; order by path only.
        for path in sorted(kinds):
            kind = kinds[path]
            if kind == "rename_or_remove":
                rearm = True
                time.sleep(self._settle_delay)
            self._emit(ChangeEvent(path=path, kind=kind))
        return rearm

    def _emit(self, item: ChangeEvent | WatchError | None) -> None:
        """Hand *item* to the event loop (thread-safe)."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and push events to the queue."""
        try:
            while not self._stop_event.is_set():
                self._watch_once()
        finally:
            self._emit(None)

    def _watch_once(self) -> None:
        """Register the watch on both paths and consume until a re-register is needed."""
        from watchfiles import watch

        log_event(
            logger, logging.DEBUG, "registering watch",
            paths=",".join(str(p) for p in self._paths),
        )
        try:
            for raw_changes in watch(
                *self._dirs,
                watch_filter=self.is_watched,
                stop_event=self._stop_event,
                debounce=self._debounce_ms,
                step=self._step_ms,
                recursive=False,
            ):
                if self.dispatch(raw_changes):
                    # Re-register the watch on both paths.
                    return
        except OSError as exc:
            self._emit(WatchError(f"error watching files: {exc}"))
            # Back off before re-registering so a vanished directory does not spin.
            self._stop_event.wait(max(self._settle_delay, 0.1))
