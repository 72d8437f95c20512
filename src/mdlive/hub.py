"""Broadcast hub: owns the live-reload connections and fans out payloads.

All access to the connection set goes through one coordinator task that
drains a queue of intents (register, unregister, broadcast, snapshot) one
at a time.  Nothing else ever reads or writes the set, so registration
and removal can never race with a broadcast pass.

A broadcast writes to every connection concurrently.  A connection whose
write fails, or takes longer than the write timeout, is closed and removed
within the same pass; the others are unaffected.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from mdlive.log import get_logger, log_event
from mdlive.observability.events import ReloadBroadcast, now_ns

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from mdlive._types import ClientID, Payload
    from mdlive.observability.log import EventLog

logger = get_logger("hub")

# The only payload this system sends.
RELOAD: Payload = "reload"


class ConnectionClosedError(ConnectionError):
    """Write attempted on a closed live-reload connection."""


class Connection(Protocol):
    """A write-only channel to one browser client.

    ``send`` raises on failure.  ``close`` must be idempotent.
    """

    async def send(self, payload: Payload) -> None: ...

    def close(self) -> None: ...


_CLOSE = object()


@dataclass(eq=False, slots=True)
class ReloadConnection:
    """A connected live-reload client, backed by a Server-Sent Events stream.

    Identity is the object itself (``eq=False``), so it can key the hub's set.

    Attributes:
        client_id: Identifier used in log lines.
        maxsize: Pending events buffered before writes start failing.
        queue: Events awaiting delivery to the client's stream.

    """

    client_id: ClientID
    maxsize: int = 16
    queue: asyncio.Queue[Any] = field(init=False)
    closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        self.queue = asyncio.Queue(maxsize=self.maxsize)

    async def send(self, payload: Payload) -> None:
        """Enqueue *payload* as an SSE message.

        Raises:
            ConnectionClosedError: The connection was closed.
            asyncio.QueueFull: The client is not draining its stream.

        """
        from chirp import SSEEvent

        if self.closed:
            msg = f"connection {self.client_id} is closed"
            raise ConnectionClosedError(msg)
        self.queue.put_nowait(SSEEvent(data=payload))

    def close(self) -> None:
        """Close the connection; its stream ends after pending events are dropped."""
        if self.closed:
            return
        self.closed = True
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSE)

    async def stream(self) -> AsyncIterator[Any]:
        """Async generator yielding queued events until the connection closes.

        Used as the generator for Chirp's ``EventStream``.  Catches
        ``CancelledError`` (client disconnect) and ``GeneratorExit``
        (generator cleanup) so disconnects end the stream quietly.

        """
        try:
            while True:
                event = await self.queue.get()
                if event is _CLOSE:
                    return
                yield event
        except (asyncio.CancelledError, GeneratorExit):
            return


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Register:
    conn: Connection


@dataclass(frozen=True, slots=True)
class _Unregister:
    conn: Connection


@dataclass(frozen=True, slots=True)
class _Broadcast:
    payload: Payload


@dataclass(frozen=True, slots=True)
class _Snapshot:
    reply: asyncio.Future[frozenset[Connection]]


type _Intent = _Register | _Unregister | _Broadcast | _Snapshot


class Hub:
    """Serializes registration, removal and fan-out of live-reload connections.

    Call ``start()`` from the event loop before use.  ``register``,
    ``unregister`` and ``broadcast`` only enqueue an intent and return
    immediately; the coordinator applies intents in the order they were
    queued, so a connection registered after a broadcast was queued does
    not receive that broadcast.

    Args:
        write_timeout: Seconds a single write may take before the client is
            dropped.  ``None`` waits indefinitely.
        event_log: Optional log receiving a ``ReloadBroadcast`` per pass.

    """

    def __init__(
        self,
        *,
        write_timeout: float | None = 5.0,
        event_log: EventLog | None = None,
    ) -> None:
        self._clients: set[Connection] = set()
        self._intents: asyncio.Queue[_Intent] = asyncio.Queue()
        self._write_timeout = write_timeout
        self._event_log = event_log
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        """Whether the coordinator task is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Spawn the coordinator task on the running loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(), name="mdlive-hub")

    async def stop(self) -> None:
        """Cancel the coordinator and close every registered connection."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for conn in self._clients:
            conn.close()
        self._clients.clear()

    # -- intents -------------------------------------------------------------

    def register(self, conn: Connection) -> None:
        """Add *conn* to the live set."""
        self._intents.put_nowait(_Register(conn))

    def unregister(self, conn: Connection) -> None:
        """Remove and close *conn*.  A no-op for unknown connections."""
        self._intents.put_nowait(_Unregister(conn))

    def broadcast(self, payload: Payload = RELOAD) -> None:
        """Send *payload* to every connection registered at processing time."""
        self._intents.put_nowait(_Broadcast(payload))

    async def snapshot(self) -> frozenset[Connection]:
        """Return the live set as seen by the coordinator."""
        reply: asyncio.Future[frozenset[Connection]] = asyncio.get_running_loop().create_future()
        self._intents.put_nowait(_Snapshot(reply))
        return await reply

    async def flush(self) -> None:
        """Wait until every intent queued so far has been processed."""
        await self._intents.join()

    # -- coordinator ---------------------------------------------------------

    async def _run(self) -> None:
        while True:
            intent = await self._intents.get()
            try:
                await self._apply(intent)
            except Exception:
                logger.exception("hub failed to apply %s", type(intent).__name__)
            finally:
                self._intents.task_done()

    async def _apply(self, intent: _Intent) -> None:
        match intent:
            case _Register(conn):
                self._clients.add(conn)
                log_event(logger, logging.DEBUG, "client registered", clients=len(self._clients))
            case _Unregister(conn):
                self._clients.discard(conn)
                conn.close()
                log_event(logger, logging.DEBUG, "client unregistered", clients=len(self._clients))
            case _Broadcast(payload):
                await self._broadcast(payload)
            case _Snapshot(reply):
                if not reply.done():
                    reply.set_result(frozenset(self._clients))

    async def _broadcast(self, payload: Payload) -> None:
        start = time.perf_counter()
        clients = tuple(self._clients)
        results = await asyncio.gather(*(self._deliver(conn, payload) for conn in clients))

        dropped = 0
        for conn, delivered in zip(clients, results, strict=True):
            if not delivered:
                conn.close()
                self._clients.discard(conn)
                dropped += 1

        notified = len(clients) - dropped
        log_event(
            logger, logging.DEBUG, "broadcast",
            payload=payload, notified=notified, dropped=dropped,
        )
        if self._event_log is not None:
            self._event_log.append(ReloadBroadcast(
                payload=payload,
                clients_notified=notified,
                clients_dropped=dropped,
                duration_ms=(time.perf_counter() - start) * 1000,
                timestamp_ns=now_ns(),
            ))

    async def _deliver(self, conn: Connection, payload: Payload) -> bool:
        """Write to one connection.  Any failure means the client is gone."""
        try:
            if self._write_timeout is None:
                await conn.send(payload)
            else:
                await asyncio.wait_for(conn.send(payload), timeout=self._write_timeout)
        except Exception as exc:
            log_event(logger, logging.DEBUG, "error writing to client, removing", err=exc)
            return False
        return True
