"""
Streaming session: one observer's live view of a task.

A session reads the current snapshot from the store, subscribes to the hub
and turns the subscriber's queue into a sequence of events. It waits on
three sources at once (a new snapshot, the observer going away, the
keepalive timer) and ends on a terminal snapshot or a disconnect, always
unregistering from the hub on the way out.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from gencode.tasks.hub import NotificationHub, Subscriber
from gencode.tasks.models import Task
from gencode.tasks.store import TaskStore

logger = structlog.get_logger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 15.0
DEFAULT_DISCONNECT_POLL_INTERVAL = 1.0

DisconnectProbe = Callable[[], Awaitable[bool]]


class SessionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


class EventKind(str, Enum):
    STATUS = "status"
    HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class StreamEvent:
    """One item of a progress feed; heartbeats carry no task state."""

    kind: EventKind
    task: Task | None = None

    @property
    def is_terminal(self) -> bool:
        return self.task is not None and self.task.is_terminal

    def payload(self) -> dict[str, Any]:
        """Observer-facing fields of a status event."""
        if self.task is None:
            return {}
        data: dict[str, Any] = {
            "status": self.task.status.value,
            "message": self.task.message,
        }
        if self.task.repo_url:
            data["repo_url"] = self.task.repo_url
        if self.task.error:
            data["error"] = self.task.error
        return data


HEARTBEAT = StreamEvent(EventKind.HEARTBEAT)


class StreamingSession:
    """
    Connecting -> Streaming -> Closed.

    Call open() first; it raises TaskNotFoundError for an unknown task before
    anything is registered. Then iterate events(). Snapshots older than the
    last one emitted (by revision) are skipped, so the feed never goes
    backwards even though the first snapshot comes from the store and the
    rest from the hub.

    Example:
        >>> session = StreamingSession(store, hub, task_id)
        >>> await session.open()
        >>> async for event in session.events():
        ...     send(event)
    """

    def __init__(
        self,
        store: TaskStore,
        hub: NotificationHub,
        task_id: str,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        is_disconnected: DisconnectProbe | None = None,
        disconnect_poll_interval: float = DEFAULT_DISCONNECT_POLL_INTERVAL,
    ):
        self.store = store
        self.hub = hub
        self.task_id = task_id
        self.heartbeat_interval = heartbeat_interval
        self.disconnect_poll_interval = disconnect_poll_interval
        self._is_disconnected = is_disconnected
        self.state = SessionState.CONNECTING
        self.close_reason: str | None = None
        self._subscriber: Subscriber | None = None
        self._initial: Task | None = None
        self._last_revision = -1
        self._seen_dropped = 0

    async def open(self) -> Task:
        """
        Look up the task and subscribe to its updates.

        Subscribing happens after the lookup, and the lookup is repeated
        once subscribed so an update landing in between is not missed.

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        await self.store.get(self.task_id)
        self._subscriber = self.hub.register(self.task_id)
        try:
            self._initial = await self.store.get(self.task_id)
        except BaseException:
            self._close("error")
            raise

        logger.info("Stream session connected", task_id=self.task_id)
        return self._initial

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield status events and heartbeats until the session closes."""
        if self._subscriber is None or self._initial is None:
            raise RuntimeError("open() must be called before events()")
        if self.state is SessionState.CLOSED:
            return

        next_snapshot: asyncio.Task | None = None
        disconnect_watch: asyncio.Task | None = None
        try:
            self.state = SessionState.STREAMING
            yield self._emit(self._initial)
            if self._initial.is_terminal:
                self.close_reason = "terminal"
                return

            if self._is_disconnected is not None:
                disconnect_watch = asyncio.ensure_future(self._watch_disconnect())

            while True:
                if next_snapshot is None:
                    next_snapshot = asyncio.ensure_future(self._subscriber.get())

                waiters = {next_snapshot}
                if disconnect_watch is not None:
                    waiters.add(disconnect_watch)

                done, _ = await asyncio.wait(
                    waiters,
                    timeout=self.heartbeat_interval,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if disconnect_watch is not None and disconnect_watch in done:
                    self.close_reason = "disconnected"
                    logger.info("Stream client disconnected", task_id=self.task_id)
                    return

                if next_snapshot in done:
                    task = next_snapshot.result()
                    next_snapshot = None
                    if task is None:
                        self.close_reason = "unsubscribed"
                        return
                    if task.revision <= self._last_revision:
                        continue
                    yield self._emit(task)
                    if task.is_terminal:
                        self.close_reason = "terminal"
                        logger.info(
                            "Stream task is terminal, closing",
                            task_id=self.task_id,
                            status=task.status.value,
                        )
                        return
                    continue

                missed = await self._recover_dropped()
                if missed is not None:
                    yield self._emit(missed)
                    if missed.is_terminal:
                        self.close_reason = "terminal"
                        return
                    continue

                yield HEARTBEAT
        except (asyncio.CancelledError, GeneratorExit):
            self.close_reason = self.close_reason or "cancelled"
            raise
        finally:
            for waiter in (next_snapshot, disconnect_watch):
                if waiter is not None and not waiter.done():
                    waiter.cancel()
            self._close(self.close_reason or "closed")

    def _emit(self, task: Task) -> StreamEvent:
        self._last_revision = task.revision
        logger.debug(
            "Stream sending status update",
            task_id=self.task_id,
            status=task.status.value,
        )
        return StreamEvent(EventKind.STATUS, task)

    async def _recover_dropped(self) -> Task | None:
        """
        Re-read the store after a quiet period if the hub dropped snapshots.

        A subscriber whose queue overflowed may have lost the terminal snapshot.
        """
        if self._subscriber.dropped == self._seen_dropped:
            return None
        self._seen_dropped = self._subscriber.dropped
        task = await self.store.get(self.task_id)
        if task.revision <= self._last_revision:
            return None
        logger.debug(
            "Stream recovered dropped snapshot",
            task_id=self.task_id,
            dropped=self._seen_dropped,
        )
        return task

    async def _watch_disconnect(self) -> None:
        while not await self._is_disconnected():
            await asyncio.sleep(self.disconnect_poll_interval)

    def close(self) -> None:
        """Release the hub subscription; safe to call more than once."""
        self._close(self.close_reason or "closed")

    def _close(self, reason: str) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        self.close_reason = reason
        if self._subscriber is not None:
            self.hub.unregister(self._subscriber)
        logger.info("Stream session closed", task_id=self.task_id, reason=reason)
