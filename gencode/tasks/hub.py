"""
Notification hub: fans task snapshots out to live subscribers.

One asyncio task owns the subscriber registry. Everything else talks to it
through an inbox of register/unregister/broadcast messages, so the registry
needs no lock and publishers never wait on a slow subscriber.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
import itertools

import structlog

from gencode.tasks.models import Task

logger = structlog.get_logger(__name__)

DEFAULT_SUBSCRIBER_QUEUE_SIZE = 10

_CLOSED = object()
_subscriber_ids = itertools.count(1)


class Subscriber:
    """
    One observer's bounded inbound queue for a task.

    Only the hub's control loop offers snapshots or closes the queue. Readers
    get snapshots in broadcast order and None once the subscriber is closed.
    """

    def __init__(self, task_id: str, capacity: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE):
        self.task_id = task_id
        self.capacity = capacity
        self.subscriber_id = next(_subscriber_ids)
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize() - (1 if self._closed else 0)

    def offer(self, task: Task) -> bool:
        """Enqueue without blocking; drop the snapshot if the queue is full."""
        if self._closed:
            return False
        if self._queue.qsize() >= self.capacity:
            self.dropped += 1
            return False
        self._queue.put_nowait(task)
        return True

    def close(self) -> None:
        """Signal end of stream; snapshots already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Task | None:
        """Wait for the next snapshot, or None when the subscriber is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            # keep end-of-stream visible to later readers
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __repr__(self) -> str:
        return (
            f"Subscriber(id={self.subscriber_id}, task_id={self.task_id!r}, "
            f"closed={self._closed})"
        )


class _MessageKind(Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"
    BROADCAST = "broadcast"


@dataclass(frozen=True)
class _Message:
    kind: _MessageKind
    payload: object


class NotificationHub:
    """
    Per-task subscriber registry driven by a single control loop.

    register/unregister/broadcast never block and never raise; they only
    enqueue a message. Per subscriber, snapshots arrive in the order
    broadcasts were submitted. A full subscriber queue drops the snapshot for
    that subscriber only.

    Example:
        >>> hub = NotificationHub()
        >>> hub.start()
        >>> subscriber = hub.register(task.task_id)
        >>> hub.broadcast(task)
        >>> snapshot = await subscriber.get()
        >>> hub.unregister(subscriber)
        >>> await hub.stop()
    """

    def __init__(self, queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._inbox: asyncio.Queue[_Message] = asyncio.Queue()
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def task_count(self) -> int:
        """Number of tasks that currently have at least one subscriber."""
        return len(self._subscribers)

    def subscriber_count(self, task_id: str | None = None) -> int:
        if task_id is None:
            return sum(len(subs) for subs in self._subscribers.values())
        return len(self._subscribers.get(task_id, ()))

    def start(self) -> None:
        """Start the control loop on the running event loop."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._run(), name="notification-hub")
        logger.info("Notification hub started", queue_size=self.queue_size)

    async def stop(self) -> None:
        """Apply pending messages, stop the loop and close every subscriber."""
        if self.running:
            await self.flush()
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        self._loop_task = None

        closed = 0
        for subscribers in self._subscribers.values():
            for subscriber in subscribers:
                subscriber.close()
                closed += 1
        self._subscribers.clear()
        logger.info("Notification hub stopped", closed_subscribers=closed)

    async def flush(self) -> None:
        """Wait until every message submitted so far has been applied."""
        if self.running:
            await self._inbox.join()

    def register(self, task_id: str) -> Subscriber:
        """Create a subscriber for a task; usable before the loop applies it."""
        subscriber = Subscriber(task_id, capacity=self.queue_size)
        self._submit(_MessageKind.REGISTER, subscriber)
        return subscriber

    def unregister(self, subscriber: Subscriber) -> None:
        self._submit(_MessageKind.UNREGISTER, subscriber)

    def broadcast(self, task: Task) -> None:
        self._submit(_MessageKind.BROADCAST, task)

    def _submit(self, kind: _MessageKind, payload: object) -> None:
        self._inbox.put_nowait(_Message(kind, payload))

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                self._dispatch(message)
            except Exception:
                logger.exception(
                    "Notification hub failed to apply message", kind=message.kind.value
                )
            finally:
                self._inbox.task_done()

    def _dispatch(self, message: _Message) -> None:
        if message.kind is _MessageKind.REGISTER:
            self._add(message.payload)
        elif message.kind is _MessageKind.UNREGISTER:
            self._remove(message.payload)
        else:
            self._fan_out(message.payload)

    def _add(self, subscriber: Subscriber) -> None:
        if subscriber.closed:
            return
        self._subscribers.setdefault(subscriber.task_id, []).append(subscriber)
        logger.debug(
            "Subscriber registered",
            task_id=subscriber.task_id,
            subscriber_id=subscriber.subscriber_id,
            subscribers=len(self._subscribers[subscriber.task_id]),
        )

    def _remove(self, subscriber: Subscriber) -> None:
        subscribers = self._subscribers.get(subscriber.task_id)
        if subscribers is None or subscriber not in subscribers:
            return

        subscribers.remove(subscriber)
        subscriber.close()
        if not subscribers:
            del self._subscribers[subscriber.task_id]

        logger.debug(
            "Subscriber unregistered",
            task_id=subscriber.task_id,
            subscriber_id=subscriber.subscriber_id,
            dropped=subscriber.dropped,
        )

    def _fan_out(self, task: Task) -> None:
        for subscriber in self._subscribers.get(task.task_id, ()):
            if not subscriber.offer(task):
                logger.debug(
                    "Subscriber queue full, snapshot dropped",
                    task_id=task.task_id,
                    subscriber_id=subscriber.subscriber_id,
                    status=task.status.value,
                )
