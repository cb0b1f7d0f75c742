"""
Tests for the notification hub.

Covers fan-out ordering, per-subscriber overflow, registry cleanup and
shutdown.
"""

import pytest

from gencode.tasks.hub import NotificationHub, Subscriber
from gencode.tasks.models import TaskStatus


async def _advance(store, task_id, *statuses):
    snapshots = []
    for status in statuses:
        snapshots.append(await store.update_status(task_id, status, status.value))
    return snapshots


async def _drain(subscriber: Subscriber):
    return [await subscriber.get() for _ in range(subscriber.pending)]


class TestSubscriber:
    """Test the bounded subscriber queue."""

    @pytest.mark.asyncio
    async def test_offer_drops_when_full(self, store, job_spec):
        task = await store.create(job_spec)
        subscriber = Subscriber(task.task_id, capacity=1)

        assert subscriber.offer(task)
        assert not subscriber.offer(task)
        assert subscriber.dropped == 1
        assert subscriber.pending == 1

    @pytest.mark.asyncio
    async def test_close_delivers_queued_then_none(self, store, job_spec):
        task = await store.create(job_spec)
        subscriber = Subscriber(task.task_id)
        subscriber.offer(task)

        subscriber.close()

        assert await subscriber.get() == task
        assert await subscriber.get() is None
        assert await subscriber.get() is None
        assert not subscriber.offer(task)


class TestNotificationHub:
    """Test registration, broadcast and unregistration."""

    @pytest.mark.asyncio
    async def test_broadcast_preserves_order(self, hub, store, job_spec):
        task = await store.create(job_spec)
        subscriber = hub.register(task.task_id)

        snapshots = await _advance(
            store,
            task.task_id,
            TaskStatus.GENERATING,
            TaskStatus.MERGING_FILES,
            TaskStatus.CREATING_REPO,
        )
        for snapshot in snapshots:
            hub.broadcast(snapshot)
        await hub.flush()

        assert [await subscriber.get() for _ in snapshots] == snapshots

    @pytest.mark.asyncio
    async def test_every_subscriber_gets_the_same_events(self, hub, store, job_spec):
        task = await store.create(job_spec)
        first = hub.register(task.task_id)
        second = hub.register(task.task_id)

        snapshot = await store.update_status(
            task.task_id, TaskStatus.GENERATING, "Generating"
        )
        hub.broadcast(snapshot)
        await hub.flush()

        assert await first.get() == snapshot
        assert await second.get() == snapshot
        assert hub.subscriber_count(task.task_id) == 2

    @pytest.mark.asyncio
    async def test_broadcast_only_reaches_that_task(self, hub, store, job_spec):
        task = await store.create(job_spec)
        other = await store.create(job_spec)
        subscriber = hub.register(other.task_id)

        hub.broadcast(task)
        await hub.flush()

        assert subscriber.pending == 0

    @pytest.mark.asyncio
    async def test_broadcast_without_subscribers(self, hub, store, job_spec):
        task = await store.create(job_spec)

        hub.broadcast(task)
        await hub.flush()

        assert hub.task_count == 0

    @pytest.mark.asyncio
    async def test_full_subscriber_does_not_affect_others(self, store, job_spec):
        hub = NotificationHub(queue_size=10)
        hub.start()
        try:
            task = await store.create(job_spec)
            slow = hub.register(task.task_id)
            fast = hub.register(task.task_id)
            received = []

            for _ in range(11):
                hub.broadcast(
                    await store.update_status(task.task_id, TaskStatus.GENERATING, "tick")
                )
                await hub.flush()
                received.extend(await _drain(fast))

            assert [t.revision for t in received] == list(range(1, 12))
            assert slow.pending == 10
            assert slow.dropped == 1
            assert fast.dropped == 0
        finally:
            await hub.stop()

    @pytest.mark.asyncio
    async def test_unregister_releases_registry_entry(self, hub, store, job_spec):
        task = await store.create(job_spec)
        subscriber = hub.register(task.task_id)
        await hub.flush()
        assert hub.task_count == 1

        hub.unregister(subscriber)
        await hub.flush()

        assert hub.task_count == 0
        assert hub.subscriber_count() == 0
        assert subscriber.closed
        assert await subscriber.get() is None

    @pytest.mark.asyncio
    async def test_unregister_keeps_other_subscribers(self, hub, store, job_spec):
        task = await store.create(job_spec)
        leaving = hub.register(task.task_id)
        staying = hub.register(task.task_id)

        hub.unregister(leaving)
        hub.broadcast(task)
        await hub.flush()

        assert hub.subscriber_count(task.task_id) == 1
        assert await staying.get() == task

    @pytest.mark.asyncio
    async def test_unknown_unregister_is_noop(self, hub, store, job_spec):
        task = await store.create(job_spec)
        registered = hub.register(task.task_id)
        stranger = Subscriber(task.task_id)

        hub.unregister(stranger)
        hub.unregister(registered)
        hub.unregister(registered)
        await hub.flush()

        assert hub.running
        assert hub.task_count == 0
        assert not stranger.closed

    @pytest.mark.asyncio
    async def test_register_then_immediate_unregister(self, hub, store, job_spec):
        task = await store.create(job_spec)

        subscriber = hub.register(task.task_id)
        hub.unregister(subscriber)
        hub.broadcast(task)
        await hub.flush()

        assert hub.task_count == 0
        assert await subscriber.get() is None

    @pytest.mark.asyncio
    async def test_stop_closes_subscribers(self, store, job_spec):
        hub = NotificationHub()
        hub.start()
        task = await store.create(job_spec)
        subscriber = hub.register(task.task_id)
        hub.broadcast(task)

        await hub.stop()

        assert not hub.running
        assert hub.task_count == 0
        assert await subscriber.get() == task
        assert await subscriber.get() is None
