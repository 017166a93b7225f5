"""Subscription registry tests.

Learn: The registry's contract is mostly about bookkeeping (a user id is
present iff it still has a subscribed channel), so most of these are
plain synchronous tests. One threaded test hammers it from several
threads to make sure the lock keeps that invariant.
"""

import random
import threading

import pytest

from loveforu.realtime.registry import SubscriptionRegistry


# ═══════════════════════════════════════════════════════════
# Subscribe / unsubscribe
# ═══════════════════════════════════════════════════════════


def test_subscribe_creates_entry_lazily():
    registry = SubscriptionRegistry()
    assert "U1" not in registry

    handle = registry.subscribe("U1")

    assert "U1" in registry
    assert registry.snapshot_channels("U1") == (handle.channel,)
    assert handle.user_id == "U1"


def test_multiple_subscriptions_keep_insertion_order():
    """Several tabs for the same user → several channels, in order."""
    registry = SubscriptionRegistry()
    h1 = registry.subscribe("U1")
    h2 = registry.subscribe("U1")

    assert registry.snapshot_channels("U1") == (h1.channel, h2.channel)
    assert registry.channel_count() == 2


def test_last_unsubscribe_removes_entry():
    registry = SubscriptionRegistry()
    h1 = registry.subscribe("U1")
    h2 = registry.subscribe("U1")

    h1.dispose()
    assert "U1" in registry
    assert registry.snapshot_channels("U1") == (h2.channel,)

    h2.dispose()
    assert "U1" not in registry
    assert registry.user_ids() == []


def test_unsubscribe_closes_channel():
    registry = SubscriptionRegistry()
    handle = registry.subscribe("U1")

    registry.unsubscribe("U1", handle.channel)

    assert handle.channel.closed


def test_unsubscribe_is_idempotent():
    registry = SubscriptionRegistry()
    keep = registry.subscribe("U1")
    gone = registry.subscribe("U1")

    registry.unsubscribe("U1", gone.channel)
    registry.unsubscribe("U1", gone.channel)

    assert registry.snapshot_channels("U1") == (keep.channel,)


def test_unsubscribe_unknown_user_is_noop():
    registry = SubscriptionRegistry()
    other = SubscriptionRegistry().subscribe("U9")

    registry.unsubscribe("U9", other.channel)

    assert registry.user_ids() == []


def test_dispose_twice_is_noop():
    registry = SubscriptionRegistry()
    handle = registry.subscribe("U1")
    sibling = registry.subscribe("U1")

    handle.dispose()
    handle.dispose()

    assert handle.disposed
    assert registry.snapshot_channels("U1") == (sibling.channel,)


def test_context_manager_disposes_on_error():
    registry = SubscriptionRegistry()

    with pytest.raises(RuntimeError):
        with registry.subscribe("U1") as handle:
            assert "U1" in registry
            raise RuntimeError("stream blew up")

    assert handle.disposed
    assert "U1" not in registry


@pytest.mark.asyncio
async def test_async_context_manager_disposes():
    registry = SubscriptionRegistry()
    async with registry.subscribe("U1") as handle:
        assert "U1" in registry
    assert handle.disposed
    assert "U1" not in registry


def test_channel_capacity_is_passed_to_channels():
    registry = SubscriptionRegistry(channel_capacity=5)
    assert registry.subscribe("U1").channel.capacity == 5


# ═══════════════════════════════════════════════════════════
# Snapshots
# ═══════════════════════════════════════════════════════════


def test_snapshot_unknown_user_is_empty():
    assert SubscriptionRegistry().snapshot_channels("nobody") == ()


def test_snapshot_is_a_copy():
    """Mutating the registry after a snapshot doesn't change the snapshot."""
    registry = SubscriptionRegistry()
    h1 = registry.subscribe("U1")
    snapshot = registry.snapshot_channels("U1")

    registry.subscribe("U1")
    h1.dispose()

    assert snapshot == (h1.channel,)


def test_close_unsubscribes_everything():
    registry = SubscriptionRegistry()
    handles = [registry.subscribe(u) for u in ("U1", "U1", "U2")]

    registry.close()

    assert registry.user_ids() == []
    assert registry.channel_count() == 0
    assert all(h.channel.closed for h in handles)
    for h in handles:
        h.dispose()  # late dispose after shutdown is harmless


# ═══════════════════════════════════════════════════════════
# Invariants
# ═══════════════════════════════════════════════════════════


def test_entry_present_iff_live_channel_random_sequence():
    """Random subscribe/dispose sequences keep "present iff live" true."""
    rng = random.Random(1234)
    registry = SubscriptionRegistry()
    live: dict[str, list] = {"U1": [], "U2": [], "U3": []}

    for _ in range(500):
        user_id = rng.choice(list(live))
        if live[user_id] and rng.random() < 0.5:
            handle = live[user_id].pop(rng.randrange(len(live[user_id])))
            handle.dispose()
            if rng.random() < 0.3:
                handle.dispose()
        else:
            live[user_id].append(registry.subscribe(user_id))

        for uid, handles in live.items():
            assert (uid in registry) == bool(handles)
            assert registry.snapshot_channels(uid) == tuple(
                h.channel for h in handles
            )


def test_concurrent_subscribe_and_dispose_from_threads():
    registry = SubscriptionRegistry()
    errors = []

    def worker(user_id: str):
        try:
            for _ in range(200):
                handle = registry.subscribe(user_id)
                registry.snapshot_channels(user_id)
                handle.dispose()
                handle.dispose()
        except Exception as e:  # surfaced via the assertion below
            errors.append(e)

    threads = [
        threading.Thread(target=worker, args=(f"U{i % 3}",)) for i in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert registry.user_ids() == []
    assert registry.channel_count() == 0
