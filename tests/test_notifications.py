# tests/test_notifications.py
import asyncio
import logging

from etoh.services.notifications import NotificationRelay


def test_publish_reaches_both_parties_once():
    relay = NotificationRelay()
    got = []
    relay.subscribe(1, lambda e: got.append(("a", e["type"])))
    relay.subscribe(2, lambda e: got.append(("b", e["type"])))
    relay.subscribe(3, lambda e: got.append(("c", e["type"])))

    delivered = relay.publish([1, 2, 1, None], {"type": "friendship_created"})

    assert delivered == 2
    assert sorted(got) == [("a", "friendship_created"), ("b", "friendship_created")]


def test_unsubscribe_is_idempotent():
    relay = NotificationRelay()
    got = []
    sub = relay.subscribe(1, got.append)
    sub.unsubscribe()
    sub.unsubscribe()

    assert relay.subscriber_count(1) == 0
    assert relay.publish([1], {"type": "x"}) == 0
    assert got == []


def test_subscription_as_context_manager():
    relay = NotificationRelay()
    got = []
    with relay.subscribe(5, got.append):
        relay.publish([5], {"type": "inside"})
    relay.publish([5], {"type": "outside"})

    assert [e["type"] for e in got] == ["inside"]


def test_failing_subscriber_does_not_block_others():
    relay = NotificationRelay()
    got = []

    def broken(_event):
        raise RuntimeError("socket gone")

    relay.subscribe(1, broken)
    relay.subscribe(1, got.append)

    assert relay.publish([1], {"type": "friend_request_sent"}) == 1
    assert len(got) == 1


def test_queue_subscription_receives_from_worker_thread():
    relay = NotificationRelay()

    async def scenario():
        loop = asyncio.get_running_loop()
        sub, queue = relay.subscribe_queue(9)
        try:
            await loop.run_in_executor(None, relay.publish, [9], {"type": "friendship_removed"})
            return await asyncio.wait_for(queue.get(), timeout=5)
        finally:
            sub.unsubscribe()

    event = asyncio.run(scenario())
    assert event == {"type": "friendship_removed"}
    assert relay.subscriber_count(9) == 0


def test_full_queue_drops_events_instead_of_growing(caplog):
    relay = NotificationRelay()

    async def scenario():
        sub, queue = relay.subscribe_queue(4, maxsize=2)
        try:
            for n in range(5):
                relay.publish([4], {"type": "friend_request_sent", "n": n})
            await asyncio.sleep(0.05)
            return [queue.get_nowait()["n"] for _ in range(queue.qsize())]
        finally:
            sub.unsubscribe()

    with caplog.at_level(logging.WARNING, logger="etoh.services.notifications"):
        kept = asyncio.run(scenario())

    assert kept == [0, 1]
    assert sum("is full" in r.getMessage() for r in caplog.records) == 3
