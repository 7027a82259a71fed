import json

from flight_booking_platform.services.flight_broadcaster import FlightBroadcaster


def test_publish_reaches_every_subscriber():
    broadcaster = FlightBroadcaster(queue_size=5)
    first = broadcaster.subscribe()
    second = broadcaster.subscribe()

    delivered = broadcaster.publish({"id": "f1", "status": "delayed"})

    assert delivered == 2
    assert json.loads(first.queue.get_nowait()) == {"id": "f1", "status": "delayed"}
    assert json.loads(second.queue.get_nowait()) == {"id": "f1", "status": "delayed"}


def test_no_backlog_for_late_subscribers():
    broadcaster = FlightBroadcaster(queue_size=5)
    broadcaster.publish({"id": "early"})

    late = broadcaster.subscribe()

    assert late.queue.empty()


def test_full_subscriber_drops_only_its_own_message():
    broadcaster = FlightBroadcaster(queue_size=1)
    slow = broadcaster.subscribe()
    fast = broadcaster.subscribe()

    broadcaster.publish({"seq": 1})
    fast.queue.get_nowait()
    delivered = broadcaster.publish({"seq": 2})

    assert delivered == 1
    assert json.loads(slow.queue.get_nowait()) == {"seq": 1}
    assert json.loads(fast.queue.get_nowait()) == {"seq": 2}


def test_unsubscribe_stops_delivery():
    broadcaster = FlightBroadcaster(queue_size=5)
    subscription = broadcaster.subscribe()

    subscription.unsubscribe()
    subscription.unsubscribe()

    assert broadcaster.subscriber_count == 0
    assert broadcaster.publish({"id": "f1"}) == 0


async def test_get_times_out_with_none():
    subscription = FlightBroadcaster(queue_size=5).subscribe()

    assert await subscription.get(timeout=0.01) is None


async def test_messages_arrive_in_publish_order():
    broadcaster = FlightBroadcaster(queue_size=5)
    subscription = broadcaster.subscribe()

    for seq in range(3):
        broadcaster.publish({"seq": seq})

    received = [json.loads(await subscription.get(timeout=1)) for _ in range(3)]
    assert [m["seq"] for m in received] == [0, 1, 2]
