"""
Unit tests for navigation events and the per-session channel.

Tests cover:
- Typed subscriptions and unsubscribe
- A failing subscriber not blocking the others
- Optional event history
- AsyncEventStream queueing inside an event loop

Run with: pytest tests/beaconnav/navigation/test_bn_events.py -v
"""

import asyncio
import unittest

from beaconnav.navigation import (
    ApproachEvent,
    ArrivalEvent,
    AsyncEventStream,
    DoorwayEvent,
    EventChannel,
    NavigationEvent,
    OffRouteEvent,
)


class TestEventChannel(unittest.TestCase):
    """Test synchronous publish/subscribe."""

    def test_typed_subscription(self) -> None:
        """Test a typed subscriber only receives its event type."""
        channel = EventChannel()
        everything, arrivals = [], []
        channel.subscribe(everything.append)
        channel.subscribe(arrivals.append, ArrivalEvent)

        channel.publish(ApproachEvent("Approaching Desk in 3 steps.", steps=3))
        channel.publish(ArrivalEvent("Arrived", is_final=True))

        self.assertEqual([e.kind for e in everything], ["ApproachEvent", "ArrivalEvent"])
        self.assertEqual(len(arrivals), 1)
        self.assertTrue(arrivals[0].is_final)

    def test_base_type_receives_subclasses(self) -> None:
        """Test subscribing to the base class receives every event."""
        channel = EventChannel()
        received = []
        channel.subscribe(received.append, NavigationEvent)
        channel.publish(OffRouteEvent("You seem to be moving away from the route."))
        self.assertEqual(len(received), 1)

    def test_unsubscribe(self) -> None:
        """Test the returned function removes the subscription."""
        channel = EventChannel()
        received = []
        unsubscribe = channel.subscribe(received.append)
        self.assertEqual(len(channel), 1)
        unsubscribe()
        unsubscribe()
        channel.publish(ArrivalEvent("Arrived"))
        self.assertEqual(received, [])
        self.assertEqual(len(channel), 0)

    def test_failing_subscriber_isolated(self) -> None:
        """Test an exception in one subscriber does not reach the publisher."""
        channel = EventChannel()
        received = []

        def broken(event):
            raise RuntimeError("speech engine offline")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.publish(DoorwayEvent("Open doorway, walk through Lobby", doorway_id="d"))

        self.assertEqual(len(received), 1)

    def test_history(self) -> None:
        """Test history is only kept when enabled."""
        channel = EventChannel()
        channel.publish(ArrivalEvent("Arrived"))
        self.assertEqual(channel.history, [])
        channel.keep_history = True
        channel.publish(ArrivalEvent("Arrived"))
        self.assertEqual(len(channel.history), 1)

    def test_events_are_frozen(self) -> None:
        """Test events compare by content, ignoring timestamps."""
        self.assertEqual(ArrivalEvent("Arrived", timestamp=1.0), ArrivalEvent("Arrived", timestamp=2.0))


class TestAsyncEventStream(unittest.TestCase):
    """Test the asyncio queue view."""

    def test_get_and_drain(self) -> None:
        """Test events published in the loop are queued in order."""

        async def scenario():
            channel = EventChannel()
            with AsyncEventStream(channel) as stream:
                channel.publish(ApproachEvent("a"))
                channel.publish(ArrivalEvent("b"))
                first = await asyncio.wait_for(stream.get(), timeout=1.0)
                rest = stream.drain()
            channel.publish(ArrivalEvent("after close"))
            return first, rest, len(channel)

        first, rest, subscribers = asyncio.run(scenario())
        self.assertEqual(first.message, "a")
        self.assertEqual([e.message for e in rest], ["b"])
        self.assertEqual(subscribers, 0)

    def test_typed_and_bounded(self) -> None:
        """Test type filtering and dropping when the queue is full."""

        async def scenario():
            channel = EventChannel()
            stream = AsyncEventStream(channel, ArrivalEvent, maxsize=1)
            channel.publish(ApproachEvent("ignored"))
            channel.publish(ArrivalEvent("kept"))
            channel.publish(ArrivalEvent("dropped"))
            events = stream.drain()
            stream.close()
            return events

        events = asyncio.run(scenario())
        self.assertEqual([e.message for e in events], ["kept"])


if __name__ == "__main__":
    unittest.main()
