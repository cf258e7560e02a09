"""
Unit tests for narration: fallback texts, AI descriptions and the dispatcher.

Tests cover:
- Doorway, room and location fallback texts
- Prompt construction for rooms and doorways
- OpenAIDescriptionGenerator with a stub async client (success, error, empty reply)
- NarrationDispatcher: immediate narration, detached doorway descriptions,
  fallback on failure and on timeout, room descriptions

Run with: pytest tests/beaconnav/narration/test_bn_narration.py -v
"""

import asyncio
import unittest
from types import SimpleNamespace

import pytest

from beaconnav.config import NarrationConfig
from beaconnav.errors import DescriptionGenerationFailed
from beaconnav.narration import (
    DescriptionContext,
    NarrationDispatcher,
    OpenAIDescriptionGenerator,
    build_prompt,
    doorway_fallback_text,
    location_fallback_text,
    room_fallback_text,
)
from beaconnav.narration.fallbacks import UNKNOWN_LOCATION
from beaconnav.navigation import (
    ArrivalEvent,
    DescriptionGenerator,
    DoorwayEvent,
    EventChannel,
    StateChangedEvent,
)
from beaconnav.sim import demo_floorplan


class StubCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def stub_client(reply=None, error=None):
    completions = StubCompletions(reply, error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class ScriptedGenerator(DescriptionGenerator):
    def __init__(self, text=None, error=None, delay=0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.contexts = []

    async def generate_description(self, context):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text


class TestFallbackTexts(unittest.TestCase):
    """Test deterministic texts."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()

    def test_doorway_text(self) -> None:
        """Test door type, action and target room."""
        door = self.floorplan.doorway("door-kitchen")
        self.assertEqual(doorway_fallback_text(door, "lobby", "Kitchen"),
                         "Right-hinged door, push to enter Kitchen")
        self.assertEqual(doorway_fallback_text(door, "kitchen", "Lobby"),
                         "Right-hinged door, pull to enter Lobby")
        self.assertEqual(doorway_fallback_text(door, None, "next room"),
                         "Right-hinged door, walk through next room")

    def test_room_text(self) -> None:
        """Test the room text names surface, audio context and echo."""
        self.assertEqual(
            room_fallback_text(self.floorplan.room("kitchen")),
            "You are in the Kitchen. You'll be walking on tile. Listen for appliances. "
            "High echo environment.",
        )

    def test_location_in_room(self) -> None:
        """Test location text inside a room lists beacons and exits."""
        text = location_fallback_text(self.floorplan, self.floorplan.room("lobby"))
        self.assertEqual(
            text,
            "You are in the Lobby, the main entrance hall. "
            "You can navigate to Reception Desk, Main Entrance, or Sofa from here. "
            "The floor surface is tile with high echo. "
            "Exits lead to Kitchen or Conference Wing.",
        )

    def test_location_outside_rooms(self) -> None:
        """Test the nearby-beacon and unknown fallbacks."""
        beacon = self.floorplan.beacon("b-sofa")
        self.assertEqual(location_fallback_text(self.floorplan, None, beacon, 2.0),
                         "You are near Sofa.")
        self.assertEqual(location_fallback_text(self.floorplan, None, beacon, 5.0), UNKNOWN_LOCATION)
        self.assertEqual(location_fallback_text(self.floorplan, None), UNKNOWN_LOCATION)


class TestDescriptions(unittest.TestCase):
    """Test prompts and the OpenAI-backed generator."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()
        self.door_context = DescriptionContext.for_doorway(
            self.floorplan.doorway("door-kitchen"), "lobby", "kitchen", "Lobby", "Kitchen",
        )

    def test_context_validation(self) -> None:
        """Test contexts need their subject."""
        with pytest.raises(ValueError):
            DescriptionContext(kind="room")
        with pytest.raises(ValueError):
            DescriptionContext(kind="hallway", room=self.floorplan.room("lobby"))
        self.assertEqual(self.door_context.fallback_text(), "Right-hinged door, push to enter Kitchen")

    def test_prompts(self) -> None:
        """Test prompts carry the entity details."""
        door_prompt = build_prompt(self.door_context)
        self.assertIn("Action Required: push", door_prompt)
        self.assertIn("From: Lobby → To: Kitchen", door_prompt)
        self.assertIn("Door Width: 0.9m", door_prompt)

        room_prompt = build_prompt(DescriptionContext.for_room(self.floorplan.room("conference")))
        self.assertIn("Name: Conference Wing", room_prompt)
        self.assertIn("Floor Surface: carpet", room_prompt)

    def test_generator_success(self) -> None:
        """Test the reply text is stripped and request settings passed."""
        client, completions = stub_client("  Push the right-hinged door into the Kitchen.  ")
        generator = OpenAIDescriptionGenerator(NarrationConfig(model="test-model"), client=client)

        text = asyncio.run(generator.generate_description(self.door_context))

        self.assertEqual(text, "Push the right-hinged door into the Kitchen.")
        self.assertEqual(completions.calls[0]["model"], "test-model")
        self.assertEqual(completions.calls[0]["messages"][0]["role"], "system")

    def test_generator_errors(self) -> None:
        """Test API errors and empty replies raise DescriptionGenerationFailed."""
        client, _ = stub_client(error=ConnectionError("offline"))
        generator = OpenAIDescriptionGenerator(client=client)
        with pytest.raises(DescriptionGenerationFailed):
            asyncio.run(generator.generate_description(self.door_context))

        client, _ = stub_client("   ")
        generator = OpenAIDescriptionGenerator(client=client)
        with pytest.raises(DescriptionGenerationFailed):
            asyncio.run(generator.generate_description(self.door_context))


class TestNarrationDispatcher(unittest.TestCase):
    """Test event routing to the narrator."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()
        self.spoken = []
        self.channel = EventChannel()

    def doorway_event(self) -> DoorwayEvent:
        return DoorwayEvent(
            "Right-hinged door, push to enter Kitchen", doorway_id="door-kitchen",
            from_room_id="lobby", to_room_id="kitchen",
            from_room_name="Lobby", to_room_name="Kitchen",
        )

    def test_plain_events_narrated(self) -> None:
        """Test messages are spoken immediately and state changes skipped."""
        dispatcher = NarrationDispatcher(self.spoken.append, self.floorplan)
        dispatcher.attach(self.channel)

        self.channel.publish(StateChangedEvent("Navigating"))
        self.channel.publish(ArrivalEvent("Arrived"))
        self.channel.publish(self.doorway_event())

        self.assertEqual(self.spoken, ["Arrived", "Right-hinged door, push to enter Kitchen"])
        dispatcher.detach()
        self.channel.publish(ArrivalEvent("ignored"))
        self.assertEqual(len(self.spoken), 2)

    def test_generated_doorway_description(self) -> None:
        """Test a doorway event is narrated with the generated text."""
        generator = ScriptedGenerator("Push the door to enter the Kitchen.")
        dispatcher = NarrationDispatcher(self.spoken.append, self.floorplan, generator)
        dispatcher.attach(self.channel)

        async def scenario():
            self.channel.publish(self.doorway_event())
            self.assertEqual(dispatcher.pending, 1)
            await dispatcher.drain()

        asyncio.run(scenario())
        self.assertEqual(self.spoken, ["Push the door to enter the Kitchen."])
        self.assertEqual(generator.contexts[0].to_room_name, "Kitchen")

    def test_failure_uses_fallback(self) -> None:
        """Test a failing generator narrates the fallback exactly once."""
        generator = ScriptedGenerator(error=DescriptionGenerationFailed("quota"))
        dispatcher = NarrationDispatcher(self.spoken.append, self.floorplan, generator)
        dispatcher.attach(self.channel)

        async def scenario():
            self.channel.publish(self.doorway_event())
            await dispatcher.drain()

        asyncio.run(scenario())
        self.assertEqual(self.spoken, ["Right-hinged door, push to enter Kitchen"])
        self.assertEqual(len(generator.contexts), 1)

    def test_timeout_uses_fallback(self) -> None:
        """Test a slow generator is abandoned after the timeout."""
        generator = ScriptedGenerator("too late", delay=1.0)
        dispatcher = NarrationDispatcher(self.spoken.append, self.floorplan, generator, timeout=0.01)
        dispatcher.attach(self.channel)

        async def scenario():
            self.channel.publish(self.doorway_event())
            await dispatcher.drain()

        asyncio.run(scenario())
        self.assertEqual(self.spoken, ["Right-hinged door, push to enter Kitchen"])

    def test_without_event_loop(self) -> None:
        """Test doorway events outside a loop fall back immediately."""
        generator = ScriptedGenerator("unused")
        dispatcher = NarrationDispatcher(self.spoken.append, self.floorplan, generator)
        dispatcher.handle(self.doorway_event())
        self.assertEqual(self.spoken, ["Right-hinged door, push to enter Kitchen"])
        self.assertEqual(generator.contexts, [])

    def test_describe_room(self) -> None:
        """Test room descriptions with and without a generator."""
        room = self.floorplan.room("kitchen")
        plain = NarrationDispatcher(self.spoken.append)
        text = asyncio.run(plain.describe_room(room))
        self.assertEqual(text, room_fallback_text(room))

        generated = NarrationDispatcher(self.spoken.append, generator=ScriptedGenerator("A bright kitchen."))
        self.assertEqual(asyncio.run(generated.describe_room(room)), "A bright kitchen.")
        self.assertEqual(self.spoken[-1], "A bright kitchen.")


if __name__ == "__main__":
    unittest.main()
