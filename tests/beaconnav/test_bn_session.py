"""
Integration tests for NavigationSession.

Tests cover:
- A simulated walk from the lobby to the coffee machine through the kitchen door
- Calibration required before starting, frozen while running
- Unresolved spoken destinations leave the session idle
- Pause, resume and cancel of the tick loop
- Location announcements with and without a description generator

Run with: pytest tests/beaconnav/test_bn_session.py -v
"""

import asyncio
import unittest

import numpy as np
import pytest

from beaconnav.config import BeaconNavConfig
from beaconnav.coords.context import CalibrationContext
from beaconnav.errors import CalibrationLocked, CalibrationUnavailable
from beaconnav.floorplan import RoomGraphPlanner
from beaconnav.narration import location_fallback_text
from beaconnav.navigation import (
    Arrived,
    DescriptionGenerator,
    DoorwayEvent,
    MatchAmbiguous,
    Navigating,
    NotStarted,
    Paused,
)
from beaconnav.session import NavigationSession
from beaconnav.sim import SimulatedWalker, demo_floorplan, true_transform
from beaconnav.utils.geometry import horizontal_distance

START = np.array([2.0, 1.2, 2.0])


class CannedGenerator(DescriptionGenerator):
    async def generate_description(self, context):
        return f"Generated description of the {context.room.name}."


class SessionTestCase(unittest.TestCase):
    """Shared session fixture on the demo floorplan."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()
        lobby = [self.floorplan.beacon(i) for i in ("b-reception", "b-entrance", "b-sofa")]
        truth = true_transform((2.0, 2.5), 0.6, lobby)
        self.walker = SimulatedWalker(truth, START, speed=1.2)
        self.spoken = []
        self.config = BeaconNavConfig.preset("simulation")
        self.session = self.make_session(CalibrationContext(truth.context.get()))

    def make_session(self, context, generator=None) -> NavigationSession:
        return NavigationSession(
            self.floorplan, RoomGraphPlanner(self.floorplan), self.walker,
            config=self.config, context=context,
            narrator=self.spoken.append, generator=generator,
        )


class TestSimulatedWalk(SessionTestCase):
    """Test a full walk driven by the tick loop."""

    def test_walk_to_coffee_machine(self) -> None:
        """Test the session guides the walker through the kitchen door to arrival."""
        session = self.session
        session.events.keep_history = True
        coffee = self.floorplan.beacon("b-coffee")

        async def scenario():
            state = session.start(coffee)
            self.assertIsInstance(state, Navigating)
            self.assertTrue(session.context.frozen)
            with pytest.raises(CalibrationLocked):
                session.context.set(session.context.get())

            self.walker.targets = [w.position for w in session.engine.path.waypoints[1:]]
            while session.running:
                self.walker.step(0.2)
                await asyncio.sleep(0.05)
            await session.wait_closed()

        asyncio.run(asyncio.wait_for(scenario(), timeout=30.0))

        self.assertIsInstance(session.state, Arrived)
        # The loop stops at arrival, inside the threshold but short of the beacon
        self.assertLessEqual(horizontal_distance(self.walker.position, coffee.position),
                             self.config.navigation.arrival_threshold)
        self.assertFalse(session.context.frozen)
        self.assertIn("Right-hinged door, push to enter Kitchen", self.spoken)
        self.assertEqual(self.spoken[-1], "Arrived")

        doors = [e for e in session.events.history if isinstance(e, DoorwayEvent)]
        self.assertEqual(len(doors), 1)
        self.assertEqual((doors[0].from_room_id, doors[0].to_room_id), ("lobby", "kitchen"))


class TestSessionControl(SessionTestCase):
    """Test starting, pausing and cancelling."""

    def test_start_requires_calibration(self) -> None:
        """Test a session without calibration cannot start."""
        session = self.make_session(CalibrationContext())
        with pytest.raises(CalibrationUnavailable):
            session.start(self.floorplan.beacon("b-coffee"))
        self.assertFalse(session.context.frozen)
        self.assertIsInstance(session.state, NotStarted)

    def test_ambiguous_name_does_not_start(self) -> None:
        """Test an ambiguous spoken destination leaves the context writable."""
        result = self.session.start_named("conference")
        self.assertIsInstance(result, MatchAmbiguous)
        self.assertFalse(self.session.running)
        self.assertFalse(self.session.context.frozen)

    def test_pause_resume_cancel(self) -> None:
        """Test pausing keeps the calibration frozen and cancel releases it."""
        session = self.session

        async def scenario():
            session.start(self.floorplan.beacon("b-sofa"))
            await asyncio.sleep(0.12)

            session.pause()
            await asyncio.sleep(0.12)
            self.assertIsInstance(session.state, Paused)
            self.assertFalse(session.running)
            self.assertTrue(session.context.frozen)

            session.resume()
            self.assertTrue(session.running)
            await asyncio.sleep(0.06)

            session.cancel()
            await session.wait_closed()

        asyncio.run(scenario())
        self.assertIsInstance(session.state, NotStarted)
        self.assertFalse(session.running)
        self.assertFalse(session.context.frozen)


class TestLocationAnnouncement(SessionTestCase):
    """Test describing the current location."""

    def test_fallback_location(self) -> None:
        """Test the deterministic lobby text is narrated."""
        text = asyncio.run(self.session.announce_current_location())
        expected = location_fallback_text(self.floorplan, self.floorplan.room("lobby"))
        self.assertEqual(text, expected)
        self.assertEqual(self.spoken, [expected])

    def test_generated_location(self) -> None:
        """Test a configured generator describes the current room."""
        session = self.make_session(self.session.context, generator=CannedGenerator())
        text = asyncio.run(session.announce_current_location())
        self.assertEqual(text, "Generated description of the Lobby.")
        self.assertEqual(self.spoken, [text])


if __name__ == "__main__":
    unittest.main()
