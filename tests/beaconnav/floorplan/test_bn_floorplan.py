"""
Unit tests for the floorplan store and the room-graph planner.

Tests cover:
- Floorplan validation (duplicate ids, dangling room references)
- Lookups: by id, by name, by room, nearest beacon, accessible beacons
- Doorway sides and actions
- Planner routes within a room, through one doorway and through two
- Planner failure when rooms are disconnected

Run with: pytest tests/beaconnav/floorplan/test_bn_floorplan.py -v
"""

import unittest

import numpy as np
import pytest

from beaconnav.floorplan import (
    Beacon,
    BeaconCategory,
    DoorAction,
    Doorway,
    DoorwayType,
    Floorplan,
    FloorSurface,
    Room,
    RoomGraphPlanner,
)
from beaconnav.navigation.types import WaypointType
from beaconnav.sim import demo_floorplan


class TestFloorplanStore(unittest.TestCase):
    """Test lookups and validation."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()

    def test_lookups(self) -> None:
        """Test id, name and room lookups."""
        self.assertEqual(self.floorplan.beacon("b-coffee").name, "Coffee Machine")
        self.assertIsNone(self.floorplan.beacon("missing"))
        self.assertEqual(self.floorplan.beacon_named("  coffee MACHINE ").id, "b-coffee")
        self.assertEqual(self.floorplan.room("kitchen").name, "Kitchen")
        self.assertEqual(len(self.floorplan.beacons_in_room("kitchen")), 4)
        self.assertEqual(
            sorted(d.id for d in self.floorplan.doorways_connecting("lobby")),
            ["door-conference", "door-kitchen"],
        )

    def test_accessible_beacons(self) -> None:
        """Test obstacles are excluded and categories filter."""
        ids = {b.id for b in self.floorplan.accessible_beacons()}
        self.assertNotIn("b-pillar", ids)
        destinations = self.floorplan.accessible_beacons([BeaconCategory.DESTINATION])
        self.assertEqual(
            sorted(b.name for b in destinations),
            ["Conference Room A", "Conference Room B", "Reception Desk"],
        )

    def test_nearest_beacon(self) -> None:
        """Test nearest beacon uses horizontal distance."""
        self.assertEqual(self.floorplan.nearest_beacon([9.2, 5.0, 1.1]).id, "b-coffee")
        self.assertIsNone(Floorplan([], []).nearest_beacon([0.0, 0.0, 0.0]))

    def test_validation(self) -> None:
        """Test duplicate ids and unknown rooms are rejected."""
        room = Room("r", "R")
        beacon = Beacon("b", "B", (0.0, 0.0, 0.0), room_id="r")
        with pytest.raises(ValueError):
            Floorplan([room, room], [])
        with pytest.raises(ValueError):
            Floorplan([room], [beacon, beacon])
        with pytest.raises(ValueError):
            Floorplan([room], [Beacon("x", "X", (0.0, 0.0, 0.0), room_id="nowhere")])
        with pytest.raises(ValueError):
            Floorplan([room], [], [Doorway("d", "D", (0.0, 0.0, 0.0), "r", "other")])


class TestFloorplanTypes(unittest.TestCase):
    """Test entity helpers."""

    def test_doorway_sides(self) -> None:
        """Test a hinged door is pushed from one side and pulled from the other."""
        door = demo_floorplan().doorway("door-kitchen")
        self.assertEqual(door.door_type, DoorwayType.HINGED_RIGHT)
        self.assertEqual(door.action("lobby"), DoorAction.PUSH)
        self.assertEqual(door.action("kitchen"), DoorAction.PULL)
        self.assertEqual(door.action("garden"), DoorAction.WALK_THROUGH)
        self.assertEqual(door.other_room("lobby"), "kitchen")
        self.assertIsNone(door.other_room("garden"))
        self.assertTrue(door.connects("kitchen"))

    def test_doorway_needs_two_rooms(self) -> None:
        """Test a doorway cannot connect a room to itself."""
        with pytest.raises(ValueError):
            Doorway("d", "D", (0.0, 0.0, 0.0), "r", "r")

    def test_display_helpers(self) -> None:
        """Test spoken names and echo levels."""
        self.assertEqual(DoorwayType.OPEN_DOORWAY.spoken_name, "Open doorway")
        self.assertEqual(FloorSurface.MARBLE.echo_level, "high echo")
        self.assertEqual(FloorSurface.HARDWOOD.echo_level, "medium echo")
        self.assertEqual(FloorSurface.CARPET.echo_level, "low echo")
        self.assertEqual(BeaconCategory.APPLIANCE.display_name, "Appliance")

    def test_beacon_geometry(self) -> None:
        """Test floor position and 3D distance."""
        beacon = Beacon("b", "B", (3.0, 1.0, 4.0))
        np.testing.assert_allclose(beacon.floor_position, [3.0, 4.0])
        self.assertAlmostEqual(beacon.distance_to([0.0, 1.0, 0.0]), 5.0)


class TestRoomGraphPlanner(unittest.TestCase):
    """Test route computation on the reference floorplan."""

    def setUp(self) -> None:
        self.floorplan = demo_floorplan()
        self.planner = RoomGraphPlanner(self.floorplan)

    def test_same_room(self) -> None:
        """Test a destination in the start room needs no doorway."""
        path = self.planner.find_path([2.0, 0.0, 2.0], self.floorplan.beacon("b-fountain"))

        self.assertEqual([w.type for w in path.waypoints],
                         [WaypointType.START, WaypointType.DESTINATION])
        self.assertEqual(path.destination.name, "Water Fountain")
        self.assertEqual(path.destination.audio_instruction, "Listen for running water")
        self.assertAlmostEqual(path.total_distance, float(np.linalg.norm([3.0, 1.0, 3.0])))

    def test_one_doorway(self) -> None:
        """Test lobby to kitchen passes the kitchen door."""
        path = self.planner.find_path([2.0, 0.0, 2.0], self.floorplan.beacon("b-coffee"))

        self.assertEqual([w.id for w in path.waypoints],
                         ["start", "doorway-0-door-kitchen", "destination-b-coffee"])
        self.assertEqual(path.waypoints[1].doorway_id, "door-kitchen")
        self.assertIsNone(path.waypoints[1].room_id)
        self.assertEqual(path.rooms_traversed, ("lobby", "kitchen"))

    def test_two_doorways(self) -> None:
        """Test kitchen to conference wing goes through the lobby."""
        path = self.planner.find_path([11.0, 0.0, 2.0], self.floorplan.beacon("b-conf-a"))

        doorways = [w.doorway_id for w in path.waypoints if w.type is WaypointType.DOORWAY]
        self.assertEqual(doorways, ["door-kitchen", "door-conference"])
        self.assertEqual(path.rooms_traversed, ("kitchen", "conference"))
        self.assertAlmostEqual(path.estimated_time(1.0), path.total_distance)

    def test_disconnected(self) -> None:
        """Test no path when the only doorway is inaccessible."""
        floorplan = Floorplan(
            [Room("a", "A"), Room("b", "B")],
            [
                Beacon("ba", "Desk", (0.0, 1.0, 0.0), room_id="a"),
                Beacon("bb", "Bench", (10.0, 1.0, 0.0), room_id="b"),
            ],
            [Doorway("d", "Door", (5.0, 0.0, 0.0), "a", "b", is_accessible=False)],
        )
        planner = RoomGraphPlanner(floorplan)
        self.assertIsNone(planner.find_path([0.0, 0.0, 1.0], floorplan.beacon("bb")))

    def test_off_route_reports(self) -> None:
        """Test off-route reports are recorded."""
        path = self.planner.find_path([2.0, 0.0, 2.0], self.floorplan.beacon("b-coffee"))
        self.planner.report_off_route([0.0, 0.0, 0.0], path.waypoints[1])
        self.assertEqual(len(self.planner.off_route_reports), 1)
        self.assertIs(self.planner.off_route_reports[0][1], path.waypoints[1])


if __name__ == "__main__":
    unittest.main()
