"""
Reference floorplan used by the demos and tests.

Layout (x to the right, z up the page, meters):

      z
     14 ┌──────────────┐
        │ Conference   │
        │ Wing         │
      8 └──────┬───────┘
               │ open doorway (3, 7)
      6 ┌──────┴───────┐   ┌──────────────┐
        │ Lobby        ├───┤ Kitchen      │
        │              │   │              │
      0 └──────────────┘   └──────────────┘
        0              6 7 8              14  x

The lobby ↔ kitchen door at (7, 3) is right-hinged and pushed from the
lobby side.
"""

from beaconnav.floorplan.store import Floorplan
from beaconnav.floorplan.types import (
    Beacon,
    BeaconCategory,
    Doorway,
    DoorwayType,
    FloorSurface,
    Room,
    RoomType,
)


def demo_floorplan() -> Floorplan:
    """Three rooms, two doorways and thirteen beacons."""
    rooms = [
        Room("lobby", "Lobby", RoomType.LOBBY, FloorSurface.TILE, "the main entrance hall"),
        Room("kitchen", "Kitchen", RoomType.KITCHEN, FloorSurface.TILE),
        Room("conference", "Conference Wing", RoomType.OFFICE, FloorSurface.CARPET),
    ]

    D, L, F = BeaconCategory.DESTINATION, BeaconCategory.LANDMARK, BeaconCategory.FURNITURE
    A, X = BeaconCategory.APPLIANCE, BeaconCategory.FIXTURE
    beacons = [
        Beacon("b-reception", "Reception Desk", (1.0, 1.0, 1.0), D, "lobby"),
        Beacon("b-entrance", "Main Entrance", (5.0, 1.0, 0.5), L, "lobby"),
        Beacon("b-sofa", "Sofa", (1.0, 0.5, 5.0), F, "lobby"),
        Beacon("b-fountain", "Water Fountain", (5.0, 1.0, 5.0), X, "lobby",
               audio_landmark="Listen for running water"),
        Beacon("b-pillar", "Pillar", (3.0, 1.0, 3.0), X, "lobby", is_obstacle=True),

        Beacon("b-coffee", "Coffee Machine", (9.0, 1.0, 1.0), A, "kitchen",
               audio_landmark="The coffee machine hums"),
        Beacon("b-fridge", "Fridge", (13.0, 1.0, 1.0), A, "kitchen"),
        Beacon("b-table", "Kitchen Table", (11.0, 0.8, 4.0), F, "kitchen"),
        Beacon("b-sink", "Sink", (13.0, 1.0, 5.0), X, "kitchen"),

        Beacon("b-conf-a", "Conference Room A", (1.0, 1.0, 13.0), D, "conference"),
        Beacon("b-conf-b", "Conference Room B", (5.0, 1.0, 13.0), D, "conference"),
        Beacon("b-screen", "Projector Screen", (3.0, 1.5, 9.0), L, "conference"),
        Beacon("b-cafe", "Café Corner", (5.0, 1.0, 9.5), F, "conference"),
    ]

    doorways = [
        Doorway.hinged("door-kitchen", "Kitchen Door", (7.0, 0.0, 3.0), "lobby", "kitchen",
                       push_from_a=True, left=False),
        Doorway("door-conference", "Conference Doorway", (3.0, 0.0, 7.0), "lobby", "conference",
                door_type=DoorwayType.OPEN_DOORWAY, width=1.4),
    ]
    return Floorplan(rooms, beacons, doorways)
