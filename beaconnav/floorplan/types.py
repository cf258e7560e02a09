"""
Floorplan entities: beacons, rooms and doorways.

Positions are map-frame 3D arrays (x, y, z) with y vertical. Identifiers
are plain strings; rooms are referenced by id from beacons, doorways and
waypoints.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from beaconnav.utils.geometry import as_vec3, horizontal


class BeaconCategory(Enum):
    DESTINATION = "destination"
    LANDMARK = "landmark"
    FURNITURE = "furniture"
    APPLIANCE = "appliance"
    FIXTURE = "fixture"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True, eq=False)
class Beacon:
    """
    Named landmark with a known map position.

    Attributes:
        id: Unique identifier.
        name: Human-readable name, used for destination matching.
        position: Map position (3,).
        category: Beacon category, used for calibration ranking.
        room_id: Room containing the beacon.
        description: Optional free-text description.
        audio_landmark: Optional sound cue near the beacon.
        is_accessible: Whether the beacon can be navigated to.
        is_obstacle: Whether the beacon marks a physical obstacle.
    """

    id: str
    name: str
    position: np.ndarray
    category: BeaconCategory = BeaconCategory.LANDMARK
    room_id: str = ""
    description: Optional[str] = None
    audio_landmark: Optional[str] = None
    is_accessible: bool = True
    is_obstacle: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'position', as_vec3(self.position))

    @property
    def floor_position(self) -> np.ndarray:
        return horizontal(self.position)

    def distance_to(self, point) -> float:
        return float(np.linalg.norm(self.position - as_vec3(point)))


class RoomType(Enum):
    GENERAL = "general"
    KITCHEN = "kitchen"
    LIVING = "living"
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    HALLWAY = "hallway"
    OFFICE = "office"
    LAUNDRY = "laundry"
    GARAGE = "garage"
    LOBBY = "lobby"
    STAIRWELL = "stairwell"
    ELEVATOR = "elevator"
    STORAGE = "storage"
    CLASSROOM = "classroom"
    LAB = "lab"
    CAFETERIA = "cafeteria"
    AUDITORIUM = "auditorium"
    ENTRANCE = "entrance"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class FloorSurface(Enum):
    CARPET = "carpet"
    HARDWOOD = "hardwood"
    TILE = "tile"
    MARBLE = "marble"
    CONCRETE = "concrete"
    LINOLEUM = "linoleum"

    @property
    def echo_level(self) -> str:
        if self in (FloorSurface.TILE, FloorSurface.MARBLE, FloorSurface.CONCRETE):
            return "high echo"
        if self is FloorSurface.HARDWOOD:
            return "medium echo"
        return "low echo"


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    type: RoomType = RoomType.GENERAL
    floor_surface: FloorSurface = FloorSurface.TILE
    description: Optional[str] = None


class DoorAction(Enum):
    """What the user physically does to pass a door."""

    PUSH = "push"
    PULL = "pull"
    SLIDE = "slide"
    AUTOMATIC = "automatic"
    WALK_THROUGH = "walk_through"


class DoorwayType(Enum):
    HINGED_LEFT = "hinged_left"
    HINGED_RIGHT = "hinged_right"
    SWINGING_BOTH = "swinging_both"
    SLIDING = "sliding"
    AUTOMATIC = "automatic"
    OPEN_DOORWAY = "open_doorway"
    DOUBLE_DOOR = "double_door"

    @property
    def spoken_name(self) -> str:
        return {
            DoorwayType.HINGED_LEFT: "Left-hinged door",
            DoorwayType.HINGED_RIGHT: "Right-hinged door",
            DoorwayType.SWINGING_BOTH: "Swinging door",
            DoorwayType.SLIDING: "Sliding door",
            DoorwayType.AUTOMATIC: "Automatic door",
            DoorwayType.OPEN_DOORWAY: "Open doorway",
            DoorwayType.DOUBLE_DOOR: "Double door",
        }[self]


@dataclass(frozen=True, eq=False)
class Doorway:
    """
    Passage between two rooms.

    Attributes:
        id: Unique identifier.
        name: Human-readable name.
        position: Map position of the door centre (3,).
        room_a: First connected room id.
        room_b: Second connected room id.
        door_type: Physical door type.
        action_from_a: Action when going from room_a to room_b.
        action_from_b: Action when going from room_b to room_a.
        width: Clear width in meters.
        is_accessible: Whether the planner may route through it.
    """

    id: str
    name: str
    position: np.ndarray
    room_a: str
    room_b: str
    door_type: DoorwayType = DoorwayType.OPEN_DOORWAY
    action_from_a: DoorAction = DoorAction.WALK_THROUGH
    action_from_b: DoorAction = DoorAction.WALK_THROUGH
    width: float = 0.9
    is_accessible: bool = True
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'position', as_vec3(self.position))
        if self.room_a == self.room_b:
            raise ValueError(f"Doorway '{self.id}' must connect two different rooms")

    @classmethod
    def hinged(cls, id: str, name: str, position, room_a: str, room_b: str,
               push_from_a: bool = True, left: bool = True, **kwargs) -> "Doorway":
        """Hinged door that is pushed from one side and pulled from the other."""
        push, pull = DoorAction.PUSH, DoorAction.PULL
        return cls(
            id=id, name=name, position=position, room_a=room_a, room_b=room_b,
            door_type=DoorwayType.HINGED_LEFT if left else DoorwayType.HINGED_RIGHT,
            action_from_a=push if push_from_a else pull,
            action_from_b=pull if push_from_a else push,
            **kwargs,
        )

    @property
    def floor_position(self) -> np.ndarray:
        return horizontal(self.position)

    def connects(self, room_id: str) -> bool:
        return room_id in (self.room_a, self.room_b)

    def other_room(self, room_id: str) -> Optional[str]:
        if room_id == self.room_a:
            return self.room_b
        if room_id == self.room_b:
            return self.room_a
        return None

    def action(self, from_room_id: str) -> DoorAction:
        """Action needed when entering the doorway from the given room."""
        if from_room_id == self.room_a:
            return self.action_from_a
        if from_room_id == self.room_b:
            return self.action_from_b
        return DoorAction.WALK_THROUGH
