"""
Deterministic narration text.

These functions never depend on a description generator being available;
they produce the text spoken whenever generation is disabled or fails.
"""

from typing import List, Optional, Sequence

from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon, DoorAction, Doorway, Room, RoomType

ACTION_PHRASES = {
    DoorAction.PUSH: "push to enter",
    DoorAction.PULL: "pull to enter",
    DoorAction.SLIDE: "slide to open",
    DoorAction.AUTOMATIC: "will open automatically",
    DoorAction.WALK_THROUGH: "walk through",
}

ROOM_CONTEXT = {
    RoomType.KITCHEN: "Listen for appliances",
    RoomType.BATHROOM: "Listen for water sounds",
    RoomType.BEDROOM: "Quiet sleeping area",
    RoomType.LIVING: "Open living space",
    RoomType.HALLWAY: "Corridor passage",
    RoomType.OFFICE: "Quiet workspace",
    RoomType.GARAGE: "Large space with echo",
    RoomType.ENTRANCE: "Entry area",
    RoomType.LOBBY: "Main entrance lobby",
    RoomType.STAIRWELL: "Staircase",
    RoomType.ELEVATOR: "Elevator",
    RoomType.CLASSROOM: "Schoolroom",
    RoomType.LAB: "Research lab",
    RoomType.CAFETERIA: "Cafeteria",
    RoomType.AUDITORIUM: "Auditorium",
    RoomType.STORAGE: "Storage area",
    RoomType.LAUNDRY: "Utility room",
}

UNKNOWN_LOCATION = "You are in the mapped area. Select a destination to begin navigation."
NEAR_BEACON_RADIUS = 3.0


def doorway_fallback_text(doorway: Doorway, from_room_id: Optional[str], to_room_name: str) -> str:
    """
    Spoken doorway instruction, e.g. "Right-hinged door, push to enter Kitchen".

    Args:
        doorway: Doorway being approached.
        from_room_id: Room the user comes from; selects push or pull.
        to_room_name: Name of the room on the other side.
    """
    action = doorway.action(from_room_id) if from_room_id else DoorAction.WALK_THROUGH
    return f"{doorway.door_type.spoken_name}, {ACTION_PHRASES[action]} {to_room_name}"


def room_fallback_text(room: Room) -> str:
    """Short room description: name, floor surface, audio context and echo."""
    parts = [f"You are in the {room.name}",
             f"You'll be walking on {room.floor_surface.value}"]
    context = ROOM_CONTEXT.get(room.type)
    if context:
        parts.append(context)
    parts.append(f"{room.floor_surface.echo_level.capitalize()} environment")
    return ". ".join(parts) + "."


def _list_names(names: Sequence[str]) -> str:
    if len(names) == 2:
        return f"{names[0]} or {names[1]}"
    return ", ".join(names[:-1]) + f", or {names[-1]}"


def location_fallback_text(floorplan: FloorplanStore, room: Optional[Room],
                           nearest_beacon: Optional[Beacon] = None,
                           beacon_distance: float = float("inf")) -> str:
    """
    Describe where the user is.

    Inside a known room the text names the room, up to three reachable
    beacons and the connected rooms. Otherwise it names a beacon closer than
    3 m, or falls back to a generic statement.
    """
    if room is None:
        if nearest_beacon is not None and beacon_distance < NEAR_BEACON_RADIUS:
            return f"You are near {nearest_beacon.name}."
        return UNKNOWN_LOCATION

    parts: List[str] = []
    if room.description:
        parts.append(f"You are in the {room.name}, {room.description}.")
    else:
        parts.append(f"You are in the {room.name}.")

    reachable = [b.name for b in floorplan.beacons_in_room(room.id)
                 if b.is_accessible and not b.is_obstacle][:3]
    if len(reachable) > 1:
        parts.append(f"You can navigate to {_list_names(reachable)} from here.")

    parts.append(f"The floor surface is {room.floor_surface.value} with {room.floor_surface.echo_level}.")

    neighbours = []
    for doorway in floorplan.doorways_connecting(room.id):
        other = floorplan.room(doorway.other_room(room.id))
        if other is not None and other.name not in neighbours:
            neighbours.append(other.name)
    if len(neighbours) == 1:
        parts.append(f"There is an exit leading to {neighbours[0]}.")
    elif neighbours:
        parts.append(f"Exits lead to {_list_names(neighbours)}.")

    return " ".join(parts)
