"""
Floorplan model and reference planner.

This module provides:
- Beacon, Room, Doorway entities and their enums
- FloorplanStore interface and the in-memory Floorplan
- RoomGraphPlanner: doorway-graph route planning
"""

from beaconnav.floorplan.planner import RoomGraphPlanner
from beaconnav.floorplan.store import Floorplan, FloorplanStore
from beaconnav.floorplan.types import (
    Beacon,
    BeaconCategory,
    DoorAction,
    Doorway,
    DoorwayType,
    FloorSurface,
    Room,
    RoomType,
)

__all__ = [
    "Beacon",
    "BeaconCategory",
    "DoorAction",
    "Doorway",
    "DoorwayType",
    "FloorSurface",
    "Room",
    "RoomType",
    "Floorplan",
    "FloorplanStore",
    "RoomGraphPlanner",
]
