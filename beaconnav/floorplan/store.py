"""
Read-only floorplan queries.

FloorplanStore is the interface the engines consume; Floorplan is the
in-memory implementation used by the demos and tests. Persistence and map
authoring live outside the navigation core.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from scipy.spatial import KDTree

from beaconnav.floorplan.types import Beacon, BeaconCategory, Doorway, Room
from beaconnav.utils.geometry import horizontal


class FloorplanStore(ABC):
    """Abstract read-only view of a floorplan."""

    @property
    @abstractmethod
    def beacons(self) -> Sequence[Beacon]:
        pass

    @property
    @abstractmethod
    def rooms(self) -> Sequence[Room]:
        pass

    @property
    @abstractmethod
    def doorways(self) -> Sequence[Doorway]:
        pass

    @abstractmethod
    def room(self, room_id: str) -> Optional[Room]:
        pass

    @abstractmethod
    def doorway(self, doorway_id: str) -> Optional[Doorway]:
        pass

    @abstractmethod
    def beacon(self, beacon_id: str) -> Optional[Beacon]:
        pass

    def beacons_in_room(self, room_id: str) -> List[Beacon]:
        return [b for b in self.beacons if b.room_id == room_id]

    def doorways_connecting(self, room_id: str) -> List[Doorway]:
        return [d for d in self.doorways if d.connects(room_id)]

    def accessible_beacons(self, categories: Optional[Iterable[BeaconCategory]] = None) -> List[Beacon]:
        """Accessible, non-obstacle beacons, optionally limited to categories."""
        allowed = set(categories) if categories is not None else None
        return [
            b for b in self.beacons
            if b.is_accessible and not b.is_obstacle
            and (allowed is None or b.category in allowed)
        ]

    def beacon_named(self, name: str) -> Optional[Beacon]:
        """Beacon whose name matches exactly, ignoring case."""
        folded = name.strip().casefold()
        for beacon in self.beacons:
            if beacon.name.casefold() == folded:
                return beacon
        return None

    def nearest_beacon(self, position) -> Optional[Beacon]:
        """Beacon closest to position in the horizontal plane."""
        if not self.beacons:
            return None
        p = horizontal(position)
        return min(self.beacons, key=lambda b: float(np.linalg.norm(b.floor_position - p)))


class Floorplan(FloorplanStore):
    """
    In-memory floorplan.

    Args:
        rooms: Rooms on this floor.
        beacons: Beacons; each must reference a known room.
        doorways: Doorways; each must connect two known rooms.

    Raises:
        ValueError: On duplicate ids or dangling room references.
    """

    def __init__(self, rooms: Sequence[Room], beacons: Sequence[Beacon],
                 doorways: Sequence[Doorway] = ()):
        self._rooms: Dict[str, Room] = {}
        for room in rooms:
            if room.id in self._rooms:
                raise ValueError(f"Duplicate room id '{room.id}'")
            self._rooms[room.id] = room

        self._beacons: Dict[str, Beacon] = {}
        for beacon in beacons:
            if beacon.id in self._beacons:
                raise ValueError(f"Duplicate beacon id '{beacon.id}'")
            if beacon.room_id not in self._rooms:
                raise ValueError(f"Beacon '{beacon.id}' references unknown room '{beacon.room_id}'")
            self._beacons[beacon.id] = beacon

        self._doorways: Dict[str, Doorway] = {}
        for doorway in doorways:
            if doorway.id in self._doorways:
                raise ValueError(f"Duplicate doorway id '{doorway.id}'")
            for room_id in (doorway.room_a, doorway.room_b):
                if room_id not in self._rooms:
                    raise ValueError(f"Doorway '{doorway.id}' references unknown room '{room_id}'")
            self._doorways[doorway.id] = doorway

        # Horizontal KD-tree over beacons, in insertion order
        self._beacon_list = list(self._beacons.values())
        self._tree = None
        if self._beacon_list:
            self._tree = KDTree(np.array([b.floor_position for b in self._beacon_list]))

    @property
    def beacons(self) -> List[Beacon]:
        return list(self._beacons.values())

    @property
    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    @property
    def doorways(self) -> List[Doorway]:
        return list(self._doorways.values())

    def room(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def doorway(self, doorway_id: str) -> Optional[Doorway]:
        return self._doorways.get(doorway_id)

    def beacon(self, beacon_id: str) -> Optional[Beacon]:
        return self._beacons.get(beacon_id)

    def nearest_beacon(self, position) -> Optional[Beacon]:
        """Beacon closest to position in the horizontal plane; ties go to the first added."""
        if self._tree is None:
            return None
        k = min(len(self._beacon_list), 4)
        distances, indices = self._tree.query(horizontal(position), k=k)
        distances, indices = np.atleast_1d(distances), np.atleast_1d(indices)
        tied = indices[distances <= distances[0] + 1e-9]
        return self._beacon_list[int(tied.min())]
