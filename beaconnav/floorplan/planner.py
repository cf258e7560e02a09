"""
Reference path planner over the room/doorway graph.

Rooms are connected through accessible doorways. The planner runs Dijkstra
where nodes are (room, entry point) pairs and edge costs are horizontal
walking distances between entry points, then emits a path

    Start → Doorway → ... → Doorway → Destination

with room ids on the start and destination waypoints and doorway ids on
the doorway waypoints. It does not avoid obstacles inside a room.
"""

import heapq
import itertools
from typing import Dict, List, Optional, Tuple

import numpy as np

from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon, Doorway
from beaconnav.navigation.interfaces import PathPlanner
from beaconnav.navigation.types import NavigationPath, NavigationWaypoint, WaypointType
from beaconnav.utils.geometry import as_vec3, horizontal_distance
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)


class RoomGraphPlanner(PathPlanner):
    """
    Shortest doorway route between two positions on a floorplan.

    Attributes:
        floorplan: Floorplan to plan on.
        off_route_reports: (position, waypoint) pairs received through
            report_off_route(), newest last.
    """

    def __init__(self, floorplan: FloorplanStore):
        self.floorplan = floorplan
        self.off_route_reports: List[Tuple[np.ndarray, NavigationWaypoint]] = []

    def room_of(self, position) -> Optional[str]:
        """Room of the beacon nearest to position."""
        beacon = self.floorplan.nearest_beacon(position)
        return beacon.room_id if beacon is not None else None

    def find_path(self, start, destination: Beacon) -> Optional[NavigationPath]:
        """
        Plan a route from a map position to a beacon.

        Args:
            start: Start position in the map frame (3,).
            destination: Target beacon.

        Returns:
            NavigationPath, or None when the rooms are not connected.
        """
        start = as_vec3(start)
        start_room = self.room_of(start)
        if start_room is None:
            logger.warning("Cannot determine start room", extra={"extra": {"start": start.tolist()}})
            return None

        doorways: List[Doorway] = []
        if start_room != destination.room_id:
            route = self._doorway_route(start, start_room, destination)
            if route is None:
                logger.info(
                    "No doorway route",
                    extra={"extra": {"from": start_room, "to": destination.room_id}},
                )
                return None
            doorways = route

        waypoints = [NavigationWaypoint(
            id="start", name="Start Position", type=WaypointType.START,
            position=start, room_id=start_room,
        )]
        for i, doorway in enumerate(doorways):
            waypoints.append(NavigationWaypoint(
                id=f"doorway-{i}-{doorway.id}", name=doorway.name, type=WaypointType.DOORWAY,
                position=doorway.position, doorway_id=doorway.id,
            ))
        waypoints.append(NavigationWaypoint(
            id=f"destination-{destination.id}", name=destination.name,
            type=WaypointType.DESTINATION, position=destination.position,
            room_id=destination.room_id, audio_instruction=destination.audio_landmark,
        ))

        path = NavigationPath.from_waypoints(waypoints)
        logger.info(
            "Path computed",
            extra={"extra": {"destination": destination.name, "waypoints": len(path),
                             "distance": round(path.total_distance, 2)}},
        )
        return path

    def _doorway_route(self, start: np.ndarray, start_room: str,
                       destination: Beacon) -> Optional[List[Doorway]]:
        counter = itertools.count()
        # (cost, tiebreak, room, position, doorways so far)
        frontier = [(0.0, next(counter), start_room, start, [])]
        best: Dict[Tuple[str, Optional[str]], float] = {(start_room, None): 0.0}

        while frontier:
            cost, _, room, position, route = heapq.heappop(frontier)
            if room == destination.room_id:
                return route
            for doorway in self.floorplan.doorways_connecting(room):
                if not doorway.is_accessible or doorway in route:
                    continue
                next_room = doorway.other_room(room)
                new_cost = cost + horizontal_distance(position, doorway.position)
                if next_room == destination.room_id:
                    new_cost += horizontal_distance(doorway.position, destination.position)
                key = (next_room, doorway.id)
                if new_cost < best.get(key, float("inf")):
                    best[key] = new_cost
                    heapq.heappush(frontier, (new_cost, next(counter), next_room,
                                              doorway.position, route + [doorway]))
        return None

    def report_off_route(self, position, waypoint: NavigationWaypoint) -> None:
        """Record that the user drifted away from the current waypoint."""
        self.off_route_reports.append((as_vec3(position), waypoint))
        logger.info("Off-route reported", extra={"extra": {"waypoint": waypoint.id}})
