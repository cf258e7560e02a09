"""
Waypoint-following navigation state machine.

    NotStarted → ComputingPath → Navigating(i, n) ⇄ Paused
                              ↘ Failed              ↘ Arrived

tick() is called at a fixed period while Navigating. Each tick reads the
latest tracking sample, converts it to the map frame and compares it with
the current waypoint:

    approach   distance in [1.0, 2.5] m      once per waypoint index
    doorway    within 1.8 m of a doorway      once per doorway id
    arrival    distance < 0.5 m               then a 0.7 s cooldown
    off-route  distance grew and exceeds 2 m  once until distance shrinks

Latches and the cooldown are cleared whenever a new path is selected.
Every announcement is published on the session's EventChannel; the engine
never waits for narration.
"""

import time
from typing import Callable, List, Optional, Set, Tuple

import numpy as np

from beaconnav.config import NavigationConfig
from beaconnav.coords.transforms import CoordinateTransform
from beaconnav.errors import BeaconNavError, CalibrationUnavailable, PathNotFound, TrackingUnavailable
from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon, Doorway, Room
from beaconnav.narration.fallbacks import doorway_fallback_text
from beaconnav.navigation.destinations import (
    MatchResult,
    MatchSuccess,
    available_destinations,
    resolve_destination,
)
from beaconnav.navigation.events import (
    ApproachEvent,
    ArrivalEvent,
    DoorwayEvent,
    EventChannel,
    OffRouteEvent,
    RouteStartedEvent,
    StateChangedEvent,
    TrackingStatusEvent,
)
from beaconnav.navigation.interfaces import PathPlanner, TrackingSource
from beaconnav.navigation.types import (
    Arrived,
    ComputingPath,
    Failed,
    Navigating,
    NavigationPath,
    NavigationProgress,
    NavigationState,
    NavigationWaypoint,
    NotStarted,
    Paused,
    TrackingQuality,
    WaypointType,
)
from beaconnav.utils.geometry import as_vec3, centroid, horizontal, lift
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)


def waypoint_label(waypoint: NavigationWaypoint) -> str:
    """Name used in "proceed to" phrases."""
    if waypoint.name:
        return waypoint.name
    if waypoint.type is WaypointType.DOORWAY:
        return "the doorway"
    if waypoint.type is WaypointType.INTERMEDIATE:
        return "the next point"
    return "the next waypoint"


class NavigationProgressEngine:
    """
    Track progress along a route and emit guidance events.

    Args:
        transform: Map ↔ tracking transform; its calibration is read-only
            while navigating.
        floorplan: Rooms, beacons and doorways.
        planner: Route computation collaborator.
        tracking: Live pose source.
        config: Navigation thresholds.
        events: Channel receiving every announcement.
        clock: Monotonic clock used when `now` is not passed.

    Example:
        >>> engine = NavigationProgressEngine(transform, floorplan, planner, tracking)
        >>> engine.select_destination(beacon)
        >>> while engine.state.is_active:
        ...     engine.tick()
    """

    def __init__(self, transform: CoordinateTransform, floorplan: FloorplanStore,
                 planner: PathPlanner, tracking: TrackingSource,
                 config: Optional[NavigationConfig] = None,
                 events: Optional[EventChannel] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.transform = transform
        self.floorplan = floorplan
        self.planner = planner
        self.tracking = tracking
        self.config = config or NavigationConfig()
        self.config.validate()
        self.events = events if events is not None else EventChannel()
        self._clock = clock

        self._state: NavigationState = NotStarted()
        self.path: Optional[NavigationPath] = None
        self.destination: Optional[Beacon] = None
        self.current_waypoint_index = 0
        self.progress: Optional[NavigationProgress] = None
        self.last_error: Optional[BeaconNavError] = None
        self.waiting_for_tracking = False
        self.last_map_position: Optional[np.ndarray] = None

        self.cooldown_until: Optional[float] = None
        self._last_distance: Optional[float] = None
        self._approach_announced: Set[int] = set()
        self._doorways_announced: Set[str] = set()
        self._off_route_reported = False
        self._ticking = False
        self._arrival_this_tick = False

    # --- State ----------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        return self._state

    def _set_state(self, state: NavigationState, now: Optional[float] = None) -> None:
        self._state = state
        logger.info("Navigation state", extra={"extra": {"state": repr(state)}})
        self.events.publish(StateChangedEvent(
            state.name, timestamp=self._clock() if now is None else now, state=state,
        ))

    @property
    def current_waypoint(self) -> Optional[NavigationWaypoint]:
        if self.path is None or self.current_waypoint_index >= len(self.path):
            return None
        return self.path.waypoints[self.current_waypoint_index]

    @property
    def next_waypoint(self) -> Optional[NavigationWaypoint]:
        if self.path is None or self.current_waypoint_index + 1 >= len(self.path):
            return None
        return self.path.waypoints[self.current_waypoint_index + 1]

    @property
    def is_at_destination(self) -> bool:
        return isinstance(self._state, Arrived)

    def is_in_cooldown(self, now: float) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until

    # --- Destination selection ------------------------------------------

    def current_map_position(self) -> np.ndarray:
        """User position in the map frame (3,), from the latest tracking sample."""
        sample = self.tracking.latest_sample()
        if sample is None or sample.quality is TrackingQuality.NOT_AVAILABLE:
            raise TrackingUnavailable()
        p = sample.position
        return lift(self.transform.tracking_to_map(p), p[1])

    def select_destination(self, beacon: Beacon, current_position=None,
                           now: Optional[float] = None) -> NavigationState:
        """
        Plan a route to `beacon` and start navigating.

        Args:
            beacon: Destination beacon.
            current_position: Start in the map frame (3,). Taken from the
                tracking source when omitted.

        Returns:
            Navigating on success, Failed when no path exists.

        Raises:
            TrackingUnavailable: No position given and no tracking sample.
            CalibrationUnavailable: No position given and no calibration.
        """
        now = self._clock() if now is None else now
        start = self.current_map_position() if current_position is None else as_vec3(current_position)

        self.destination = beacon
        self.last_error = None
        self._set_state(ComputingPath(), now)

        path = self.planner.find_path(start, beacon)
        if path is None:
            self.path = None
            self.last_error = PathNotFound(f"No route to {beacon.name}")
            logger.warning("Path not found", extra={"extra": {"destination": beacon.name}})
            self._set_state(Failed("Could not find path to destination"), now)
            return self._state

        self.path = path
        self.current_waypoint_index = 0
        self.progress = None
        self._clear_latches()
        self._set_state(Navigating(0, len(path)), now)

        final = next((w for w in reversed(path.waypoints) if w.type is WaypointType.DESTINATION), None)
        final_name = (final.name if final is not None and final.name else beacon.name) or "destination"
        next_name = waypoint_label(path.waypoints[1]) if len(path) > 1 else "next waypoint"
        self.events.publish(RouteStartedEvent(
            f"Route to {final_name}. To begin, proceed to {next_name}.",
            timestamp=now, destination_name=final_name,
            total_distance=path.total_distance, waypoint_count=len(path),
        ))
        logger.info(
            "Navigation started",
            extra={"extra": {"destination": beacon.name, "waypoints": len(path),
                             "distance": round(path.total_distance, 2)}},
        )
        return self._state

    def select_destination_named(self, query: str, current_position=None,
                                 now: Optional[float] = None) -> MatchResult:
        """
        Resolve a spoken destination and start navigating on a unique match.

        Returns:
            The match result; navigation starts only for MatchSuccess.
        """
        result = resolve_destination(query, available_destinations(self.floorplan))
        if isinstance(result, MatchSuccess):
            self.select_destination(result.beacon, current_position, now)
        else:
            logger.info("Destination not resolved",
                        extra={"extra": {"query": query, "result": type(result).__name__}})
        return result

    def _clear_latches(self) -> None:
        self.cooldown_until = None
        self._last_distance = None
        self._approach_announced.clear()
        self._doorways_announced.clear()
        self._off_route_reported = False

    # --- Tick -----------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> Optional[NavigationProgress]:
        """
        Advance navigation by one step.

        A no-op (returning the last progress) unless Navigating, while a
        previous tick is still running, inside the arrival cooldown, or
        without a tracking sample.
        """
        if not isinstance(self._state, Navigating) or self._ticking:
            return self.progress
        now = self._clock() if now is None else now
        if self.is_in_cooldown(now):
            return self.progress

        self._ticking = True
        self._arrival_this_tick = False
        try:
            return self._tick(now)
        finally:
            self._ticking = False

    def _tick(self, now: float) -> Optional[NavigationProgress]:
        waypoint = self.current_waypoint
        sample = self.tracking.latest_sample()
        if waypoint is None or sample is None or sample.quality is TrackingQuality.NOT_AVAILABLE:
            self._set_waiting(True, now)
            return self.progress

        try:
            user = self.transform.tracking_to_map(sample.position)
            heading = self.transform.tracking_heading_vector_to_map(sample.heading)
        except CalibrationUnavailable as exc:
            self.last_error = exc
            self._set_waiting(True, now)
            return self.progress
        self._set_waiting(False, now)
        self.last_map_position = user

        target = waypoint.position
        distance = CoordinateTransform.distance(user, target)
        index = self.current_waypoint_index

        self._check_approach(waypoint, index, distance, now)

        remaining = distance + self.path.distance_from(index)
        self.progress = NavigationProgress(
            current_waypoint_index=index,
            distance_to_next_waypoint=distance,
            total_distance_remaining=remaining,
            estimated_time_remaining=remaining / self.config.walking_speed,
            current_heading=heading,
            target_heading=CoordinateTransform.bearing(user, target),
            heading_error=-CoordinateTransform.relative_bearing(user, target, heading),
            total_path_distance=self.path.total_distance,
            aligned_tolerance=self.config.alignment_tolerance,
        )
        logger.debug("Tick", extra={"extra": {"index": index, "distance": round(distance, 3)}})

        self._check_doorway(user, now)

        if CoordinateTransform.is_near(user, target, self.config.arrival_threshold):
            self._arrive(now)
            return self.progress

        self._check_deviation(user, waypoint, distance, now)
        self._last_distance = distance
        return self.progress

    def _set_waiting(self, waiting: bool, now: float) -> None:
        if waiting == self.waiting_for_tracking:
            return
        self.waiting_for_tracking = waiting
        if waiting:
            logger.warning("Tracking unavailable; waiting")
            message = "Waiting for tracking"
        else:
            logger.info("Tracking restored")
            message = "Tracking restored"
        self.events.publish(TrackingStatusEvent(message, timestamp=now, available=not waiting))

    # --- Announcements --------------------------------------------------

    def _check_approach(self, waypoint: NavigationWaypoint, index: int,
                        distance: float, now: float) -> None:
        if index in self._approach_announced:
            return
        if not self.config.approach_min <= distance <= self.config.approach_max:
            return

        self._approach_announced.add(index)
        step = max(self.config.min_step_length, self.config.step_length)
        steps = max(1, int(round(distance / step)))
        self.events.publish(ApproachEvent(
            f"Approaching {waypoint.display_name} in {steps} steps.",
            timestamp=now, waypoint_index=index, steps=steps, distance=distance,
        ))

    def _arrival_message(self, waypoint: NavigationWaypoint, index: int) -> str:
        path = self.path
        if index >= len(path) - 1:
            return "Arrived"

        if waypoint.type is WaypointType.START:
            return f"Proceed to {waypoint_label(path.waypoints[index + 1])}"

        arrived = f"Arrived at {waypoint.name}" if waypoint.name else "Arrived"
        ahead = path.waypoints[index + 1:]
        named = next((w for w in ahead if w.type is WaypointType.INTERMEDIATE and w.name), None)
        final = next((w for w in ahead if w.type is WaypointType.DESTINATION), None)
        if named is not None:
            upcoming = named.name
        elif final is not None:
            upcoming = final.name or "destination"
        else:
            upcoming = ahead[0].name or "next waypoint"
        return f"{arrived}, now proceed to {upcoming}"

    def _arrive(self, now: float) -> None:
        if self._arrival_this_tick:
            return
        self._arrival_this_tick = True
        self.cooldown_until = now + self.config.arrival_cooldown

        index = self.current_waypoint_index
        waypoint = self.path.waypoints[index]
        is_final = index >= len(self.path) - 1
        message = self._arrival_message(waypoint, index)
        logger.info("Arrived at waypoint",
                    extra={"extra": {"index": index, "waypoint": waypoint.id, "final": is_final}})
        self.events.publish(ArrivalEvent(
            message, timestamp=now, waypoint_index=index, is_final=is_final,
            instruction=waypoint.audio_instruction,
        ))

        self.current_waypoint_index += 1
        self._last_distance = None
        self._off_route_reported = False
        if self.current_waypoint_index >= len(self.path):
            self._set_state(Arrived(), now)
        else:
            self._set_state(Navigating(self.current_waypoint_index, len(self.path)), now)

    def _check_deviation(self, user: np.ndarray, waypoint: NavigationWaypoint,
                         distance: float, now: float) -> None:
        if self._last_distance is None:
            return
        if distance < self._last_distance:
            self._off_route_reported = False
            return
        if self._off_route_reported or distance <= self._last_distance:
            return
        if not CoordinateTransform.should_recalculate(
                user, waypoint.position, self.config.recalculation_threshold):
            return

        self._off_route_reported = True
        logger.warning("User deviated from path",
                       extra={"extra": {"index": self.current_waypoint_index,
                                        "distance": round(distance, 2)}})
        self.events.publish(OffRouteEvent(
            "You seem to be moving away from the route.",
            timestamp=now, waypoint_index=self.current_waypoint_index, distance=distance,
        ))
        self.planner.report_off_route(lift(user), waypoint)

    def _check_doorway(self, user: np.ndarray, now: float) -> None:
        path = self.path
        for anchor in (self.current_waypoint_index, self.current_waypoint_index + 1):
            if anchor >= len(path):
                return
            waypoint = path.waypoints[anchor]
            if waypoint.type is not WaypointType.DOORWAY or waypoint.doorway_id is None:
                continue
            doorway = self.floorplan.doorway(waypoint.doorway_id)
            if doorway is None or doorway.id in self._doorways_announced:
                continue
            distance = float(np.linalg.norm(doorway.floor_position - user))
            if distance > self.config.doorway_announce_distance:
                continue

            self._doorways_announced.add(doorway.id)
            from_id, to_id = self.resolve_doorway_rooms(doorway, anchor, user)
            from_room = self.floorplan.room(from_id) if from_id else None
            to_room = self.floorplan.room(to_id) if to_id else None
            from_name = from_room.name if from_room else "previous room"
            to_name = to_room.name if to_room else "next room"
            self.events.publish(DoorwayEvent(
                doorway_fallback_text(doorway, from_id, to_name),
                timestamp=now, doorway_id=doorway.id,
                from_room_id=from_id, to_room_id=to_id,
                from_room_name=from_name, to_room_name=to_name,
                action=doorway.action(from_id) if from_id else doorway.action_from_a,
                distance=distance,
            ))
            return

    # --- Doorway and room resolution ------------------------------------

    def resolve_doorway_rooms(self, doorway: Doorway, anchor: int,
                              user) -> Tuple[Optional[str], Optional[str]]:
        """
        Rooms on the near and far side of a doorway on the current path.

        Uses the room ids of the waypoints just before and after the doorway;
        missing sides come from the doorway's own room pair, picking the side
        the user is in, else the side whose beacon centroid is nearer.
        """
        waypoints = self.path.waypoints
        from_id = waypoints[anchor - 1].room_id if anchor > 0 else None
        to_id = waypoints[anchor + 1].room_id if anchor + 1 < len(waypoints) else None
        if from_id is not None and to_id is not None:
            return from_id, to_id

        a, b = doorway.room_a, doorway.room_b
        if from_id is None:
            room = self.find_closest_room(user)
            if room is not None and room.id in (a, b):
                from_id = room.id
        if from_id is not None and to_id is None:
            to_id = doorway.other_room(from_id)
        if to_id is not None and from_id is None:
            from_id = doorway.other_room(to_id)

        if from_id is None or to_id is None:
            p = horizontal(user)
            ca, cb = self.room_centroid(a), self.room_centroid(b)
            da = float(np.linalg.norm(p - ca)) if ca is not None else float("inf")
            db = float(np.linalg.norm(p - cb)) if cb is not None else float("inf")
            near, far = (a, b) if da <= db else (b, a)
            from_id = from_id or near
            to_id = to_id or far
        return from_id, to_id

    def room_centroid(self, room_id: str) -> Optional[np.ndarray]:
        """Mean horizontal position of a room's beacons, or None without beacons."""
        beacons = self.floorplan.beacons_in_room(room_id)
        if not beacons:
            return None
        return centroid([b.floor_position for b in beacons])

    def _inside_room(self, p: np.ndarray, room: Room) -> bool:
        beacons = self.floorplan.beacons_in_room(room.id)
        if not beacons:
            return False
        points = np.array([b.floor_position for b in beacons])
        pad = self.config.room_padding
        lower = points.min(axis=0) - pad
        upper = points.max(axis=0) + pad
        return bool(np.all(p >= lower) and np.all(p <= upper))

    def find_closest_room(self, position) -> Optional[Room]:
        """
        Room containing a map position.

        A room contains the position if it lies inside the padded bounding
        box of the room's beacons; otherwise the room with the nearest beacon
        centroid is returned when it is within the configured radius.
        """
        p = horizontal(position)
        best: Optional[Room] = None
        best_distance = float("inf")
        for room in self.floorplan.rooms:
            if self._inside_room(p, room):
                return room
            center = self.room_centroid(room.id)
            if center is None:
                continue
            d = float(np.linalg.norm(p - center))
            if d < best_distance:
                best, best_distance = room, d
        return best if best_distance < self.config.room_centroid_radius else None

    # --- Control --------------------------------------------------------

    def pause_navigation(self) -> None:
        if isinstance(self._state, Navigating):
            self._set_state(Paused())

    def resume_navigation(self) -> None:
        if self.path is None or not isinstance(self._state, Paused):
            return
        self._set_state(Navigating(self.current_waypoint_index, len(self.path)))

    def cancel_navigation(self) -> None:
        self.path = None
        self.destination = None
        self.current_waypoint_index = 0
        self.progress = None
        self.last_map_position = None
        self.waiting_for_tracking = False
        self._clear_latches()
        self._set_state(NotStarted())

    @property
    def announced_doorways(self) -> List[str]:
        return sorted(self._doorways_announced)
