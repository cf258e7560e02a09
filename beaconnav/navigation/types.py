"""
Navigation data model: waypoints, paths, state and per-tick progress.

NavigationState is a tagged union of frozen dataclasses; exactly one state
is current and only its transitions change the waypoint index.
NavigationProgress is recomputed every tick and never persisted.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np

from beaconnav.utils.geometry import as_vec3


class WaypointType(Enum):
    START = "start"
    INTERMEDIATE = "intermediate"
    DOORWAY = "doorway"
    DESTINATION = "destination"


@dataclass(frozen=True, eq=False)
class NavigationWaypoint:
    """
    Node of a computed route.

    Attributes:
        id: Identifier, unique within the path.
        name: Spoken name; may be empty.
        type: Waypoint role in the route.
        position: Map position (3,).
        room_id: Room the waypoint lies in, if known.
        doorway_id: Doorway entity for DOORWAY waypoints.
        audio_instruction: Optional instruction spoken on arrival.
    """

    id: str
    name: str
    type: WaypointType
    position: np.ndarray
    room_id: Optional[str] = None
    doorway_id: Optional[str] = None
    audio_instruction: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'position', as_vec3(self.position))

    @property
    def display_name(self) -> str:
        """Name to speak; falls back to a generic label for unnamed waypoints."""
        if self.name:
            return self.name
        if self.type is WaypointType.DOORWAY:
            return "the doorway"
        if self.type is WaypointType.INTERMEDIATE:
            return "the next point"
        if self.type is WaypointType.DESTINATION:
            return "your destination"
        return "your next waypoint"


def _leg_lengths(waypoints: Sequence[NavigationWaypoint]) -> np.ndarray:
    if len(waypoints) < 2:
        return np.zeros(0)
    positions = np.array([w.position for w in waypoints])
    return np.linalg.norm(np.diff(positions, axis=0), axis=1)


@dataclass(frozen=True, eq=False)
class NavigationPath:
    """
    Immutable ordered route.

    total_distance must equal the sum of consecutive waypoint distances;
    use from_waypoints() to compute it.

    Raises:
        ValueError: If the path is empty or total_distance is inconsistent.
    """

    waypoints: Tuple[NavigationWaypoint, ...]
    total_distance: float

    def __post_init__(self):
        waypoints = tuple(self.waypoints)
        if not waypoints:
            raise ValueError("A navigation path needs at least one waypoint")
        object.__setattr__(self, 'waypoints', waypoints)
        expected = float(np.sum(_leg_lengths(waypoints)))
        if not math.isclose(self.total_distance, expected, rel_tol=1e-6, abs_tol=1e-6):
            raise ValueError(
                f"total_distance {self.total_distance:.3f} does not match "
                f"waypoint distances {expected:.3f}"
            )

    @classmethod
    def from_waypoints(cls, waypoints: Sequence[NavigationWaypoint]) -> "NavigationPath":
        return cls(tuple(waypoints), float(np.sum(_leg_lengths(waypoints))))

    def __len__(self) -> int:
        return len(self.waypoints)

    def distance_from(self, index: int) -> float:
        """Path length from waypoint `index` to the end."""
        if index >= len(self.waypoints) - 1:
            return 0.0
        return float(np.sum(_leg_lengths(self.waypoints)[max(0, index):]))

    @property
    def destination(self) -> NavigationWaypoint:
        return self.waypoints[-1]

    @property
    def rooms_traversed(self) -> Tuple[str, ...]:
        """Room ids in visiting order, consecutive duplicates removed."""
        rooms = []
        for w in self.waypoints:
            if w.room_id and (not rooms or rooms[-1] != w.room_id):
                rooms.append(w.room_id)
        return tuple(rooms)

    def estimated_time(self, walking_speed: float = 1.2) -> float:
        return self.total_distance / walking_speed


# --- Navigation state ----------------------------------------------------


class NavigationState:
    """Base of the navigation state union."""

    is_active = False

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class NotStarted(NavigationState):
    pass


@dataclass(frozen=True)
class ComputingPath(NavigationState):
    pass


@dataclass(frozen=True)
class Navigating(NavigationState):
    waypoint_index: int
    total: int

    is_active = True

    def __post_init__(self):
        if not 0 <= self.waypoint_index < self.total:
            raise ValueError(f"waypoint_index {self.waypoint_index} outside path of {self.total}")


@dataclass(frozen=True)
class Paused(NavigationState):
    pass


@dataclass(frozen=True)
class Arrived(NavigationState):
    pass


@dataclass(frozen=True)
class Failed(NavigationState):
    reason: str


# --- Tracking input ------------------------------------------------------


class TrackingQuality(Enum):
    """Tracking-state signal of the live pose source."""

    NOT_AVAILABLE = "not_available"
    INITIALIZING = "initializing"
    EXCESSIVE_MOTION = "excessive_motion"
    INSUFFICIENT_FEATURES = "insufficient_features"
    RELOCALIZING = "relocalizing"
    NORMAL = "normal"


@dataclass(frozen=True, eq=False)
class TrackingSample:
    """
    One frame from the tracking source.

    Attributes:
        position: Device position in the tracking frame (3,).
        heading: Device heading in the tracking frame, radians, bearing
            convention on the (x, z) plane.
        quality: Tracking-state signal.
        timestamp: Monotonic time of the frame.
        forward: Optional forward unit vector (3,); derived from heading
            when omitted.
    """

    position: np.ndarray
    heading: float
    quality: TrackingQuality = TrackingQuality.NORMAL
    timestamp: float = 0.0
    forward: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, 'position', as_vec3(self.position))
        if self.forward is None:
            forward = np.array([math.sin(self.heading), 0.0, math.cos(self.heading)])
        else:
            forward = as_vec3(self.forward)
        object.__setattr__(self, 'forward', forward)


# --- Progress ------------------------------------------------------------


class AlignmentQuality(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very_poor"


@dataclass(frozen=True)
class NavigationProgress:
    """
    Per-tick navigation progress.

    heading_error is the negated relative bearing: positive means the
    target is to the user's left.
    """

    current_waypoint_index: int
    distance_to_next_waypoint: float
    total_distance_remaining: float
    estimated_time_remaining: float
    current_heading: float
    target_heading: float
    heading_error: float
    total_path_distance: float
    aligned_tolerance: float = field(default=math.radians(15.0), repr=False)

    @property
    def percent_complete(self) -> float:
        """Completed fraction of the path in [0, 1]."""
        if self.total_path_distance <= 0:
            return 0.0
        completed = max(0.0, self.total_path_distance - self.total_distance_remaining)
        return min(1.0, completed / self.total_path_distance)

    @property
    def heading_error_degrees(self) -> float:
        return math.degrees(self.heading_error)

    @property
    def is_aligned(self) -> bool:
        return abs(self.heading_error) < self.aligned_tolerance

    @property
    def alignment_quality(self) -> AlignmentQuality:
        degrees = abs(self.heading_error_degrees)
        if degrees < 15.0:
            return AlignmentQuality.EXCELLENT
        if degrees < 30.0:
            return AlignmentQuality.GOOD
        if degrees < 60.0:
            return AlignmentQuality.FAIR
        if degrees < 120.0:
            return AlignmentQuality.POOR
        return AlignmentQuality.VERY_POOR

    @property
    def turn_direction(self) -> str:
        return "left" if self.heading_error > 0 else "right"

    @property
    def clock_position(self) -> int:
        """Target direction as a clock hour, 12 straight ahead, 3 to the right."""
        degrees = -self.heading_error_degrees
        if abs(degrees) <= 15:
            return 12
        if abs(degrees) >= 165:
            return 6
        hour = int(round(degrees / 30.0)) if degrees > 0 else 12 + int(round(degrees / 30.0))
        if hour <= 0 or hour > 12:
            return 12
        return hour

    @property
    def instruction_text(self) -> str:
        degrees = abs(self.heading_error_degrees)
        if degrees <= 5:
            return "12 o'clock - Keep going straight"
        if degrees <= 15:
            return f"Slight turn to your {self.turn_direction}"
        if degrees >= 165:
            return "Turn around - behind you"
        return f"Turn to your {self.clock_position} o'clock"
