"""
Route following.

This module provides:
- Waypoint, path, state and progress types
- Typed navigation events and the EventChannel
- Collaborator interfaces (tracking source, path planner, description generator)
- Destination fuzzy matching
- NavigationProgressEngine: the per-tick state machine
"""

from beaconnav.navigation.types import (
    AlignmentQuality,
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
    TrackingSample,
    WaypointType,
)
from beaconnav.navigation.events import (
    ApproachEvent,
    ArrivalEvent,
    AsyncEventStream,
    DoorwayEvent,
    EventChannel,
    NavigationEvent,
    OffRouteEvent,
    RouteStartedEvent,
    StateChangedEvent,
    TrackingStatusEvent,
)
from beaconnav.navigation.interfaces import (
    DescriptionGenerator,
    PathPlanner,
    StaticTrackingSource,
    TrackingSource,
)
from beaconnav.navigation.destinations import (
    MatchAmbiguous,
    MatchNotFound,
    MatchSuccess,
    available_destinations,
    normalize_name,
    resolve_destination,
)
from beaconnav.navigation.engine import NavigationProgressEngine, waypoint_label

__all__ = [
    "AlignmentQuality",
    "Arrived",
    "ComputingPath",
    "Failed",
    "Navigating",
    "NavigationPath",
    "NavigationProgress",
    "NavigationState",
    "NavigationWaypoint",
    "NotStarted",
    "Paused",
    "TrackingQuality",
    "TrackingSample",
    "WaypointType",
    "ApproachEvent",
    "ArrivalEvent",
    "AsyncEventStream",
    "DoorwayEvent",
    "EventChannel",
    "NavigationEvent",
    "OffRouteEvent",
    "RouteStartedEvent",
    "StateChangedEvent",
    "TrackingStatusEvent",
    "DescriptionGenerator",
    "PathPlanner",
    "StaticTrackingSource",
    "TrackingSource",
    "MatchAmbiguous",
    "MatchNotFound",
    "MatchSuccess",
    "available_destinations",
    "normalize_name",
    "resolve_destination",
    "NavigationProgressEngine",
    "waypoint_label",
]
