"""
Beacon-sighting positioning.

This module provides:
- BeaconSighting / PositionEstimate data types
- TriangulationSolver: two-ray intersection and pairwise multilateration
- KalmanPositionFilter: temporal smoothing of successive estimates
"""

from beaconnav.positioning.filtering import KalmanPositionFilter
from beaconnav.positioning.triangulation import TriangulationSolver, map_direction
from beaconnav.positioning.types import (
    BeaconSighting,
    PositionEstimate,
    PositioningMethod,
    high_confidence,
    recent,
    sorted_by_confidence,
)

__all__ = [
    "BeaconSighting",
    "PositionEstimate",
    "PositioningMethod",
    "high_confidence",
    "recent",
    "sorted_by_confidence",
    "TriangulationSolver",
    "map_direction",
    "KalmanPositionFilter",
]
