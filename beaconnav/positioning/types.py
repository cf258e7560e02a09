"""
Data types for beacon-based positioning.

A BeaconSighting is one directional (optionally ranged) observation of a
beacon from the current device pose. A PositionEstimate is the immutable
2D result of combining sightings.
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from beaconnav.utils.geometry import as_vec2, as_vec3, lift, unit


@dataclass(frozen=True, eq=False)
class BeaconSighting:
    """
    Observation of a beacon from the device.

    Attributes:
        beacon_id: Identifier of the observed beacon.
        beacon_position: Known map position of the beacon (3,), y vertical.
        direction_local: Unit direction from the device toward the beacon in
            the device frame (3,). Normalized on construction.
        distance: Measured distance to the beacon in meters, if available.
        confidence: Observation confidence in [0, 1].
        timestamp: Monotonic time of the observation in seconds.
    """

    beacon_id: str
    beacon_position: np.ndarray
    direction_local: np.ndarray
    distance: Optional[float] = None
    confidence: float = 1.0
    timestamp: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        object.__setattr__(self, 'beacon_position', as_vec3(self.beacon_position))
        object.__setattr__(self, 'direction_local', unit(as_vec3(self.direction_local)))
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.distance is not None and self.distance <= 0:
            raise ValueError(f"distance must be positive, got {self.distance}")

    @classmethod
    def from_bearing(cls, beacon_id: str, beacon_position, bearing: float,
                     distance: Optional[float] = None, confidence: float = 1.0,
                     timestamp: Optional[float] = None) -> "BeaconSighting":
        """Build a horizontal sighting from a device-frame bearing."""
        direction = np.array([math.sin(bearing), 0.0, math.cos(bearing)])
        return cls(
            beacon_id=beacon_id,
            beacon_position=beacon_position,
            direction_local=direction,
            distance=distance,
            confidence=confidence,
            timestamp=time.monotonic() if timestamp is None else timestamp,
        )

    @property
    def bearing(self) -> float:
        """Device-frame bearing of the sighting direction."""
        return math.atan2(self.direction_local[0], self.direction_local[2])

    def is_recent(self, within: float, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return now - self.timestamp < within


def high_confidence(sightings: Sequence[BeaconSighting], threshold: float = 0.6) -> List[BeaconSighting]:
    """Sightings whose confidence is at least threshold."""
    return [s for s in sightings if s.confidence >= threshold]


def sorted_by_confidence(sightings: Sequence[BeaconSighting]) -> List[BeaconSighting]:
    """Sightings ordered from most to least confident."""
    return sorted(sightings, key=lambda s: s.confidence, reverse=True)


def recent(sightings: Sequence[BeaconSighting], within: float,
           now: Optional[float] = None) -> List[BeaconSighting]:
    """Sightings observed less than `within` seconds ago."""
    now = time.monotonic() if now is None else now
    return [s for s in sightings if s.is_recent(within, now)]


class PositioningMethod(Enum):
    TRIANGULATION = "triangulation"
    MULTILATERATION = "multilateration"
    KALMAN_FILTERED = "kalman_filtered"


@dataclass(frozen=True, eq=False)
class PositionEstimate:
    """
    Immutable horizontal position estimate.

    Attributes:
        position: Horizontal map position (2,) as (x, z).
        confidence: Estimate confidence in [0, 1].
        heading: Device heading used for the estimate, radians.
        method: Positioning method that produced the estimate.
        timestamp: Monotonic time the estimate was produced.
    """

    position: np.ndarray
    confidence: float
    heading: float
    method: PositioningMethod
    timestamp: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        position = as_vec2(self.position)
        position.setflags(write=False)
        object.__setattr__(self, 'position', position)
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    def position_3d(self, height: float = 0.0) -> np.ndarray:
        """Position embedded in 3D at a known floor height."""
        return lift(self.position, height)
