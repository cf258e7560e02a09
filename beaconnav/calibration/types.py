"""
Calibration data types.

A BeaconMeasurement records where the user pointed when confirming a beacon:
the beacon's known map position, the observed direction and observer
position in the live tracking frame, and an optional measured range.
CalibrationData is the fitted map ↔ tracking transform built from at least
three measurements.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from beaconnav.errors import BeaconNavError, CalibrationInsufficientMeasurements
from beaconnav.floorplan.types import Beacon
from beaconnav.utils.angles import normalize_angle
from beaconnav.utils.geometry import as_vec2, as_vec3, unit

MIN_MEASUREMENTS = 3


@dataclass(frozen=True, eq=False)
class BeaconMeasurement:
    """
    One confirmed beacon observation.

    Attributes:
        beacon_id: Identifier of the measured beacon.
        map_position: Beacon position in the map frame (3,).
        observed_direction_local: Unit direction toward the beacon in the
            tracking frame (3,).
        distance: Measured range to the beacon, if available.
        confidence: Alignment score at confirmation, in [0, 1].
        observer_position: Device position in the tracking frame (3,).
    """

    beacon_id: str
    map_position: np.ndarray
    observed_direction_local: np.ndarray
    distance: Optional[float] = None
    confidence: float = 1.0
    observer_position: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        object.__setattr__(self, 'map_position', as_vec3(self.map_position))
        object.__setattr__(self, 'observed_direction_local',
                           unit(as_vec3(self.observed_direction_local)))
        object.__setattr__(self, 'observer_position', as_vec3(self.observer_position))
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.distance is not None and self.distance <= 0:
            raise ValueError(f"distance must be positive, got {self.distance}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'beacon_id': self.beacon_id,
            'map_position': self.map_position.tolist(),
            'observed_direction_local': self.observed_direction_local.tolist(),
            'distance': self.distance,
            'confidence': self.confidence,
            'observer_position': self.observer_position.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeaconMeasurement":
        return cls(
            beacon_id=data['beacon_id'],
            map_position=data['map_position'],
            observed_direction_local=data['observed_direction_local'],
            distance=data.get('distance'),
            confidence=data.get('confidence', 1.0),
            observer_position=data.get('observer_position', [0.0, 0.0, 0.0]),
        )


class CalibrationQuality(Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"

    @classmethod
    def rate(cls, confidence: float, residual_error: float) -> "CalibrationQuality":
        """Quality from confidence in [0, 1] and residual error in degrees."""
        if confidence > 0.85 and residual_error < 10.0:
            return cls.EXCELLENT
        if confidence > 0.70 and residual_error < 15.0:
            return cls.GOOD
        if confidence > 0.55 and residual_error < 25.0:
            return cls.FAIR
        return cls.POOR


@dataclass(frozen=True, eq=False)
class CalibrationData:
    """
    Fitted rigid transform between map and tracking frames.

    Attributes:
        user_position_map: Map position of the tracking origin (2,).
        heading_map_to_tracking: Rotation θ with tracking = R(θ)(map − u).
        measurements: Measurements the fit was computed from (≥ 3).
        confidence: Fit confidence in [0, 1].
        residual_error: Weighted RMS bearing residual in degrees.
        degraded: True when tracking readiness was forced by the failsafe
            timeout; the fit may be less reliable.
        timestamp: Monotonic time of the fit.

    Raises:
        CalibrationInsufficientMeasurements: Fewer than 3 measurements.
    """

    user_position_map: np.ndarray
    heading_map_to_tracking: float
    measurements: Tuple[BeaconMeasurement, ...]
    confidence: float
    residual_error: float
    degraded: bool = False
    timestamp: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        measurements = tuple(self.measurements)
        if len(measurements) < MIN_MEASUREMENTS:
            raise CalibrationInsufficientMeasurements(
                f"Calibration needs at least {MIN_MEASUREMENTS} measurements, got {len(measurements)}"
            )
        object.__setattr__(self, 'measurements', measurements)
        object.__setattr__(self, 'user_position_map', as_vec2(self.user_position_map))
        object.__setattr__(self, 'heading_map_to_tracking',
                           normalize_angle(self.heading_map_to_tracking))
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @property
    def quality(self) -> CalibrationQuality:
        return CalibrationQuality.rate(self.confidence, self.residual_error)

    def summary(self) -> Dict[str, Any]:
        return {
            'user_position_map': self.user_position_map.tolist(),
            'heading_deg': float(np.degrees(self.heading_map_to_tracking)),
            'confidence': self.confidence,
            'residual_error_deg': self.residual_error,
            'quality': self.quality.value,
            'degraded': self.degraded,
            'measurements': len(self.measurements),
        }


# --- Calibration state ---------------------------------------------------


class CalibrationState:
    """Base of the calibration state union."""

    @property
    def display_message(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class WaitingForTracking(CalibrationState):
    @property
    def display_message(self) -> str:
        return "Initializing tracking..."


@dataclass(frozen=True)
class MeasuringBeacon(CalibrationState):
    index: int
    total: int

    @property
    def display_message(self) -> str:
        return f"Point camera at beacon {self.index + 1} of {self.total}"


@dataclass(frozen=True, eq=False)
class Completed(CalibrationState):
    calibration: CalibrationData

    @property
    def display_message(self) -> str:
        return "Calibration complete!"


@dataclass(frozen=True, eq=False)
class Failed(CalibrationState):
    reason: str
    error: Optional[BeaconNavError] = None

    @property
    def display_message(self) -> str:
        return f"Failed: {self.reason}"


class CandidatePriority(Enum):
    """Calibration ranking; lower value is measured first."""

    PRIMARY = 0      # destination / landmark
    FURNITURE = 1
    OTHER = 2


@dataclass(frozen=True, eq=False)
class CandidateBeacon:
    beacon: Beacon
    priority: CandidatePriority
    distance: float = 0.0
