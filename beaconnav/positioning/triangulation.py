"""
Position estimation from beacon sightings.

Each sighting gives a device-frame direction toward a beacon with a known
map position. Rotating that direction by the device heading puts it in the
map's horizontal plane; the device then lies somewhere on the ray cast from
the beacon in the opposite direction.

Two sightings:
    Intersect the two rays. The 2×2 system
        p1 + t d1 = p2 + s d2
    is solved for t with the cross term d1 × d2; if |d1 × d2| ≤ 0.001 the
    rays are treated as parallel.

Three or more sightings:
    Triangulate every unordered pair and take the confidence-weighted
    average; the final confidence comes from how well the averaged position
    explains every sighting direction (mean angular error, 30° → 0).
"""

import itertools
import math
import time
from typing import List, Optional, Sequence, Tuple

import numpy as np

from beaconnav.config import TriangulationConfig
from beaconnav.errors import (
    InsufficientHighConfidenceSightings,
    InsufficientSightings,
    NoIntersection,
    NoValidPairs,
)
from beaconnav.positioning.types import (
    BeaconSighting,
    PositionEstimate,
    PositioningMethod,
    high_confidence,
)
from beaconnav.utils.angles import safe_acos
from beaconnav.utils.geometry import cross_2d, horizontal, rotate_direction
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)


def map_direction(sighting: BeaconSighting, heading: float) -> np.ndarray:
    """
    Rotate a sighting's device-frame direction into the map frame.

    Returns the horizontal component (2,); it is not renormalized, so a
    sighting that looks mostly up or down yields a short vector.
    """
    return horizontal(rotate_direction(sighting.direction_local, heading))


class TriangulationSolver:
    """
    Estimate the device position from beacon sightings.

    Attributes:
        config: Thresholds for filtering and degeneracy detection.

    Example:
        >>> solver = TriangulationSolver()
        >>> estimate = solver.estimate(sightings, heading=0.0)
        >>> estimate.method
        <PositioningMethod.TRIANGULATION: 'triangulation'>
    """

    def __init__(self, config: Optional[TriangulationConfig] = None):
        self.config = config or TriangulationConfig()
        self.config.validate()

    def estimate(self, sightings: Sequence[BeaconSighting], heading: float,
                 now: Optional[float] = None) -> PositionEstimate:
        """
        Estimate the horizontal device position.

        Args:
            sightings: Beacon sightings from the current pose.
            heading: Device heading in the map frame, radians.
            now: Timestamp for the estimate (default: monotonic clock).

        Returns:
            PositionEstimate with a 2D position.

        Raises:
            InsufficientSightings: Fewer than 2 sightings given.
            InsufficientHighConfidenceSightings: Fewer than 2 pass the
                confidence threshold.
            NoIntersection: Exactly 2 sightings whose rays are parallel.
            NoValidPairs: 3 or more sightings but no pair intersects.
        """
        now = time.monotonic() if now is None else now

        if len(sightings) < 2:
            raise InsufficientSightings(f"Need at least 2 sightings, got {len(sightings)}")

        valid = high_confidence(sightings, self.config.min_confidence)
        if len(valid) < 2:
            raise InsufficientHighConfidenceSightings(
                f"Only {len(valid)} sighting(s) with confidence >= {self.config.min_confidence}"
            )

        if len(valid) == 2:
            position, confidence = self.triangulate_pair(valid[0], valid[1], heading)
            method = PositioningMethod.TRIANGULATION
        else:
            position, confidence = self.multilaterate(valid, heading)
            method = PositioningMethod.MULTILATERATION

        logger.debug(
            "Position estimated",
            extra={"extra": {"method": method.value, "n": len(valid),
                             "x": float(position[0]), "z": float(position[1]),
                             "confidence": round(confidence, 3)}},
        )
        return PositionEstimate(position=position, confidence=confidence,
                                heading=heading, method=method, timestamp=now)

    def triangulate_pair(self, s1: BeaconSighting, s2: BeaconSighting,
                         heading: float) -> Tuple[np.ndarray, float]:
        """
        Intersect the rays of two sightings.

        Returns:
            Tuple (position (2,), confidence).

        Raises:
            NoIntersection: If the rays are parallel or degenerate.
        """
        # Rays point from each beacon back toward the device
        d1 = -map_direction(s1, heading)
        d2 = -map_direction(s2, heading)
        p1 = horizontal(s1.beacon_position)
        p2 = horizontal(s2.beacon_position)

        denom = cross_2d(d1, d2)
        if abs(denom) <= self.config.parallel_epsilon:
            raise NoIntersection(
                f"Rays from '{s1.beacon_id}' and '{s2.beacon_id}' do not intersect"
            )

        t = cross_2d(p2 - p1, d2) / denom
        position = p1 + t * d1

        height = 0.5 * (s1.beacon_position[1] + s2.beacon_position[1])
        confidence = self._pair_confidence(s1, s2, d1, d2, position, height)
        return position, confidence

    def multilaterate(self, sightings: Sequence[BeaconSighting],
                      heading: float) -> Tuple[np.ndarray, float]:
        """
        Combine every pairwise intersection by confidence weight.

        Returns:
            Tuple (position (2,), confidence).

        Raises:
            NoValidPairs: If no pair yields an intersection with weight.
        """
        weighted_sum = np.zeros(2)
        total_weight = 0.0

        for s1, s2 in itertools.combinations(sightings, 2):
            try:
                position, confidence = self.triangulate_pair(s1, s2, heading)
            except NoIntersection:
                continue
            weighted_sum += confidence * position
            total_weight += confidence

        if total_weight <= 0.0:
            raise NoValidPairs(f"None of {len(sightings)} sightings formed a usable pair")

        estimate = weighted_sum / total_weight
        return estimate, self._consistency_confidence(estimate, sightings, heading)

    def _pair_confidence(self, s1: BeaconSighting, s2: BeaconSighting,
                         d1: np.ndarray, d2: np.ndarray,
                         position: np.ndarray, height: float) -> float:
        avg_confidence = 0.5 * (s1.confidence + s2.confidence)

        cosine = float(np.dot(d1, d2) / (np.linalg.norm(d1) * np.linalg.norm(d2)))
        angle = safe_acos(cosine)
        angle_quality = max(0.0, 1.0 - abs(angle - math.pi / 2) / (math.pi / 2))

        distance_quality = 1.0
        if s1.distance is not None and s2.distance is not None:
            device = np.array([position[0], height, position[1]])
            errors = []
            for s in (s1, s2):
                implied = float(np.linalg.norm(s.beacon_position - device))
                errors.append(abs(s.distance - implied) / s.distance)
            distance_quality = max(0.0, 1.0 - float(np.mean(errors)))

        confidence = 0.5 * avg_confidence + 0.3 * angle_quality + 0.2 * distance_quality
        return min(1.0, max(0.0, confidence))

    def _consistency_confidence(self, estimate: np.ndarray,
                                sightings: Sequence[BeaconSighting],
                                heading: float) -> float:
        errors: List[float] = []
        for s in sightings:
            expected = horizontal(s.beacon_position) - estimate
            observed = map_direction(s, heading)
            n_exp, n_obs = np.linalg.norm(expected), np.linalg.norm(observed)
            if n_exp < 1e-9 or n_obs < 1e-9:
                continue
            errors.append(safe_acos(np.dot(expected / n_exp, observed / n_obs)))

        if not errors:
            return 0.0
        avg_error = float(np.mean(errors))
        return max(0.0, 1.0 - avg_error / self.config.zero_confidence_error)
