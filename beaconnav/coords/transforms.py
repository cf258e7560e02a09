"""
Map ↔ tracking frame transform.

The floorplan ("map") frame and the live tracking frame share the vertical
axis and differ by a rigid horizontal transform found by calibration:

    tracking = R(θ) · (map − u)
    map      = R(−θ) · tracking + u

where u is the map position of the tracking origin (the calibrated user
position), θ is the calibrated heading and R is the standard 2D rotation
applied to horizontal (x, z) coordinates. Directions use the same rotation
without the translation.

Heading convention:
    Headings are bearings, atan2(Δx, Δz) in the horizontal plane. Because
    R(a) turns a bearing b into b − a, converting a heading between frames
    is done most safely by rotating its direction vector;
    tracking_heading_vector_to_map() does that.
"""

import math

import numpy as np
from numpy.typing import NDArray

from beaconnav.coords.context import CalibrationContext
from beaconnav.utils.angles import angle_difference, normalize_angle
from beaconnav.utils.geometry import (
    bearing as _bearing,
    heading_vector,
    horizontal,
    lift,
    rotate_2d,
)


class CoordinateTransform:
    """
    Transform points, directions and headings between map and tracking frames.

    All methods are pure given the calibration in the context; they raise
    CalibrationUnavailable when no calibration has been set.

    Example:
        >>> context = CalibrationContext(calibration)
        >>> transform = CoordinateTransform(context)
        >>> p = np.array([3.0, 4.0])
        >>> np.allclose(transform.tracking_to_map(transform.map_to_tracking(p)), p)
        True
    """

    def __init__(self, context: CalibrationContext):
        self.context = context

    def _params(self):
        calibration = self.context.require()
        return calibration.user_position_map, calibration.heading_map_to_tracking

    # --- Points ---------------------------------------------------------

    def map_to_tracking(self, point, height: float = 0.0) -> NDArray[np.float64]:
        """
        Map-frame point to the tracking frame.

        Args:
            point: Horizontal map point (2,) or 3D map position (projected).
            height: Vertical coordinate of the returned tracking point.

        Returns:
            Tracking-frame position (3,).
        """
        u, theta = self._params()
        return lift(rotate_2d(horizontal(point) - u, theta), height)

    def tracking_to_map(self, point) -> NDArray[np.float64]:
        """
        Tracking-frame point to the horizontal map frame.

        Args:
            point: Tracking position (3,) or horizontal point (2,).

        Returns:
            Horizontal map point (2,).
        """
        u, theta = self._params()
        return rotate_2d(horizontal(point), -theta) + u

    # --- Directions -----------------------------------------------------

    def map_direction_to_tracking(self, direction) -> NDArray[np.float64]:
        _, theta = self._params()
        return lift(rotate_2d(horizontal(direction), theta))

    def tracking_direction_to_map(self, direction) -> NDArray[np.float64]:
        _, theta = self._params()
        return rotate_2d(horizontal(direction), -theta)

    # --- Headings -------------------------------------------------------

    def map_heading_to_tracking(self, heading: float) -> float:
        _, theta = self._params()
        return normalize_angle(heading + theta)

    def tracking_heading_to_map(self, heading: float) -> float:
        _, theta = self._params()
        return normalize_angle(heading - theta)

    def tracking_heading_vector_to_map(self, heading: float) -> float:
        """
        Convert a tracking-frame bearing to a map-frame bearing.

        Rotates the heading's unit vector with tracking_direction_to_map()
        and takes its bearing, so the result always agrees with how points
        are transformed.
        """
        direction = self.tracking_direction_to_map(heading_vector(heading))
        return _bearing(np.zeros(2), direction)

    # --- Navigation helpers ---------------------------------------------

    @staticmethod
    def distance(from_point, to_point) -> float:
        return float(np.linalg.norm(horizontal(to_point) - horizontal(from_point)))

    @staticmethod
    def bearing(from_point, to_point) -> float:
        return _bearing(from_point, to_point)

    @staticmethod
    def relative_bearing(from_point, to_point, current_heading: float) -> float:
        """
        Bearing to the target relative to the current heading.

        Positive means turn right, negative means turn left.
        """
        return normalize_angle(_bearing(from_point, to_point) - current_heading)

    @staticmethod
    def is_near(point, target, threshold: float) -> bool:
        return CoordinateTransform.distance(point, target) < threshold

    @staticmethod
    def is_aligned(current_heading: float, target_heading: float, tolerance: float) -> bool:
        return abs(angle_difference(current_heading, target_heading)) < tolerance

    @staticmethod
    def has_arrived(position, destination, threshold: float = 1.5) -> bool:
        return CoordinateTransform.distance(position, destination) < threshold

    @staticmethod
    def should_recalculate(position, expected, threshold: float = 2.0) -> bool:
        return CoordinateTransform.distance(position, expected) > threshold

    # --- Camera pose helpers --------------------------------------------

    @staticmethod
    def heading_from_forward(forward) -> float:
        """Bearing of a 3D forward vector projected onto the horizontal plane."""
        f = np.asarray(forward, dtype=float)
        return math.atan2(f[0], f[2])

    @staticmethod
    def forward_from_transform(transform) -> NDArray[np.float64]:
        """Camera forward vector (negated third column) of a 4×4 pose matrix."""
        m = np.asarray(transform, dtype=float)
        if m.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 pose matrix, got shape {m.shape}")
        return -m[:3, 2]

    @staticmethod
    def position_from_transform(transform) -> NDArray[np.float64]:
        """Translation column of a 4×4 pose matrix."""
        m = np.asarray(transform, dtype=float)
        if m.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 pose matrix, got shape {m.shape}")
        return m[:3, 3].copy()

