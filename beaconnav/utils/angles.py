"""
Angle wrapping and manipulation utilities.

All headings and bearings in the navigation core are radians normalized to
the half-open interval (-π, π]. Normalizing before every comparison or
storage keeps headings near ±180° from producing spurious 358° errors.

Bearing convention:
    bearing = atan2(Δx, Δy), measured from +y ("map north"), positive
    toward +x. A positive relative bearing therefore means "turn right".
"""

import math
from typing import Union

import numpy as np

TWO_PI = 2.0 * math.pi


def normalize_angle(angle: float) -> float:
    """
    Normalize angle to the (-π, π] range.

    Works for arbitrary magnitudes, including exact multiples of 2π. The
    lower bound is open: -π maps to +π, so there is exactly one
    representation for a reverse heading.

    Args:
        angle: Angle in radians (any value).

    Returns:
        Equivalent angle in (-π, π].

    Example:
        >>> normalize_angle(3 * math.pi)
        3.141592653589793
        >>> normalize_angle(-math.pi)
        3.141592653589793
        >>> normalize_angle(4 * math.pi)
        0.0
    """
    wrapped = math.fmod(angle + math.pi, TWO_PI)
    if wrapped <= 0.0:
        wrapped += TWO_PI
    result = wrapped - math.pi
    # fmod rounding can land a hair below -π for huge inputs
    if result <= -math.pi:
        return math.pi
    return result


def normalize_angle_array(angles: np.ndarray) -> np.ndarray:
    """
    Normalize an array of angles to (-π, π].

    Vectorized version of normalize_angle().

    Args:
        angles: Array of angles in radians.

    Returns:
        Array of normalized angles, same shape as input.
    """
    angles = np.asarray(angles, dtype=float)
    wrapped = np.mod(angles + np.pi, TWO_PI)
    wrapped = np.where(wrapped <= 0.0, wrapped + TWO_PI, wrapped)
    result = wrapped - np.pi
    return np.where(result <= -np.pi, np.pi, result)


def angle_difference(a: Union[float, np.ndarray],
                     b: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Signed shortest rotation from angle a to angle b.

    Returns normalize(b - a). Positive means b lies clockwise of a under the
    bearing convention (a right turn).

    Args:
        a: Starting angle in radians.
        b: Target angle in radians.

    Returns:
        Signed difference in (-π, π].

    Example:
        >>> angle_difference(math.pi - 0.1, -math.pi + 0.1)  # across the seam
        0.2
    """
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return normalize_angle_array(np.asarray(b) - np.asarray(a))
    return normalize_angle(b - a)


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def safe_acos(cosine: float) -> float:
    """
    Arc-cosine with its argument clamped to [-1, 1].

    Dot products of unit vectors routinely overshoot ±1 by a few ulps, which
    would make math.acos raise instead of returning 0 or π.
    """
    return math.acos(clamp(float(cosine), -1.0, 1.0))


def degrees_to_radians(degrees: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert degrees to radians."""
    return np.deg2rad(degrees)


def radians_to_degrees(radians: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert radians to degrees."""
    return np.rad2deg(radians)
