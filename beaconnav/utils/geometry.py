"""
Horizontal-plane geometry for map and tracking frames.

Positions are 3D numpy arrays laid out (x, y, z) with y vertical. Most of the
navigation logic runs in the horizontal plane, represented as 2D arrays
(x, z); in 2D, component 0 is "x" and component 1 is "map north".

Provides functions for:
- Projecting between 3D positions and horizontal 2D points
- Bearings and 2D rotations consistent with the bearing convention
- Rotating device-frame directions about the vertical axis
"""

import math

import numpy as np
from numpy.typing import NDArray

EPSILON_NORM = 1e-12


def as_vec3(v) -> NDArray[np.float64]:
    """Coerce input into a float (3,) array, raising ValueError on bad shape."""
    arr = np.array(v, dtype=float).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3D vector, got shape {arr.shape}")
    return arr


def as_vec2(v) -> NDArray[np.float64]:
    """Coerce input into a float (2,) array, raising ValueError on bad shape."""
    arr = np.array(v, dtype=float).reshape(-1)
    if arr.shape != (2,):
        raise ValueError(f"Expected a 2D vector, got shape {arr.shape}")
    return arr


def horizontal(v) -> NDArray[np.float64]:
    """
    Project a 3D position onto the horizontal plane.

    Accepts an already-2D point unchanged, so callers can pass either.

    Example:
        >>> horizontal(np.array([1.0, 1.6, -2.0]))
        array([ 1., -2.])
    """
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.shape == (2,):
        return arr.copy()
    if arr.shape == (3,):
        return np.array([arr[0], arr[2]])
    raise ValueError(f"Expected a 2D or 3D vector, got shape {arr.shape}")


def lift(p, height: float = 0.0) -> NDArray[np.float64]:
    """Embed a horizontal 2D point into 3D at the given vertical coordinate."""
    p = as_vec2(p)
    return np.array([p[0], height, p[1]])


def horizontal_distance(a, b) -> float:
    """Distance between the horizontal projections of two points."""
    return float(np.linalg.norm(horizontal(b) - horizontal(a)))


def unit(v) -> NDArray[np.float64]:
    """
    Normalize a vector to unit length.

    Raises:
        ValueError: If the vector has (near) zero length.
    """
    v = np.asarray(v, dtype=float)
    norm = np.linalg.norm(v)
    if norm < EPSILON_NORM:
        raise ValueError("Cannot normalize a zero-length vector")
    return v / norm


def bearing(from_point, to_point) -> float:
    """
    Bearing from one horizontal point to another.

    Computed as atan2(Δx, Δy): 0 points along +y, π/2 along +x.

    Args:
        from_point: Origin, 2D (or 3D, projected).
        to_point: Target, 2D (or 3D, projected).

    Returns:
        Bearing in radians in (-π, π].
    """
    d = horizontal(to_point) - horizontal(from_point)
    b = math.atan2(d[0], d[1])
    # atan2 returns -π for (−0, negative); fold onto the closed end
    return math.pi if b <= -math.pi else b


def heading_vector(heading: float) -> NDArray[np.float64]:
    """Unit horizontal vector pointing along a bearing (inverse of bearing())."""
    return np.array([math.sin(heading), math.cos(heading)])


def rotation_matrix_2d(angle: float) -> NDArray[np.float64]:
    """Standard counter-clockwise 2×2 rotation matrix."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s], [s, c]])


def rotate_2d(v, angle: float) -> NDArray[np.float64]:
    """
    Rotate a 2D vector by angle with the standard rotation matrix.

    (x, y) -> (x cos a − y sin a, x sin a + y cos a). Under the bearing
    convention this turns a bearing b into b − a.
    """
    return rotation_matrix_2d(angle) @ as_vec2(v)


def rotate_direction(direction, heading: float) -> NDArray[np.float64]:
    """
    Rotate a 3D direction about the vertical axis.

    Applies rotate_2d() to the horizontal (x, z) components and keeps the
    vertical component, so a device-frame direction rotated by the device
    heading lands in the same horizontal frame as rotate_2d().

    Args:
        direction: 3D direction (x, y, z).
        heading: Rotation angle in radians.

    Returns:
        Rotated 3D direction.
    """
    d = as_vec3(direction)
    c, s = math.cos(heading), math.sin(heading)
    return np.array([d[0] * c - d[2] * s, d[1], d[0] * s + d[2] * c])


def cross_2d(a, b) -> float:
    """Scalar z-component of the cross product of two 2D vectors."""
    return float(a[0] * b[1] - a[1] * b[0])


def centroid(points) -> NDArray[np.float64]:
    """Mean of a non-empty list of points."""
    pts = np.asarray(points, dtype=float)
    if pts.ndim != 2 or len(pts) == 0:
        raise ValueError("centroid() requires a non-empty list of points")
    return pts.mean(axis=0)
