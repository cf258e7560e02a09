"""
Weighted least-squares fit of the map ↔ tracking transform.

Each measurement i relates a beacon's map position b_i to what the user saw
in the tracking frame: from observer position o_i, the beacon lay along the
unit direction d_i at (optional) range r_i. With the transform

    tracking = R(θ) · (map − u)

every measurement should satisfy

    R(θ) · (b_i − u) = o_i + r_i · d_i        (horizontal components)

Unknowns are the translation u (map position of the tracking origin) and
the rotation θ. Weights are the measurement confidences.

Initialization:
    - Every measurement has a range: weighted 2D Procrustes (Kabsch) between
      the tracking points o_i + r_i d_i and the map points b_i.
    - Otherwise (bearing-only resection): scan θ on a grid; for each θ the
      constraints are linear in u,
          cross(m_i, u) = cross(m_i, c_i),  m_i = R(−θ) d_i,  c_i = b_i − R(−θ) o_i
      so u is a weighted linear least-squares solve. The θ with the smallest
      weighted bearing cost wins.

Refinement:
    Levenberg-Marquardt on x = [u_x, u_z, θ] over wrapped bearing residuals
    plus relative range residuals for measurements that have a range.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from beaconnav.calibration.types import MIN_MEASUREMENTS, BeaconMeasurement
from beaconnav.errors import CalibrationInsufficientMeasurements
from beaconnav.estimators.least_squares import levenberg_marquardt
from beaconnav.utils.angles import normalize_angle, normalize_angle_array
from beaconnav.utils.geometry import rotation_matrix_2d
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)

# Mean bearing residual at which fit confidence reaches zero
ZERO_CONFIDENCE_RESIDUAL = math.pi / 6
MIN_HORIZONTAL = 1e-6


@dataclass
class CalibrationFit:
    """Result of fit_calibration().

    Attributes:
        user_position_map: Map position of the tracking origin (2,).
        heading: Rotation θ (map → tracking), radians in (-π, π].
        bearing_residuals: Per-measurement wrapped bearing residuals, radians.
        residual_rms: Confidence-weighted RMS of bearing residuals, radians.
        confidence: Mean measurement confidence scaled by fit quality.
        method: "procrustes" or "resection" (initialization used).
        converged: Whether the refinement converged.
    """

    user_position_map: np.ndarray
    heading: float
    bearing_residuals: np.ndarray
    residual_rms: float
    confidence: float
    method: str
    converged: bool

    @property
    def residual_error_degrees(self) -> float:
        return math.degrees(self.residual_rms)


class _Observations:
    """Measurement arrays in the horizontal plane."""

    def __init__(self, measurements: Sequence[BeaconMeasurement]):
        self.b = np.array([[m.map_position[0], m.map_position[2]] for m in measurements])
        self.o = np.array([[m.observer_position[0], m.observer_position[2]] for m in measurements])

        raw = np.array([[m.observed_direction_local[0], m.observed_direction_local[2]]
                        for m in measurements])
        self.horizontal_scale = np.linalg.norm(raw, axis=1)
        if np.any(self.horizontal_scale < MIN_HORIZONTAL):
            raise ValueError("Measurement direction has no horizontal component")
        self.d = raw / self.horizontal_scale[:, None]
        self.observed_bearing = np.arctan2(self.d[:, 0], self.d[:, 1])

        self.w = np.array([m.confidence for m in measurements], dtype=float)
        if self.w.sum() <= 0:
            raise ValueError("All measurements have zero confidence")

        self.ranged = np.array([m.distance is not None for m in measurements])
        # Horizontal part of each measured range
        self.r = np.array([
            m.distance * s if m.distance is not None else np.nan
            for m, s in zip(measurements, self.horizontal_scale)
        ])

    def predicted(self, u: np.ndarray, theta: float) -> np.ndarray:
        """Beacon offsets from the observer in the tracking frame (N, 2)."""
        R = rotation_matrix_2d(theta)
        return (self.b - u) @ R.T - self.o

    def bearing_residuals(self, u: np.ndarray, theta: float) -> np.ndarray:
        pred = self.predicted(u, theta)
        return normalize_angle_array(np.arctan2(pred[:, 0], pred[:, 1]) - self.observed_bearing)

    def range_residuals(self, u: np.ndarray, theta: float) -> np.ndarray:
        if not np.any(self.ranged):
            return np.zeros(0)
        pred = np.linalg.norm(self.predicted(u, theta)[self.ranged], axis=1)
        measured = self.r[self.ranged]
        return (pred - measured) / measured

    def bearing_cost(self, u: np.ndarray, theta: float) -> float:
        res = self.bearing_residuals(u, theta)
        cost = float(np.sum(self.w * res ** 2))
        if np.any(self.ranged):
            cost += float(np.sum(self.w[self.ranged] * self.range_residuals(u, theta) ** 2))
        return cost


def _procrustes(obs: _Observations) -> Tuple[np.ndarray, float]:
    """Weighted Kabsch fit of map = R(−θ) · tracking + u."""
    q = obs.o + obs.r[:, None] * obs.d      # tracking points
    p = obs.b                                # map points
    w = obs.w / obs.w.sum()

    q_bar = w @ q
    p_bar = w @ p
    H = (q - q_bar).T @ np.diag(w) @ (p - p_bar)
    U, _, Vt = np.linalg.svd(H)
    D = np.diag([1.0, np.sign(np.linalg.det(Vt.T @ U.T)) or 1.0])
    R = Vt.T @ D @ U.T

    u = p_bar - R @ q_bar
    theta = -math.atan2(R[1, 0], R[0, 0])
    return u, normalize_angle(theta)


def _solve_translation(obs: _Observations, theta: float) -> np.ndarray:
    """Weighted linear solve for u at a fixed heading."""
    R_inv = rotation_matrix_2d(-theta)
    m = obs.d @ R_inv.T
    c = obs.b - obs.o @ R_inv.T

    rows = [np.column_stack([-m[:, 1], m[:, 0]])]
    rhs = [m[:, 0] * c[:, 1] - m[:, 1] * c[:, 0]]
    weights = [obs.w]

    if np.any(obs.ranged):
        # With a range the translation is pinned: u = c − r m
        k = obs.ranged
        pinned = c[k] - obs.r[k, None] * m[k]
        rows.extend([np.tile([1.0, 0.0], (k.sum(), 1)), np.tile([0.0, 1.0], (k.sum(), 1))])
        rhs.extend([pinned[:, 0], pinned[:, 1]])
        weights.extend([obs.w[k], obs.w[k]])

    A = np.vstack(rows)
    y = np.concatenate(rhs)
    sw = np.sqrt(np.concatenate(weights))
    u, *_ = np.linalg.lstsq(A * sw[:, None], y * sw, rcond=None)
    return u


def _resection(obs: _Observations, steps: int) -> Tuple[np.ndarray, float]:
    best_u, best_theta, best_cost = None, 0.0, float("inf")
    for theta in np.linspace(-math.pi, math.pi, steps, endpoint=False):
        u = _solve_translation(obs, theta)
        cost = obs.bearing_cost(u, theta)
        if cost < best_cost:
            best_u, best_theta, best_cost = u, float(theta), cost
    return best_u, best_theta


def fit_calibration(measurements: Sequence[BeaconMeasurement],
                    heading_scan_steps: int = 360) -> CalibrationFit:
    """
    Fit the map ↔ tracking transform to beacon measurements.

    Args:
        measurements: At least 3 confirmed measurements.
        heading_scan_steps: Grid size of the bearing-only heading scan.

    Returns:
        CalibrationFit with the transform and residual diagnostics.

    Raises:
        CalibrationInsufficientMeasurements: Fewer than 3 measurements.
        ValueError: Degenerate measurement data.
    """
    if len(measurements) < MIN_MEASUREMENTS:
        raise CalibrationInsufficientMeasurements(
            f"Need at least {MIN_MEASUREMENTS} measurements, got {len(measurements)}"
        )

    obs = _Observations(measurements)

    if np.all(obs.ranged):
        u0, theta0 = _procrustes(obs)
        method = "procrustes"
    else:
        u0, theta0 = _resection(obs, heading_scan_steps)
        method = "resection"

    def residual(x: np.ndarray) -> np.ndarray:
        u, theta = x[:2], x[2]
        return np.concatenate([obs.bearing_residuals(u, theta), obs.range_residuals(u, theta)])

    weights = np.concatenate([obs.w, obs.w[obs.ranged]])
    result = levenberg_marquardt(
        residual, np.array([u0[0], u0[1], theta0]), weights=weights,
        max_iter=100, return_covariance=False,
    )

    x = result.x
    # Keep the initial guess if refinement made things worse
    if obs.bearing_cost(x[:2], x[2]) > obs.bearing_cost(u0, theta0):
        x = np.array([u0[0], u0[1], theta0])

    u, theta = x[:2], normalize_angle(float(x[2]))
    bearing_residuals = obs.bearing_residuals(u, theta)
    rms = float(np.sqrt(np.sum(obs.w * bearing_residuals ** 2) / obs.w.sum()))
    confidence = float(np.mean(obs.w)) * max(0.0, 1.0 - rms / ZERO_CONFIDENCE_RESIDUAL)

    logger.info(
        "Calibration fitted",
        extra={"extra": {"method": method, "n": len(measurements),
                         "heading_deg": round(math.degrees(theta), 2),
                         "residual_deg": round(math.degrees(rms), 3),
                         "iterations": result.iterations}},
    )
    return CalibrationFit(
        user_position_map=u,
        heading=theta,
        bearing_residuals=bearing_residuals,
        residual_rms=rms,
        confidence=min(1.0, confidence),
        method=method,
        converged=result.converged,
    )
