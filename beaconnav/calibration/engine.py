"""
Calibration state machine.

    WaitingForTracking → MeasuringBeacon(index, total) → Completed | Failed

While waiting, the engine counts tracking frames, decides when tracking is
stable enough, and looks up the user's room from the nearest beacon. It
then asks the user to point at up to five beacons of that room in turn;
each confirmed pointing becomes a BeaconMeasurement. When every candidate
has been visited the measurements are fitted (see fitting.py) and the
resulting CalibrationData is published into the CalibrationContext.

Tracking readiness:
    NORMAL                 ready after more than 3 frames
    INSUFFICIENT_FEATURES  ready after more than 60 frames
    RELOCALIZING           ready after more than 30 frames
    INITIALIZING,
    EXCESSIVE_MOTION,
    NOT_AVAILABLE          not ready
If readiness never arrives, check_failsafe() forces it after the failsafe
timeout and the resulting calibration is flagged as degraded.
"""

import time
from collections import deque
from typing import Callable, Deque, List, Optional

import numpy as np

from beaconnav.calibration.fitting import fit_calibration
from beaconnav.calibration.types import (
    MIN_MEASUREMENTS,
    BeaconMeasurement,
    CalibrationData,
    CalibrationState,
    CandidateBeacon,
    CandidatePriority,
    Completed,
    Failed,
    MeasuringBeacon,
    WaitingForTracking,
)
from beaconnav.config import CalibrationConfig
from beaconnav.coords.context import CalibrationContext
from beaconnav.coords.transforms import CoordinateTransform
from beaconnav.errors import (
    CalibrationInsufficientBeacons,
    CalibrationInsufficientMeasurements,
    CalibrationLocked,
)
from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon, BeaconCategory
from beaconnav.navigation.types import TrackingQuality, TrackingSample
from beaconnav.utils.geometry import as_vec3, horizontal, unit
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)

INSUFFICIENT_BEACONS = "insufficient beacons"
INSUFFICIENT_MEASUREMENTS = "insufficient measurements"


def candidate_priority(beacon: Beacon) -> CandidatePriority:
    if beacon.category in (BeaconCategory.DESTINATION, BeaconCategory.LANDMARK):
        return CandidatePriority.PRIMARY
    if beacon.category is BeaconCategory.FURNITURE:
        return CandidatePriority.FURNITURE
    return CandidatePriority.OTHER


class CalibrationEngine:
    """
    Drive one calibration from tracking start-up to a fitted transform.

    Args:
        floorplan: Floorplan providing rooms and beacons.
        config: Calibration thresholds.
        context: Context receiving the finished calibration.
        prior: Optional earlier transform used to aim at beacons and to
            locate the user's room. Without one the tracking frame is
            assumed to coincide with the map frame.
        clock: Monotonic clock used when `now` is not passed.

    Example:
        >>> engine = CalibrationEngine(floorplan, context=context)
        >>> engine.update_tracking(sample)          # every frame
        >>> engine.update_alignment(position, forward)
        >>> if engine.can_confirm:
        ...     engine.confirm_measurement()
    """

    def __init__(self, floorplan: FloorplanStore,
                 config: Optional[CalibrationConfig] = None,
                 context: Optional[CalibrationContext] = None,
                 prior: Optional[CoordinateTransform] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.floorplan = floorplan
        self.config = config or CalibrationConfig()
        self.config.validate()
        self.context = context if context is not None else CalibrationContext()
        self.prior = prior
        self._clock = clock
        self.reset()

    def reset(self, now: Optional[float] = None) -> None:
        """Return to WaitingForTracking and restart the failsafe timer."""
        self.state: CalibrationState = WaitingForTracking()
        self.candidates: List[CandidateBeacon] = []
        self.measurements: List[BeaconMeasurement] = []
        self.current_room_id: Optional[str] = None
        self.current_index = 0
        self.alignment = 0.0
        self.can_confirm = False
        self.tracking_ready = False
        self.tracking_message = "Initializing tracking..."
        self.degraded = False
        self._frame_count = 0
        self._quality_history: Deque[TrackingQuality] = deque(maxlen=self.config.quality_window)
        self._last_sample: Optional[TrackingSample] = None
        self._device_position = np.zeros(3)
        self._device_forward = np.array([0.0, 0.0, 1.0])
        self._wait_started = self._clock() if now is None else now

    # --- Properties -----------------------------------------------------

    @property
    def total(self) -> int:
        return min(len(self.candidates), self.config.max_beacons)

    @property
    def current_candidate(self) -> Optional[CandidateBeacon]:
        if isinstance(self.state, MeasuringBeacon) and self.current_index < self.total:
            return self.candidates[self.current_index]
        return None

    @property
    def quality_history(self) -> List[TrackingQuality]:
        return list(self._quality_history)

    # --- Tracking -------------------------------------------------------

    def update_tracking(self, sample: TrackingSample, now: Optional[float] = None) -> None:
        """
        Feed one tracking frame.

        Updates readiness, detects the room once enough frames have been
        seen, and starts measuring when tracking is ready.
        """
        self._frame_count += 1
        self._quality_history.append(sample.quality)
        self._last_sample = sample

        if self.current_room_id is None and self._frame_count > self.config.room_detection_frames:
            self.current_room_id = self.detect_room(sample.position)
            if self.current_room_id is not None:
                self.candidates = self.select_candidates(self.current_room_id)
                logger.info(
                    "Room detected",
                    extra={"extra": {"room": self.current_room_id,
                                     "candidates": [c.beacon.name for c in self.candidates]}},
                )

        self._update_readiness(sample.quality)
        self.check_failsafe(now)
        self._maybe_start()

    def _update_readiness(self, quality: TrackingQuality) -> None:
        frames = self._frame_count
        if quality is TrackingQuality.NORMAL:
            if frames > self.config.ready_frames_normal:
                self.tracking_ready = True
                self.tracking_message = "Tracking ready"
            else:
                self.tracking_message = "Establishing tracking..."
        elif quality is TrackingQuality.INSUFFICIENT_FEATURES:
            if frames > self.config.ready_frames_insufficient_features:
                self.tracking_ready = True
                self.tracking_message = "Ready (limited features)"
            else:
                self.tracking_message = "Point at textured surfaces"
        elif quality is TrackingQuality.RELOCALIZING:
            if frames > self.config.ready_frames_relocalizing:
                self.tracking_ready = True
                self.tracking_message = "Ready (relocalizing)"
            else:
                self.tracking_message = "Relocalizing..."
        elif quality is TrackingQuality.INITIALIZING:
            self.tracking_ready = False
            self.tracking_message = "Initializing... Move device slowly"
        elif quality is TrackingQuality.EXCESSIVE_MOTION:
            self.tracking_ready = False
            self.tracking_message = "Move device more slowly"
        else:
            self.tracking_ready = False
            self.tracking_message = "Tracking not available"
        # Once the failsafe has fired, readiness stays latched
        if self.degraded:
            self.tracking_ready = True

    def check_failsafe(self, now: Optional[float] = None) -> bool:
        """
        Force tracking readiness once the failsafe timeout has elapsed.

        Returns:
            True if the failsafe fired on this call.
        """
        now = self._clock() if now is None else now
        if self.tracking_ready or self.degraded:
            return False
        if now - self._wait_started < self.config.failsafe_timeout:
            return False

        self.tracking_ready = True
        self.degraded = True
        self.tracking_message = "Ready (auto-recovered)"
        logger.warning(
            "Tracking readiness forced by failsafe; calibration will be degraded",
            extra={"extra": {"frames": self._frame_count,
                             "timeout": self.config.failsafe_timeout}},
        )
        if self.current_room_id is None and self._last_sample is not None:
            self.current_room_id = self.detect_room(self._last_sample.position)
            if self.current_room_id is not None:
                self.candidates = self.select_candidates(self.current_room_id)
        self._maybe_start()
        return True

    def _maybe_start(self) -> None:
        if (self.tracking_ready and isinstance(self.state, WaitingForTracking)
                and self.current_room_id is not None):
            self.start()

    # --- Candidate selection --------------------------------------------

    def _to_map(self, tracking_position) -> np.ndarray:
        if self.prior is not None and self.prior.context.is_calibrated:
            return self.prior.tracking_to_map(tracking_position)
        return horizontal(tracking_position)

    def _to_tracking(self, map_position: np.ndarray) -> np.ndarray:
        if self.prior is not None and self.prior.context.is_calibrated:
            return self.prior.map_to_tracking(map_position, height=map_position[1])
        return map_position

    def detect_room(self, tracking_position) -> Optional[str]:
        """Room of the beacon nearest to the user's position."""
        beacon = self.floorplan.nearest_beacon(self._to_map(tracking_position))
        return beacon.room_id if beacon is not None else None

    def select_candidates(self, room_id: str) -> List[CandidateBeacon]:
        """
        Rank a room's beacons for calibration.

        Accessible, non-obstacle beacons of the room, ordered
        destination/landmark, then furniture, then everything else, capped
        at the configured maximum.
        """
        beacons = [
            b for b in self.floorplan.beacons_in_room(room_id)
            if b.is_accessible and not b.is_obstacle
        ]
        origin = self._to_map(self._last_sample.position) if self._last_sample is not None else None

        candidates = []
        for beacon in beacons:
            distance = 0.0
            if origin is not None:
                distance = float(np.linalg.norm(beacon.floor_position - origin))
            candidates.append(CandidateBeacon(beacon, candidate_priority(beacon), distance))
        # Stable sort keeps floorplan order within a priority
        candidates.sort(key=lambda c: c.priority.value)
        return candidates[:self.config.max_beacons]

    # --- Measuring ------------------------------------------------------

    def start(self) -> CalibrationState:
        """Begin measuring, or fail when the room has too few beacons."""
        self.current_index = 0
        self.measurements = []
        self.alignment = 0.0
        self.can_confirm = False

        if len(self.candidates) < self.config.min_beacons:
            error = CalibrationInsufficientBeacons(
                f"Need at least {self.config.min_beacons} beacons, found {len(self.candidates)}"
            )
            return self._fail(INSUFFICIENT_BEACONS, error)

        self.state = MeasuringBeacon(0, self.total)
        logger.info("Calibration started", extra={"extra": {"total": self.total}})
        return self.state

    def update_alignment(self, device_position, device_forward) -> float:
        """
        Score how well the device points at the current candidate.

        alignment = (forward · direction_to_beacon + 1) / 2, in [0, 1]. The
        beacon direction is computed in the tracking frame.

        Args:
            device_position: Device position in the tracking frame (3,).
            device_forward: Device forward vector in the tracking frame (3,).

        Returns:
            The alignment score (0 when not measuring).
        """
        candidate = self.current_candidate
        if candidate is None:
            self.alignment = 0.0
            self.can_confirm = False
            return 0.0

        self._device_position = as_vec3(device_position)
        self._device_forward = unit(as_vec3(device_forward))
        target = self._to_tracking(candidate.beacon.position)
        to_beacon = unit(target - self._device_position)

        self.alignment = float(np.clip((np.dot(self._device_forward, to_beacon) + 1.0) / 2.0, 0.0, 1.0))
        self.can_confirm = self.alignment > self.config.alignment_threshold
        return self.alignment

    def confirm_measurement(self, distance: Optional[float] = None) -> bool:
        """
        Record the current pointing as a measurement and advance.

        Only allowed while measuring and when can_confirm is set by the last
        update_alignment() call.

        Args:
            distance: Measured range to the beacon, if available.

        Returns:
            True if a measurement was recorded.
        """
        candidate = self.current_candidate
        if candidate is None or not self.can_confirm:
            return False

        self.measurements.append(BeaconMeasurement(
            beacon_id=candidate.beacon.id,
            map_position=candidate.beacon.position,
            observed_direction_local=self._device_forward,
            distance=distance,
            confidence=self.alignment,
            observer_position=self._device_position,
        ))
        logger.info(
            "Beacon measured",
            extra={"extra": {"beacon": candidate.beacon.name, "index": self.current_index,
                             "alignment": round(self.alignment, 3)}},
        )
        self._advance()
        return True

    def skip_beacon(self) -> bool:
        """Skip the current candidate without measuring it."""
        candidate = self.current_candidate
        if candidate is None:
            return False
        logger.info("Beacon skipped", extra={"extra": {"beacon": candidate.beacon.name}})
        self._advance()
        return True

    def _advance(self) -> None:
        self.current_index += 1
        self.alignment = 0.0
        self.can_confirm = False

        remaining = self.total - self.current_index
        if len(self.measurements) + remaining < MIN_MEASUREMENTS:
            error = CalibrationInsufficientMeasurements(
                f"Only {len(self.measurements)} measurement(s) recorded"
            )
            self._fail(INSUFFICIENT_MEASUREMENTS, error)
        elif remaining > 0:
            self.state = MeasuringBeacon(self.current_index, self.total)
        else:
            self._complete()

    def _complete(self) -> None:
        try:
            fit = fit_calibration(self.measurements, self.config.heading_scan_steps)
        except ValueError as exc:
            self._fail(f"calibration fit failed: {exc}")
            return

        calibration = CalibrationData(
            user_position_map=fit.user_position_map,
            heading_map_to_tracking=fit.heading,
            measurements=tuple(self.measurements),
            confidence=fit.confidence,
            residual_error=fit.residual_error_degrees,
            degraded=self.degraded,
        )
        try:
            self.context.set(calibration)
        except CalibrationLocked as exc:
            self._fail("calibration locked during navigation", exc)
            return

        self.state = Completed(calibration)
        logger.info("Calibration completed", extra={"extra": calibration.summary()})

    def _fail(self, reason: str, error=None) -> CalibrationState:
        self.state = Failed(reason, error)
        self.can_confirm = False
        logger.warning("Calibration failed", extra={"extra": {"reason": reason}})
        return self.state
