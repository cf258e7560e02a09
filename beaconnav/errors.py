"""
Error taxonomy for the navigation core.

None of these errors is fatal to the process. Positioning errors are local
and recoverable (the caller retries with a fresh sighting set), calibration
errors are surfaced with guidance to reposition and retry, and tracking or
description failures are downgraded to a status or a fallback text.

Invalid arguments (wrong array shapes, confidences outside [0, 1]) raise
the built-in ValueError / TypeError instead.
"""

from typing import Optional


class BeaconNavError(Exception):
    """Base class for all navigation-core errors.

    Attributes:
        code: Stable machine-readable identifier of the error kind.
        guidance: Optional user-facing hint on how to recover.
    """

    code = "beaconnav_error"
    guidance: Optional[str] = None

    def __init__(self, message: Optional[str] = None, guidance: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__.strip().splitlines()[0])
        if guidance is not None:
            self.guidance = guidance


# --- Positioning ---------------------------------------------------------


class PositioningError(BeaconNavError):
    """Position could not be estimated from the sightings."""

    code = "positioning_error"


class InsufficientSightings(PositioningError):
    """At least two beacon sightings are required."""

    code = "insufficient_sightings"


class InsufficientHighConfidenceSightings(PositioningError):
    """Fewer than two sightings passed the confidence threshold."""

    code = "insufficient_high_confidence_sightings"


class NoIntersection(PositioningError):
    """Sighting rays are parallel or degenerate."""

    code = "no_intersection"


class NoValidPairs(PositioningError):
    """No pair of sightings produced a usable intersection."""

    code = "no_valid_pairs"


# --- Path planning -------------------------------------------------------


class PathNotFound(BeaconNavError):
    """No route to the selected destination could be found."""

    code = "path_not_found"
    guidance = "Try a different destination or move to another room."


# --- Calibration ---------------------------------------------------------


class CalibrationError(BeaconNavError):
    """Calibration failed."""

    code = "calibration_error"
    guidance = "Move to a different position and try calibrating again."


class CalibrationInsufficientBeacons(CalibrationError):
    """Not enough beacons in this room to calibrate."""

    code = "calibration_insufficient_beacons"
    guidance = "Move to a room with at least three accessible beacons."


class CalibrationInsufficientMeasurements(CalibrationError):
    """Calibration needs at least three confirmed beacon measurements."""

    code = "calibration_insufficient_measurements"
    guidance = "Point at each beacon and confirm when aligned, then retry."


class CalibrationUnavailable(CalibrationError):
    """No active calibration is set."""

    code = "calibration_unavailable"
    guidance = "Complete calibration before starting navigation."


class CalibrationLocked(CalibrationError):
    """Calibration cannot change while navigation is running."""

    code = "calibration_locked"
    guidance = "Stop navigation before recalibrating."


# --- Runtime degradations -------------------------------------------------


class TrackingUnavailable(BeaconNavError):
    """Live tracking pose is not available."""

    code = "tracking_unavailable"
    guidance = "Hold the device steady and point the camera at the room."


class DescriptionGenerationFailed(BeaconNavError):
    """Natural-language description could not be generated."""

    code = "description_generation_failed"
