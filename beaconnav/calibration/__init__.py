"""
Calibration of the floorplan frame against the live tracking frame.

The CalibrationEngine walks the user through pointing at a few beacons of
the current room; fit_calibration() turns those measurements into the
rotation and translation used by CoordinateTransform.
"""

from beaconnav.calibration.types import (
    MIN_MEASUREMENTS,
    BeaconMeasurement,
    CalibrationData,
    CalibrationQuality,
    CalibrationState,
    CandidateBeacon,
    CandidatePriority,
    Completed,
    Failed,
    MeasuringBeacon,
    WaitingForTracking,
)
from beaconnav.calibration.fitting import CalibrationFit, fit_calibration
from beaconnav.calibration.engine import CalibrationEngine, candidate_priority

__all__ = [
    'MIN_MEASUREMENTS',
    'BeaconMeasurement',
    'CalibrationData',
    'CalibrationQuality',
    'CalibrationState',
    'CandidateBeacon',
    'CandidatePriority',
    'Completed',
    'Failed',
    'MeasuringBeacon',
    'WaitingForTracking',
    'CalibrationFit',
    'fit_calibration',
    'CalibrationEngine',
    'candidate_priority',
]
