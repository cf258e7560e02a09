"""
Map and tracking coordinate frames.

This module provides:
- CalibrationContext: per-session single slot for the active calibration
- CoordinateTransform: map <-> tracking points, directions and headings
"""

from beaconnav.coords.context import CalibrationContext
from beaconnav.coords.transforms import CoordinateTransform

__all__ = ["CalibrationContext", "CoordinateTransform"]
