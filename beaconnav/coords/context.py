"""
Per-session holder of the active calibration.

One CalibrationContext is created for each navigation session and passed to
the calibration engine, the coordinate transform and the navigation engine.
It holds at most one CalibrationData. The calibration engine writes it
before navigation starts; the session freezes it for the duration of
navigation, after which writes raise CalibrationLocked.
"""

import threading
from typing import TYPE_CHECKING, Optional

from beaconnav.errors import CalibrationLocked, CalibrationUnavailable
from beaconnav.utils.log import get_logger

if TYPE_CHECKING:
    from beaconnav.calibration.types import CalibrationData

logger = get_logger(__name__)


class CalibrationContext:
    """Single-slot store for the active calibration."""

    def __init__(self, calibration: Optional["CalibrationData"] = None):
        self._lock = threading.Lock()
        self._calibration = calibration
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def is_calibrated(self) -> bool:
        return self._calibration is not None

    def get(self) -> Optional["CalibrationData"]:
        return self._calibration

    def require(self) -> "CalibrationData":
        """
        Return the active calibration.

        Raises:
            CalibrationUnavailable: If none has been set.
        """
        calibration = self._calibration
        if calibration is None:
            raise CalibrationUnavailable()
        return calibration

    def set(self, calibration: "CalibrationData") -> None:
        """
        Replace the active calibration.

        Raises:
            CalibrationLocked: While the context is frozen.
        """
        with self._lock:
            if self._frozen:
                raise CalibrationLocked()
            self._calibration = calibration
        logger.info(
            "Calibration set",
            extra={"extra": {"confidence": round(calibration.confidence, 3),
                             "degraded": calibration.degraded}},
        )

    def clear(self) -> None:
        with self._lock:
            if self._frozen:
                raise CalibrationLocked()
            self._calibration = None

    def freeze(self) -> None:
        """Make the calibration read-only (navigation is running)."""
        with self._lock:
            self._frozen = True

    def unfreeze(self) -> None:
        with self._lock:
            self._frozen = False
