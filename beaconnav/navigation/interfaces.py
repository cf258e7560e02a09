"""
Collaborators consumed by the navigation engine.

The live pose source, the path planner and the description generator are
outside the core; these abstract classes fix the contracts the engine
relies on. The floorplan store contract lives in beaconnav.floorplan.store.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import numpy as np

from beaconnav.floorplan.types import Beacon
from beaconnav.navigation.types import NavigationPath, NavigationWaypoint, TrackingSample

if TYPE_CHECKING:
    from beaconnav.narration.descriptions import DescriptionContext


class TrackingSource(ABC):
    """Live device pose in the tracking frame."""

    @abstractmethod
    def latest_sample(self) -> Optional[TrackingSample]:
        """Most recent frame, or None when tracking is unavailable. Must not block."""


class PathPlanner(ABC):
    """Route computation between a map position and a beacon."""

    @abstractmethod
    def find_path(self, start: np.ndarray, destination: Beacon) -> Optional[NavigationPath]:
        """Path from `start` (map frame, (3,)) to `destination`, or None."""

    def report_off_route(self, position: np.ndarray, waypoint: NavigationWaypoint) -> None:
        """Notification that the user left the route; recalculation is up to the planner."""


class DescriptionGenerator(ABC):
    """Optional natural-language description source."""

    @abstractmethod
    async def generate_description(self, context: "DescriptionContext") -> str:
        """Text for the context; may raise on any failure."""


class StaticTrackingSource(TrackingSource):
    """Tracking source fed by the caller, for simulations and tests."""

    def __init__(self, sample: Optional[TrackingSample] = None):
        self.sample = sample

    def update(self, sample: Optional[TrackingSample]) -> None:
        self.sample = sample

    def latest_sample(self) -> Optional[TrackingSample]:
        return self.sample
