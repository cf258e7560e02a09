"""
One navigation session: calibration context, transform, event channel,
navigation engine and narration, owned together.

The tick loop is a single asyncio task that calls engine.tick() every
tick_interval seconds and ends as soon as the state leaves Navigating.
While it runs, the calibration context is frozen.
"""

import asyncio
from typing import Callable, Optional

from beaconnav.calibration.engine import CalibrationEngine
from beaconnav.config import BeaconNavConfig
from beaconnav.coords.context import CalibrationContext
from beaconnav.coords.transforms import CoordinateTransform
from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Beacon
from beaconnav.narration.descriptions import OpenAIDescriptionGenerator
from beaconnav.narration.dispatcher import NarrationDispatcher
from beaconnav.narration.fallbacks import location_fallback_text
from beaconnav.navigation.destinations import MatchResult, MatchSuccess
from beaconnav.navigation.engine import NavigationProgressEngine
from beaconnav.navigation.events import EventChannel
from beaconnav.navigation.interfaces import DescriptionGenerator, PathPlanner, TrackingSource
from beaconnav.navigation.types import Navigating, NavigationState, Paused
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)


class NavigationSession:
    """
    Compose the navigation core for one user session.

    Args:
        floorplan: Floorplan store.
        planner: Path planner.
        tracking: Live pose source.
        config: Full configuration; defaults to BeaconNavConfig().
        context: Calibration context; a new one is created when omitted.
        narrator: Callback receiving text to speak; no narration if None.
        generator: Description generator. When omitted and AI
            descriptions are enabled in the config, an
            OpenAIDescriptionGenerator is created.

    Example:
        >>> session = NavigationSession(floorplan, planner, tracking, narrator=print)
        >>> session.context.set(calibration)
        >>> async def main():
        ...     session.start(beacon)
        ...     await session.wait_closed()
    """

    def __init__(self, floorplan: FloorplanStore, planner: PathPlanner, tracking: TrackingSource,
                 config: Optional[BeaconNavConfig] = None,
                 context: Optional[CalibrationContext] = None,
                 narrator: Optional[Callable[[str], None]] = None,
                 generator: Optional[DescriptionGenerator] = None):
        self.config = (config or BeaconNavConfig()).validate()
        self.floorplan = floorplan
        self.tracking = tracking
        self.context = context if context is not None else CalibrationContext()
        self.transform = CoordinateTransform(self.context)
        self.events = EventChannel()
        self.engine = NavigationProgressEngine(
            self.transform, floorplan, planner, tracking,
            config=self.config.navigation, events=self.events,
        )

        if generator is None and self.config.narration.enable_ai_descriptions:
            generator = OpenAIDescriptionGenerator(self.config.narration)
        self.dispatcher: Optional[NarrationDispatcher] = None
        if narrator is not None:
            self.dispatcher = NarrationDispatcher(
                narrator, floorplan, generator, timeout=self.config.narration.timeout,
            )
            self.dispatcher.attach(self.events)

        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> NavigationState:
        return self.engine.state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def calibration_engine(self, prior: Optional[CoordinateTransform] = None) -> CalibrationEngine:
        """Calibration engine writing into this session's context."""
        return CalibrationEngine(self.floorplan, self.config.calibration, self.context, prior)

    # --- Tick loop ------------------------------------------------------

    async def run(self) -> None:
        """Tick until the state leaves Navigating."""
        interval = self.config.navigation.tick_interval
        try:
            while isinstance(self.engine.state, Navigating):
                self.engine.tick()
                await asyncio.sleep(interval)
        finally:
            if not isinstance(self.engine.state, (Navigating, Paused)):
                self.context.unfreeze()
            logger.info("Tick loop stopped", extra={"extra": {"state": self.engine.state.name}})

    def _launch(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    # --- Control --------------------------------------------------------

    def start(self, beacon: Beacon, position=None) -> NavigationState:
        """
        Start navigating to `beacon` and launch the tick loop.

        Must be called from a running event loop.

        Raises:
            CalibrationUnavailable: The context holds no calibration.
        """
        self.context.require()
        self.context.freeze()
        state = self.engine.select_destination(beacon, position)
        if isinstance(state, Navigating):
            self._launch()
        else:
            self.context.unfreeze()
        return state

    def start_named(self, query: str, position=None) -> MatchResult:
        """Resolve a spoken destination and start on a unique match."""
        self.context.require()
        self.context.freeze()
        result = self.engine.select_destination_named(query, position)
        if isinstance(result, MatchSuccess) and isinstance(self.engine.state, Navigating):
            self._launch()
        else:
            self.context.unfreeze()
        return result

    def pause(self) -> None:
        self.engine.pause_navigation()

    def resume(self) -> None:
        self.engine.resume_navigation()
        if isinstance(self.engine.state, Navigating):
            self._launch()

    def cancel(self) -> None:
        self.engine.cancel_navigation()
        if self._task is not None:
            self._task.cancel()
        if self.dispatcher is not None:
            self.dispatcher.cancel_pending()
        self.context.unfreeze()

    async def wait_closed(self) -> None:
        """Wait for the tick loop and any pending narration to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
        if self.dispatcher is not None:
            await self.dispatcher.drain()

    # --- Location -------------------------------------------------------

    async def announce_current_location(self) -> str:
        """
        Describe where the user is and narrate it.

        Uses the description generator for the current room when one is
        configured, the deterministic location text otherwise.
        """
        position = self.engine.current_map_position()
        room = self.engine.find_closest_room(position)

        if room is not None and self.dispatcher is not None and self.dispatcher.generator is not None:
            return await self.dispatcher.describe_room(room)

        beacon = self.floorplan.nearest_beacon(position)
        distance = self.transform.distance(position, beacon.position) if beacon is not None else float("inf")
        text = location_fallback_text(self.floorplan, room, beacon, distance)
        if self.dispatcher is not None:
            self.dispatcher.narrator(text)
        return text
