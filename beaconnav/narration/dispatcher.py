"""
Hand navigation events to a narrator without ever blocking the tick loop.

Plain events are narrated immediately with their deterministic message.
Doorway events, when a description generator is configured and an event
loop is running, start a detached task that asks the generator for a richer
text; a failure or timeout narrates the fallback text instead, once, without
retrying.
"""

import asyncio
from typing import Callable, Optional, Set

from beaconnav.errors import DescriptionGenerationFailed
from beaconnav.floorplan.store import FloorplanStore
from beaconnav.floorplan.types import Room
from beaconnav.narration.descriptions import DescriptionContext
from beaconnav.navigation.events import (
    DoorwayEvent,
    EventChannel,
    NavigationEvent,
    StateChangedEvent,
)
from beaconnav.navigation.interfaces import DescriptionGenerator
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)

Narrator = Callable[[str], None]


class NarrationDispatcher:
    """
    Route events from an EventChannel to a narrator callback.

    Args:
        narrator: Receives text to speak or display; must not block.
        floorplan: Used to look up doorways for description requests.
        generator: Optional description generator.
        timeout: Seconds before a description request is abandoned.

    Example:
        >>> dispatcher = NarrationDispatcher(print, floorplan)
        >>> dispatcher.attach(channel)
    """

    def __init__(self, narrator: Narrator, floorplan: Optional[FloorplanStore] = None,
                 generator: Optional[DescriptionGenerator] = None, timeout: float = 10.0):
        self.narrator = narrator
        self.floorplan = floorplan
        self.generator = generator
        self.timeout = timeout
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self, channel: EventChannel) -> None:
        self.detach()
        self._unsubscribe = channel.subscribe(self.handle)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def handle(self, event: NavigationEvent) -> None:
        if isinstance(event, StateChangedEvent):
            return
        if isinstance(event, DoorwayEvent) and self.generator is not None:
            context = self._doorway_context(event)
            if context is not None and self._spawn(self._describe(context, event.message)):
                return
        self.narrator(event.message)

    def _doorway_context(self, event: DoorwayEvent) -> Optional[DescriptionContext]:
        doorway = self.floorplan.doorway(event.doorway_id) if self.floorplan is not None else None
        if doorway is None:
            return None
        return DescriptionContext.for_doorway(
            doorway, event.from_room_id, event.to_room_id,
            event.from_room_name, event.to_room_name,
        )

    def _spawn(self, coro) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return False
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _describe(self, context: DescriptionContext, fallback: str) -> str:
        try:
            text = await asyncio.wait_for(self.generator.generate_description(context), self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc if isinstance(exc, DescriptionGenerationFailed) else DescriptionGenerationFailed(str(exc))
            logger.warning("Description generation failed; using fallback",
                           extra={"extra": {"kind": context.kind, "code": error.code, "error": str(error)}})
            text = fallback
        self.narrator(text)
        return text

    async def describe_room(self, room: Room) -> str:
        """Narrate a room description, falling back to the deterministic text."""
        context = DescriptionContext.for_room(room)
        if self.generator is None:
            text = context.fallback_text()
            self.narrator(text)
            return text
        return await self._describe(context, context.fallback_text())

    async def drain(self) -> None:
        """Wait for every pending description task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_pending(self) -> None:
        for task in list(self._tasks):
            task.cancel()
