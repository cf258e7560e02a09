"""
Typed navigation events and the per-session channel that delivers them.

Each event carries a ready-to-speak `message`; narrators and UIs subscribe
to an EventChannel owned by the navigation session instead of listening on
a global bus. publish() hands the event to every subscriber synchronously
and never raises into the publisher: a failing subscriber is logged and the
remaining subscribers still receive the event.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type

from beaconnav.floorplan.types import DoorAction
from beaconnav.navigation.types import NavigationState
from beaconnav.utils.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NavigationEvent:
    message: str
    timestamp: float = field(default_factory=time.monotonic, compare=False)

    @property
    def kind(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class RouteStartedEvent(NavigationEvent):
    destination_name: str = ""
    total_distance: float = 0.0
    waypoint_count: int = 0


@dataclass(frozen=True)
class ApproachEvent(NavigationEvent):
    waypoint_index: int = 0
    steps: int = 1
    distance: float = 0.0


@dataclass(frozen=True)
class ArrivalEvent(NavigationEvent):
    waypoint_index: int = 0
    is_final: bool = False
    instruction: Optional[str] = None


@dataclass(frozen=True)
class DoorwayEvent(NavigationEvent):
    """Announcement of an upcoming doorway.

    `message` is the deterministic fallback text; a description generator
    may replace it with a richer one.
    """

    doorway_id: str = ""
    from_room_id: Optional[str] = None
    to_room_id: Optional[str] = None
    from_room_name: str = ""
    to_room_name: str = ""
    action: DoorAction = DoorAction.WALK_THROUGH
    distance: float = 0.0


@dataclass(frozen=True)
class OffRouteEvent(NavigationEvent):
    waypoint_index: int = 0
    distance: float = 0.0


@dataclass(frozen=True)
class TrackingStatusEvent(NavigationEvent):
    available: bool = True


@dataclass(frozen=True)
class StateChangedEvent(NavigationEvent):
    state: Optional[NavigationState] = None


Subscriber = Callable[[NavigationEvent], None]


class EventChannel:
    """
    Synchronous typed publish/subscribe for one session.

    Example:
        >>> channel = EventChannel()
        >>> received = []
        >>> unsubscribe = channel.subscribe(received.append, ArrivalEvent)
        >>> channel.publish(ArrivalEvent("Arrived"))
        >>> len(received)
        1
        >>> unsubscribe()
    """

    def __init__(self):
        self._subscribers: Dict[int, Tuple[Optional[Type[NavigationEvent]], Subscriber]] = {}
        self._ids = itertools.count()
        self.history: List[NavigationEvent] = []
        self.keep_history = False

    def subscribe(self, callback: Subscriber,
                  event_type: Optional[Type[NavigationEvent]] = None) -> Callable[[], None]:
        """
        Register a callback, optionally for one event type (and subclasses).

        Returns:
            Function that removes the subscription.
        """
        key = next(self._ids)
        self._subscribers[key] = (event_type, callback)

        def unsubscribe() -> None:
            self._subscribers.pop(key, None)

        return unsubscribe

    def publish(self, event: NavigationEvent) -> None:
        if self.keep_history:
            self.history.append(event)
        logger.debug("Event", extra={"extra": {"kind": event.kind, "message": event.message}})
        for event_type, callback in list(self._subscribers.values()):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed", extra={"extra": {"kind": event.kind}})

    def __len__(self) -> int:
        return len(self._subscribers)


class AsyncEventStream:
    """
    asyncio.Queue view of an EventChannel.

    Must be created inside the running event loop that consumes it.

    Example:
        >>> stream = AsyncEventStream(channel)
        >>> event = await stream.get()
        >>> stream.close()
    """

    def __init__(self, channel: EventChannel,
                 event_type: Optional[Type[NavigationEvent]] = None,
                 maxsize: int = 0):
        self.queue: "asyncio.Queue[NavigationEvent]" = asyncio.Queue(maxsize=maxsize)
        self._unsubscribe = channel.subscribe(self._put, event_type)

    def _put(self, event: NavigationEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Event stream full; dropping event", extra={"extra": {"kind": event.kind}})

    async def get(self) -> NavigationEvent:
        return await self.queue.get()

    def drain(self) -> List[NavigationEvent]:
        """Remove and return every queued event without waiting."""
        events = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events

    def close(self) -> None:
        self._unsubscribe()

    def __enter__(self) -> "AsyncEventStream":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
