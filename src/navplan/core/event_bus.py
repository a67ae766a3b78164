"""Event bus for flight plan change notification.

This module provides a priority-based, synchronous event bus and the events
the flight plan manager publishes after each completed mutation. Display and
guidance consumers subscribe to them instead of polling the plan.

Typical usage example:
    from navplan.core.event_bus import EventBus, FlightPlanChangedEvent

    bus = EventBus()
    bus.subscribe(FlightPlanChangedEvent, redraw_map)
    bus.publish(FlightPlanChangedEvent(plan_index=0, reason="add_waypoint"))
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

logger = logging.getLogger(__name__)


class EventPriority(Enum):
    """Priority levels for event handlers.

    Handlers are executed in order from CRITICAL to LOW.
    """

    CRITICAL = auto()
    HIGH = auto()
    NORMAL = auto()
    LOW = auto()


@dataclass
class Event:
    """Base class for all events.

    Attributes:
        timestamp: Unix timestamp when the event was created.
    """

    timestamp: float = field(default_factory=time.time)


@dataclass
class FlightPlanChangedEvent(Event):
    """Published after a flight plan mutation completes.

    Attributes:
        plan_index: Index of the changed plan in the manager
        reason: Name of the operation that changed the plan
        length: Number of waypoints after the change
    """

    plan_index: int = 0
    reason: str = ""
    length: int = 0


@dataclass
class ActiveWaypointChangedEvent(Event):
    """Published when the active waypoint index changes.

    Attributes:
        index: New active waypoint index
        ident: Identifier of the new active waypoint, empty if none
    """

    index: int = 0
    ident: str = ""


@dataclass
class DirectToChangedEvent(Event):
    """Published when direct-to is activated or cancelled.

    Attributes:
        is_active: Whether direct-to is now active
        ident: Identifier of the direct-to target, empty when cancelled
    """

    is_active: bool = False
    ident: str = ""


Handler = Callable[[Any], None]


class EventBus:
    """Central event bus for synchronous event dispatch.

    Handlers are called synchronously in priority order. Dispatch is by exact
    event type.

    Examples:
        >>> bus = EventBus()
        >>> bus.subscribe(DirectToChangedEvent, lambda e: print(e.ident))
        >>> bus.publish(DirectToChangedEvent(is_active=True, ident="MERIT"))
        MERIT
    """

    def __init__(self) -> None:
        """Initialize an empty event bus."""
        self._handlers: dict[type[Event], list[tuple[Handler, EventPriority]]] = {}

    def subscribe(
        self,
        event_type: type[Event],
        handler: Handler,
        priority: EventPriority = EventPriority.NORMAL,
    ) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The class of event to subscribe to.
            handler: Callable that accepts the event as its only parameter.
            priority: Priority level for this handler. Defaults to NORMAL.
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append((handler, priority))

        # Stable sort keeps subscription order within a priority
        handlers.sort(key=lambda x: x[1].value)

    def unsubscribe(self, event_type: type[Event], handler: Handler) -> None:
        """Unsubscribe a handler from an event type.

        Unknown handlers are ignored.

        Args:
            event_type: The event type to unsubscribe from.
            handler: The handler function to remove.
        """
        if event_type not in self._handlers:
            return

        remaining = [(h, p) for h, p in self._handlers[event_type] if h != handler]
        if remaining:
            self._handlers[event_type] = remaining
        else:
            del self._handlers[event_type]

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers.

        Exceptions raised by a handler propagate to the publisher.

        Args:
            event: The event to publish.
        """
        handlers = self._handlers.get(type(event), [])
        logger.debug("Publishing %s to %d handlers", type(event).__name__, len(handlers))

        for handler, _ in list(handlers):
            handler(event)

    def clear(self) -> None:
        """Remove all event handlers."""
        self._handlers.clear()

    def get_subscriber_count(self, event_type: type[Event]) -> int:
        """Get the number of subscribers for an event type.

        Args:
            event_type: The event type to query.

        Returns:
            Number of handlers subscribed to this event type.
        """
        return len(self._handlers.get(event_type, []))
