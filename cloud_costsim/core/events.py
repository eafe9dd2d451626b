"""Simulation events and event types."""

from enum import Enum
from typing import Any, Callable, Dict, List
from dataclasses import dataclass, field
from loguru import logger


class EventType(Enum):
    """Types of simulation events."""

    # Clock events
    CLOCK_TICK = "clock_tick"
    SIMULATION_ENDED = "simulation_ended"

    # Resource events
    HOST_FAILURE = "host_failure"
    HOST_RECOVERY = "host_recovery"


@dataclass
class SimulationEvent:
    """A simulation event with timestamp and associated data."""

    timestamp: float
    event_type: EventType
    resource_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    priority: int = 0

    def __post_init__(self) -> None:
        """Log event creation."""
        logger.debug(
            f"Event created: {self.event_type.value} at {self.timestamp:.2f}s "
            f"for resource {self.resource_id}"
        )

    def __lt__(self, other: "SimulationEvent") -> bool:
        """Compare events for priority queue ordering."""
        if self.timestamp != other.timestamp:
            return self.timestamp < other.timestamp
        return self.priority < other.priority


EventHandler = Callable[[SimulationEvent], None]


class EventBus:
    """Synchronous publish/subscribe bus for simulation events."""

    def __init__(self) -> None:
        self.events: List[SimulationEvent] = []
        self.event_handlers: Dict[EventType, List[EventHandler]] = {}

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to an event type."""
        if event_type not in self.event_handlers:
            self.event_handlers[event_type] = []
        self.event_handlers[event_type].append(handler)
        logger.debug(f"Handler subscribed to {event_type.value}")

    def publish(self, event: SimulationEvent) -> None:
        """Deliver an event to subscribers in registration order.

        A failing handler is logged and skipped; later handlers still run.
        """
        for handler in self.event_handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error handling event {event.event_type.value} "
                             f"at {event.timestamp:.2f}s: {e}")

    def schedule_event(self, event: SimulationEvent) -> None:
        """Schedule an event for future delivery."""
        self.events.append(event)
        self.events.sort()  # Keep events sorted by timestamp
        logger.debug(f"Event scheduled: {event.event_type.value} at {event.timestamp}")

    def pop_due_events(self, current_time: float) -> List[SimulationEvent]:
        """Remove and return scheduled events due at or before current_time."""
        due = [event for event in self.events if event.timestamp <= current_time]
        self.events = [event for event in self.events if event.timestamp > current_time]
        return due
