"""
Event system for the goal cascade engine.

Allows decoupled communication between components via events and listeners.
The bus is passed to the components that publish, so each engine owns its own.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List

import click


class EventType(str, Enum):
    """Types of events published by the engine."""
    PATIENT_STATUS_CHANGED = "patient.status_changed"
    MILESTONE_COMPLETED = "milestone.completed"
    CASCADE_OFFERED = "cascade.offered"
    CASCADE_DECLINED = "cascade.declined"


@dataclass
class Event:
    """An engine notification for one patient."""
    type: EventType
    patient_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class EventListener(ABC):
    """Base class for event listeners."""

    @abstractmethod
    def handle(self, event: Event) -> None:
        """Handle an event.

        Args:
            event: The event to handle.
        """
        pass

    @property
    @abstractmethod
    def subscribed_events(self) -> List[EventType]:
        """Return list of event types this listener subscribes to."""
        pass


class EventBus:
    """
    Fan-out of engine events to subscribed listeners.

    Emitting is fire-and-forget: a failing listener is reported and
    the remaining listeners still run.
    """

    def __init__(self) -> None:
        self._listeners: Dict[EventType, List[EventListener]] = {}

    def subscribe(self, listener: EventListener) -> None:
        """Subscribe a listener to events.

        Args:
            listener: The listener to subscribe.
        """
        for event_type in listener.subscribed_events:
            if event_type not in self._listeners:
                self._listeners[event_type] = []
            if listener not in self._listeners[event_type]:
                self._listeners[event_type].append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        """Unsubscribe a listener from all events.

        Args:
            listener: The listener to unsubscribe.
        """
        for event_type in self._listeners:
            if listener in self._listeners[event_type]:
                self._listeners[event_type].remove(listener)

    def emit(self, event: Event) -> None:
        """Publish an event to all subscribed listeners.

        Args:
            event: The event to publish.
        """
        listeners = self._listeners.get(event.type, [])
        for listener in list(listeners):
            try:
                listener.handle(event)
            except Exception as e:
                click.echo(f"  ⚠ Listener {listener.__class__.__name__} failed: {e}", err=True)

    def clear(self) -> None:
        """Clear all listeners (useful for testing)."""
        self._listeners.clear()


class RecordingListener(EventListener):
    """Keeps every event it receives, in order."""

    def __init__(self, event_types: List[EventType] = None) -> None:
        self._event_types = event_types or list(EventType)
        self.events: List[Event] = []

    @property
    def subscribed_events(self) -> List[EventType]:
        return self._event_types

    def handle(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[Event]:
        """Events of one type."""
        return [e for e in self.events if e.type == event_type]
