"""In-memory event store that keeps events and rebuilt state per session."""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from workflow.events import Event
from workflow.models import InitialState, ValidationError, WorkflowState


class EventStoreType(enum.Enum):
    """Available event store backends."""

    IN_MEMORY = "in-memory"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EventMetadata:
    """Bookkeeping recorded alongside a stored event."""

    event_type: str
    aggregate_id: Optional[str] = None
    event_id: str = field(default_factory=_new_id)
    recorded_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class AggregateEvent:
    """An event as stored for one aggregate."""

    data: Event
    aggregate_id: Optional[str] = None
    metadata: Optional[EventMetadata] = None


def _stored_type_name(event: Event) -> str:
    name = type(event).__name__
    return name[: -len("Event")] if name.endswith("Event") else name


class InMemoryEventStore:
    """Stores events per aggregate (session id) and caches the state they build.

    Everything is lost when the process ends.
    """

    def __init__(self) -> None:
        self._events: dict[str, list[AggregateEvent]] = {}
        self._cache: dict[str, WorkflowState] = {}

    async def store_events(self, session_id: str, events: Iterable[Event]) -> None:
        """Append events to the session and invalidate its cached state."""
        events = list(events)
        if not events:
            return
        bucket = self._events.setdefault(session_id, [])
        for event in events:
            metadata = EventMetadata(event_type=_stored_type_name(event), aggregate_id=session_id)
            bucket.append(AggregateEvent(data=event, aggregate_id=session_id, metadata=metadata))
        self._cache.pop(session_id, None)

    async def get_current_state(self, aggregate_id: str) -> WorkflowState:
        """Return the state built from the aggregate's events."""
        cached = self._cache.get(aggregate_id)
        if cached is not None:
            return cached
        return self._rebuild_state(aggregate_id)

    async def get_events(self, session_id: str) -> list[Event]:
        """Return the session's events in the order they were stored."""
        return [stored.data for stored in self._events.get(session_id, [])]

    def _rebuild_state(self, aggregate_id: str) -> WorkflowState:
        state: WorkflowState = InitialState()
        for stored in self._events.get(aggregate_id, []):
            new_state = stored.data.apply(state)
            if new_state is None:
                raise ValidationError(f"Failed to apply event {stored.data!r} to state")
            state = new_state
        self._cache[aggregate_id] = state
        return state