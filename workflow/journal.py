"""Pluggable event journals keyed by session (persistence) id."""

from __future__ import annotations

import enum
from collections.abc import Iterable

from workflow.events import Event


class JournalType(enum.Enum):
    """Available journal backends."""

    IN_MEMORY = "in-memory"


class InMemoryJournal:
    """Keeps events per session in memory; suitable for development and tests."""

    def __init__(self) -> None:
        self._events: dict[str, list[Event]] = {}

    async def persist_events(self, session_id: str, events: Iterable[Event]) -> None:
        """Append events to the session's journal."""
        events = list(events)
        if not events:
            return
        self._events.setdefault(session_id, []).extend(events)

    async def replay_events(self, session_id: str, from_sequence: int) -> list[Event]:
        """Return the session's events, skipping the first from_sequence of them."""
        return list(self._events.get(session_id, [])[from_sequence:])

    async def highest_sequence_nr(self, session_id: str) -> int:
        """Return how many events the session holds."""
        return len(self._events.get(session_id, []))

    async def delete_events(self, session_id: str, to_sequence: int) -> None:
        """Drop the session's first to_sequence events."""
        session_events = self._events.get(session_id)
        if session_events is not None:
            del session_events[: min(to_sequence, len(session_events))]


def create_journal(journal_type: JournalType) -> InMemoryJournal:
    """Create a journal of the given type."""
    if journal_type is JournalType.IN_MEMORY:
        return InMemoryJournal()
    raise ValueError(f"unsupported journal type: {journal_type!r}")