import pytest

from workflow.events import LanguageSetEvent, SyncRequestedEvent
from workflow.journal import InMemoryJournal, JournalType, create_journal


def sync_event():
    return SyncRequestedEvent(remote_url="test-url", branch="main", ssh_key=None)


@pytest.mark.asyncio
async def test_inmemory_journal():
    journal = InMemoryJournal()
    session_id = "test-session"

    assert await journal.replay_events(session_id, 0) == []
    assert await journal.highest_sequence_nr(session_id) == 0

    await journal.persist_events(session_id, [sync_event()])

    replayed = await journal.replay_events(session_id, 0)
    assert len(replayed) == 1
    assert await journal.highest_sequence_nr(session_id) == 1

    await journal.delete_events(session_id, 1)
    assert await journal.replay_events(session_id, 0) == []


@pytest.mark.asyncio
async def test_replay_from_sequence_preserves_order():
    journal = InMemoryJournal()
    events = [LanguageSetEvent(language=code) for code in ("en", "es", "en")]
    await journal.persist_events("s", events)
    assert await journal.replay_events("s", 0) == events
    assert await journal.replay_events("s", 1) == events[1:]
    assert await journal.replay_events("s", 10) == []


@pytest.mark.asyncio
async def test_delete_more_than_stored_and_isolation():
    journal = InMemoryJournal()
    await journal.persist_events("a", [sync_event(), sync_event()])
    kept = [sync_event()]
    await journal.persist_events("b", kept)
    await journal.delete_events("a", 5)
    await journal.delete_events("missing", 1)
    assert await journal.highest_sequence_nr("a") == 0
    assert await journal.replay_events("b", 0) == kept


@pytest.mark.asyncio
async def test_empty_persist_and_partial_delete():
    journal = InMemoryJournal()
    await journal.persist_events("s", [])
    assert await journal.highest_sequence_nr("s") == 0
    events = [sync_event(), sync_event(), sync_event()]
    await journal.persist_events("s", events)
    await journal.delete_events("s", 2)
    assert await journal.replay_events("s", 0) == events[2:]


@pytest.mark.asyncio
async def test_create_journal_gives_fresh_journals():
    first = create_journal(JournalType.IN_MEMORY)
    second = create_journal(JournalType.IN_MEMORY)
    await first.persist_events("s", [sync_event()])
    assert await first.highest_sequence_nr("s") == 1
    assert await second.highest_sequence_nr("s") == 0