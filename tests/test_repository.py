"""
Note Repository Unit Tests

InMemoryNoteStore behaviour: upserts, ordering, copies and cascading
deletes.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from conftest import make_note

from notelens.errors import NoteNotFound
from notelens.models.schemas import NoteMetadata
from notelens.repositories.notes import InMemoryNoteStore, NoteStore


def _metadata(note_id: str, summary: str = "summary") -> NoteMetadata:
    return NoteMetadata(note_id=note_id, summary=summary, sentiment="neutral", keywords=["k"])


def test_in_memory_store_satisfies_protocol():
    assert isinstance(InMemoryNoteStore(), NoteStore)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class TestNotes:
    """Note CRUD."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        note = make_note("hello")
        await store.save_note(note)

        loaded = await store.get_note(note.id)

        assert loaded == note

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store):
        assert await store.get_note("missing") is None

    @pytest.mark.asyncio
    async def test_save_replaces(self, store):
        note = make_note("v1")
        await store.save_note(note)
        await store.save_note(note.model_copy(update={"content": "v2"}))

        loaded = await store.get_note(note.id)

        assert loaded.content == "v2"
        assert len(await store.get_all_notes()) == 1

    @pytest.mark.asyncio
    async def test_all_notes_newest_first(self, store):
        now = datetime.now(UTC)
        old = make_note("old", created_at=now - timedelta(days=1))
        new = make_note("new", created_at=now)
        await store.save_note(old)
        await store.save_note(new)

        assert [n.id for n in await store.get_all_notes()] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_returned_notes_are_copies(self, store):
        note = make_note("original")
        await store.save_note(note)

        loaded = await store.get_note(note.id)
        loaded.content = "mutated"

        assert (await store.get_note(note.id)).content == "original"

    @pytest.mark.asyncio
    async def test_delete_cascades_to_metadata(self, store):
        note = make_note()
        await store.save_note(note)
        await store.save_metadata(_metadata(note.id))

        await store.delete_note(note.id)

        assert await store.get_note(note.id) is None
        assert await store.get_metadata(note.id) is None

    @pytest.mark.asyncio
    async def test_delete_missing_raises(self, store):
        with pytest.raises(NoteNotFound) as exc_info:
            await store.delete_note("missing")
        assert exc_info.value.note_id == "missing"


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class TestMetadata:
    """Metadata records keyed by note id."""

    @pytest.mark.asyncio
    async def test_save_replaces(self, store):
        await store.save_metadata(_metadata("n1", "first"))
        await store.save_metadata(_metadata("n1", "second"))

        assert (await store.get_metadata("n1")).summary == "second"
        assert len(await store.get_all_metadata()) == 1

    @pytest.mark.asyncio
    async def test_delete_missing_is_ignored(self, store):
        await store.delete_metadata("missing")
        assert await store.get_all_metadata() == []
