"""
Note Repository

Storage boundary for notes and their analysis metadata.

The engine treats storage as a key-value collaborator: notes keyed by
``Note.id``, metadata keyed by ``NoteMetadata.note_id``. ``NoteStore``
is the contract; ``InMemoryNoteStore`` is the bundled implementation used
by the API process and the tests.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from notelens.errors import NoteNotFound
from notelens.models.schemas import Note, NoteMetadata

logger = logging.getLogger(__name__)


@runtime_checkable
class NoteStore(Protocol):
    """Key-value store for notes and metadata. No query language."""

    async def save_note(self, note: Note) -> Note: ...

    async def get_note(self, note_id: str) -> Note | None: ...

    async def get_all_notes(self) -> Sequence[Note]: ...

    async def delete_note(self, note_id: str) -> None: ...

    async def save_metadata(self, metadata: NoteMetadata) -> NoteMetadata: ...

    async def get_metadata(self, note_id: str) -> NoteMetadata | None: ...

    async def get_all_metadata(self) -> Sequence[NoteMetadata]: ...

    async def delete_metadata(self, note_id: str) -> None: ...


class InMemoryNoteStore:
    """
    Process-local ``NoteStore``.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._notes: dict[str, Note] = {}
        self._metadata: dict[str, NoteMetadata] = {}

    async def save_note(self, note: Note) -> Note:
        """Insert or replace a note."""
        self._notes[note.id] = note.model_copy(deep=True)
        logger.debug("Saved note %s", note.id)
        return note

    async def get_note(self, note_id: str) -> Note | None:
        note = self._notes.get(note_id)
        return note.model_copy(deep=True) if note else None

    async def get_all_notes(self) -> list[Note]:
        """All notes, newest first."""
        notes = [n.model_copy(deep=True) for n in self._notes.values()]
        return sorted(notes, key=lambda n: n.created_at, reverse=True)

    async def delete_note(self, note_id: str) -> None:
        """
        Delete a note together with its metadata.

        Raises:
            NoteNotFound: If no note has this id.
        """
        if note_id not in self._notes:
            raise NoteNotFound(note_id)
        del self._notes[note_id]
        self._metadata.pop(note_id, None)
        logger.debug("Deleted note %s", note_id)

    async def save_metadata(self, metadata: NoteMetadata) -> NoteMetadata:
        """Insert or replace the metadata record for ``metadata.note_id``."""
        self._metadata[metadata.note_id] = metadata.model_copy(deep=True)
        return metadata

    async def get_metadata(self, note_id: str) -> NoteMetadata | None:
        metadata = self._metadata.get(note_id)
        return metadata.model_copy(deep=True) if metadata else None

    async def get_all_metadata(self) -> list[NoteMetadata]:
        return [m.model_copy(deep=True) for m in self._metadata.values()]

    async def delete_metadata(self, note_id: str) -> None:
        """Delete metadata for a note. Missing records are ignored."""
        self._metadata.pop(note_id, None)
