"""Storage boundary for notes and analysis metadata."""

from notelens.repositories.notes import InMemoryNoteStore, NoteStore

__all__ = ["InMemoryNoteStore", "NoteStore"]
