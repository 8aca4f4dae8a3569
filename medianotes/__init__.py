"""
medianotes: notes on movies, series, books, music, and live events, with
insights drawn only from those notes.

Quick start:
    from medianotes import MediaNotes, MediaKind

    mn = MediaNotes()
    show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
    pilot = await mn.add_child(show, "Pilot", sort_key="S01E01")
    await mn.create_note(pilot, "Great pilot")
"""

from .api import MediaNotes
from .attributes import MediaAttribute, MediaAttributeKey
from .errors import (
    GenerationError,
    InvalidOperationError,
    MediaNotesError,
    NotFoundError,
    PersistenceError,
    SaveError,
)
from .insights import Insights, InsightsProvider, NotesDatabaseTool
from .kinds import MediaKind
from .library import LibrarySortOrder, SearchResults, SearchScope
from .media_store import MediaStore
from .orchestrator import InsightsOrchestrator
from .providers.base import Availability, UnavailableReason
from .repositories import MediaRepository, NoteRepository
from .types import MediaItem, Note
from .viewstate import ViewState

__all__ = [
    "Availability",
    "GenerationError",
    "Insights",
    "InsightsOrchestrator",
    "InsightsProvider",
    "InvalidOperationError",
    "LibrarySortOrder",
    "MediaAttribute",
    "MediaAttributeKey",
    "MediaItem",
    "MediaKind",
    "MediaNotes",
    "MediaNotesError",
    "MediaRepository",
    "MediaStore",
    "Note",
    "NoteRepository",
    "NotFoundError",
    "NotesDatabaseTool",
    "PersistenceError",
    "SaveError",
    "SearchResults",
    "SearchScope",
    "UnavailableReason",
    "ViewState",
]
