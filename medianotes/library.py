"""
Filtering, sorting, and search over media/note snapshots.

The filter and sort functions are pure: they work on lists already fetched
from the repositories and never touch storage. Only search() does I/O,
running the media and note scans concurrently.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .kinds import MediaKind
from .protocol import MediaRepositoryProtocol, NoteRepositoryProtocol
from .types import DISTANT_PAST, MediaItem, Note, collation_key

logger = logging.getLogger(__name__)

# Number of items shown as "recently used" in the media picker
RECENTLY_USED_LIMIT = 5


# -----------------------------------------------------------------------------
# Library
# -----------------------------------------------------------------------------

class LibrarySortOrder(str, Enum):
    RECENTLY_NOTED = "recently_noted"
    RECENTLY_ADDED = "recently_added"
    ALPHABETICAL = "alphabetical"
    NOTE_COUNT = "note_count"

    @property
    def display_name(self) -> str:
        return _SORT_DISPLAY_NAMES[self]


_SORT_DISPLAY_NAMES = {
    LibrarySortOrder.RECENTLY_NOTED: "Recently Noted",
    LibrarySortOrder.RECENTLY_ADDED: "Recently Added",
    LibrarySortOrder.ALPHABETICAL: "A-Z",
    LibrarySortOrder.NOTE_COUNT: "Most Notes",
}


def filter_library(
    items: list[MediaItem],
    kind: Optional[MediaKind] = None,
) -> list[MediaItem]:
    """Items with at least one note in their subtree, optionally of one kind."""
    result = [item for item in items if item.total_note_count > 0]
    if kind is not None:
        result = [item for item in result if item.kind is kind]
    return result


def sort_library(items: list[MediaItem], order: LibrarySortOrder) -> list[MediaItem]:
    """
    Sort a copy of the items. Ties keep their input order (stable sort).

    Items without notes count as noted in the distant past.
    """
    if order is LibrarySortOrder.RECENTLY_NOTED:
        return sorted(items, key=lambda i: i.last_note_date or DISTANT_PAST, reverse=True)
    if order is LibrarySortOrder.RECENTLY_ADDED:
        return sorted(items, key=lambda i: i.created_at, reverse=True)
    if order is LibrarySortOrder.ALPHABETICAL:
        return sorted(items, key=lambda i: collation_key(i.title))
    if order is LibrarySortOrder.NOTE_COUNT:
        return sorted(items, key=lambda i: i.total_note_count, reverse=True)
    raise ValueError(f"Unknown sort order: {order}")


def library_items(
    items: list[MediaItem],
    kind: Optional[MediaKind] = None,
    order: LibrarySortOrder = LibrarySortOrder.RECENTLY_NOTED,
) -> list[MediaItem]:
    """The library view: filter_library() then sort_library()."""
    return sort_library(filter_library(items, kind), order)


def active_media_kinds(items: list[MediaItem]) -> list[MediaKind]:
    """Kinds that have at least one noted item, in MediaKind declaration order."""
    present = {item.kind for item in items if item.total_note_count > 0}
    return [kind for kind in MediaKind if kind in present]


# -----------------------------------------------------------------------------
# Search
# -----------------------------------------------------------------------------

class SearchScope(str, Enum):
    ALL = "all"
    MEDIA = "media"
    NOTES = "notes"


@dataclass(frozen=True)
class SearchResults:
    """
    Media and note matches for one query.

    ``searched`` is False when the query was blank and nothing ran; that is
    distinct from a search that ran and found nothing.
    """
    media_items: list[MediaItem] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    searched: bool = True

    @classmethod
    def not_searched(cls) -> "SearchResults":
        return cls(searched=False)

    @property
    def is_empty(self) -> bool:
        return not self.media_items and not self.notes

    def media_for(self, scope: SearchScope) -> list[MediaItem]:
        if scope in (SearchScope.ALL, SearchScope.MEDIA):
            return self.media_items
        return []

    def notes_for(self, scope: SearchScope) -> list[Note]:
        if scope in (SearchScope.ALL, SearchScope.NOTES):
            return self.notes
        return []


async def search(
    query: str,
    media_repository: MediaRepositoryProtocol,
    note_repository: NoteRepositoryProtocol,
) -> SearchResults:
    """
    Case-insensitive substring search over media titles and note text.

    The query is trimmed; a blank query returns SearchResults.not_searched()
    without touching either repository. Errors from either scan propagate.
    """
    query = query.strip()
    if not query:
        return SearchResults.not_searched()

    media, notes = await asyncio.gather(
        media_repository.fetch_items(query),
        note_repository.fetch_notes(query),
    )
    logger.debug("Search %r: %d media, %d notes", query, len(media), len(notes))
    return SearchResults(media_items=media, notes=notes)


# -----------------------------------------------------------------------------
# Media picker
# -----------------------------------------------------------------------------

def filter_media_picker(
    items: list[MediaItem],
    query: str = "",
    kind: Optional[MediaKind] = None,
) -> list[MediaItem]:
    """
    Items for choosing where a note goes.

    Narrowed by kind, then by a case-insensitive match against the title,
    subtitle, or parent title (any one suffices). An empty query matches all.
    """
    result = items
    if kind is not None:
        result = [item for item in result if item.kind is kind]
    if query:
        needle = query.casefold()

        def matches(item: MediaItem) -> bool:
            if needle in item.title.casefold():
                return True
            if item.subtitle and needle in item.subtitle.casefold():
                return True
            return item.parent is not None and needle in item.parent.title.casefold()

        result = [item for item in result if matches(item)]
    return list(result)


def picker_root_items(
    items: list[MediaItem],
    query: str = "",
    kind: Optional[MediaKind] = None,
) -> list[MediaItem]:
    """Filtered picker items that have no parent."""
    return [item for item in filter_media_picker(items, query, kind) if item.parent is None]


def recently_used(
    items: list[MediaItem],
    query: str = "",
    kind: Optional[MediaKind] = None,
    limit: int = RECENTLY_USED_LIMIT,
) -> list[MediaItem]:
    """The first few picker roots, in the order given (updated_at desc from fetch_all)."""
    return picker_root_items(items, query, kind)[:limit]
