"""
Core API for media notes.

MediaNotes wires the store, repositories, search, and insight generation
together. Every collaborator can be injected; anything not injected is built
from the store directory and its medianotes.toml.

Caller-side validation lives here: titles and note text are trimmed and
must not be empty. The repositories below persist whatever they are given.
"""

import logging
import uuid
from pathlib import Path
from typing import Mapping, Optional

from .attributes import KeyLike
from .config import StoreConfig, create_runtime, load_or_create_config
from .errors import InvalidOperationError, NotFoundError
from .insights import InsightsProvider
from .kinds import MediaKind
from .library import (
    LibrarySortOrder,
    SearchResults,
    active_media_kinds,
    filter_media_picker,
    library_items,
    recently_used,
    search,
)
from .media_store import MediaStore
from .orchestrator import InsightsOrchestrator
from .paths import database_path, get_default_store_path
from .protocol import MediaRepositoryProtocol, NoteRepositoryProtocol
from .providers.base import ModelRuntime
from .repositories import MediaRepository, NoteRepository
from .types import MediaItem, Note

logger = logging.getLogger(__name__)

# Shortest id prefix accepted when resolving references
MIN_ID_PREFIX = 4


def _clean(value: Optional[str]) -> Optional[str]:
    """Trimmed text, or None when blank."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(value: Optional[str], what: str) -> str:
    cleaned = _clean(value)
    if cleaned is None:
        raise InvalidOperationError(f"{what} must not be empty")
    return cleaned


class MediaNotes:
    """
    Notes about the media you watch, read, and listen to.

    Example:
        mn = MediaNotes()
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        pilot = await mn.add_child(show, "Pilot", sort_key="S01E01")
        await mn.create_note(pilot, "Great pilot")
        orchestrator = mn.insights(show)
        await orchestrator.generate_insights()
    """

    def __init__(
        self,
        store_path: Optional[str | Path] = None,
        *,
        config: Optional[StoreConfig] = None,
        store: Optional[MediaStore] = None,
        media_repository: Optional[MediaRepositoryProtocol] = None,
        note_repository: Optional[NoteRepositoryProtocol] = None,
        runtime: Optional[ModelRuntime] = None,
    ) -> None:
        """
        Open (or create) a store.

        Args:
            store_path: Store directory. Uses the default if not specified.
            config: Pre-loaded StoreConfig (skips reading medianotes.toml).
            store: Injected MediaStore (skips opening the database).
            media_repository: Injected media repository.
            note_repository: Injected note repository.
            runtime: Injected model runtime (skips the configured one).
        """
        # --- Config resolution ---
        if config is not None:
            self._config = config
            self._store_path = config.path
        else:
            self._store_path = (
                Path(store_path).expanduser().resolve()
                if store_path is not None else get_default_store_path()
            )
            self._config = load_or_create_config(self._store_path)

        # --- Persistent operations log ---
        from .logging_config import configure_ops_log
        self._ops_log_handler = configure_ops_log(self._store_path)

        # --- Storage (injected or opened here) ---
        self._owns_store = False
        if store is None and (media_repository is None or note_repository is None):
            store = MediaStore(database_path(self._store_path))
            self._owns_store = True
        self._store = store
        self.media: MediaRepositoryProtocol = media_repository or MediaRepository(store)
        self.notes: NoteRepositoryProtocol = note_repository or NoteRepository(store)

        # Created on first use so read-only commands never touch a model
        self._runtime = runtime

    @property
    def store_path(self) -> Path:
        return self._store_path

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def runtime(self) -> ModelRuntime:
        if self._runtime is None:
            self._runtime = create_runtime(self._config)
        return self._runtime

    # -------------------------------------------------------------------------
    # Media items
    # -------------------------------------------------------------------------

    async def create_media_item(
        self,
        title: str,
        kind: MediaKind | str,
        *,
        subtitle: Optional[str] = None,
        sort_key: Optional[str] = None,
        artwork_url: Optional[str] = None,
        attributes: Optional[Mapping[KeyLike, str]] = None,
        parent: Optional[MediaItem] = None,
    ) -> MediaItem:
        """
        Create and persist a media item.

        Blank attribute values are skipped. With a parent, the kind must be
        the parent's child kind.

        Raises:
            InvalidOperationError: Empty title, or kind not allowed under parent
            SaveError: Storage failure
        """
        title = _require(title, "Title")
        if not isinstance(kind, MediaKind):
            kind = MediaKind.parse(kind)
        if parent is not None and parent.kind.child_kind is not kind:
            raise InvalidOperationError(
                f"A {kind.display_name} cannot be added to a {parent.kind.display_name}"
            )

        item = MediaItem(
            title=title,
            kind=kind,
            subtitle=_clean(subtitle),
            sort_key=_clean(sort_key),
            artwork_url=_clean(artwork_url),
        )
        for key, value in (attributes or {}).items():
            value = _clean(value)
            if value is not None:
                item.set_attribute(key, value)

        if parent is None:
            await self.media.save(item)
            return item

        previous = parent.updated_at
        parent.add_child(item)
        try:
            await self.media.save(item)
        except BaseException:
            parent.remove_child(item)
            parent.updated_at = previous
            raise
        return item

    async def add_child(
        self,
        parent: MediaItem,
        title: str,
        sort_key: Optional[str] = None,
    ) -> MediaItem:
        """Create a child of the parent's child kind (e.g. an episode of a series)."""
        title = _require(title, "Title")
        return await self.media.add_child(parent, title, _clean(sort_key))

    async def update_title(self, item: MediaItem, title: str) -> MediaItem:
        title = _require(title, "Title")
        previous = item.title
        item.title = title
        try:
            await self.media.update(item)
        except BaseException:
            item.title = previous
            raise
        return item

    async def set_attributes(self, item: MediaItem, attributes: Mapping[KeyLike, Optional[str]]) -> MediaItem:
        """Upsert attributes; a blank or None value removes the key."""
        for key, value in attributes.items():
            item.set_attribute(key, _clean(value))
        await self.media.update(item)
        return item

    async def delete_media_item(self, item: MediaItem) -> None:
        """Delete the item with all its descendants, notes, and attributes."""
        await self.media.delete(item)

    # -------------------------------------------------------------------------
    # Notes
    # -------------------------------------------------------------------------

    async def create_note(
        self,
        media_item: MediaItem,
        text: str,
        quote: Optional[str] = None,
    ) -> Note:
        """
        Raises:
            InvalidOperationError: If the text is empty after trimming
        """
        text = _require(text, "Note text")
        return await self.notes.create(text, media_item, _clean(quote))

    async def update_note(self, note: Note, text: str, quote: Optional[str] = None) -> Note:
        text = _require(text, "Note text")
        await self.notes.update(note, text, _clean(quote))
        return note

    async def delete_note(self, note: Note) -> None:
        await self.notes.delete(note)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    async def get_media_item(self, ref: str | uuid.UUID) -> MediaItem:
        """
        Find an item by full id or unique id prefix.

        Raises:
            NotFoundError: Nothing matches
            InvalidOperationError: The prefix is ambiguous or too short
        """
        item = await self.media.fetch_item(ref)
        if item is not None:
            return item
        return self._match_prefix(str(ref), await self.media.fetch_all(), "media item")

    async def get_note(self, ref: str | uuid.UUID) -> Note:
        """Find a note by full id or unique id prefix."""
        note = await self.notes.fetch_note(ref)
        if note is not None:
            return note
        return self._match_prefix(str(ref), await self.notes.fetch_all(), "note")

    @staticmethod
    def _match_prefix(ref: str, candidates: list, what: str):
        prefix = ref.strip().lower()
        if len(prefix) < MIN_ID_PREFIX:
            raise NotFoundError(f"No {what} with id {ref!r}")
        matches = [c for c in candidates if str(c.id).startswith(prefix)]
        if not matches:
            raise NotFoundError(f"No {what} with id {ref!r}")
        if len(matches) > 1:
            raise InvalidOperationError(f"Id prefix {ref!r} matches {len(matches)} {what}s")
        return matches[0]

    # -------------------------------------------------------------------------
    # Library, search, picker
    # -------------------------------------------------------------------------

    async def library(
        self,
        kind: Optional[MediaKind] = None,
        order: LibrarySortOrder = LibrarySortOrder.RECENTLY_NOTED,
    ) -> list[MediaItem]:
        """Root items with notes, filtered and sorted for display."""
        return library_items(await self.media.fetch_root_items(), kind, order)

    async def active_kinds(self) -> list[MediaKind]:
        return active_media_kinds(await self.media.fetch_root_items())

    async def search(self, query: str) -> SearchResults:
        return await search(query, self.media, self.notes)

    async def picker(self, query: str = "", kind: Optional[MediaKind] = None) -> list[MediaItem]:
        """All items a note could be attached to, narrowed by query and kind."""
        return filter_media_picker(await self.media.fetch_all(), query, kind)

    async def recently_used(self, query: str = "", kind: Optional[MediaKind] = None) -> list[MediaItem]:
        return recently_used(await self.media.fetch_all(), query, kind)

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    def insights(self, media_item: Optional[MediaItem] = None) -> InsightsOrchestrator:
        """A fresh orchestrator, global or scoped to one item."""
        return InsightsOrchestrator(InsightsProvider(self.runtime, self.notes), media_item)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        if self._store is None:
            return {}
        return self._store.stats()

    def close(self) -> None:
        """Close the database (if opened here) and detach the ops log."""
        if self._owns_store and self._store is not None:
            self._store.close()
        if self._ops_log_handler is not None:
            logging.getLogger("medianotes").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
