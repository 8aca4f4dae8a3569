"""
Repositories for media items and notes.

Both repositories share one MediaStore, so a multi-step write (adding a
child, creating a note) commits atomically or not at all. Writers take the
store lock on the event loop; reads run on worker threads with their own
connections, so independent reads proceed concurrently.

In-memory objects passed to a mutation are only changed if the write
commits. On failure the object is restored and the error propagates.
"""

import asyncio
import logging
import uuid
from typing import Optional

from .errors import InvalidOperationError, NotFoundError, SaveError
from .media_store import MediaStore
from .types import MediaItem, Note

logger = logging.getLogger(__name__)


def _as_uuid(value: uuid.UUID | str) -> Optional[uuid.UUID]:
    """Coerce an identifier; malformed strings identify nothing."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


class MediaRepository:
    """
    Media item data access over a shared MediaStore.

    Lists are ordered by updated_at, newest first.
    """

    def __init__(self, store: MediaStore):
        self._store = store

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def fetch_all(self) -> list[MediaItem]:
        return await asyncio.to_thread(self._store.fetch_media_items)

    async def fetch_root_items(self) -> list[MediaItem]:
        """Items without a parent."""
        return await asyncio.to_thread(self._store.fetch_media_items, roots_only=True)

    async def fetch_items(self, matching: str) -> list[MediaItem]:
        """Items whose title contains the text, ignoring case."""
        logger.debug("Fetching media matching %r", matching)
        return await asyncio.to_thread(self._store.fetch_media_items, title_contains=matching)

    async def fetch_item(self, id: uuid.UUID | str) -> Optional[MediaItem]:
        item_id = _as_uuid(id)
        if item_id is None:
            return None
        found = await asyncio.to_thread(self._store.fetch_media_items, item_id=item_id)
        return found[0] if found else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def save(self, item: MediaItem) -> None:
        """
        Insert a new item with its attributes, notes, and descendants.

        If the item is linked to a stored parent, the parent's updated_at is
        written too.

        Raises:
            SaveError: If the insert fails (e.g. the id already exists)
        """
        async with self._store.lock:
            with self._store.transaction(SaveError) as tx:
                for node in item.walk():
                    tx.insert_media_item(node)
                    tx.replace_attributes(node)
                    for note in node.notes:
                        tx.insert_note(note)
                if item.parent is not None:
                    tx.touch_media_item(item.parent)
        logger.info("Saved %s %s (%s)", item.kind.value, item.id, item.title)

    async def update(self, item: MediaItem) -> None:
        """
        Refresh updated_at and persist the item's fields and attributes.

        Raises:
            NotFoundError: If the item is not stored
            InvalidOperationError: If the kind differs from the stored kind
        """
        async with self._store.lock:
            stored_kind = self._store.get_kind(item.id)
            if stored_kind is None:
                raise NotFoundError(f"Media item not found: {item.id}")
            if stored_kind != item.kind.value:
                raise InvalidOperationError(
                    f"Cannot change kind of {item.title!r} from {stored_kind} to {item.kind.value}"
                )
            previous = item.updated_at
            item.touch()
            try:
                with self._store.transaction() as tx:
                    tx.update_media_item(item)
                    tx.replace_attributes(item)
            except BaseException:
                item.updated_at = previous
                raise
        logger.info("Updated media item %s", item.id)

    async def delete(self, item: MediaItem) -> None:
        """
        Delete an item, its descendants, their notes, and their attributes.

        Raises:
            NotFoundError: If the item is not stored
        """
        async with self._store.lock:
            with self._store.transaction() as tx:
                if not tx.delete_media_item(item.id):
                    raise NotFoundError(f"Media item not found: {item.id}")
        if item.parent is not None:
            item.parent.remove_child(item)
        logger.info("Deleted media item %s (%s)", item.id, item.title)

    async def add_child(
        self,
        parent: MediaItem,
        title: str,
        sort_key: Optional[str] = None,
    ) -> MediaItem:
        """
        Create a child of the kind the parent holds, link it, and persist it.

        Raises:
            InvalidOperationError: If the parent's kind cannot have children
            NotFoundError: If the parent is not stored
        """
        child_kind = parent.kind.child_kind
        if child_kind is None:
            raise InvalidOperationError(
                f"{parent.kind.display_name} items cannot have children"
            )

        child = MediaItem(title=title, kind=child_kind, sort_key=sort_key)
        async with self._store.lock:
            previous = parent.updated_at
            parent.add_child(child)
            try:
                with self._store.transaction() as tx:
                    if not tx.touch_media_item(parent):
                        raise NotFoundError(f"Media item not found: {parent.id}")
                    tx.insert_media_item(child)
            except BaseException:
                parent.remove_child(child)
                parent.updated_at = previous
                raise
        logger.info("Added %s %s to %s", child_kind.value, child.id, parent.id)
        return child


class NoteRepository:
    """
    Note data access over a shared MediaStore.

    Lists are ordered by created_at, newest first. Text is stored exactly as
    given: the repository does not trim or reject empty text.
    """

    def __init__(self, store: MediaStore):
        self._store = store

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def fetch_all(self) -> list[Note]:
        return await asyncio.to_thread(self._store.fetch_notes)

    async def fetch_notes_for(self, media_item: MediaItem) -> list[Note]:
        """Notes attached directly to the item (exact id match)."""
        return await asyncio.to_thread(self._store.fetch_notes, media_item_id=media_item.id)

    async def fetch_notes(self, matching: str) -> list[Note]:
        """Notes whose text contains the text, ignoring case."""
        logger.debug("Fetching notes matching %r", matching)
        return await asyncio.to_thread(self._store.fetch_notes, text_contains=matching)

    async def fetch_note(self, id: uuid.UUID | str) -> Optional[Note]:
        note_id = _as_uuid(id)
        if note_id is None:
            return None
        found = await asyncio.to_thread(self._store.fetch_notes, note_id=note_id)
        return found[0] if found else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(
        self,
        text: str,
        media_item: MediaItem,
        quote: Optional[str] = None,
    ) -> Note:
        """
        Persist a new note and touch the owning item's updated_at, atomically.

        An empty quote is stored as no quote.

        Raises:
            NotFoundError: If the media item is not stored
        """
        note = Note(text=text, media_item=media_item, quote=quote or None)
        async with self._store.lock:
            previous = media_item.updated_at
            media_item.touch()
            try:
                with self._store.transaction() as tx:
                    if not tx.touch_media_item(media_item):
                        raise NotFoundError(f"Media item not found: {media_item.id}")
                    tx.insert_note(note)
            except BaseException:
                media_item.updated_at = previous
                raise
            media_item.notes.append(note)
        logger.info("Created note %s for %s", note.id, media_item.id)
        return note

    async def update(
        self,
        note: Note,
        text: str,
        quote: Optional[str] = None,
    ) -> None:
        """
        Replace text and quote, set edited_at, and persist.

        The owning item's updated_at is left alone.

        Raises:
            NotFoundError: If the note is not stored
        """
        async with self._store.lock:
            previous = (note.text, note.quote, note.edited_at)
            note.update(text)
            note.quote = quote or None
            try:
                with self._store.transaction() as tx:
                    if not tx.update_note(note):
                        raise NotFoundError(f"Note not found: {note.id}")
            except BaseException:
                note.text, note.quote, note.edited_at = previous
                raise
        logger.info("Updated note %s", note.id)

    async def delete(self, note: Note) -> None:
        """
        Raises:
            NotFoundError: If the note is not stored
        """
        async with self._store.lock:
            with self._store.transaction() as tx:
                if not tx.delete_note(note.id):
                    raise NotFoundError(f"Note not found: {note.id}")
        if note.media_item is not None:
            note.media_item.notes = [n for n in note.media_item.notes if n.id != note.id]
        logger.info("Deleted note %s", note.id)
