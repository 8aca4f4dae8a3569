"""
Protocol definitions for the repository layer.

Implemented by MediaRepository / NoteRepository over the SQLite MediaStore,
and by test doubles. Consumers (search, insights, the facade) depend only on
these protocols.
"""

import uuid
from typing import Optional, Protocol, runtime_checkable

from .types import MediaItem, Note


@runtime_checkable
class MediaRepositoryProtocol(Protocol):
    """Data access for media items. Every operation may suspend."""

    async def fetch_all(self) -> list[MediaItem]: ...

    async def fetch_root_items(self) -> list[MediaItem]: ...

    async def fetch_items(self, matching: str) -> list[MediaItem]: ...

    async def fetch_item(self, id: uuid.UUID | str) -> Optional[MediaItem]: ...

    async def save(self, item: MediaItem) -> None: ...

    async def update(self, item: MediaItem) -> None: ...

    async def delete(self, item: MediaItem) -> None: ...

    async def add_child(
        self,
        parent: MediaItem,
        title: str,
        sort_key: Optional[str] = None,
    ) -> MediaItem: ...


@runtime_checkable
class NoteRepositoryProtocol(Protocol):
    """Data access for notes. Every operation may suspend."""

    async def fetch_all(self) -> list[Note]: ...

    async def fetch_notes_for(self, media_item: MediaItem) -> list[Note]: ...

    async def fetch_notes(self, matching: str) -> list[Note]: ...

    async def fetch_note(self, id: uuid.UUID | str) -> Optional[Note]: ...

    async def create(
        self,
        text: str,
        media_item: MediaItem,
        quote: Optional[str] = None,
    ) -> Note: ...

    async def update(
        self,
        note: Note,
        text: str,
        quote: Optional[str] = None,
    ) -> None: ...

    async def delete(self, note: Note) -> None: ...
