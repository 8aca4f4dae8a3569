"""
Namespaced key/value metadata attached to media items.

Keys are "<namespace>.<name>" strings (e.g. "tv.seasonNumber"). The set of
keys is open: any key can be stored. The well-known keys below exist for
display names and per-kind suggestions only.
"""

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from .kinds import MediaKind

if TYPE_CHECKING:
    from .types import MediaItem


@dataclass(frozen=True)
class MediaAttributeKey:
    """An attribute key. Unknown keys are as valid as the well-known ones."""

    raw_value: str

    @property
    def namespace(self) -> str:
        """The namespace prefix (e.g. "common", "tv", "book")."""
        return self.raw_value.split(".", 1)[0]

    @property
    def key_name(self) -> str:
        """The key name without namespace."""
        parts = self.raw_value.split(".", 1)
        return parts[1] if len(parts) > 1 else self.raw_value

    @property
    def display_name(self) -> str:
        """Human-readable name; unknown keys get their capitalized name."""
        known = _DISPLAY_NAMES.get(self.raw_value)
        if known is not None:
            return known
        return " ".join(word.capitalize() for word in self.key_name.split())

    @staticmethod
    def suggested_keys(kind: MediaKind) -> list["MediaAttributeKey"]:
        """Keys worth offering when describing an item of the given kind."""
        K = MediaAttributeKey
        keys = [K.CREATOR, K.RELEASE_YEAR, K.GENRE]
        keys.extend(_SUGGESTED_BY_KIND.get(kind, ()))
        return keys

    def __str__(self) -> str:
        return self.raw_value


# Common
MediaAttributeKey.CREATOR = MediaAttributeKey("common.creator")
MediaAttributeKey.RELEASE_YEAR = MediaAttributeKey("common.releaseYear")
MediaAttributeKey.LANGUAGE = MediaAttributeKey("common.language")
MediaAttributeKey.GENRE = MediaAttributeKey("common.genre")
MediaAttributeKey.RUNTIME = MediaAttributeKey("common.runtime")
# TV
MediaAttributeKey.SEASON_NUMBER = MediaAttributeKey("tv.seasonNumber")
MediaAttributeKey.EPISODE_NUMBER = MediaAttributeKey("tv.episodeNumber")
MediaAttributeKey.SERIES_TITLE = MediaAttributeKey("tv.seriesTitle")
MediaAttributeKey.NETWORK = MediaAttributeKey("tv.network")
# Books
MediaAttributeKey.AUTHOR = MediaAttributeKey("book.author")
MediaAttributeKey.ISBN = MediaAttributeKey("book.isbn")
MediaAttributeKey.PUBLISHER = MediaAttributeKey("book.publisher")
MediaAttributeKey.PAGE_COUNT = MediaAttributeKey("book.pageCount")
# Music
MediaAttributeKey.ARTIST = MediaAttributeKey("music.artist")
MediaAttributeKey.ALBUM_TITLE = MediaAttributeKey("music.albumTitle")
MediaAttributeKey.TRACK_NUMBER = MediaAttributeKey("music.trackNumber")
MediaAttributeKey.LABEL = MediaAttributeKey("music.label")
# Events
MediaAttributeKey.VENUE = MediaAttributeKey("event.venue")
MediaAttributeKey.CITY = MediaAttributeKey("event.city")
MediaAttributeKey.EVENT_DATE = MediaAttributeKey("event.date")
MediaAttributeKey.PERFORMERS = MediaAttributeKey("event.performers")


_DISPLAY_NAMES = {
    "common.creator": "Creator",
    "common.releaseYear": "Release Year",
    "common.language": "Language",
    "common.genre": "Genre",
    "common.runtime": "Runtime",
    "tv.seasonNumber": "Season",
    "tv.episodeNumber": "Episode",
    "tv.seriesTitle": "Series",
    "tv.network": "Network",
    "book.author": "Author",
    "book.isbn": "ISBN",
    "book.publisher": "Publisher",
    "book.pageCount": "Pages",
    "music.artist": "Artist",
    "music.albumTitle": "Album",
    "music.trackNumber": "Track #",
    "music.label": "Label",
    "event.venue": "Venue",
    "event.city": "City",
    "event.date": "Date",
    "event.performers": "Performers",
}

_K = MediaAttributeKey
_BOOK_KEYS = (_K.AUTHOR, _K.ISBN, _K.PUBLISHER, _K.PAGE_COUNT)
_EVENT_KEYS = (_K.VENUE, _K.CITY, _K.EVENT_DATE, _K.PERFORMERS)
_SUGGESTED_BY_KIND = {
    MediaKind.MOVIE: (_K.RUNTIME, _K.LANGUAGE),
    MediaKind.TV_SERIES: (_K.NETWORK, _K.LANGUAGE),
    MediaKind.EPISODE: (_K.SEASON_NUMBER, _K.EPISODE_NUMBER, _K.SERIES_TITLE, _K.RUNTIME),
    MediaKind.BOOK: _BOOK_KEYS,
    MediaKind.CHAPTER: _BOOK_KEYS,
    MediaKind.ALBUM: (_K.ARTIST, _K.LABEL),
    MediaKind.TRACK: (_K.ARTIST, _K.ALBUM_TITLE, _K.TRACK_NUMBER),
    MediaKind.LIVE_EVENT: _EVENT_KEYS,
    MediaKind.PERFORMANCE: _EVENT_KEYS,
}
del _K


KeyLike = Union[MediaAttributeKey, str]


def as_key(key: KeyLike) -> MediaAttributeKey:
    """Accept either a MediaAttributeKey or its raw string."""
    if isinstance(key, MediaAttributeKey):
        return key
    return MediaAttributeKey(key)


@dataclass(eq=False)
class MediaAttribute:
    """
    A single key/value pair owned by one media item.

    Values are always strings. Equality is by id, so two attributes with the
    same key are distinct entries.
    """

    key: str
    value: str
    media_item: Optional["MediaItem"] = field(default=None, repr=False)
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if isinstance(self.key, MediaAttributeKey):
            self.key = self.key.raw_value

    @property
    def attribute_key(self) -> MediaAttributeKey:
        return MediaAttributeKey(self.key)

    @property
    def display_name(self) -> str:
        return self.attribute_key.display_name

    def __eq__(self, other):
        if not isinstance(other, MediaAttribute):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    # Convenience constructors

    @classmethod
    def season(cls, number: int, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.SEASON_NUMBER, str(number), media_item)

    @classmethod
    def episode(cls, number: int, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.EPISODE_NUMBER, str(number), media_item)

    @classmethod
    def year(cls, year: int, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.RELEASE_YEAR, str(year), media_item)

    @classmethod
    def creator(cls, name: str, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.CREATOR, name, media_item)

    @classmethod
    def author(cls, name: str, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.AUTHOR, name, media_item)

    @classmethod
    def artist(cls, name: str, media_item: Optional["MediaItem"] = None) -> "MediaAttribute":
        return cls(MediaAttributeKey.ARTIST, name, media_item)
