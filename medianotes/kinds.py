"""
Media kind taxonomy.

A closed set of kinds. Hierarchy is a lookup table rather than behaviour on
the kind itself: a series holds episodes, a book holds chapters, an album
holds tracks, a live event holds performances. Everything else is a leaf.
"""

from enum import Enum
from typing import Optional


class MediaKind(str, Enum):
    """The type of a media item. Values are the persisted representation."""

    MOVIE = "movie"
    TV_SERIES = "tv_series"
    EPISODE = "episode"
    BOOK = "book"
    CHAPTER = "chapter"
    ALBUM = "album"
    TRACK = "track"
    LIVE_EVENT = "live_event"
    PERFORMANCE = "performance"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def icon_name(self) -> str:
        """Icon identifier for this kind."""
        return _ICON_NAMES[self]

    @property
    def accent_color_name(self) -> str:
        return _ACCENT_COLORS[self]

    @property
    def child_kind(self) -> Optional["MediaKind"]:
        """Kind that children of this kind must have, or None for leaves."""
        return _CHILD_KINDS.get(self)

    @property
    def parent_kind(self) -> Optional["MediaKind"]:
        """Kind a parent of this kind must have, or None for top-level kinds."""
        return _PARENT_KINDS.get(self)

    @property
    def can_have_children(self) -> bool:
        return self in _CHILD_KINDS

    @property
    def subtitle_label(self) -> str:
        """Label for the free-form subtitle field when entering this kind."""
        return _SUBTITLE_LABELS[self]

    @property
    def sort_key_label(self) -> str:
        """Label for the sort key field when entering this kind."""
        return _SORT_KEY_LABELS.get(self, "Sort Key")

    @classmethod
    def parse(cls, value: str) -> "MediaKind":
        """
        Parse a kind from its value, enum name, or display name.

        Accepts "tv_series", "TV_SERIES", "tvseries", "TV Series", "tv-series".

        Raises:
            ValueError: If no kind matches
        """
        norm = value.strip().lower().replace("-", "_").replace(" ", "_")
        for kind in cls:
            if norm in (kind.value, kind.value.replace("_", "")):
                return kind
        raise ValueError(
            f"Unknown media kind: {value!r}. "
            f"Valid kinds: {', '.join(k.value for k in cls)}"
        )


_DISPLAY_NAMES = {
    MediaKind.MOVIE: "Movie",
    MediaKind.TV_SERIES: "TV Series",
    MediaKind.EPISODE: "Episode",
    MediaKind.BOOK: "Book",
    MediaKind.CHAPTER: "Chapter",
    MediaKind.ALBUM: "Album",
    MediaKind.TRACK: "Track",
    MediaKind.LIVE_EVENT: "Live Event",
    MediaKind.PERFORMANCE: "Performance",
    MediaKind.OTHER: "Other",
}

_ICON_NAMES = {
    MediaKind.MOVIE: "film",
    MediaKind.TV_SERIES: "tv",
    MediaKind.EPISODE: "play.tv",
    MediaKind.BOOK: "book.closed",
    MediaKind.CHAPTER: "bookmark",
    MediaKind.ALBUM: "opticaldisc",
    MediaKind.TRACK: "music.note",
    MediaKind.LIVE_EVENT: "ticket",
    MediaKind.PERFORMANCE: "theatermasks",
    MediaKind.OTHER: "square.grid.2x2",
}

_ACCENT_COLORS = {
    MediaKind.MOVIE: "MovieColor",
    MediaKind.TV_SERIES: "TVColor",
    MediaKind.EPISODE: "TVColor",
    MediaKind.BOOK: "BookColor",
    MediaKind.CHAPTER: "BookColor",
    MediaKind.ALBUM: "MusicColor",
    MediaKind.TRACK: "MusicColor",
    MediaKind.LIVE_EVENT: "EventColor",
    MediaKind.PERFORMANCE: "EventColor",
    MediaKind.OTHER: "AccentColor",
}

# The only valid parent → child pairings
_CHILD_KINDS = {
    MediaKind.TV_SERIES: MediaKind.EPISODE,
    MediaKind.BOOK: MediaKind.CHAPTER,
    MediaKind.ALBUM: MediaKind.TRACK,
    MediaKind.LIVE_EVENT: MediaKind.PERFORMANCE,
}

_PARENT_KINDS = {child: parent for parent, child in _CHILD_KINDS.items()}

_SUBTITLE_LABELS = {
    MediaKind.MOVIE: "Director",
    MediaKind.TV_SERIES: "Creator / Showrunner",
    MediaKind.EPISODE: "Creator / Showrunner",
    MediaKind.BOOK: "Author",
    MediaKind.CHAPTER: "Author",
    MediaKind.ALBUM: "Artist",
    MediaKind.TRACK: "Artist",
    MediaKind.LIVE_EVENT: "Venue",
    MediaKind.PERFORMANCE: "Venue",
    MediaKind.OTHER: "Subtitle",
}

_SORT_KEY_LABELS = {
    MediaKind.EPISODE: "Episode Number",
    MediaKind.CHAPTER: "Chapter Number",
    MediaKind.TRACK: "Track Number",
    MediaKind.PERFORMANCE: "Date",
}
