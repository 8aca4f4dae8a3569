"""
Data types for media items and notes.

MediaItem forms a tree: parent and children are kept consistent by funnelling
every link through MediaItem.add_child(). Notes and attributes are owned by
exactly one item. Equality is by id, so snapshots of the same entity loaded
at different times compare equal.
"""

import re
import unicodedata
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from .attributes import KeyLike, MediaAttribute, MediaAttributeKey, as_key
from .errors import InvalidOperationError
from .kinds import MediaKind

# Characters kept in a note preview
PREVIEW_LENGTH = 100

# Sentinel for "no notes" when ordering by recency
DISTANT_PAST = datetime(1, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime.

    All timestamps in medianotes are UTC. Microsecond precision is kept so
    that creation order is preserved for items created in quick succession.
    """
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Canonical storage format: ISO 8601 with UTC offset."""
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Accepts a trailing 'Z' as well as an explicit offset; naive values are
    taken to be UTC.
    """
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


_DIGITS_RE = re.compile(r"(\d+)")


def collation_key(text: str) -> tuple[str, str]:
    """
    Case- and accent-insensitive sort key: "Éclair" sorts with "eclair",
    before "Zebra".

    Strings that differ only in accents fall back to comparing the
    case-folded text, so the order stays total.
    """
    folded = text.casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base, folded


def natural_sort_key(value: str) -> tuple:
    """
    Sort key giving natural order: "2" < "10", "S01E2" < "S01E10".

    Text runs compare ignoring case and accents; digit runs compare
    numerically. Keys equal on that basis fall back to the case-folded text.
    """
    runs = []
    for i, part in enumerate(_DIGITS_RE.split(value)):
        if i % 2:
            runs.append((0, int(part), ""))
        elif part:
            runs.append((1, 0, collation_key(part)[0]))
    return tuple(runs), value.casefold()


@dataclass(eq=False)
class MediaItem:
    """
    Any media the user can attach notes to.

    Relationships:
        parent: Containing item (series for an episode), None for roots
        children: Contained items, linked only via add_child()
        notes: Notes attached directly to this item
        attributes: Flexible key/value metadata

    The kind is fixed at creation; the repository refuses to persist a change.
    """
    title: str
    kind: MediaKind
    subtitle: Optional[str] = None
    artwork_url: Optional[str] = None
    sort_key: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    parent: Optional["MediaItem"] = field(default=None, repr=False)
    children: list["MediaItem"] = field(default_factory=list, repr=False)
    notes: list["Note"] = field(default_factory=list, repr=False)
    attributes: list[MediaAttribute] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not isinstance(self.kind, MediaKind):
            self.kind = MediaKind(self.kind)
        if self.updated_at is None:
            self.updated_at = self.created_at

    def __eq__(self, other):
        if not isinstance(other, MediaItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def touch(self) -> None:
        """Refresh updated_at."""
        self.updated_at = utc_now()

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    @property
    def note_count(self) -> int:
        """Number of notes attached directly to this item."""
        return len(self.notes)

    @property
    def total_note_count(self) -> int:
        """Notes on this item plus all descendants."""
        return len(self.notes) + sum(child.total_note_count for child in self.children)

    @property
    def last_note_date(self) -> Optional[datetime]:
        """Creation date of the newest direct note, or None."""
        if not self.notes:
            return None
        return max(note.created_at for note in self.notes)

    @property
    def all_notes(self) -> list["Note"]:
        """Own notes and all descendants' notes, newest first."""
        result = list(self.notes)
        for child in self.children:
            result.extend(child.all_notes)
        return sorted(result, key=lambda n: n.created_at, reverse=True)

    @property
    def sorted_children(self) -> list["MediaItem"]:
        """
        Children in display order.

        Children with a sort key come first, in natural order (ties by
        creation time). Children without one follow, oldest first.
        """
        keyed = [c for c in self.children if c.sort_key is not None]
        unkeyed = [c for c in self.children if c.sort_key is None]
        keyed.sort(key=lambda c: (natural_sort_key(c.sort_key), c.created_at))
        unkeyed.sort(key=lambda c: c.created_at)
        return keyed + unkeyed

    @property
    def ancestors(self) -> list["MediaItem"]:
        """Parent chain, nearest first."""
        chain = []
        node = self.parent
        while node is not None:
            chain.append(node)
            node = node.parent
        return chain

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    @property
    def display_subtitle(self) -> Optional[str]:
        """Subtitle, or one derived from attributes for the item's kind."""
        if self.subtitle:
            return self.subtitle

        K = MediaAttributeKey
        kind = self.kind
        if kind is MediaKind.EPISODE:
            season = self.get_attribute(K.SEASON_NUMBER)
            episode = self.get_attribute(K.EPISODE_NUMBER)
            if season is not None and episode is not None:
                return f"S{season}E{episode}"
        elif kind is MediaKind.TRACK:
            return self.get_attribute(K.ARTIST)
        elif kind in (MediaKind.BOOK, MediaKind.CHAPTER):
            return self.get_attribute(K.AUTHOR)
        elif kind in (MediaKind.LIVE_EVENT, MediaKind.PERFORMANCE):
            venue = self.get_attribute(K.VENUE)
            city = self.get_attribute(K.CITY)
            if venue is not None and city is not None:
                return f"{venue}, {city}"
        return None

    @property
    def full_path_title(self) -> str:
        """Title prefixed by the parent's, e.g. "Breaking Bad → Ozymandias"."""
        if self.parent is not None:
            return f"{self.parent.title} → {self.title}"
        return self.title

    @property
    def searchable_text(self) -> str:
        parts = [self.title]
        if self.subtitle:
            parts.append(self.subtitle)
        if self.parent is not None:
            parts.append(self.parent.title)
        parts.extend(attr.value for attr in self.attributes)
        return " ".join(parts)

    # -------------------------------------------------------------------------
    # Attributes
    # -------------------------------------------------------------------------

    def get_attribute(self, key: KeyLike) -> Optional[str]:
        """Value of the first attribute with this key, or None."""
        raw = as_key(key).raw_value
        for attr in self.attributes:
            if attr.key == raw:
                return attr.value
        return None

    def set_attribute(self, key: KeyLike, value: Optional[str]) -> None:
        """
        Upsert an attribute by key. A value of None removes it.

        Only the first attribute with the key is replaced; duplicates created
        by appending directly are left as they are.
        """
        raw = as_key(key).raw_value
        self.touch()
        if value is None:
            self.attributes = [a for a in self.attributes if a.key != raw]
            return
        for attr in self.attributes:
            if attr.key == raw:
                attr.value = value
                return
        self.attributes.append(MediaAttribute(raw, value, self))

    def remove_attribute(self, key: KeyLike) -> None:
        raw = as_key(key).raw_value
        self.attributes = [a for a in self.attributes if a.key != raw]
        self.touch()

    # -------------------------------------------------------------------------
    # Children
    # -------------------------------------------------------------------------

    def add_child(self, child: "MediaItem") -> None:
        """
        Link a child to this item, updating both sides.

        A child already linked elsewhere is detached from its old parent.

        Raises:
            InvalidOperationError: If the link would create a cycle
        """
        if child is self or child in self.ancestors:
            raise InvalidOperationError(
                f"Cannot add {child.title!r} as a child of {self.title!r}: would create a cycle"
            )
        if child.parent is not None and child.parent is not self:
            child.parent.children = [c for c in child.parent.children if c.id != child.id]
        child.parent = self
        if not any(c.id == child.id for c in self.children):
            self.children.append(child)
        self.touch()

    def remove_child(self, child: "MediaItem") -> None:
        """Unlink a child from this item, updating both sides."""
        self.children = [c for c in self.children if c.id != child.id]
        if child.parent is self:
            child.parent = None

    def create_child(self, title: str, sort_key: Optional[str] = None) -> Optional["MediaItem"]:
        """Create and link a child of the kind this item holds; None for leaf kinds."""
        child_kind = self.kind.child_kind
        if child_kind is None:
            return None
        child = MediaItem(title=title, kind=child_kind, sort_key=sort_key)
        self.add_child(child)
        return child

    def walk(self):
        """Yield this item and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(eq=False)
class Note:
    """
    A moment of reflection attached to one media item.

    Text is stored exactly as given. Creation leaves edited_at unset; every
    text, quote, or time offset change sets it.
    """
    text: str
    media_item: Optional[MediaItem] = field(default=None, repr=False)
    quote: Optional[str] = None
    time_offset: Optional[float] = None  # seconds into the media
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=utc_now)
    edited_at: Optional[datetime] = None

    def __eq__(self, other):
        if not isinstance(other, Note):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def was_edited(self) -> bool:
        return self.edited_at is not None

    @property
    def last_modified(self) -> datetime:
        return self.edited_at or self.created_at

    @property
    def preview(self) -> str:
        """First 100 characters, with an ellipsis when truncated."""
        if len(self.text) <= PREVIEW_LENGTH:
            return self.text
        return self.text[:PREVIEW_LENGTH] + "…"

    @property
    def searchable_text(self) -> str:
        if self.quote:
            return f"{self.text} {self.quote}"
        return self.text

    @property
    def formatted_time_offset(self) -> Optional[str]:
        """Time offset as "H:MM:SS" or "M:SS"."""
        if self.time_offset is None:
            return None
        total = int(self.time_offset)
        hours, rem = divmod(total, 3600)
        minutes, seconds = divmod(rem, 60)
        if hours > 0:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"

    def update(self, text: str) -> None:
        """Replace the text and mark the note edited."""
        self.text = text
        self.edited_at = utc_now()

    def set_quote(self, quote: Optional[str]) -> None:
        self.quote = quote
        self.edited_at = utc_now()

    def set_time_offset(self, offset: Optional[float]) -> None:
        self.time_offset = offset
        self.edited_at = utc_now()

    def formatted_date(self, relative_to: Optional[datetime] = None) -> str:
        """Creation date for display, relative to a reference time (default now).

        Same day → "Today, 3:04 PM"; previous day → "Yesterday, 3:04 PM";
        same year → "Mar 5, 3:04 PM"; otherwise "Mar 5, 2024".
        """
        ref = (relative_to or utc_now()).astimezone()
        created = self.created_at.astimezone()
        if created.date() == ref.date():
            return f"Today, {_clock(created)}"
        if created.date() == (ref - timedelta(days=1)).date():
            return f"Yesterday, {_clock(created)}"
        if created.year == ref.year:
            return f"{created:%b} {created.day}, {_clock(created)}"
        return f"{created:%b} {created.day}, {created.year}"

    def short_date(self, relative_to: Optional[datetime] = None) -> str:
        """Compact creation date for lists."""
        ref = (relative_to or utc_now()).astimezone()
        created = self.created_at.astimezone()
        if created.date() == ref.date():
            return _clock(created)
        if created.date() == (ref - timedelta(days=1)).date():
            return "Yesterday"
        if created.isocalendar()[:2] == ref.isocalendar()[:2]:
            return f"{created:%A}"
        if created.year == ref.year:
            return f"{created:%b} {created.day}"
        return f"{created:%b} {created.day}, {created.year}"


def _clock(dt: datetime) -> str:
    """12-hour clock without a leading zero: "3:04 PM"."""
    hour = dt.hour % 12 or 12
    return f"{hour}:{dt:%M %p}"
