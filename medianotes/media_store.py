"""
Media store using SQLite.

The single transactional context shared by both repositories. It provides
typed inserts and deletes, filtered fetches with ordering, and a
transaction that either commits every pending change or none of them.

Deletes cascade in the database: removing a media item removes its
descendants, their notes, and their attributes (ON DELETE CASCADE).

Reads filter in SQL, then hydrate a fresh object graph for the trees that
hold the matches (items linked to parents, children, notes, and
attributes), so callers work on snapshots. Each read uses its own
short-lived connection and sees only committed data.
"""

import asyncio
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from operator import attrgetter
from pathlib import Path
from typing import Iterator, Optional

from .attributes import MediaAttribute
from .errors import PersistenceError
from .types import MediaItem, Note, format_timestamp, parse_utc_timestamp

logger = logging.getLogger(__name__)

# Above this many seeds a read loads the whole store instead of single trees
MAX_SEED_IDS = 500


@dataclass
class GraphSnapshot:
    """Media items and notes loaded from the store, fully linked."""
    items: dict[uuid.UUID, MediaItem]
    notes: list[Note]

    @property
    def roots(self) -> list[MediaItem]:
        return [item for item in self.items.values() if item.parent is None]


def _ts(value):
    return format_timestamp(value) if value is not None else None


def _casefold(value):
    return value.casefold() if value is not None else None


def _trees_cte(seed_count: int) -> str:
    """
    WITH clause defining `tree`: the ids of every item in the trees that
    hold the seed ids, found by walking up to each root and back down.
    """
    seeds = ", ".join(["(?)"] * seed_count)
    return f"""
        WITH RECURSIVE
        seed(id) AS (VALUES {seeds}),
        up(id, parent_id) AS (
            SELECT m.id, m.parent_id FROM media_items m JOIN seed ON m.id = seed.id
            UNION
            SELECT m.id, m.parent_id FROM media_items m JOIN up ON m.id = up.parent_id
        ),
        tree(id) AS (
            SELECT id FROM up WHERE parent_id IS NULL
            UNION
            SELECT m.id FROM media_items m JOIN tree ON m.parent_id = tree.id
        )
    """


class StoreTransaction:
    """
    Write operations available inside MediaStore.transaction().

    Nothing is visible to other connections until the transaction commits.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def insert_media_item(self, item: MediaItem) -> None:
        """Insert an item row. Fails if the id already exists."""
        self._conn.execute("""
            INSERT INTO media_items
            (id, title, kind, subtitle, artwork_url, sort_key,
             created_at, updated_at, parent_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            str(item.id), item.title, item.kind.value, item.subtitle,
            item.artwork_url, item.sort_key,
            _ts(item.created_at), _ts(item.updated_at),
            str(item.parent.id) if item.parent is not None else None,
        ))

    def update_media_item(self, item: MediaItem) -> bool:
        """Write all scalar fields and the parent link. Returns False if missing."""
        cursor = self._conn.execute("""
            UPDATE media_items
            SET title = ?, kind = ?, subtitle = ?, artwork_url = ?,
                sort_key = ?, updated_at = ?, parent_id = ?
            WHERE id = ?
        """, (
            item.title, item.kind.value, item.subtitle, item.artwork_url,
            item.sort_key, _ts(item.updated_at),
            str(item.parent.id) if item.parent is not None else None,
            str(item.id),
        ))
        return cursor.rowcount > 0

    def touch_media_item(self, item: MediaItem) -> bool:
        """Write just updated_at."""
        cursor = self._conn.execute("""
            UPDATE media_items SET updated_at = ? WHERE id = ?
        """, (_ts(item.updated_at), str(item.id)))
        return cursor.rowcount > 0

    def delete_media_item(self, item_id: uuid.UUID) -> bool:
        """Delete an item; the schema cascades to descendants, notes, attributes."""
        cursor = self._conn.execute("""
            DELETE FROM media_items WHERE id = ?
        """, (str(item_id),))
        return cursor.rowcount > 0

    def replace_attributes(self, item: MediaItem) -> None:
        """Replace the stored attributes of an item with its in-memory list."""
        self._conn.execute("""
            DELETE FROM media_attributes WHERE media_item_id = ?
        """, (str(item.id),))
        self._conn.executemany("""
            INSERT INTO media_attributes (id, media_item_id, key, value, position)
            VALUES (?, ?, ?, ?, ?)
        """, [
            (str(attr.id), str(item.id), attr.key, attr.value, pos)
            for pos, attr in enumerate(item.attributes)
        ])

    def insert_note(self, note: Note) -> None:
        """Insert a note row. The owning item must already be stored."""
        self._conn.execute("""
            INSERT INTO notes
            (id, media_item_id, text, created_at, edited_at, quote, time_offset)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            str(note.id),
            str(note.media_item.id) if note.media_item is not None else None,
            note.text, _ts(note.created_at), _ts(note.edited_at),
            note.quote, note.time_offset,
        ))

    def update_note(self, note: Note) -> bool:
        cursor = self._conn.execute("""
            UPDATE notes
            SET text = ?, edited_at = ?, quote = ?, time_offset = ?
            WHERE id = ?
        """, (
            note.text, _ts(note.edited_at), note.quote, note.time_offset,
            str(note.id),
        ))
        return cursor.rowcount > 0

    def delete_note(self, note_id: uuid.UUID) -> bool:
        cursor = self._conn.execute("""
            DELETE FROM notes WHERE id = ?
        """, (str(note_id),))
        return cursor.rowcount > 0


class MediaStore:
    """
    SQLite-backed store for media items, notes, and attributes.

    One instance is shared by the media and note repositories. Writers
    serialize on ``lock`` (single writer); the transaction itself gives
    atomicity.
    """

    def __init__(self, store_path: Path):
        """
        Args:
            store_path: Path to SQLite database file
        """
        self._db_path = store_path
        self._conn: Optional[sqlite3.Connection] = None
        self.lock = asyncio.Lock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives us manual transaction control
        self._conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA busy_timeout=5000")

        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS media_items (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                kind TEXT NOT NULL,
                subtitle TEXT,
                artwork_url TEXT,
                sort_key TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                parent_id TEXT REFERENCES media_items(id) ON DELETE CASCADE
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                media_item_id TEXT NOT NULL
                    REFERENCES media_items(id) ON DELETE CASCADE,
                text TEXT NOT NULL,
                created_at TEXT NOT NULL,
                edited_at TEXT,
                quote TEXT,
                time_offset REAL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS media_attributes (
                id TEXT PRIMARY KEY,
                media_item_id TEXT NOT NULL
                    REFERENCES media_items(id) ON DELETE CASCADE,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                position INTEGER NOT NULL DEFAULT 0
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_media_items_parent
            ON media_items(parent_id)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notes_media_item
            ON notes(media_item_id)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_attributes_media_item
            ON media_attributes(media_item_id)
        """)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(
        self,
        error_class: type[PersistenceError] = PersistenceError,
    ) -> Iterator[StoreTransaction]:
        """
        Run writes atomically.

        Commits on normal exit. Any exception rolls back; storage errors are
        re-raised as ``error_class`` with the sqlite error as the cause.
        """
        if self._conn is None:
            raise error_class("Media store is closed")
        try:
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise error_class(f"Could not start transaction: {e}") from e
        try:
            yield StoreTransaction(self._conn)
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback()
            raise error_class(f"Failed to save: {e}") from e
        except BaseException:
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            # No transaction left to roll back (already ended by sqlite)
            logger.debug("Rollback skipped: %s", e)

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        """
        A private connection for one read.

        It sees only committed data and belongs to the calling thread, so
        reads can run on worker threads while writes use the main connection.
        """
        if self._conn is None:
            raise PersistenceError("Media store is closed")
        try:
            conn = sqlite3.connect(str(self._db_path))
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not open store for reading: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        try:
            yield conn
        finally:
            conn.close()

    def _query(
        self,
        sql: str,
        params: tuple = (),
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[sqlite3.Row]:
        if conn is None:
            conn = self._conn
        if conn is None:
            raise PersistenceError("Media store is closed")
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e

    def load_graph(self, seed_ids: Optional[list[str]] = None) -> GraphSnapshot:
        """
        Load items, notes, and attributes and link them together.

        Args:
            seed_ids: Only load the trees holding these items (each seed's
                root and everything under it). None loads the whole store.
        """
        with self._reader() as conn:
            return self._load_graph(conn, seed_ids)

    def _load_graph(
        self,
        conn: sqlite3.Connection,
        seed_ids: Optional[list[str]],
    ) -> GraphSnapshot:
        if seed_ids is None or len(seed_ids) > MAX_SEED_IDS:
            cte, params, scope = "", (), ""
        elif not seed_ids:
            return GraphSnapshot(items={}, notes=[])
        else:
            cte, params = _trees_cte(len(seed_ids)), tuple(seed_ids)
            scope = "WHERE {} IN (SELECT id FROM tree)"

        items: dict[uuid.UUID, MediaItem] = {}
        parent_ids: dict[uuid.UUID, str] = {}

        for row in self._query(f"""{cte}
            SELECT id, title, kind, subtitle, artwork_url, sort_key,
                   created_at, updated_at, parent_id
            FROM media_items
            {scope.format('id')}
            ORDER BY created_at
        """, params, conn):
            item = MediaItem(
                id=uuid.UUID(row["id"]),
                title=row["title"],
                kind=row["kind"],
                subtitle=row["subtitle"],
                artwork_url=row["artwork_url"],
                sort_key=row["sort_key"],
                created_at=parse_utc_timestamp(row["created_at"]),
                updated_at=parse_utc_timestamp(row["updated_at"]),
            )
            items[item.id] = item
            if row["parent_id"]:
                parent_ids[item.id] = row["parent_id"]

        # Link directly: loading must not bump updated_at the way add_child does
        for child_id, parent_id in parent_ids.items():
            parent = items.get(uuid.UUID(parent_id))
            if parent is None:
                continue
            child = items[child_id]
            child.parent = parent
            parent.children.append(child)

        for row in self._query(f"""{cte}
            SELECT id, media_item_id, key, value
            FROM media_attributes
            {scope.format('media_item_id')}
            ORDER BY position
        """, params, conn):
            owner = items.get(uuid.UUID(row["media_item_id"]))
            if owner is None:
                continue
            owner.attributes.append(MediaAttribute(
                key=row["key"],
                value=row["value"],
                media_item=owner,
                id=uuid.UUID(row["id"]),
            ))

        notes: list[Note] = []
        for row in self._query(f"""{cte}
            SELECT id, media_item_id, text, created_at, edited_at, quote, time_offset
            FROM notes
            {scope.format('media_item_id')}
            ORDER BY created_at
        """, params, conn):
            owner = items.get(uuid.UUID(row["media_item_id"]))
            note = Note(
                text=row["text"],
                media_item=owner,
                quote=row["quote"],
                time_offset=row["time_offset"],
                id=uuid.UUID(row["id"]),
                created_at=parse_utc_timestamp(row["created_at"]),
                edited_at=parse_utc_timestamp(row["edited_at"]) if row["edited_at"] else None,
            )
            if owner is not None:
                owner.notes.append(note)
            notes.append(note)

        return GraphSnapshot(items=items, notes=notes)

    def fetch_media_items(
        self,
        *,
        item_id: Optional[uuid.UUID] = None,
        roots_only: bool = False,
        title_contains: Optional[str] = None,
        order_by: str = "updated_at",
        descending: bool = True,
    ) -> list[MediaItem]:
        """
        Fetch items, ordered by one attribute.

        Filters combine with AND; title_contains ignores case. Each result is
        linked into its whole tree, so parents and aggregates are available.
        """
        clauses, params = [], []
        if item_id is not None:
            clauses.append("id = ?")
            params.append(str(item_id))
        if roots_only:
            clauses.append("parent_id IS NULL")
        if title_contains is not None:
            clauses.append("instr(casefold(title), ?) > 0")
            params.append(title_contains.casefold())

        with self._reader() as conn:
            if not clauses:
                items = list(self._load_graph(conn, None).items.values())
            else:
                rows = self._query(
                    f"SELECT id FROM media_items WHERE {' AND '.join(clauses)} ORDER BY created_at",
                    tuple(params), conn,
                )
                ids = [row["id"] for row in rows]
                snapshot = self._load_graph(conn, ids)
                items = [snapshot.items[key] for key in map(uuid.UUID, ids) if key in snapshot.items]
        items.sort(key=attrgetter(order_by), reverse=descending)
        return items

    def fetch_notes(
        self,
        *,
        note_id: Optional[uuid.UUID] = None,
        media_item_id: Optional[uuid.UUID] = None,
        text_contains: Optional[str] = None,
        order_by: str = "created_at",
        descending: bool = True,
    ) -> list[Note]:
        """
        Fetch notes, ordered by one attribute.

        Filters combine with AND; text_contains ignores case. Each note's
        item is linked into its whole tree.
        """
        clauses, params = [], []
        if note_id is not None:
            clauses.append("id = ?")
            params.append(str(note_id))
        if media_item_id is not None:
            clauses.append("media_item_id = ?")
            params.append(str(media_item_id))
        if text_contains is not None:
            clauses.append("instr(casefold(text), ?) > 0")
            params.append(text_contains.casefold())

        with self._reader() as conn:
            if not clauses:
                notes = self._load_graph(conn, None).notes
            else:
                rows = self._query(
                    f"SELECT id, media_item_id FROM notes WHERE {' AND '.join(clauses)} ORDER BY created_at",
                    tuple(params), conn,
                )
                owners = sorted({row["media_item_id"] for row in rows})
                loaded = {note.id: note for note in self._load_graph(conn, owners).notes}
                notes = [loaded[key] for key in (uuid.UUID(row["id"]) for row in rows) if key in loaded]
        notes.sort(key=attrgetter(order_by), reverse=descending)
        return notes

    def get_kind(self, item_id: uuid.UUID) -> Optional[str]:
        """Stored kind of an item, or None if the item does not exist."""
        rows = self._query("""
            SELECT kind FROM media_items WHERE id = ?
        """, (str(item_id),))
        return rows[0]["kind"] if rows else None

    def exists(self, table: str, entity_id: uuid.UUID) -> bool:
        if table not in _TABLES:
            raise ValueError(f"Unknown table: {table}")
        rows = self._query(f"SELECT 1 FROM {table} WHERE id = ?", (str(entity_id),))
        return bool(rows)

    def count(self, table: str) -> int:
        """Count rows in one of the store's tables."""
        if table not in _TABLES:
            raise ValueError(f"Unknown table: {table}")
        return self._query(f"SELECT COUNT(*) FROM {table}")[0][0]

    def stats(self) -> dict[str, int]:
        return {table: self.count(table) for table in _TABLES}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()


_TABLES = ("media_items", "notes", "media_attributes")
