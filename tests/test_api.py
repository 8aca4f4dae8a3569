"""Tests for the MediaNotes facade."""

import logging
import uuid

import pytest

from medianotes.api import MediaNotes
from medianotes.config import ModelConfig, StoreConfig
from medianotes.errors import InvalidOperationError, NotFoundError
from medianotes.kinds import MediaKind
from medianotes.library import LibrarySortOrder
from medianotes.providers.llm import OllamaRuntime
from medianotes.types import MediaItem


class TestLifecycle:

    def test_opens_store_and_writes_config(self, tmp_path):
        store = tmp_path / "store"
        with MediaNotes(store) as mn:
            assert mn.store_path == store.resolve()
            assert (store / "medianotes.toml").exists()
            assert (store / "medianotes.db").exists()
            assert mn.stats() == {"media_items": 0, "notes": 0, "media_attributes": 0}

    def test_runtime_created_lazily_from_config(self, tmp_path):
        with MediaNotes(tmp_path) as mn:
            assert mn._runtime is None
            assert isinstance(mn.runtime, OllamaRuntime)

    def test_close_detaches_ops_log(self, tmp_path):
        mn = MediaNotes(tmp_path)
        handler = mn._ops_log_handler
        assert handler in logging.getLogger("medianotes").handlers
        mn.close()
        assert handler not in logging.getLogger("medianotes").handlers

    def test_injected_repositories(self, tmp_path, media_repo, note_repo):
        config = StoreConfig(path=tmp_path, model=ModelConfig("none"))
        with MediaNotes(config=config, media_repository=media_repo, note_repository=note_repo) as mn:
            assert mn.media is media_repo
            assert mn.notes is note_repo
            assert mn.stats() == {}


# ---------------------------------------------------------------------------
# Media items
# ---------------------------------------------------------------------------

class TestCreateMediaItem:

    @pytest.mark.asyncio
    async def test_title_trimmed(self, mn):
        item = await mn.create_media_item("  Heat  ", MediaKind.MOVIE)
        assert item.title == "Heat"
        assert (await mn.get_media_item(item.id)).title == "Heat"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   ", "\n"])
    async def test_blank_title_rejected(self, mn, title):
        with pytest.raises(InvalidOperationError):
            await mn.create_media_item(title, MediaKind.MOVIE)
        assert await mn.media.fetch_all() == []

    @pytest.mark.asyncio
    async def test_kind_parsed_from_text(self, mn):
        item = await mn.create_media_item("Severance", "TV Series")
        assert item.kind is MediaKind.TV_SERIES

    @pytest.mark.asyncio
    async def test_unknown_kind(self, mn):
        with pytest.raises(ValueError):
            await mn.create_media_item("x", "podcast")

    @pytest.mark.asyncio
    async def test_attributes_blank_values_skipped(self, mn):
        item = await mn.create_media_item(
            "Dune", MediaKind.BOOK,
            subtitle="  ", attributes={"book.author": "Frank Herbert", "book.isbn": "  "},
        )
        loaded = await mn.get_media_item(item.id)
        assert loaded.subtitle is None
        assert loaded.get_attribute("book.author") == "Frank Herbert"
        assert loaded.get_attribute("book.isbn") is None

    @pytest.mark.asyncio
    async def test_with_parent(self, mn):
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        ep = await mn.create_media_item("Ozymandias", MediaKind.EPISODE, parent=show, sort_key="S05E14")
        assert ep.parent is show
        loaded = await mn.get_media_item(show.id)
        assert [c.title for c in loaded.children] == ["Ozymandias"]

    @pytest.mark.asyncio
    async def test_wrong_kind_for_parent(self, mn):
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        with pytest.raises(InvalidOperationError):
            await mn.create_media_item("Chapter 1", MediaKind.CHAPTER, parent=show)
        assert show.children == []


class TestEditMediaItem:

    @pytest.mark.asyncio
    async def test_add_child(self, mn):
        album = await mn.create_media_item("Kind of Blue", MediaKind.ALBUM)
        track = await mn.add_child(album, " So What ", " 1 ")
        assert track.kind is MediaKind.TRACK
        assert track.title == "So What"
        assert track.sort_key == "1"

    @pytest.mark.asyncio
    async def test_add_child_blank_title(self, mn):
        album = await mn.create_media_item("Kind of Blue", MediaKind.ALBUM)
        with pytest.raises(InvalidOperationError):
            await mn.add_child(album, " ")

    @pytest.mark.asyncio
    async def test_add_child_to_leaf(self, mn):
        movie = await mn.create_media_item("Heat", MediaKind.MOVIE)
        with pytest.raises(InvalidOperationError):
            await mn.add_child(movie, "Scene")

    @pytest.mark.asyncio
    async def test_update_title(self, mn):
        item = await mn.create_media_item("Heta", MediaKind.MOVIE)
        await mn.update_title(item, "Heat")
        assert (await mn.get_media_item(item.id)).title == "Heat"

    @pytest.mark.asyncio
    async def test_update_title_failure_restores(self, mn):
        ghost = MediaItem("Ghost", MediaKind.MOVIE)
        with pytest.raises(NotFoundError):
            await mn.update_title(ghost, "Renamed")
        assert ghost.title == "Ghost"

    @pytest.mark.asyncio
    async def test_set_attributes_upserts_and_removes(self, mn):
        item = await mn.create_media_item("Dune", MediaKind.BOOK, attributes={"book.author": "F. Herbert"})
        await mn.set_attributes(item, {"book.author": "Frank Herbert", "book.pageCount": "412"})
        await mn.set_attributes(item, {"book.pageCount": ""})
        loaded = await mn.get_media_item(item.id)
        assert loaded.get_attribute("book.author") == "Frank Herbert"
        assert loaded.get_attribute("book.pageCount") is None

    @pytest.mark.asyncio
    async def test_delete(self, mn):
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        pilot = await mn.add_child(show, "Pilot")
        await mn.create_note(pilot, "Great pilot")
        await mn.delete_media_item(show)
        assert mn.stats() == {"media_items": 0, "notes": 0, "media_attributes": 0}


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

class TestNotes:

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        with pytest.raises(InvalidOperationError):
            await mn.create_note(item, "   ")
        assert await mn.notes.fetch_all() == []

    @pytest.mark.asyncio
    async def test_text_and_quote_trimmed(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        note = await mn.create_note(item, "  Tense  ", "  ")
        assert note.text == "Tense"
        assert note.quote is None

    @pytest.mark.asyncio
    async def test_update_note(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        note = await mn.create_note(item, "draft")
        await mn.update_note(note, "final", "quote")
        loaded = await mn.get_note(note.id)
        assert loaded.text == "final"
        assert loaded.quote == "quote"
        assert loaded.was_edited

    @pytest.mark.asyncio
    async def test_update_note_blank_rejected(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        note = await mn.create_note(item, "keep me")
        with pytest.raises(InvalidOperationError):
            await mn.update_note(note, "")
        assert note.text == "keep me"
        assert not note.was_edited

    @pytest.mark.asyncio
    async def test_delete_note(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        note = await mn.create_note(item, "bye")
        await mn.delete_note(note)
        with pytest.raises(NotFoundError):
            await mn.get_note(note.id)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

class TestLookup:

    @pytest.mark.asyncio
    async def test_prefix(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        assert await mn.get_media_item(str(item.id)[:8]) == item
        assert await mn.get_media_item(str(item.id)[:4].upper()) == item

    @pytest.mark.asyncio
    async def test_prefix_too_short(self, mn):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        with pytest.raises(NotFoundError):
            await mn.get_media_item(str(item.id)[:3])

    @pytest.mark.asyncio
    async def test_ambiguous_prefix(self, mn):
        for suffix in ("1", "2"):
            await mn.media.save(MediaItem(
                f"Movie {suffix}", MediaKind.MOVIE,
                id=uuid.UUID(f"abcd0000-0000-0000-0000-00000000000{suffix}"),
            ))
        with pytest.raises(InvalidOperationError, match="matches 2"):
            await mn.get_media_item("abcd")
        assert (await mn.get_media_item("abcd0000-0000-0000-0000-000000000002")).title == "Movie 2"

    @pytest.mark.asyncio
    async def test_not_found(self, mn):
        with pytest.raises(NotFoundError):
            await mn.get_media_item(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await mn.get_note("ffffffff")


# ---------------------------------------------------------------------------
# Library, search, picker, insights
# ---------------------------------------------------------------------------

class TestViews:

    @pytest.mark.asyncio
    async def test_library_and_active_kinds(self, mn):
        heat = await mn.create_media_item("Heat", MediaKind.MOVIE)
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        await mn.create_media_item("Unread", MediaKind.BOOK)
        pilot = await mn.add_child(show, "Pilot")
        await mn.create_note(heat, "Tense")
        await mn.create_note(pilot, "Great pilot")

        titles = [i.title for i in await mn.library(order=LibrarySortOrder.ALPHABETICAL)]
        assert titles == ["Breaking Bad", "Heat"]
        assert [i.title for i in await mn.library(MediaKind.MOVIE)] == ["Heat"]
        assert await mn.active_kinds() == [MediaKind.MOVIE, MediaKind.TV_SERIES]

    @pytest.mark.asyncio
    async def test_search(self, mn):
        item = await mn.create_media_item("Inception", MediaKind.MOVIE)
        await mn.create_note(item, "This movie is amazing!")
        results = await mn.search("AMAZING")
        assert results.media_items == []
        assert [n.text for n in results.notes] == ["This movie is amazing!"]
        assert not (await mn.search("  ")).searched

    @pytest.mark.asyncio
    async def test_picker_and_recently_used(self, mn):
        show = await mn.create_media_item("Breaking Bad", MediaKind.TV_SERIES)
        await mn.add_child(show, "Pilot")
        await mn.create_media_item("Heat", MediaKind.MOVIE)
        assert sorted(i.title for i in await mn.picker("bad")) == ["Breaking Bad", "Pilot"]
        assert sorted(i.title for i in await mn.recently_used()) == ["Breaking Bad", "Heat"]

    @pytest.mark.asyncio
    async def test_insights_uses_runtime(self, mn, fake_runtime):
        item = await mn.create_media_item("Heat", MediaKind.MOVIE)
        orchestrator = mn.insights(item)
        assert orchestrator.navigation_title == "Insights for Heat"
        await orchestrator.generate_insights()
        assert orchestrator.view_state.is_ready
        assert fake_runtime.respond_calls == 1
        assert str(item.id) in fake_runtime.last_prompt

    @pytest.mark.asyncio
    async def test_each_orchestrator_is_fresh(self, mn, fake_runtime):
        await mn.insights().initialize()
        await mn.insights().initialize()
        assert fake_runtime.availability_calls == 2
