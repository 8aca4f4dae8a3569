"""Tests for the media kind taxonomy and attribute keys."""

import pytest

from medianotes.attributes import MediaAttribute, MediaAttributeKey, as_key
from medianotes.kinds import MediaKind


PAIRS = [
    (MediaKind.TV_SERIES, MediaKind.EPISODE),
    (MediaKind.BOOK, MediaKind.CHAPTER),
    (MediaKind.ALBUM, MediaKind.TRACK),
    (MediaKind.LIVE_EVENT, MediaKind.PERFORMANCE),
]


class TestHierarchy:

    @pytest.mark.parametrize("parent, child", PAIRS)
    def test_child_and_parent_kinds_agree(self, parent, child):
        assert parent.child_kind is child
        assert child.parent_kind is parent
        assert parent.can_have_children

    @pytest.mark.parametrize("kind", [
        MediaKind.MOVIE, MediaKind.EPISODE, MediaKind.CHAPTER,
        MediaKind.TRACK, MediaKind.PERFORMANCE, MediaKind.OTHER,
    ])
    def test_leaf_kinds(self, kind):
        assert kind.child_kind is None
        assert not kind.can_have_children

    def test_top_level_kinds_have_no_parent_kind(self):
        for kind in (MediaKind.MOVIE, MediaKind.TV_SERIES, MediaKind.OTHER):
            assert kind.parent_kind is None

    def test_every_kind_has_display_metadata(self):
        for kind in MediaKind:
            assert kind.display_name
            assert kind.icon_name
            assert kind.accent_color_name
            assert kind.subtitle_label
            assert kind.sort_key_label


class TestDisplay:

    def test_display_names(self):
        assert MediaKind.TV_SERIES.display_name == "TV Series"
        assert MediaKind.LIVE_EVENT.display_name == "Live Event"

    def test_sort_key_labels(self):
        assert MediaKind.EPISODE.sort_key_label == "Episode Number"
        assert MediaKind.MOVIE.sort_key_label == "Sort Key"

    def test_children_share_parent_color(self):
        for parent, child in PAIRS:
            assert parent.accent_color_name == child.accent_color_name


class TestParse:

    @pytest.mark.parametrize("text", ["tv_series", "TV_SERIES", "TV Series", "tvseries", "tv-series", " tv_series "])
    def test_parse_variants(self, text):
        assert MediaKind.parse(text) is MediaKind.TV_SERIES

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown media kind"):
            MediaKind.parse("podcast")

    def test_value_round_trips(self):
        for kind in MediaKind:
            assert MediaKind(kind.value) is kind


# ---------------------------------------------------------------------------
# Attribute keys
# ---------------------------------------------------------------------------

class TestAttributeKey:

    def test_namespace_and_name(self):
        key = MediaAttributeKey.SEASON_NUMBER
        assert key.namespace == "tv"
        assert key.key_name == "seasonNumber"
        assert key.display_name == "Season"

    def test_unknown_key_is_valid(self):
        key = MediaAttributeKey("custom.mood")
        assert key.namespace == "custom"
        assert key.key_name == "mood"
        assert key.display_name == "Mood"

    def test_key_without_namespace(self):
        key = MediaAttributeKey("rating")
        assert key.namespace == "rating"
        assert key.key_name == "rating"

    def test_suggested_keys_start_with_common(self):
        keys = MediaAttributeKey.suggested_keys(MediaKind.EPISODE)
        assert keys[:3] == [MediaAttributeKey.CREATOR, MediaAttributeKey.RELEASE_YEAR, MediaAttributeKey.GENRE]
        assert MediaAttributeKey.SEASON_NUMBER in keys

    def test_suggested_keys_for_other(self):
        assert len(MediaAttributeKey.suggested_keys(MediaKind.OTHER)) == 3

    def test_as_key_accepts_strings(self):
        assert as_key("book.author") == MediaAttributeKey.AUTHOR
        assert as_key(MediaAttributeKey.AUTHOR) is MediaAttributeKey.AUTHOR


class TestAttribute:

    def test_key_normalized_to_raw_string(self):
        attr = MediaAttribute(MediaAttributeKey.CREATOR, "Vince Gilligan")
        assert attr.key == "common.creator"
        assert attr.display_name == "Creator"

    def test_convenience_constructors(self):
        assert MediaAttribute.season(2).key == "tv.seasonNumber"
        assert MediaAttribute.season(2).value == "2"
        assert MediaAttribute.year(2008).value == "2008"
        assert MediaAttribute.author("Le Guin").key == "book.author"

    def test_equality_by_id(self):
        a = MediaAttribute("x.y", "1")
        b = MediaAttribute("x.y", "1")
        assert a != b
        assert a == a
