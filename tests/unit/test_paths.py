"""Tests for dot-path access into session documents."""

import pytest

from lifepath.sessions.paths import (
    MISSING,
    append_to_collection,
    get_nested,
    latest,
    set_nested,
)


class TestGetSetNested:
    """Tests for get_nested / set_nested."""

    def test_set_then_get_deep_path(self) -> None:
        """Test that a value set at x.y.z reads back."""
        doc: dict = {}
        set_nested(doc, "x.y.z", 5)

        assert get_nested(doc, "x.y.z") == 5
        assert doc == {"x": {"y": {"z": 5}}}

    def test_unset_deep_path_returns_missing(self) -> None:
        """Test that an unset path gives the absent-marker without raising."""
        assert get_nested({}, "a.b.c") is MISSING
        assert get_nested({"a": None}, "a.b") is MISSING
        assert get_nested({"a": "text"}, "a.b") is MISSING
        assert get_nested({"a": [1, 2]}, "a.b") is MISSING

    def test_stored_none_is_not_missing(self) -> None:
        """Test that an explicit None is a present value."""
        assert get_nested({"a": None}, "a") is None

    def test_missing_is_falsy(self) -> None:
        assert not MISSING
        assert repr(MISSING) == "MISSING"

    def test_set_replaces_non_dict_intermediate(self) -> None:
        """Test that set_nested creates structure through scalars."""
        doc = {"a": 1}
        set_nested(doc, "a.b", 2)

        assert doc == {"a": {"b": 2}}

    def test_set_keeps_sibling_keys(self) -> None:
        doc = {"a": {"keep": True}}
        set_nested(doc, "a.new", 1)

        assert doc == {"a": {"keep": True, "new": 1}}

    @pytest.mark.parametrize("path", ["", "a..b", ".a", "a."])
    def test_invalid_paths_raise(self, path: str) -> None:
        with pytest.raises(ValueError):
            get_nested({}, path)


class TestCollections:
    """Tests for append_to_collection and latest."""

    def test_append_initializes_collection(self) -> None:
        doc: dict = {}
        append_to_collection(doc, "lifelines", {"id": "l1"})

        assert doc["lifelines"] == [{"id": "l1"}]

    def test_append_preserves_order(self) -> None:
        doc = {"lifelines": [{"id": "l1"}]}
        append_to_collection(doc, "lifelines", {"id": "l2"})

        assert [item["id"] for item in doc["lifelines"]] == ["l1", "l2"]

    def test_latest(self) -> None:
        assert latest({"items": [1, 2, 3]}, "items") == 3
        assert latest({"items": []}, "items") is None
        assert latest({}, "items") is None
