"""
Tests for the catalog model.

Covers:
- flatten / unflatten and their failure modes
- diff classification with provenance
- merging translation and review results
- catalog, provenance and import file I/O
"""

import json

import pytest

from i18n_app_translator.catalog import (
    apply_reviews,
    diff,
    flatten,
    load_catalog,
    load_provenance,
    load_target,
    merge_translations,
    provenance_path,
    read_translation_import,
    save_catalog,
    save_provenance,
    unflatten,
)
from i18n_app_translator.errors import ConfigError, ParseError
from i18n_app_translator.models import Entry, TranslationResult


# ============================================================================
# Structure
# ============================================================================

class TestFlatten:
    """flatten / unflatten."""

    def test_nested_keys_are_dot_joined_in_document_order(self):
        """Leaves become entries keyed by their path, depth first."""
        catalog = {"home": {"title": "Welcome", "cta": {"save": "Save"}}, "footer": "Bye"}

        entries = flatten(catalog)

        assert [(e.key, e.value) for e in entries] == [
            ("home.title", "Welcome"),
            ("home.cta.save", "Save"),
            ("footer", "Bye"),
        ]

    def test_round_trip(self):
        """unflatten(flatten(c)) == c for string-leaf catalogs."""
        catalog = {"a": {"b": "1", "c": {"d": "2"}}, "e": "3", "f": {}}
        # empty objects have no leaves and therefore do not survive
        expected = {"a": {"b": "1", "c": {"d": "2"}}, "e": "3"}

        assert unflatten(flatten(catalog)) == expected

    def test_empty_objects_produce_no_entries(self):
        assert flatten({"a": {}, "b": {"c": {}}}) == []
        assert flatten({"a": {}, "b": "B"}) == [Entry("b", "B")]

    def test_non_string_leaf_is_parse_error(self):
        """Arrays and numbers are not valid catalog leaves."""
        with pytest.raises(ParseError):
            flatten({"a": {"b": ["x", "y"]}})
        with pytest.raises(ParseError):
            flatten({"count": 3})

    def test_root_must_be_object(self):
        with pytest.raises(ParseError):
            flatten(["not", "a", "catalog"])

    def test_flat_dotted_key_unflattens_to_nested(self):
        """A literal dotted key in the source still nests on output."""
        entries = flatten({"a.b": "Hello"})

        assert entries[0].key == "a.b"
        assert unflatten(entries) == {"a": {"b": "Hello"}}

    def test_last_duplicate_wins(self):
        entries = [Entry("x", "first"), Entry("x", "second")]

        assert unflatten(entries) == {"x": "second"}

    def test_prefix_conflict_is_parse_error(self):
        """A key cannot be both a leaf and a parent."""
        with pytest.raises(ParseError):
            unflatten([Entry("a", "leaf"), Entry("a.b", "child")])
        with pytest.raises(ParseError):
            unflatten([Entry("a.b", "child"), Entry("a", "leaf")])


# ============================================================================
# Diff
# ============================================================================

class TestDiff:
    """Diff classification."""

    def test_every_source_key_is_classified_once(self):
        source = [Entry("a", "Hello"), Entry("b", "Submit"), Entry("c", "Cancel"), Entry("d", "Save")]
        target = [
            Entry("b", "送信", translated_from="Submit"),
            Entry("c", "取り消し", translated_from="Abort"),
            Entry("d", "保存"),
            Entry("orphan", "孤児"),
        ]

        result = diff(source, target)

        assert [e.key for e in result.missing] == ["a"]
        assert [p.source.key for p in result.outdated] == ["c"]
        assert [e.key for e in result.unchanged] == ["b", "d"]
        classified = (
            [e.key for e in result.missing]
            + [p.source.key for p in result.outdated]
            + [e.key for e in result.unchanged]
        )
        assert sorted(classified) == ["a", "b", "c", "d"]

    def test_values_in_different_languages_are_not_outdated(self):
        """Without provenance, differing texts do not mean outdated."""
        result = diff([Entry("x", "Submit")], [Entry("x", "送信")])

        assert result.missing == []
        assert result.outdated == []
        assert not result.has_work

    def test_outdated_pair_carries_both_entries(self):
        target_entry = Entry("x", "送信", translated_from="Send")
        result = diff([Entry("x", "Submit")], [target_entry])

        pair = result.outdated[0]
        assert pair.source.value == "Submit"
        assert pair.target is target_entry


# ============================================================================
# Merging
# ============================================================================

class TestMerge:
    """Merging results back into the target entry list."""

    def test_existing_entries_untouched_and_new_appended_in_source_order(self):
        source = [Entry("a", "A"), Entry("b", "B"), Entry("c", "C")]
        target = [Entry("b", "bee", translated_from="B")]
        results = {
            "c": TranslationResult("C", "[ja] C", True),
            "a": TranslationResult("A", "[ja] A", True),
        }

        merged = merge_translations(source, target, results)

        assert [(e.key, e.value) for e in merged] == [("b", "bee"), ("a", "[ja] A"), ("c", "[ja] C")]
        assert merged[0] is target[0]
        assert merged[1].translated_from == "A"

    def test_failed_keys_are_left_out(self):
        source = [Entry("a", "A"), Entry("b", "B")]

        merged = merge_translations(source, [], {"b": TranslationResult("B", "[ja] B", True)})

        assert [e.key for e in merged] == ["b"]

    def test_apply_reviews_replaces_in_place(self):
        target = [Entry("a", "one"), Entry("b", "two", context="heading"), Entry("c", "three")]
        results = {"b": TranslationResult("Two", "TWO", False, "Capitalised")}

        updated = apply_reviews(target, results)

        assert [(e.key, e.value) for e in updated] == [("a", "one"), ("b", "TWO"), ("c", "three")]
        assert updated[1].translated_from == "Two"
        assert updated[1].context == "heading"


# ============================================================================
# Storage
# ============================================================================

class TestStorage:
    """Catalog and provenance files."""

    def test_load_missing_file_is_config_error(self, tmp_path):
        with pytest.raises(ConfigError):
            load_catalog(tmp_path / "nope.json")

    def test_load_invalid_json_is_parse_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ParseError):
            load_catalog(path)

    def test_load_invalid_utf8_is_parse_error(self, tmp_path):
        path = tmp_path / "en.json"
        path.write_bytes(b'{"a": "\xff"}')

        with pytest.raises(ParseError, match="en.json"):
            load_catalog(path)

    def test_invalid_utf8_provenance_is_parse_error(self, tmp_path):
        path = tmp_path / "ja.json"
        save_catalog(path, [Entry("a", "エー")])
        provenance_path(path).write_bytes(b'{"a": "\xff"}')

        with pytest.raises(ParseError):
            load_target(path)

    def test_save_writes_nested_utf8(self, tmp_path):
        path = tmp_path / "out" / "ja.json"

        save_catalog(path, [Entry("a.b", "こんにちは")])

        text = path.read_text(encoding="utf-8")
        assert "こんにちは" in text
        assert json.loads(text) == {"a": {"b": "こんにちは"}}

    def test_provenance_sidecar_round_trip(self, tmp_path):
        path = tmp_path / "ja.json"
        entries = [Entry("a", "[ja] A", translated_from="A"), Entry("b", "手動")]
        save_catalog(path, entries)

        save_provenance(path, entries)

        assert provenance_path(path).name == "ja.provenance.json"
        assert load_provenance(path) == {"a": "A"}
        loaded = load_target(path)
        assert loaded[0].translated_from == "A"
        assert loaded[1].translated_from is None

    def test_no_sidecar_written_without_provenance(self, tmp_path):
        path = tmp_path / "ja.json"

        assert save_provenance(path, [Entry("a", "x")]) is None
        assert not provenance_path(path).exists()
        assert load_provenance(path) == {}


class TestTranslationImport:
    """Reading external translation files."""

    def test_flat_json_object(self, tmp_path):
        path = tmp_path / "import.json"
        path.write_text(json.dumps({"a.b": "One", "c": "Two"}), encoding="utf-8")

        entries = read_translation_import(path)

        assert [(e.key, e.value) for e in entries] == [("a.b", "One"), ("c", "Two")]

    def test_json_array_skips_invalid_rows(self, tmp_path):
        path = tmp_path / "import.json"
        path.write_text(json.dumps([
            {"key": "a", "value": "One"},
            {"key": "", "value": "Nope"},
            {"key": "b"},
            "junk",
        ]), encoding="utf-8")

        entries = read_translation_import(path)

        assert [(e.key, e.value) for e in entries] == [("a", "One")]

    def test_csv_rows(self, tmp_path):
        path = tmp_path / "import.csv"
        path.write_text("a, One\n\nb,Two\nc,\n", encoding="utf-8")

        entries = read_translation_import(path, fmt="csv")

        assert [(e.key, e.value) for e in entries] == [("a", "One"), ("b", "Two")]

    def test_unknown_format(self, tmp_path):
        path = tmp_path / "import.yaml"
        path.write_text("a: b", encoding="utf-8")

        with pytest.raises(ParseError):
            read_translation_import(path, fmt="yaml")

    def test_invalid_utf8_is_parse_error(self, tmp_path):
        path = tmp_path / "import.csv"
        path.write_bytes(b"a,\xff\xfe\n")

        with pytest.raises(ParseError, match="UTF-8"):
            read_translation_import(path, fmt="csv")
