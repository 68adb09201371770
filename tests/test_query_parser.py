"""Tests for the search mini-language parser."""

import pytest
from hypothesis import example, given, settings, strategies as st

from vaultmind.models.query import ParsedQuery
from vaultmind.search.query_parser import parse_query


class TestParseQuery:
    """Test facet extraction."""

    def test_all_operators(self):
        """Every operator lands in its own facet, the rest is free text."""
        parsed = parse_query('"a b" #t1 ext:md path:foo -path:bar -x y z')

        assert parsed.exact_terms == ("a b",)
        assert parsed.tags == ("#t1",)
        assert parsed.extensions == ("md",)
        assert parsed.path_includes == ("foo",)
        assert parsed.path_excludes == ("bar",)
        assert parsed.text_excludes == ("x",)
        assert parsed.text == ("y", "z")

    def test_plain_text_is_lower_cased(self):
        parsed = parse_query("How does Docker WORK")

        assert parsed.text == ("how", "does", "docker", "work")
        assert not parsed.has_filters
        assert parsed.tags == ()

    def test_empty_query(self):
        assert parse_query("") == ParsedQuery()
        assert parse_query("   ") == ParsedQuery()

    def test_tag_inside_phrase_stays_in_phrase(self):
        """Phrases are extracted before tags."""
        parsed = parse_query('"meeting #urgent notes" agenda')

        assert parsed.exact_terms == ("meeting #urgent notes",)
        assert parsed.tags == ()
        assert parsed.text == ("agenda",)

    def test_tag_keeps_hash_and_case(self):
        parsed = parse_query("#Project/Alpha-2 status")

        assert parsed.tags == ("#Project/Alpha-2",)
        assert parsed.text == ("status",)

    def test_kelvin_sign_tag(self):
        """U+212A lower-cases to ASCII k, so it must already count as a tag letter."""
        parsed = parse_query("#\u212a")

        assert parsed.tags == ("#\u212a",)
        assert parsed.text == ()

    def test_hash_followed_by_digit_is_not_a_tag(self):
        parsed = parse_query("issue #123")

        assert parsed.tags == ()
        assert parsed.text == ("issue", "#123")

    def test_operators_are_case_insensitive(self):
        parsed = parse_query("EXT:MD Path:Projects -PATH:Archive")

        assert parsed.extensions == ("md",)
        assert parsed.path_includes == ("projects",)
        assert parsed.path_excludes == ("archive",)

    def test_path_exclude_is_not_a_path_include(self):
        parsed = parse_query("-path:drafts")

        assert parsed.path_includes == ()
        assert parsed.path_excludes == ("drafts",)

    def test_hyphenated_word_is_free_text(self):
        parsed = parse_query("well-known pattern")

        assert parsed.text_excludes == ()
        assert parsed.text == ("well-known", "pattern")

    def test_duplicate_facets_are_collapsed(self):
        parsed = parse_query("#a #a ext:md ext:MD")

        assert parsed.tags == ("#a",)
        assert parsed.extensions == ("md",)

    def test_clean_text_joins_text_and_phrases(self):
        parsed = parse_query('"deadline" #urgent friday')

        assert parsed.clean_text == "friday deadline"

    @pytest.mark.parametrize(
        "query,expected",
        [
            ("ext:md", True),
            ("path:notes", True),
            ("-path:archive", True),
            ('"exact"', True),
            ("-draft", True),
            ("#tag", False),
            ("plain words", False),
        ],
    )
    def test_has_filters(self, query, expected):
        """Tags boost rather than filter."""
        assert parse_query(query).has_filters is expected


class TestParseQueryProperties:
    """Property-based tests for the parser."""

    @given(st.text(max_size=80))
    @settings(max_examples=200, deadline=None)
    def test_never_fails(self, raw):
        parsed = parse_query(raw)

        assert all(token == token.lower() and token for token in parsed.text)

    @given(st.text(max_size=80))
    @example("#\u212a")
    @example("Stra\u00dfe #\u0130stanbul -\u0130z")
    @settings(max_examples=200, deadline=None)
    def test_free_text_is_idempotent(self, raw):
        """Re-parsing the free text yields the same free text."""
        first = parse_query(raw)
        second = parse_query(" ".join(first.text))

        assert second.text == first.text
