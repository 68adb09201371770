"""Tests for LexicalIndex."""

import pytest
from hypothesis import given, settings, strategies as st

from vaultmind.models.document import DocumentMeta, IndexedDocument
from vaultmind.retrieval.lexical_index import (
    LexicalIndex,
    MS_PER_DAY,
    recency_boost,
)

NOW_MS = 1_704_067_200_000

WORDS = st.sampled_from(
    ["alpha", "beta", "gamma", "delta", "docker", "python", "garden", "recipe"]
)


def new_index() -> LexicalIndex:
    index = LexicalIndex(clock=lambda: NOW_MS / 1000)
    index.init()
    return index


def doc(doc_id: str, content: str, path: str, **meta) -> IndexedDocument:
    return IndexedDocument.from_payload(
        doc_id, content, DocumentMeta(file_path=path, mtime=NOW_MS, **meta)
    )


class TestFuzzyMatching:
    """Test edit-distance expansion of query terms."""

    def test_one_edit(self, populated_index):
        results = populated_index.search("orchestrats")

        assert [r.id for r in results] == ["notes/Kubernetes.md::0"]

    def test_transposition_costs_two_edits(self, populated_index):
        assert [r.id for r in populated_index.search("kubernetse")] == ["notes/Kubernetes.md::0"]

    def test_beyond_allowed_distance(self, populated_index):
        # 3 edits from "kubernetes", only 1 allowed for 7 characters
        assert populated_index.search("kbrntes") == []

    def test_fuzzy_weighs_less_than_exact(self, index):
        index.upsert(doc("a.md::0", "garden", "a.md"))
        index.upsert(doc("b.md::0", "gardan", "b.md"))

        results = index.search("garden")

        assert [r.id for r in results] == ["a.md::0", "b.md::0"]
        assert results[0].keyword_score > results[1].keyword_score


class TestRecencyBoost:
    """Test the modification time multiplier."""

    def test_missing_mtime(self):
        assert recency_boost(None, NOW_MS) == 1.0

    def test_just_modified(self):
        assert recency_boost(NOW_MS, NOW_MS) == pytest.approx(2.0)

    def test_decays_slowly(self):
        boost = recency_boost(NOW_MS - 1000 * MS_PER_DAY, NOW_MS)

        assert boost == pytest.approx(1.9048, abs=1e-4)


class TestMaxEditDistance:
    @pytest.mark.parametrize(
        "term,expected",
        [
            ("abc", 0),
            ("abcd", 0),
            ("abcde", 1),
            ("abcdef", 1),
            ("abcdefgh", 2),
            ("a" * 40, 6),
        ],
    )
    def test_by_length(self, term, expected):
        assert LexicalIndex().max_edit_distance(term) == expected


class TestLexicalIndex:
    """Test indexing and searching."""

    def test_empty_index(self, index):
        assert index.search("anything") == []
        assert len(index) == 0

    def test_exact_match(self, populated_index):
        results = populated_index.search("docker")

        assert {r.path for r in results} == {"notes/Docker.md"}
        assert results[0].id == "notes/Docker.md::0"
        assert all(r.source == "keyword" for r in results)

    def test_results_sorted_best_first(self, populated_index):
        results = populated_index.search("containers docker kubernetes")
        scores = [r.keyword_score for r in results]

        assert scores == sorted(scores, reverse=True)
        assert all(score > 0 for score in scores)

    def test_fuzzy_match(self, populated_index):
        results = populated_index.search("kubernetse")

        assert [r.id for r in results] == ["notes/Kubernetes.md::0"]

    def test_prefix_match(self, populated_index):
        results = populated_index.search("kube")

        assert [r.id for r in results] == ["notes/Kubernetes.md::0"]

    def test_short_terms_are_not_fuzzy(self, populated_index):
        assert populated_index.search("zzz") == []

    def test_no_match(self, populated_index):
        assert populated_index.search("astronomy") == []

    def test_blank_query(self, populated_index):
        assert populated_index.search("   ") == []

    def test_top_k(self, populated_index):
        results = populated_index.search("containers docker kubernetes pasta", top_k=2)

        assert len(results) == 2

    def test_field_boost(self, index):
        """A title hit outranks the same word in body text."""
        index.upsert(doc("a/Alpha.md::0", "x", "a/Alpha.md"))
        index.upsert(doc("b/Other.md::0", "alpha", "b/Other.md"))

        results = index.search("alpha")

        assert [r.id for r in results] == ["a/Alpha.md::0", "b/Other.md::0"]

    def test_tags_field_is_searchable(self, populated_index):
        results = populated_index.search("#cooking")

        assert [r.path for r in results] == ["recipes/Pasta.md"]

    def test_recent_documents_rank_higher(self, index):
        index.upsert(
            IndexedDocument.from_payload(
                "old/Note.md::0",
                "recency test",
                DocumentMeta(file_path="old/Note.md", mtime=NOW_MS - 5000 * MS_PER_DAY),
            )
        )
        index.upsert(doc("new/Note.md::0", "recency test", "new/Note.md"))

        results = index.search("recency")

        assert [r.id for r in results] == ["new/Note.md::0", "old/Note.md::0"]
        assert results[0].keyword_score > results[1].keyword_score

    def test_upsert_replaces_by_id(self, populated_index):
        count = len(populated_index)
        populated_index.upsert(
            doc("recipes/Pasta.md::0", "Risotto needs arborio rice.", "recipes/Pasta.md")
        )

        assert len(populated_index) == count
        assert populated_index.search("risotto")[0].id == "recipes/Pasta.md::0"
        assert populated_index.search("boil") == []

    def test_delete_by_path(self, populated_index):
        removed = populated_index.delete_by_path("notes/Docker.md")

        assert removed == 2
        assert not populated_index.has("notes/Docker.md::0")
        assert all(r.path != "notes/Docker.md" for r in populated_index.search("docker containers"))

    def test_delete_unknown_path(self, populated_index):
        assert populated_index.delete_by_path("missing.md") == 0
        assert len(populated_index) == 4

    def test_get_and_stats(self, populated_index):
        stored = populated_index.get("notes/Docker.md::0")

        assert stored is not None
        assert stored.basename == "Docker"
        assert populated_index.document_count == 4
        assert populated_index.get("nope") is None

    def test_document_without_path(self, index):
        index.upsert(
            IndexedDocument.from_payload("orphan", "lonely words", DocumentMeta(mtime=NOW_MS))
        )

        results = index.search("lonely")

        assert results[0].path == "orphan"
        assert index.get("orphan").basename == "Untitled"

    def test_init_keeps_documents(self, populated_index):
        populated_index.init()

        assert len(populated_index) == 4


class TestLexicalIndexProperties:
    """Property-based tests for LexicalIndex."""

    @given(st.lists(st.sampled_from(["a::0", "a::1", "b::0", "c::0"]), min_size=1, max_size=12))
    @settings(max_examples=50, deadline=None)
    def test_upsert_is_idempotent_by_id(self, ids):
        index = new_index()
        for doc_id in ids:
            index.upsert(doc(doc_id, "same words", doc_id.split("::")[0]))

        assert len(index) == len(set(ids))

    @given(
        st.lists(st.tuples(st.sampled_from(["a.md", "b.md", "c.md"]), WORDS), min_size=1, max_size=10),
        st.sampled_from(["a.md", "b.md", "c.md"]),
        WORDS,
    )
    @settings(max_examples=50, deadline=None)
    def test_deleted_path_never_returned(self, entries, deleted, query):
        index = new_index()
        for i, (path, word) in enumerate(entries):
            index.upsert(doc(f"{path}::{i}", word, path))

        index.delete_by_path(deleted)

        assert all(r.path != deleted for r in index.search(query))
