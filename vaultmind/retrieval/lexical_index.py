"""Field-weighted keyword index over vault chunks."""

import bisect
import logging
import math
import threading
import time
from collections.abc import Callable, Mapping

from rank_bm25 import BM25L
from rapidfuzz import process
from rapidfuzz.distance import Levenshtein

from vaultmind.config import DEFAULT_FIELD_BOOSTS
from vaultmind.models.document import IndexedDocument
from vaultmind.models.search import Candidate
from vaultmind.retrieval.tokenizer import Tokenizer

logger = logging.getLogger(__name__)

MS_PER_DAY = 24 * 3600 * 1000

# Relative weight of a vocabulary term reached by prefix or by edit distance
PREFIX_WEIGHT = 0.375
FUZZY_WEIGHT = 0.45
MAX_FUZZY_DISTANCE = 6


def recency_boost(mtime: int | None, now_ms: int) -> float:
    """Score multiplier favouring recently modified documents.

    Note the ``/ 1000``: the decay runs over thousands of days, so the boost
    stays close to 2 for any realistic note age.
    """
    if not mtime:
        return 1.0
    days_elapsed = (now_ms - mtime) / MS_PER_DAY
    return 1 + math.exp(-0.1 * days_elapsed / 1000)


class LexicalIndex:
    """Keyword search index for vault chunks.

    Each searchable field gets its own BM25 scorer; a query term contributes
    ``field_boost * expansion_weight * bm25 * recency`` per field. Query terms
    are expanded to indexed terms by exact match, prefix and edit distance,
    with tolerances depending on term length.

    Scorers are rebuilt lazily on the first search after a mutation. All
    public methods hold a lock so the index can be driven from worker threads.
    """

    def __init__(
        self,
        tokenizer: Tokenizer | None = None,
        field_boosts: Mapping[str, float] | None = None,
        exact_match_max_length: int = 3,
        short_term_max_length: int = 5,
        short_term_fuzziness: float = 0.1,
        long_term_fuzziness: float = 0.2,
        prefix_min_length: int = 2,
        k1: float = 1.5,
        b: float = 0.75,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize lexical index.

        Args:
            tokenizer: Tokenizer used for documents and queries
            field_boosts: Relevance weight per field
            exact_match_max_length: Terms up to this length are never fuzzy
            short_term_max_length: Terms up to this length use short_term_fuzziness
            short_term_fuzziness: Edit distance as a fraction of term length
            long_term_fuzziness: Edit distance fraction for longer terms
            prefix_min_length: Minimum term length for prefix matching
            k1: BM25 k1 parameter (term frequency saturation)
            b: BM25 b parameter (length normalization)
            clock: Returns the current time in seconds (for recency)
        """
        self.tokenizer = tokenizer if tokenizer is not None else Tokenizer()
        self.field_boosts = dict(DEFAULT_FIELD_BOOSTS if field_boosts is None else field_boosts)
        self.exact_match_max_length = exact_match_max_length
        self.short_term_max_length = short_term_max_length
        self.short_term_fuzziness = short_term_fuzziness
        self.long_term_fuzziness = long_term_fuzziness
        self.prefix_min_length = prefix_min_length
        self.k1 = k1
        self.b = b
        self.clock = clock

        self.initialized = False
        self.documents: dict[str, IndexedDocument] = {}
        self.field_tokens: dict[str, dict[str, list[str]]] = {}

        # Derived structures, rebuilt when dirty
        self._doc_order: list[str] = []
        self._scorers: dict[str, BM25L] = {}
        self._postings: dict[str, dict[str, list[int]]] = {}
        self._vocabulary: list[str] = []
        self._dirty = True

        self._lock = threading.RLock()

    def init(self) -> None:
        """Mark the index ready. Repeated calls keep indexed documents."""
        with self._lock:
            if not self.initialized:
                self.initialized = True
                logger.info(
                    f"Initialized LexicalIndex with fields={list(self.field_boosts)}, "
                    f"k1={self.k1}, b={self.b}"
                )

    def __len__(self) -> int:
        return len(self.documents)

    @property
    def document_count(self) -> int:
        return len(self.documents)

    def has(self, doc_id: str) -> bool:
        return doc_id in self.documents

    def get(self, doc_id: str) -> IndexedDocument | None:
        return self.documents.get(doc_id)

    def upsert(self, doc: IndexedDocument) -> None:
        """Add a document, replacing any previous version with the same id.

        Args:
            doc: Document to index
        """
        with self._lock:
            replaced = doc.id in self.documents
            self.documents[doc.id] = doc
            self.field_tokens[doc.id] = {
                field_name: self.tokenizer.tokenize(doc.field_text(field_name))
                for field_name in self.field_boosts
            }
            self._dirty = True

        logger.debug(f"{'Replaced' if replaced else 'Indexed'} document '{doc.id}'")

    def delete_by_path(self, path: str) -> int:
        """Remove every document whose source path equals ``path``.

        Args:
            path: Source file path

        Returns:
            Number of documents removed (zero is not an error)
        """
        with self._lock:
            doc_ids = [doc_id for doc_id, doc in self.documents.items() if doc.path == path]
            for doc_id in doc_ids:
                del self.documents[doc_id]
                del self.field_tokens[doc_id]
            if doc_ids:
                self._dirty = True

        if doc_ids:
            logger.info(f"Removed {len(doc_ids)} documents for path '{path}'")
        return len(doc_ids)

    def search(self, query: str, top_k: int = 30) -> list[Candidate]:
        """Search the index and return the best candidates.

        Args:
            query: Raw query text
            top_k: Maximum number of candidates

        Returns:
            Candidates sorted by keyword score descending
        """
        with self._lock:
            if not self.documents:
                return []

            if self._dirty:
                self._rebuild()

            query_terms = self.tokenizer.tokenize(query)
            if not query_terms:
                return []

            now_ms = int(self.clock() * 1000)
            boosts = [
                recency_boost(self.documents[doc_id].mtime, now_ms)
                for doc_id in self._doc_order
            ]
            scores = [0.0] * len(self._doc_order)

            for term in query_terms:
                for key, weight in self._expand_term(term).items():
                    for field_name, scorer in self._scorers.items():
                        doc_indices = self._postings[field_name].get(key)
                        if not doc_indices:
                            continue
                        field_scores = scorer.get_batch_scores([key], doc_indices)
                        field_boost = self.field_boosts[field_name]
                        for doc_index, score in zip(doc_indices, field_scores):
                            scores[doc_index] += score * field_boost * weight * boosts[doc_index]

            ranked = sorted(
                (i for i, score in enumerate(scores) if score > 0),
                key=lambda i: scores[i],
                reverse=True,
            )[:top_k]

            candidates = []
            for doc_index in ranked:
                doc = self.documents[self._doc_order[doc_index]]
                candidates.append(
                    Candidate(
                        id=doc.id,
                        content=doc.content,
                        path=doc.path or doc.id,
                        keyword_score=float(scores[doc_index]),
                    )
                )

        logger.debug(
            f"Keyword search '{query[:80]}' matched {len(candidates)} candidates "
            f"({len(query_terms)} terms)"
        )
        return candidates

    def max_edit_distance(self, term: str) -> int:
        """Allowed edit distance for a query term, by its length."""
        length = len(term)
        if length <= self.exact_match_max_length:
            return 0
        fuzziness = (
            self.short_term_fuzziness
            if length <= self.short_term_max_length
            else self.long_term_fuzziness
        )
        # Round half up, 0.5 -> 1
        return min(MAX_FUZZY_DISTANCE, math.floor(length * fuzziness + 0.5))

    def _expand_term(self, term: str) -> dict[str, float]:
        """Indexed terms matching a query term, with their match weight."""
        expansions: dict[str, float] = {}

        def keep(key: str, weight: float) -> None:
            if weight > expansions.get(key, 0.0):
                expansions[key] = weight

        if self._has_term(term):
            keep(term, 1.0)

        if len(term) >= self.prefix_min_length:
            start = bisect.bisect_left(self._vocabulary, term)
            for key in self._vocabulary[start:]:
                if not key.startswith(term):
                    break
                extra = len(key) - len(term)
                if extra:
                    keep(key, PREFIX_WEIGHT * len(term) / (len(term) + 0.3 * extra))

        max_distance = self.max_edit_distance(term)
        if max_distance:
            matches = process.extract(
                term,
                self._vocabulary,
                scorer=Levenshtein.distance,
                processor=None,
                score_cutoff=max_distance,
                limit=None,
            )
            for key, distance, _ in matches:
                if distance:
                    keep(key, FUZZY_WEIGHT * len(term) / (len(term) + distance))

        return expansions

    def _has_term(self, term: str) -> bool:
        index = bisect.bisect_left(self._vocabulary, term)
        return index < len(self._vocabulary) and self._vocabulary[index] == term

    def _rebuild(self) -> None:
        """Rebuild per-field BM25 scorers, postings and vocabulary."""
        self._doc_order = list(self.documents)
        self._scorers = {}
        self._postings = {}
        vocabulary: set[str] = set()

        for field_name in self.field_boosts:
            corpus = [self.field_tokens[doc_id][field_name] for doc_id in self._doc_order]
            postings: dict[str, list[int]] = {}
            for doc_index, tokens in enumerate(corpus):
                for token in tokens:
                    postings.setdefault(token, []).append(doc_index)

            self._postings[field_name] = postings
            # BM25 needs at least one token in the field corpus
            if postings:
                self._scorers[field_name] = BM25L(corpus, k1=self.k1, b=self.b, delta=0)
                vocabulary.update(postings)

        self._vocabulary = sorted(vocabulary)
        self._dirty = False

        logger.debug(
            f"Rebuilt lexical index with {len(self._doc_order)} documents, "
            f"{len(self._vocabulary)} terms"
        )
