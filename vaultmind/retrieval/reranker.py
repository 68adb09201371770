"""Embedding reranker: fuses keyword and semantic scores, groups by file."""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Protocol, runtime_checkable

import numpy as np

from vaultmind.models.events import ProgressEvent, ProgressInfo, RerankEvent, ResultEvent
from vaultmind.models.query import ParsedQuery
from vaultmind.models.search import (
    EMBEDDING_FAILED_SCORE,
    EMPTY_CONTENT_SCORE,
    Candidate,
    RankedDocument,
    ScoredChunk,
)
from vaultmind.search.filters import matches_filters
from vaultmind.search.query_parser import parse_query

logger = logging.getLogger(__name__)

KEYWORD_WEIGHT = 0.1
SIMILARITY_WEIGHT = 10.0


@runtime_checkable
class CandidateSource(Protocol):
    """Keyword search backend (e.g. ``SearchService``)."""

    async def search(self, query: str, top_k: int | None = None) -> list[Candidate]: ...


@runtime_checkable
class Embedder(Protocol):
    """Anything that can embed a text (e.g. ``OllamaClient``)."""

    async def embed_text(self, text: str) -> list[float]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 if either vector has zero magnitude

    Raises:
        ValueError: If the vectors differ in dimension
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Embedding dimensions differ: {va.shape} vs {vb.shape}")

    denominator = np.linalg.norm(va) * np.linalg.norm(vb)
    if denominator == 0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def fuse_scores(keyword_score: float, similarity: float) -> float:
    return keyword_score * KEYWORD_WEIGHT + similarity * SIMILARITY_WEIGHT


def sanitize_content(content: str) -> str:
    """Strip NUL bytes and surrounding whitespace before embedding."""
    return (content or "").replace("\0", "").strip()


def group_by_path(chunks: Iterable[ScoredChunk], limit: int) -> list[RankedDocument]:
    """Group ranked chunks by file, keeping the best chunk as representative.

    Args:
        chunks: Chunks in ranking order
        limit: Maximum number of documents

    Returns:
        Documents sorted by their best chunk's final score
    """
    groups: dict[str, RankedDocument] = {}

    for chunk in chunks:
        doc = groups.get(chunk.path)
        if doc is None:
            groups[chunk.path] = RankedDocument(
                path=chunk.path,
                content=chunk.content,
                keyword_score=chunk.keyword_score,
                final_score=chunk.final_score,
                similarity=chunk.similarity,
                chunks=[chunk],
            )
            continue

        doc.chunks.append(chunk)
        # Strictly greater: the first chunk wins ties
        if chunk.final_score > doc.final_score:
            doc.content = chunk.content
            doc.keyword_score = chunk.keyword_score
            doc.final_score = chunk.final_score
            doc.similarity = chunk.similarity

    ranked = sorted(groups.values(), key=lambda d: d.final_score, reverse=True)
    return ranked[:limit]


class EmbeddingReranker:
    """Reranks lexical candidates with embeddings from an external provider.

    Pipeline per query: fetch keyword candidates, embed the query, embed and
    score each candidate in small batches (emitting progress after each),
    sort, apply facet filters and the tag boost, then group the best chunks
    by file. If anything after candidate retrieval fails, the unreranked
    keyword order is returned instead.
    """

    def __init__(
        self,
        search_service: CandidateSource,
        embedder: Embedder,
        candidate_limit: int = 100,
        batch_size: int = 1,
        batch_delay: float = 0.1,
        top_chunks: int = 50,
        top_documents: int = 20,
        fallback_top_k: int = 12,
        tag_boost: float = 100.0,
    ):
        """Initialize reranker.

        Args:
            search_service: Client of the lexical index worker
            embedder: Embedding provider
            candidate_limit: Keyword candidates to rerank
            batch_size: Chunks embedded concurrently
            batch_delay: Seconds to pause between batches
            top_chunks: Best chunks considered for grouping
            top_documents: Documents returned
            fallback_top_k: Candidates returned when reranking fails
            tag_boost: Multiplier for chunks containing a queried tag
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self.search_service = search_service
        self.embedder = embedder
        self.candidate_limit = candidate_limit
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.top_chunks = top_chunks
        self.top_documents = top_documents
        self.fallback_top_k = fallback_top_k
        self.tag_boost = tag_boost

    async def rerank(
        self,
        query: str,
        parsed: ParsedQuery | None = None,
        query_id: str | None = None,
    ) -> AsyncIterator[RerankEvent]:
        """Rerank candidates for a query.

        Args:
            query: Search text sent to the lexical index and embedded
            parsed: Parsed facets of the user's raw query (parsed from
                ``query`` when omitted)
            query_id: Correlation id stamped on every event

        Yields:
            Progress events, then exactly one result event

        Raises:
            SearchServiceError: If candidate retrieval fails or times out
        """
        parsed = parsed if parsed is not None else parse_query(query)

        candidates = await self.search_service.search(query, top_k=self.candidate_limit)
        if not candidates:
            logger.info(f"No keyword candidates for '{query}'")
            yield ResultEvent(content=[], query_id=query_id)
            return

        total = len(candidates)
        logger.info(f"→ Reranking START - {total} keyword candidates for '{query}'")

        try:
            query_embedding = await self.embedder.embed_text(query)

            scored: list[ScoredChunk] = []
            for start in range(0, total, self.batch_size):
                batch = candidates[start : start + self.batch_size]
                results = await asyncio.gather(
                    *(self._score_candidate(candidate, query_embedding) for candidate in batch)
                )
                scored.extend(results)

                yield ProgressEvent(
                    content=ProgressInfo(current=start + len(batch), total=total),
                    query_id=query_id,
                )

                if start + self.batch_size < total:
                    await asyncio.sleep(self.batch_delay)

            documents = self.rank_documents(scored, parsed)
        except Exception as e:
            logger.error(
                f"Reranking failed, falling back to keyword order: {type(e).__name__}: {e}",
                exc_info=True,
            )
            documents = self.fallback(candidates)

        logger.info(f"✓ Reranking COMPLETE - {len(documents)} documents")
        for i, doc in enumerate(documents[:5], 1):
            logger.debug(
                f"    {i}. final={doc.final_score:.4f} sim={doc.similarity:.4f} "
                f"keyword={doc.keyword_score:.4f} | {doc.path}"
            )

        yield ResultEvent(content=documents, query_id=query_id)

    async def _score_candidate(
        self,
        candidate: Candidate,
        query_embedding: Sequence[float],
    ) -> ScoredChunk:
        """Embed one candidate and fuse its scores.

        Never raises for provider errors: empty content and failed embeddings
        get sentinel scores so the rest of the batch survives.
        """
        fields = candidate.model_dump()
        content = sanitize_content(candidate.content)

        if not content:
            return ScoredChunk(**fields, similarity=0.0, final_score=EMPTY_CONTENT_SCORE, chunk_len=0)

        try:
            embedding = await self.embedder.embed_text(content)
            similarity = cosine_similarity(query_embedding, embedding)
        except Exception as e:
            logger.error(
                f"Embedding failed for chunk '{candidate.id}' from '{candidate.path}': "
                f"{type(e).__name__}: {e}. Content preview: {content[:100]!r}"
            )
            return ScoredChunk(
                **fields,
                similarity=0.0,
                final_score=EMBEDDING_FAILED_SCORE,
                chunk_len=len(content),
            )

        return ScoredChunk(
            **fields,
            similarity=similarity,
            final_score=fuse_scores(candidate.keyword_score, similarity),
            chunk_len=len(content),
        )

    def rank_documents(
        self,
        scored: Sequence[ScoredChunk],
        parsed: ParsedQuery,
    ) -> list[RankedDocument]:
        """Sort, filter, tag-boost and group scored chunks.

        Args:
            scored: Scored chunks in candidate order
            parsed: Parsed query facets

        Returns:
            Top documents by best chunk score
        """
        chunks = sorted(scored, key=lambda c: c.final_score, reverse=True)

        if parsed.has_filters:
            chunks = [c for c in chunks if matches_filters(c.path, c.content, parsed)]
            logger.debug(f"Filtered to {len(chunks)} chunks")

        if parsed.tags:
            # Multiplicative, so scores at or below zero are not lifted
            tags = [tag.lower() for tag in parsed.tags]
            boosted = []
            for chunk in chunks:
                content = chunk.content.lower()
                if any(tag in content for tag in tags):
                    chunk = chunk.model_copy(
                        update={"final_score": chunk.final_score * self.tag_boost}
                    )
                boosted.append(chunk)
            chunks = sorted(boosted, key=lambda c: c.final_score, reverse=True)

        return group_by_path(chunks[: self.top_chunks], self.top_documents)

    def fallback(self, candidates: Sequence[Candidate]) -> list[RankedDocument]:
        """Unreranked keyword order, one document per candidate."""
        documents = []
        for candidate in candidates[: self.fallback_top_k]:
            chunk = ScoredChunk(
                **candidate.model_dump(),
                similarity=0.0,
                final_score=candidate.keyword_score,
                chunk_len=len(candidate.content),
            )
            documents.append(
                RankedDocument(
                    path=candidate.path,
                    content=candidate.content,
                    keyword_score=candidate.keyword_score,
                    final_score=candidate.keyword_score,
                    similarity=0.0,
                    chunks=[chunk],
                )
            )
        return documents
