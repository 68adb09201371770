"""Search result models shared by the lexical index, reranker and agent."""

from typing import Literal

from pydantic import BaseModel, Field

# Scores for chunks that could not be compared semantically. They keep the
# chunk in the ranking but sort it below every real score.
EMPTY_CONTENT_SCORE = -100.0
EMBEDDING_FAILED_SCORE = -999.0


class Candidate(BaseModel):
    """A chunk surfaced by lexical search.

    Attributes:
        id: Chunk identifier (``<file_path>::<chunk_index>``)
        content: Chunk text
        path: Source file path
        keyword_score: Raw lexical relevance (higher is better)
        source: Retrieval stage that produced the candidate
    """

    id: str
    content: str
    path: str
    keyword_score: float
    source: Literal["keyword"] = "keyword"


class ScoredChunk(Candidate):
    """Candidate with semantic similarity and fused score."""

    similarity: float = Field(default=0.0, description="Cosine similarity, 0 when skipped")
    final_score: float
    chunk_len: int = Field(default=0, ge=0)


class RankedDocument(BaseModel):
    """Chunks of one file grouped under their best-scoring member."""

    path: str
    content: str = Field(description="Text of the best-scoring chunk")
    keyword_score: float
    final_score: float
    similarity: float
    chunks: list[ScoredChunk] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """Lexical search results."""

    query: str
    results: list[Candidate]


class RerankResponse(BaseModel):
    """Hybrid retrieval results grouped by file."""

    query: str
    results: list[RankedDocument]
