"""Pytest configuration and shared fixtures."""

import logging

import pytest

from vaultmind.logging_config import QueryContextFilter
from vaultmind.models.document import DocumentMeta, IndexedDocument
from vaultmind.models.search import Candidate
from vaultmind.retrieval.lexical_index import LexicalIndex

# 2024-01-01T00:00:00Z in epoch milliseconds
FIXED_MTIME = 1_704_067_200_000


class FakeSearchService:
    """In-memory stand-in for the index worker client."""

    def __init__(self, candidates: list[Candidate] | None = None, error: Exception | None = None):
        self.candidates = candidates or []
        self.error = error
        self.calls: list[tuple[str, int | None]] = []

    async def search(self, query: str, top_k: int | None = None) -> list[Candidate]:
        self.calls.append((query, top_k))
        if self.error:
            raise self.error
        return self.candidates[: top_k or len(self.candidates)]


class FakeEmbedder:
    """Returns fixed vectors per text; texts listed in ``failing`` raise."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        failing: set[str] | None = None,
    ):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.failing = failing or set()
        self.calls: list[str] = []

    async def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.failing:
            raise RuntimeError(f"embedding failed for {text!r}")
        return self.vectors.get(text, self.default)


def build_document(
    doc_id: str,
    content: str,
    path: str | None = None,
    mtime: int = FIXED_MTIME,
    **meta,
) -> IndexedDocument:
    """Build an indexed chunk with sensible metadata defaults."""
    path = path or doc_id.split("::")[0]
    return IndexedDocument.from_payload(
        doc_id,
        content,
        DocumentMeta(file_path=path, mtime=mtime, **meta),
    )


def build_candidate(
    doc_id: str,
    content: str,
    keyword_score: float = 1.0,
    path: str | None = None,
) -> Candidate:
    return Candidate(
        id=doc_id,
        content=content,
        path=path or doc_id.split("::")[0],
        keyword_score=keyword_score,
    )


@pytest.fixture
def index():
    """Empty lexical index with a frozen clock."""
    lexical_index = LexicalIndex(clock=lambda: FIXED_MTIME / 1000)
    lexical_index.init()
    return lexical_index


@pytest.fixture
def populated_index(index):
    """Index holding a few notes about containers and cooking."""
    index.upsert(
        build_document(
            "notes/Docker.md::0",
            "Docker packages applications into containers.",
            h1="Docker",
            tags="#devops",
        )
    )
    index.upsert(
        build_document(
            "notes/Docker.md::1",
            "Use docker compose to run multi-container setups.",
        )
    )
    index.upsert(
        build_document(
            "notes/Kubernetes.md::0",
            "Kubernetes orchestrates containers across a cluster.",
            tags="#devops",
        )
    )
    index.upsert(
        build_document(
            "recipes/Pasta.md::0",
            "Boil the pasta in salted water for ten minutes.",
            tags="#cooking",
        )
    )
    return index


@pytest.fixture
def make_candidate():
    """Factory for keyword candidates."""
    return build_candidate


@pytest.fixture
def search_service_cls():
    return FakeSearchService


@pytest.fixture
def embedder_cls():
    return FakeEmbedder


class ContextRecorder(logging.Handler):
    """Keeps records after the query context filter has stamped them."""

    def __init__(self):
        super().__init__()
        self.addFilter(QueryContextFilter())
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def context_records(caplog):
    """Records logged under ``vaultmind`` with their query id and stage."""
    caplog.set_level(logging.INFO, logger="vaultmind")
    recorder = ContextRecorder()
    package_logger = logging.getLogger("vaultmind")
    package_logger.addHandler(recorder)
    yield recorder.records
    package_logger.removeHandler(recorder)
