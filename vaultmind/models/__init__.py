"""Pydantic models for the vault retrieval service."""

from vaultmind.models.chat import ChatMessage, ModelInfo
from vaultmind.models.document import (
    DeleteResponse,
    DocumentMeta,
    IndexDocumentRequest,
    IndexDocumentResponse,
    IndexedDocument,
    IndexFileRequest,
    IndexFileResponse,
    NoteChunk,
)
from vaultmind.models.error import ErrorResponse
from vaultmind.models.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    ProgressEvent,
    ProgressInfo,
    RerankEvent,
    ResultEvent,
    SourcesEvent,
    ThoughtEvent,
    TokenEvent,
)
from vaultmind.models.query import ChatRequest, ParsedQuery, RerankRequest, SearchRequest
from vaultmind.models.search import (
    Candidate,
    RankedDocument,
    RerankResponse,
    ScoredChunk,
    SearchResponse,
)

__all__ = [
    # Chat models
    "ChatMessage",
    "ModelInfo",
    # Document models
    "DocumentMeta",
    "IndexedDocument",
    "NoteChunk",
    "IndexDocumentRequest",
    "IndexDocumentResponse",
    "IndexFileRequest",
    "IndexFileResponse",
    "DeleteResponse",
    # Query models
    "ParsedQuery",
    "SearchRequest",
    "RerankRequest",
    "ChatRequest",
    # Search models
    "Candidate",
    "ScoredChunk",
    "RankedDocument",
    "SearchResponse",
    "RerankResponse",
    # Events
    "AgentEvent",
    "RerankEvent",
    "ThoughtEvent",
    "ProgressEvent",
    "ProgressInfo",
    "ResultEvent",
    "SourcesEvent",
    "TokenEvent",
    "ErrorEvent",
    "DoneEvent",
    # Error models
    "ErrorResponse",
]
