"""FastAPI application entry point."""

import asyncio
import logging
import contextlib
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from vaultmind.clients.ollama_client import OllamaClient
from vaultmind.config import get_settings
from vaultmind.logging_config import bind_query, setup_logging
from vaultmind.models.chat import ModelInfo
from vaultmind.models.document import (
    DeleteResponse,
    IndexDocumentRequest,
    IndexDocumentResponse,
    IndexFileRequest,
    IndexFileResponse,
)
from vaultmind.models.error import ErrorResponse
from vaultmind.models.events import ResultEvent
from vaultmind.models.query import ChatRequest, RerankRequest, SearchRequest
from vaultmind.models.search import RerankResponse, SearchResponse
from vaultmind.processing.chunker import RecursiveChunker
from vaultmind.processing.indexer import VaultIndexer
from vaultmind.retrieval.lexical_index import LexicalIndex
from vaultmind.retrieval.reranker import EmbeddingReranker
from vaultmind.retrieval.tokenizer import Tokenizer
from vaultmind.search.query_parser import parse_query
from vaultmind.services.agent import VaultAgent
from vaultmind.worker.index_worker import IndexWorker
from vaultmind.worker.search_service import (
    SearchService,
    SearchServiceError,
    SearchTimeoutError,
)

# Setup logging configuration
setup_logging()
logger = logging.getLogger(__name__)

# Load and validate configuration at startup
settings = get_settings()

# Global service instances
search_service: SearchService | None = None
ollama_client: OllamaClient | None = None
reranker: EmbeddingReranker | None = None
agent: VaultAgent | None = None
indexer: VaultIndexer | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    global search_service, ollama_client, reranker, agent, indexer

    logger.info("Starting VaultMind...")
    logger.info(
        f"Configuration: llm={settings.llm_model}, embedding={settings.embedding_model}, "
        f"provider={settings.ollama_base_url}"
    )

    index = LexicalIndex(
        tokenizer=Tokenizer(),
        field_boosts=settings.field_boosts,
        exact_match_max_length=settings.exact_match_max_length,
        short_term_max_length=settings.short_term_max_length,
        short_term_fuzziness=settings.short_term_fuzziness,
        long_term_fuzziness=settings.long_term_fuzziness,
        prefix_min_length=settings.prefix_min_length,
    )
    search_service = SearchService(
        worker=IndexWorker(index),
        timeout=settings.search_timeout,
        default_top_k=settings.default_top_k,
    )
    await search_service.start()

    ollama_client = OllamaClient(
        base_url=settings.ollama_base_url,
        model=settings.llm_model,
        embedding_model=settings.embedding_model,
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )
    reranker = EmbeddingReranker(
        search_service=search_service,
        embedder=ollama_client,
        candidate_limit=settings.candidate_limit,
        batch_size=settings.rerank_batch_size,
        batch_delay=settings.rerank_batch_delay,
        top_chunks=settings.rerank_top_chunks,
        top_documents=settings.rerank_top_documents,
        fallback_top_k=settings.fallback_top_k,
        tag_boost=settings.tag_boost,
    )
    agent = VaultAgent(reranker, ollama_client, history_window=settings.history_window)
    indexer = VaultIndexer(
        search_service,
        RecursiveChunker(settings.chunk_size, settings.chunk_overlap),
    )

    build_task: asyncio.Task | None = None
    if settings.vault_path:
        build_task = asyncio.create_task(indexer.build_index(settings.vault_path))

    logger.info("VaultMind started successfully")

    yield

    logger.info("Shutting down VaultMind...")

    if build_task is not None and not build_task.done():
        build_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await build_task
    if search_service:
        await search_service.stop()
    if ollama_client:
        await ollama_client.close()

    logger.info("VaultMind shut down successfully")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Hybrid keyword and embedding search with cited answers over a Markdown vault",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    detail: str,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            timestamp=datetime.now(UTC),
            request_id=request_id,
        ).model_dump(mode="json"),
    )


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Add request ID tracking and error handling."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    bind_query(request_id, stage="request")

    try:
        logger.info(f"Request started: {request.method} {request.url.path}")
        response = await call_next(request)
        logger.info(
            f"Request completed: {request.method} {request.url.path} - Status: {response.status_code}"
        )
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True, extra={"path": request.url.path})
        return error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", str(e)
        )
    finally:
        bind_query(None)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")
    detail = "; ".join(errors)

    logger.warning(f"Validation error: {detail}", extra={"path": request.url.path})
    return error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation Error", detail
    )


@app.exception_handler(SearchTimeoutError)
async def search_timeout_exception_handler(request: Request, exc: SearchTimeoutError):
    """Handle index worker timeouts."""
    logger.warning(f"Search timed out: {exc}")
    return error_response(request, status.HTTP_504_GATEWAY_TIMEOUT, "Search Timeout", str(exc))


@app.exception_handler(SearchServiceError)
async def search_service_exception_handler(request: Request, exc: SearchServiceError):
    """Handle index worker errors."""
    logger.error(f"Search service error: {exc}")
    return error_response(
        request, status.HTTP_502_BAD_GATEWAY, "Search Service Error", str(exc)
    )


def require(service, name: str):
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return service


# API Endpoints


@app.get("/health")
async def health_check():
    """Health check with configured models and index size."""
    documents = search_service.worker.index.document_count if search_service else 0
    return {
        "status": "healthy",
        "service": settings.api_title,
        "version": settings.api_version,
        "models": {
            "llm": settings.llm_model,
            "embedding": settings.embedding_model,
        },
        "documents": documents,
    }


@app.get(
    "/api/v1/models",
    response_model=list[ModelInfo],
    summary="List provider models",
    description="Models installed on the Ollama server (empty when unreachable).",
)
async def list_models() -> list[ModelInfo]:
    client = require(ollama_client, "Ollama client")
    return await client.list_models()


@app.post(
    "/api/v1/documents",
    response_model=IndexDocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Index a chunk",
    description="Upsert one pre-chunked document into the keyword index.",
)
async def index_document(request: IndexDocumentRequest) -> IndexDocumentResponse:
    service = require(search_service, "Search service")
    await service.index_document(request.id, request.content, request.meta)
    logger.info(f"Indexed document '{request.id}'")
    return IndexDocumentResponse(id=request.id)


@app.post(
    "/api/v1/files",
    response_model=IndexFileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Index a note",
    description="Replace every chunk of a Markdown note with freshly extracted chunks.",
)
async def index_file(request: IndexFileRequest) -> IndexFileResponse:
    vault_indexer = require(indexer, "Indexer")
    chunks = await vault_indexer.index_file(request.path, request.content, request.mtime)
    logger.info(f"Indexed file '{request.path}' ({chunks} chunks)")
    return IndexFileResponse(path=request.path, chunks=chunks)


@app.delete(
    "/api/v1/documents",
    response_model=DeleteResponse,
    summary="Delete a note",
    description="Remove every indexed chunk whose path equals the given path.",
)
async def delete_documents(path: str = Query(..., min_length=1)) -> DeleteResponse:
    service = require(search_service, "Search service")
    count = await service.delete_by_path(path)
    logger.info(f"Deleted {count} chunks for '{path}'")
    return DeleteResponse(path=path, count=count)


@app.post(
    "/api/v1/search",
    response_model=SearchResponse,
    summary="Keyword search",
    description="Field-weighted fuzzy keyword search over indexed chunks.",
)
async def search(request: SearchRequest) -> SearchResponse:
    service = require(search_service, "Search service")
    results = await service.search(request.query, top_k=request.top_k)
    logger.info(f"Search '{request.query[:100]}' returned {len(results)} candidates")
    return SearchResponse(query=request.query, results=results)


@app.post(
    "/api/v1/rerank",
    response_model=RerankResponse,
    summary="Hybrid search",
    description="Keyword candidates reranked with embeddings, filtered and grouped by note.",
)
async def rerank(request: RerankRequest) -> RerankResponse:
    hybrid = require(reranker, "Reranker")
    parsed = parse_query(request.query)
    search_text = parsed.clean_text or request.query

    results = []
    async for event in hybrid.rerank(search_text, parsed):
        if isinstance(event, ResultEvent):
            results = event.content
    return RerankResponse(query=request.query, results=results)


@app.post(
    "/api/v1/chat",
    summary="Ask the vault",
    description=(
        "Stream the answer as newline-delimited JSON events: "
        "thought, progress, sources, token, then done or error."
    ),
)
async def chat(request: ChatRequest, http_request: Request) -> StreamingResponse:
    vault_agent = require(agent, "Agent")
    query_id = http_request.state.request_id

    async def event_stream() -> AsyncIterator[str]:
        async for event in vault_agent.chat_stream(
            request.query, request.history, query_id=query_id
        ):
            yield event.model_dump_json() + "\n"

    return StreamingResponse(event_stream(), media_type="application/x-ndjson")
