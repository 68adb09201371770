"""Vault agent: intent triage, hybrid retrieval and cited answer streaming."""

import logging
import re
import uuid
from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from vaultmind.logging_config import bind_query, set_stage
from vaultmind.models.chat import ChatMessage
from vaultmind.models.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    ProgressEvent,
    ResultEvent,
    SourcesEvent,
    ThoughtEvent,
    TokenEvent,
)
from vaultmind.models.search import RankedDocument
from vaultmind.prompts import (
    NO_RESULTS_MESSAGE,
    NOT_NEEDED,
    RETRIEVER_FEW_SHOTS,
    RETRIEVER_PROMPT,
    SEARCH_ERROR_MESSAGE,
    build_response_prompt,
    triage_user_message,
)
from vaultmind.retrieval.reranker import EmbeddingReranker
from vaultmind.search.query_parser import parse_query

logger = logging.getLogger(__name__)

QUESTION_PATTERN = re.compile(r"<question>([\s\S]*?)</question>")


@runtime_checkable
class ChatClient(Protocol):
    """Chat provider used for triage and answers (e.g. ``OllamaClient``)."""

    async def chat(self, messages: Sequence[ChatMessage]) -> str: ...

    def chat_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]: ...


def parse_triage_response(response: str, original_query: str) -> str:
    """Extract the search query from free-form triage output.

    Args:
        response: Raw model output
        original_query: Query to fall back to

    Returns:
        Content of the first ``<question>`` block (trimmed), else
        ``not_needed`` if the sentinel appears anywhere, else the original query
    """
    response = response or ""
    match = QUESTION_PATTERN.search(response)
    if match and match.group(1).strip():
        return match.group(1).strip()
    if NOT_NEEDED in response:
        return NOT_NEEDED
    return original_query


def format_history(history: Sequence[ChatMessage]) -> str:
    lines = []
    for message in history:
        if message.role == "system":
            continue
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def build_context(documents: Sequence[RankedDocument]) -> str:
    """Numbered context block cited by the answer as [n]."""
    return "\n\n".join(
        f"[{i}] Title: {doc.path}\nContent: {doc.content}"
        for i, doc in enumerate(documents, 1)
    )


class VaultAgent:
    """Answers questions from the vault as a stream of events.

    For every query:
    1. Triage intent with the chat model (conversational queries skip search)
    2. Rerank keyword candidates with embeddings, forwarding progress
    3. Emit the grounding sources
    4. Stream a cited answer from the chat model

    Retrieval failures and empty results are answered in-band; a chat
    provider failure ends that query's stream with an error event.
    """

    def __init__(
        self,
        reranker: EmbeddingReranker,
        chat_client: ChatClient,
        history_window: int = 4,
    ):
        """Initialize agent.

        Args:
            reranker: Hybrid retrieval pipeline
            chat_client: Chat provider for triage and answers
            history_window: Recent messages passed to triage
        """
        self.reranker = reranker
        self.chat_client = chat_client
        self.history_window = history_window

    async def generate_query(
        self,
        query: str,
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """Turn a user query into a standalone search query.

        Args:
            query: Query text (operators already removed)
            history: Previous conversation messages

        Returns:
            Search query, or ``not_needed`` when no vault search is required
        """
        recent = list(history or [])[-self.history_window :] if self.history_window else []

        messages = [
            ChatMessage(role="system", content=RETRIEVER_PROMPT),
            *RETRIEVER_FEW_SHOTS,
            ChatMessage(
                role="user",
                content=triage_user_message(query, format_history(recent)),
            ),
        ]

        response = await self.chat_client.chat(messages)
        search_query = parse_triage_response(response, query)
        logger.info(f"Intent analysis: '{query[:80]}' -> '{search_query[:80]}'")
        return search_query

    async def chat_stream(
        self,
        query: str,
        history: Sequence[ChatMessage] | None = None,
        query_id: str | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """Answer a query, streaming thoughts, progress, sources and tokens.

        Args:
            query: Raw user query in the search mini-language
            history: Previous conversation messages
            query_id: Correlation id for events and logs (generated if omitted)

        Yields:
            Agent events; the last one is ``done`` or ``error``
        """
        query_id = query_id or uuid.uuid4().hex[:12]
        bind_query(query_id, stage="triage")

        parsed = parse_query(query)
        triage_input = parsed.clean_text or query

        yield ThoughtEvent(content="Analyzing your intent...", query_id=query_id)
        try:
            search_query = await self.generate_query(triage_input, history)
        except Exception as e:
            logger.error(f"Intent analysis failed: {type(e).__name__}: {e}")
            yield ErrorEvent(content=f"Chat model unavailable: {e}", query_id=query_id)
            return

        if search_query == NOT_NEEDED:
            yield ThoughtEvent(
                content="Direct chat (no vault search needed)...", query_id=query_id
            )
            set_stage("answer")
            messages = [ChatMessage(role="user", content=query)]
            async for event in self._stream_answer(messages, query_id):
                yield event
            return

        yield ThoughtEvent(content=f'Search Query: "{search_query}"', query_id=query_id)
        yield ThoughtEvent(content="Searching vault for relevant notes...", query_id=query_id)
        set_stage("search")

        results: list[RankedDocument] = []
        try:
            async for event in self.reranker.rerank(search_query, parsed, query_id=query_id):
                if isinstance(event, ProgressEvent):
                    yield event
                elif isinstance(event, ResultEvent):
                    results = event.content
        except Exception as e:
            logger.error(f"Vault search failed: {type(e).__name__}: {e}")
            yield TokenEvent(content=SEARCH_ERROR_MESSAGE, query_id=query_id)
            yield DoneEvent(query_id=query_id)
            return

        if not results:
            logger.info(f"No relevant notes for '{search_query}'")
            yield TokenEvent(content=NO_RESULTS_MESSAGE, query_id=query_id)
            yield DoneEvent(query_id=query_id)
            return

        yield ThoughtEvent(content="Embedding complete", query_id=query_id)
        logger.info(f"Sources selected: {len(results)}")
        yield SourcesEvent(content=results, query_id=query_id)

        yield ThoughtEvent(content="Synthesizing answer with citations...", query_id=query_id)
        set_stage("answer")
        system_prompt = build_response_prompt(
            context=build_context(results),
            date=datetime.now(timezone.utc).isoformat(),
        )
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=query),
        ]
        async for event in self._stream_answer(messages, query_id):
            yield event

    async def _stream_answer(
        self,
        messages: list[ChatMessage],
        query_id: str,
    ) -> AsyncIterator[AgentEvent]:
        try:
            async for token in self.chat_client.chat_stream(messages):
                yield TokenEvent(content=token, query_id=query_id)
        except Exception as e:
            logger.error(f"Answer generation failed: {type(e).__name__}: {e}")
            yield ErrorEvent(content=f"Chat model unavailable: {e}", query_id=query_id)
            return

        yield DoneEvent(query_id=query_id)

    async def chat(
        self,
        query: str,
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """Answer a query and return the full text."""
        parts = []
        async for event in self.chat_stream(query, history):
            if isinstance(event, TokenEvent):
                parts.append(event.content)
        return "".join(parts)
