"""Ollama client for embeddings and chat completions.

Talks to Ollama's OpenAI-compatible endpoint (``<base_url>/v1``) through the
``openai`` SDK; model listing uses the native ``/api/tags`` endpoint.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import httpx
from openai import APIConnectionError, APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from vaultmind.models.chat import ChatMessage, ModelInfo

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (APIError, APIConnectionError, RateLimitError, APITimeoutError)


class OllamaClient:
    """Client for a local Ollama server with retry logic.

    Provides async methods for embeddings, chat completions and streamed
    chat completions. Failed calls are retried with exponential backoff.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2:latest",
        embedding_model: str = "nomic-embed-text",
        timeout: float = 60.0,
        max_retries: int = 3,
        temperature: float = 0.7,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama server URL, without the ``/v1`` suffix
            model: Model name for chat completions
            embedding_model: Model name for embeddings
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts per call
            temperature: Sampling temperature for chat
        """
        self.base_url = base_url.rstrip("/")
        self.client = AsyncOpenAI(
            base_url=f"{self.base_url}/v1",
            api_key="ollama",
            timeout=timeout,
            max_retries=0,  # Retries are handled here
        )
        self.model = model
        self.embedding_model = embedding_model
        self.timeout = timeout
        self.max_retries = max_retries
        self.temperature = temperature

    async def _retry_with_backoff(self, func, *args, **kwargs) -> Any:
        """Execute function with exponential backoff retry logic.

        Retries up to max_retries times with delays of 1s, 2s, 4s, ...

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Result from successful function execution

        Raises:
            Exception: The last exception if all retries fail
        """
        last_exception: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                return await func(*args, **kwargs)
            except RETRYABLE_ERRORS as e:
                last_exception = e

                if attempt < self.max_retries - 1:
                    delay = 2**attempt
                    logger.warning(
                        f"Ollama call failed (attempt {attempt + 1}/{self.max_retries}): "
                        f"{type(e).__name__}: {e}. Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Ollama call failed after {self.max_retries} attempts: "
                        f"{type(e).__name__}: {e}"
                    )

        raise last_exception

    @staticmethod
    def _to_messages(messages: Sequence[ChatMessage | dict]) -> list[dict[str, str]]:
        result = []
        for message in messages:
            if isinstance(message, ChatMessage):
                message = message.model_dump()
            result.append({"role": message["role"], "content": message["content"]})
        return result

    async def embed_text(self, text: str) -> list[float]:
        """Generate an embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            APIError: If the call fails after retries
        """

        async def _embed():
            response = await self.client.embeddings.create(
                model=self.embedding_model,
                input=text,
            )
            return response.data[0].embedding

        return await self._retry_with_backoff(_embed)

    async def chat(self, messages: Sequence[ChatMessage | dict]) -> str:
        """Generate a complete chat response.

        Args:
            messages: Ordered role-tagged messages

        Returns:
            Response text ("" if the model returned nothing)

        Raises:
            APIError: If the call fails after retries
        """
        payload = self._to_messages(messages)

        async def _chat():
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.temperature,
            )
            return response.choices[0].message.content or ""

        return await self._retry_with_backoff(_chat)

    async def chat_stream(self, messages: Sequence[ChatMessage | dict]) -> AsyncIterator[str]:
        """Stream a chat response token by token.

        Only opening the stream is retried; a failure mid-stream propagates
        to the caller.

        Args:
            messages: Ordered role-tagged messages

        Yields:
            Response tokens
        """
        payload = self._to_messages(messages)

        async def _open():
            return await self.client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.temperature,
                stream=True,
            )

        stream = await self._retry_with_backoff(_open)
        async for chunk in stream:
            if not chunk.choices:
                continue
            token = chunk.choices[0].delta.content
            if token:
                yield token

    async def list_models(self) -> list[ModelInfo]:
        """List models installed on the server.

        Returns:
            Installed models, or an empty list if the server is unreachable
        """
        try:
            async with httpx.AsyncClient(timeout=5.0) as http:
                response = await http.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to list Ollama models: {e}")
            return []

        return [ModelInfo.model_validate(item) for item in data.get("models", [])]

    async def close(self):
        """Close the client connection."""
        await self.client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
