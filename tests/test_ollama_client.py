"""Unit tests for Ollama client."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIError, APITimeoutError, RateLimitError

from vaultmind.clients.ollama_client import OllamaClient
from vaultmind.config import Settings
from vaultmind.models.chat import ChatMessage
from vaultmind.retrieval.reranker import Embedder


@pytest.fixture
def mock_openai_client():
    """Create a mock AsyncOpenAI client."""
    with patch("vaultmind.clients.ollama_client.AsyncOpenAI") as mock:
        yield mock


@pytest.fixture
def no_sleep():
    """Skip backoff delays."""
    with patch("vaultmind.clients.ollama_client.asyncio.sleep", new=AsyncMock()) as mock:
        yield mock


def embedding_response(vector):
    response = MagicMock()
    response.data = [MagicMock(embedding=vector)]
    return response


def stream_chunk(content):
    chunk = MagicMock()
    chunk.choices = [MagicMock(delta=MagicMock(content=content))]
    return chunk


async def fake_stream(chunks):
    for chunk in chunks:
        yield chunk


def mock_http(handler):
    """Patch httpx.AsyncClient to route requests through ``handler``."""
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    return patch.object(httpx, "AsyncClient", side_effect=factory)


def test_client_initialization(mock_openai_client):
    """Test client points the SDK at the OpenAI-compatible endpoint."""
    client = OllamaClient(
        base_url="http://gpu-box:11434/",
        model="qwen2.5:7b",
        embedding_model="bge-m3",
        timeout=30.0,
        max_retries=2,
    )

    assert client.base_url == "http://gpu-box:11434"
    assert client.model == "qwen2.5:7b"
    assert client.embedding_model == "bge-m3"
    assert client.max_retries == 2
    kwargs = mock_openai_client.call_args.kwargs
    assert kwargs["base_url"] == "http://gpu-box:11434/v1"
    assert kwargs["max_retries"] == 0


def test_sdk_endpoint_comes_from_ollama_base_url(mock_openai_client):
    """The settings hold one provider URL; the client adds the /v1 suffix."""
    settings = Settings(_env_file=None, ollama_base_url="https://ollama.lan:8443/")

    OllamaClient(base_url=settings.ollama_base_url)

    assert mock_openai_client.call_args.kwargs["base_url"] == "https://ollama.lan:8443/v1"
    assert not hasattr(settings, "openai_base_url")


def test_client_is_an_embedder(mock_openai_client):
    assert isinstance(OllamaClient(), Embedder)


@pytest.mark.asyncio
async def test_embed_text_success(mock_openai_client):
    """Test successful text embedding."""
    mock_instance = AsyncMock()
    mock_instance.embeddings.create = AsyncMock(return_value=embedding_response([0.1, 0.2]))
    mock_openai_client.return_value = mock_instance

    client = OllamaClient(embedding_model="nomic-embed-text")
    result = await client.embed_text("test text")

    assert result == [0.1, 0.2]
    mock_instance.embeddings.create.assert_called_once_with(
        model="nomic-embed-text", input="test text"
    )


@pytest.mark.asyncio
async def test_chat_success(mock_openai_client):
    """Test chat accepts models and plain dicts."""
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content="Paris"))]
    mock_instance = AsyncMock()
    mock_instance.chat.completions.create = AsyncMock(return_value=response)
    mock_openai_client.return_value = mock_instance

    client = OllamaClient(model="llama3.2:latest")
    result = await client.chat(
        [
            ChatMessage(role="system", content="Be brief."),
            {"role": "user", "content": "Capital of France?"},
        ]
    )

    assert result == "Paris"
    kwargs = mock_instance.chat.completions.create.call_args.kwargs
    assert kwargs["messages"] == [
        {"role": "system", "content": "Be brief."},
        {"role": "user", "content": "Capital of France?"},
    ]


@pytest.mark.asyncio
async def test_chat_empty_content(mock_openai_client):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=None))]
    mock_instance = AsyncMock()
    mock_instance.chat.completions.create = AsyncMock(return_value=response)
    mock_openai_client.return_value = mock_instance

    assert await OllamaClient().chat([{"role": "user", "content": "hi"}]) == ""


@pytest.mark.asyncio
async def test_chat_stream_yields_tokens(mock_openai_client):
    """Test streaming skips empty deltas and chunks without choices."""
    empty = MagicMock()
    empty.choices = []
    chunks = [stream_chunk("Hel"), stream_chunk(None), empty, stream_chunk("lo")]

    mock_instance = AsyncMock()
    mock_instance.chat.completions.create = AsyncMock(return_value=fake_stream(chunks))
    mock_openai_client.return_value = mock_instance

    client = OllamaClient()
    tokens = [token async for token in client.chat_stream([{"role": "user", "content": "hi"}])]

    assert tokens == ["Hel", "lo"]
    assert mock_instance.chat.completions.create.call_args.kwargs["stream"] is True


@pytest.mark.asyncio
async def test_retry_success_after_api_error(mock_openai_client, no_sleep):
    """Test retry logic succeeds after initial failure."""
    api_error = APIError("Temporary error", request=MagicMock(), body=None)

    mock_instance = AsyncMock()
    mock_instance.embeddings.create = AsyncMock(
        side_effect=[api_error, embedding_response([0.3])]
    )
    mock_openai_client.return_value = mock_instance

    client = OllamaClient(max_retries=3)
    result = await client.embed_text("test text")

    assert result == [0.3]
    assert mock_instance.embeddings.create.call_count == 2
    no_sleep.assert_awaited_once_with(1)


@pytest.mark.asyncio
async def test_retry_all_attempts_fail(mock_openai_client, no_sleep):
    """Test the last error surfaces after all attempts."""
    mock_instance = AsyncMock()
    mock_instance.embeddings.create = AsyncMock(side_effect=APITimeoutError(MagicMock()))
    mock_openai_client.return_value = mock_instance

    client = OllamaClient(max_retries=3)

    with pytest.raises(APITimeoutError):
        await client.embed_text("test text")

    assert mock_instance.embeddings.create.call_count == 3
    assert [call.args[0] for call in no_sleep.await_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_retry_with_rate_limit_error(mock_openai_client, no_sleep):
    mock_http_response = MagicMock()
    mock_http_response.status_code = 429
    rate_limit_error = RateLimitError("Rate limit exceeded", response=mock_http_response, body=None)

    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content="ok"))]
    mock_instance = AsyncMock()
    mock_instance.chat.completions.create = AsyncMock(side_effect=[rate_limit_error, response])
    mock_openai_client.return_value = mock_instance

    result = await OllamaClient().chat([{"role": "user", "content": "hi"}])

    assert result == "ok"


@pytest.mark.asyncio
async def test_non_retryable_error_propagates(mock_openai_client, no_sleep):
    mock_instance = AsyncMock()
    mock_instance.embeddings.create = AsyncMock(side_effect=ValueError("bad input"))
    mock_openai_client.return_value = mock_instance

    with pytest.raises(ValueError):
        await OllamaClient().embed_text("x")

    assert mock_instance.embeddings.create.call_count == 1


@pytest.mark.asyncio
async def test_list_models(mock_openai_client):
    """Test models are read from the native tags endpoint."""
    seen = []

    def handler(request):
        seen.append(request.url.path)
        return httpx.Response(
            200,
            json={
                "models": [
                    {"name": "llama3.2:latest", "size": 2019393189, "modified_at": "2024-10-01"},
                    {"name": "nomic-embed-text:latest", "size": 274302450},
                ]
            },
        )

    with mock_http(handler):
        models = await OllamaClient(base_url="http://localhost:11434").list_models()

    assert seen == ["/api/tags"]
    assert [m.name for m in models] == ["llama3.2:latest", "nomic-embed-text:latest"]
    assert models[0].modified_at == "2024-10-01"
    assert models[1].modified_at is None


@pytest.mark.asyncio
async def test_list_models_server_down(mock_openai_client):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with mock_http(handler):
        assert await OllamaClient().list_models() == []


@pytest.mark.asyncio
async def test_list_models_error_status(mock_openai_client):
    with mock_http(lambda request: httpx.Response(500, text="boom")):
        assert await OllamaClient().list_models() == []


@pytest.mark.asyncio
async def test_close(mock_openai_client):
    mock_instance = AsyncMock()
    mock_openai_client.return_value = mock_instance

    async with OllamaClient():
        pass

    mock_instance.close.assert_awaited_once()
