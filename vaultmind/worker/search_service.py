"""Request/response client for the index worker."""

import asyncio
import contextlib
import itertools
import logging
from typing import Any

from pydantic import ValidationError

from vaultmind.models.document import DocumentMeta
from vaultmind.models.search import Candidate
from vaultmind.models.worker import DEFAULT_SEARCH_TOP_K, WorkerResponse
from vaultmind.worker.index_worker import IndexWorker

logger = logging.getLogger(__name__)


class SearchServiceError(Exception):
    """A worker request failed."""


class SearchTimeoutError(SearchServiceError):
    """No response arrived before the deadline.

    Distinct from an empty result: the index may well hold matches.
    """


class SearchService:
    """Correlates worker requests with their responses.

    Each request gets a unique id and a pending future; a reader task
    resolves futures from the worker's outbox. Pending entries are removed
    once resolved, rejected or timed out.
    """

    def __init__(
        self,
        worker: IndexWorker | None = None,
        timeout: float = 30.0,
        default_top_k: int = DEFAULT_SEARCH_TOP_K,
    ):
        """Initialize search service.

        Args:
            worker: Index worker to talk to
            timeout: Default seconds to wait for a response
            default_top_k: Candidates returned when a search omits top_k
        """
        self.worker = worker if worker is not None else IndexWorker()
        self.timeout = timeout
        self.default_top_k = default_top_k
        self._pending: dict[str, asyncio.Future[WorkerResponse]] = {}
        self._ids = itertools.count(1)
        self._reader_task: asyncio.Task | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        """Start the worker and initialize the index."""
        self._ensure_running()
        await self.request("init")

    async def stop(self) -> None:
        """Stop the reader and the worker, failing outstanding requests."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        for future in self._pending.values():
            if not future.done():
                future.set_exception(SearchServiceError("Search service stopped"))
        self._pending.clear()

        await self.worker.stop()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def _ensure_running(self) -> None:
        self.worker.start()
        if self._reader_task is None or self._reader_task.done():
            self._reader_task = asyncio.create_task(
                self._read_responses(), name="search-service-reader"
            )

    async def _read_responses(self) -> None:
        while True:
            raw = await self.worker.outbox.get()
            try:
                response = WorkerResponse.model_validate(raw)
            except ValidationError as e:
                logger.error(f"Discarding malformed worker response: {e}")
                continue

            future = self._pending.get(response.id)
            if future is None or future.done():
                # Late answer to a request that already timed out
                logger.debug(f"No pending request for response '{response.id}'")
                continue
            future.set_result(response)

    async def request(
        self,
        command: str,
        payload: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send a command to the worker and wait for its response.

        Args:
            command: Command name
            payload: Command payload
            timeout: Seconds to wait (defaults to the service timeout)

        Returns:
            Response data

        Raises:
            SearchTimeoutError: If no response arrives in time
            SearchServiceError: If the worker answers with an error
        """
        self._ensure_running()
        timeout = self.timeout if timeout is None else timeout

        request_id = f"{command}-{next(self._ids)}"
        future: asyncio.Future[WorkerResponse] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self.worker.inbox.put(
                {"command": command, "id": request_id, "payload": payload or {}}
            )
            response = await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Worker request '{request_id}' timed out after {timeout}s")
            raise SearchTimeoutError(
                f"'{command}' request timed out after {timeout}s"
            ) from None
        finally:
            self._pending.pop(request_id, None)

        if response.status == "error":
            raise SearchServiceError(response.error or f"'{command}' request failed")

        return response.data or {}

    async def index_document(
        self,
        doc_id: str,
        content: str,
        meta: DocumentMeta | dict[str, Any] | None = None,
    ) -> None:
        """Upsert one chunk."""
        if isinstance(meta, DocumentMeta):
            meta = meta.model_dump(exclude_none=True)
        await self.request("index", {"id": doc_id, "content": content, "meta": meta or {}})

    async def delete_by_path(self, path: str) -> int:
        """Remove every chunk of ``path`` and return how many were removed."""
        data = await self.request("delete", {"path": path})
        return int(data.get("count", 0))

    async def search(
        self,
        query: str,
        top_k: int | None = None,
        timeout: float | None = None,
    ) -> list[Candidate]:
        """Run a lexical search.

        Args:
            query: Query text
            top_k: Maximum number of candidates
            timeout: Seconds to wait (defaults to the service timeout)

        Returns:
            Candidates sorted by keyword score, possibly empty

        Raises:
            SearchTimeoutError: If the worker does not answer in time
            SearchServiceError: If the worker reports an error
        """
        data = await self.request(
            "search",
            {"query": query, "top_k": top_k or self.default_top_k},
            timeout=timeout,
        )
        return [Candidate.model_validate(item) for item in data.get("results", [])]
