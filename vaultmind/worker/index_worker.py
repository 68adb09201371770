"""Index worker: owns the lexical index and serves commands from a queue.

Messages arrive as plain dicts (as they would over any IPC boundary), are
decoded into the ``WorkerCommand`` union, executed one at a time, and
answered with exactly one ``WorkerResponse`` carrying the request id.
"""

import asyncio
import contextlib
import logging
from typing import Any

from pydantic import ValidationError

from vaultmind.models.document import IndexedDocument
from vaultmind.models.worker import (
    DeleteCommand,
    IndexCommand,
    InitCommand,
    SearchCommand,
    WorkerCommand,
    WorkerResponse,
    worker_command_adapter,
)
from vaultmind.retrieval.lexical_index import LexicalIndex

logger = logging.getLogger(__name__)

KNOWN_COMMANDS = ("init", "index", "delete", "search")


class WorkerError(Exception):
    """Raised for commands the worker cannot decode or execute."""


class IndexWorker:
    """Single-consumer actor around a ``LexicalIndex``.

    Index work runs in a thread (``asyncio.to_thread``) so a large rebuild
    does not stall the event loop; the queue still serialises commands.
    """

    def __init__(self, index: LexicalIndex | None = None):
        """Initialize worker.

        Args:
            index: Index to serve (a default one is created if omitted)
        """
        self.index = index if index is not None else LexicalIndex()
        self.inbox: asyncio.Queue[Any] = asyncio.Queue()
        self.outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start consuming the inbox (no-op when already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="index-worker")
        logger.info("Index worker started")

    async def stop(self) -> None:
        """Stop the worker; queued messages are left unanswered."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Index worker stopped")

    async def _run(self) -> None:
        while True:
            message = await self.inbox.get()
            try:
                response = await self.handle_message(message)
                await self.outbox.put(response.model_dump())
            finally:
                self.inbox.task_done()

    async def handle_message(self, message: Any) -> WorkerResponse:
        """Decode, validate and execute one raw message.

        Never raises: decoding and execution failures become error responses
        so the worker keeps serving.

        Args:
            message: Raw message, expected ``{command, id, payload}``

        Returns:
            Response correlated to the message id ("" if it had none)
        """
        request_id = ""
        if isinstance(message, dict) and message.get("id") is not None:
            request_id = str(message["id"])

        try:
            command = self._decode(message)
        except WorkerError as e:
            logger.warning(f"Rejected worker message '{request_id}': {e}")
            return WorkerResponse(id=request_id, status="error", error=str(e))

        try:
            data = await self._execute(command)
        except Exception as e:
            logger.error(
                f"Worker command '{command.command}' ({command.id}) failed: "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            return WorkerResponse(id=command.id, status="error", error=str(e))

        return WorkerResponse(id=command.id, status="success", data=data)

    def _decode(self, message: Any) -> WorkerCommand:
        if not isinstance(message, dict):
            raise WorkerError(f"Message must be an object, got {type(message).__name__}")

        name = message.get("command")
        if name not in KNOWN_COMMANDS:
            raise WorkerError(f"Unknown command: {name!r}")

        try:
            return worker_command_adapter.validate_python(message)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise WorkerError(f"Invalid '{name}' payload: {details}") from e

    async def _execute(self, command: WorkerCommand) -> dict[str, Any]:
        if isinstance(command, InitCommand):
            self.index.init()
            return {"message": "Initialized", "documents": len(self.index)}

        if isinstance(command, IndexCommand):
            payload = command.payload
            doc = IndexedDocument.from_payload(payload.id, payload.content, payload.meta)
            await asyncio.to_thread(self.index.upsert, doc)
            return {"id": doc.id}

        if isinstance(command, DeleteCommand):
            count = await asyncio.to_thread(self.index.delete_by_path, command.payload.path)
            return {"path": command.payload.path, "count": count}

        if isinstance(command, SearchCommand):
            payload = command.payload
            results = await asyncio.to_thread(self.index.search, payload.query, payload.top_k)
            return {"results": [candidate.model_dump() for candidate in results]}

        raise WorkerError(f"Unhandled command: {command.command}")
