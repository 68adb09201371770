"""Index worker and its request/response client."""

from vaultmind.worker.index_worker import IndexWorker, WorkerError
from vaultmind.worker.search_service import (
    SearchService,
    SearchServiceError,
    SearchTimeoutError,
)

__all__ = [
    "IndexWorker",
    "SearchService",
    "SearchServiceError",
    "SearchTimeoutError",
    "WorkerError",
]
