"""Logging setup. Every record is stamped with the query id and pipeline stage."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from vaultmind.config import get_settings

query_id_var: ContextVar[str | None] = ContextVar("query_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)

LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | query=%(query_id)s stage=%(stage)s | "
    "%(name)s:%(lineno)d | %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every HTTP call at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")


class QueryContextFilter(logging.Filter):
    """Copy the current query id and pipeline stage onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.query_id = query_id_var.get() or "-"
        record.stage = stage_var.get() or "-"
        return True


def setup_logging(level: str | None = None) -> None:
    """Send all logs to stdout with query context.

    Args:
        level: Log level name (defaults to the configured ``log_level``)
    """
    level = level or get_settings().log_level

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(QueryContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured with level: {level}")


def bind_query(query_id: str | None, stage: str | None = None) -> None:
    """Tag logs of the current task with a query id, resetting the stage."""
    query_id_var.set(query_id)
    stage_var.set(stage)


def set_stage(stage: str | None) -> None:
    stage_var.set(stage)


@contextmanager
def pipeline_stage(stage: str) -> Iterator[None]:
    """Tag logs inside the block with ``stage``, restoring the previous one after.

    Not for use across ``yield`` in an async generator, whose steps may run
    in different contexts; call ``set_stage`` there instead.
    """
    token = stage_var.set(stage)
    try:
        yield
    finally:
        stage_var.reset(token)


def log_progress(logger: logging.Logger, done: int, total: int, unit: str = "notes") -> None:
    """Log ``done/total`` for a batch job under the current stage."""
    percentage = done / total * 100 if total else 100.0
    logger.info(f"Progress: {done}/{total} {unit} ({percentage:.0f}%)")
