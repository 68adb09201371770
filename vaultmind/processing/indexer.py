"""Vault indexer: turns Markdown notes into index worker commands."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from vaultmind.logging_config import log_progress, pipeline_stage
from vaultmind.models.document import NoteChunk
from vaultmind.processing.chunker import RecursiveChunker
from vaultmind.processing.metadata import extract_metadata
from vaultmind.worker.search_service import SearchService, SearchServiceError

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"


def chunk_id(path: str, index: int) -> str:
    return f"{path}::{index}"


def is_note(path: Path, vault_root: Path) -> bool:
    """Markdown file outside hidden folders such as ``.obsidian``."""
    relative = path.relative_to(vault_root)
    return (
        path.is_file()
        and path.suffix.lower() == NOTE_SUFFIX
        and not any(part.startswith(".") for part in relative.parts)
    )


class VaultIndexer:
    """Indexes notes chunk by chunk through the search service.

    Re-indexing a note first deletes every chunk of its path, so a note that
    shrank leaves no stale chunks behind.
    """

    def __init__(
        self,
        search_service: SearchService,
        chunker: RecursiveChunker | None = None,
    ):
        """Initialize indexer.

        Args:
            search_service: Client of the index worker
            chunker: Note chunker (defaults to 1024 chars with 50 overlap)
        """
        self.search_service = search_service
        self.chunker = chunker or RecursiveChunker()

    def chunk_note(self, path: str, content: str, mtime: int | None = None) -> list[NoteChunk]:
        """Split a note into chunks carrying the note's metadata.

        Args:
            path: Vault-relative path of the note
            content: Full Markdown text
            mtime: Modification time in epoch milliseconds

        Returns:
            Non-empty chunks with ids ``<path>::<index>``
        """
        meta = extract_metadata(content, path, mtime)

        chunks = []
        for index, text in enumerate(self.chunker.split_text(content)):
            chunks.append(
                NoteChunk(
                    id=chunk_id(path, index),
                    content=text,
                    meta=meta.model_copy(update={"chunk_index": index}),
                )
            )
        return chunks

    async def index_file(self, path: str, content: str, mtime: int | None = None) -> int:
        """(Re)index one note.

        Args:
            path: Vault-relative path of the note
            content: Full Markdown text
            mtime: Modification time in epoch milliseconds

        Returns:
            Number of chunks indexed

        Raises:
            SearchServiceError: If the worker rejects a command or times out
        """
        await self.search_service.delete_by_path(path)

        chunks = self.chunk_note(path, content, mtime)
        for chunk in chunks:
            await self.search_service.index_document(chunk.id, chunk.content, chunk.meta)

        logger.debug(f"Indexed '{path}' ({len(chunks)} chunks)")
        return len(chunks)

    async def delete_file(self, path: str) -> int:
        """Remove every chunk of a note and return how many were removed."""
        return await self.search_service.delete_by_path(path)

    async def build_index(
        self,
        vault_root: Path | str,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> int:
        """Index every note under a vault directory.

        A note that cannot be read or indexed is logged and skipped.

        Args:
            vault_root: Vault directory
            on_progress: Called with (completed, total) after each note

        Returns:
            Number of notes indexed successfully
        """
        vault_root = Path(vault_root)
        if not vault_root.is_dir():
            raise FileNotFoundError(f"Vault directory not found: {vault_root}")

        with pipeline_stage("indexing"):
            files = sorted(
                p for p in vault_root.rglob(f"*{NOTE_SUFFIX}") if is_note(p, vault_root)
            )
            total = len(files)
            logger.info(f"Indexing start: {total} notes in {vault_root}")

            indexed = 0
            for completed, file_path in enumerate(files, 1):
                relative = file_path.relative_to(vault_root).as_posix()
                try:
                    content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
                    mtime = int(file_path.stat().st_mtime * 1000)
                    await self.index_file(relative, content, mtime)
                    indexed += 1
                except (OSError, UnicodeDecodeError, SearchServiceError) as e:
                    logger.error(f"Failed to index '{relative}': {type(e).__name__}: {e}")

                if on_progress:
                    on_progress(completed, total)
                if completed % 50 == 0 or completed == total:
                    log_progress(logger, completed, total)

            logger.info(f"Indexing complete: {indexed}/{total} notes")
            return indexed
