"""Document-related Pydantic models."""

import time
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class DocumentMeta(BaseModel):
    """Metadata supplied with an indexed chunk.

    Accepts both snake_case and the camelCase keys used by older producers
    (``filePath``, ``chunkIndex``).
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    basename: str | None = None
    aliases: str = ""
    file_path: str | None = Field(
        default=None, validation_alias=AliasChoices("file_path", "filePath", "path")
    )
    chunk_index: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("chunk_index", "chunkIndex")
    )
    h1: str = ""
    h2: str = ""
    h3: str = ""
    tags: str = ""
    urls: str = ""
    links: str = ""
    mtime: int | None = Field(default=None, description="Modification time, epoch ms")
    frontmatter: dict[str, str] = Field(default_factory=dict)


class IndexedDocument(BaseModel):
    """One searchable chunk of a vault file."""

    id: str = Field(min_length=1, description="<file_path>::<chunk_index>")
    basename: str
    aliases: str = ""
    path: str
    content: str
    h1: str = ""
    h2: str = ""
    h3: str = ""
    tags: str = ""
    urls: str = ""
    links: str = ""
    mtime: int
    frontmatter: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_payload(
        cls,
        doc_id: str,
        content: str,
        meta: DocumentMeta | None = None,
    ) -> "IndexedDocument":
        """Build a document from an ``index`` command payload, filling defaults."""
        meta = meta or DocumentMeta()
        path = meta.file_path or ""

        basename = meta.basename
        if not basename and path:
            basename = path.split("/")[-1].removesuffix(".md")

        return cls(
            id=doc_id,
            basename=basename or "Untitled",
            aliases=meta.aliases,
            path=path,
            content=content,
            h1=meta.h1,
            h2=meta.h2,
            h3=meta.h3,
            tags=meta.tags,
            urls=meta.urls,
            links=meta.links,
            mtime=meta.mtime or now_ms(),
            frontmatter=meta.frontmatter,
        )

    def field_text(self, field_name: str) -> str:
        """Text of a searchable field."""
        value: Any = getattr(self, field_name)
        return value if isinstance(value, str) else str(value)


class IndexDocumentRequest(BaseModel):
    """Request to index a single pre-chunked document."""

    id: str = Field(min_length=1)
    content: str
    meta: DocumentMeta = Field(default_factory=DocumentMeta)


class IndexFileRequest(BaseModel):
    """Request to (re)index a whole vault file."""

    path: str = Field(min_length=1)
    content: str
    mtime: int | None = Field(default=None, description="Modification time, epoch ms")


class IndexFileResponse(BaseModel):
    """Result of indexing a vault file."""

    path: str
    chunks: int = Field(ge=0, description="Number of chunks indexed")


class DeleteResponse(BaseModel):
    """Result of deleting all chunks of a path."""

    path: str
    count: int = Field(ge=0, description="Number of chunks removed")


class NoteChunk(BaseModel):
    """A chunk of a note ready to be sent to the index worker."""

    id: str = Field(min_length=1, description="<file_path>::<chunk_index>")
    content: str
    meta: DocumentMeta


class IndexDocumentResponse(BaseModel):
    """Result of indexing a single chunk."""

    id: str
    status: str = "indexed"
