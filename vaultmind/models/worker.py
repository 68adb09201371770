"""Command and response envelopes exchanged with the index worker.

Requests are a tagged union keyed by ``command``; each variant has a concrete
payload that is validated before the worker touches the index.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

from vaultmind.models.document import DocumentMeta

DEFAULT_SEARCH_TOP_K = 30


class InitPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class IndexPayload(BaseModel):
    id: str = Field(min_length=1)
    content: str
    meta: DocumentMeta = Field(default_factory=DocumentMeta)


class DeletePayload(BaseModel):
    path: str


class SearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    top_k: int = Field(
        default=DEFAULT_SEARCH_TOP_K,
        ge=1,
        validation_alias=AliasChoices("top_k", "topK"),
    )


class InitCommand(BaseModel):
    command: Literal["init"] = "init"
    id: str
    payload: InitPayload = Field(default_factory=InitPayload)


class IndexCommand(BaseModel):
    command: Literal["index"] = "index"
    id: str
    payload: IndexPayload


class DeleteCommand(BaseModel):
    command: Literal["delete"] = "delete"
    id: str
    payload: DeletePayload


class SearchCommand(BaseModel):
    command: Literal["search"] = "search"
    id: str
    payload: SearchPayload


WorkerCommand = Annotated[
    Union[InitCommand, IndexCommand, DeleteCommand, SearchCommand],
    Field(discriminator="command"),
]

worker_command_adapter: TypeAdapter[WorkerCommand] = TypeAdapter(WorkerCommand)


class WorkerResponse(BaseModel):
    """Exactly one response is produced per request, correlated by ``id``."""

    id: str
    status: Literal["success", "error"]
    data: dict[str, Any] | None = None
    error: str | None = None
