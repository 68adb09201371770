"""Events streamed by the retrieval pipeline and the chat agent.

Every event carries a ``type`` discriminator so consumers can decode a
stream of JSON lines back into the matching model.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from vaultmind.models.search import RankedDocument


class ProgressInfo(BaseModel):
    """Cumulative reranking progress."""

    current: int = Field(ge=0)
    total: int = Field(ge=0)


class BaseEvent(BaseModel):
    query_id: str | None = Field(default=None, description="Query that produced the event")


class ThoughtEvent(BaseEvent):
    """Human-readable status of the pipeline stage."""

    type: Literal["thought"] = "thought"
    content: str


class ProgressEvent(BaseEvent):
    type: Literal["progress"] = "progress"
    content: ProgressInfo


class ResultEvent(BaseEvent):
    """Terminal event of a rerank run."""

    type: Literal["result"] = "result"
    content: list[RankedDocument] = Field(default_factory=list)


class SourcesEvent(BaseEvent):
    """Documents used to ground the answer."""

    type: Literal["sources"] = "sources"
    content: list[RankedDocument]


class TokenEvent(BaseEvent):
    type: Literal["token"] = "token"
    content: str


class ErrorEvent(BaseEvent):
    """Terminal failure of one query's stream."""

    type: Literal["error"] = "error"
    content: str


class DoneEvent(BaseEvent):
    type: Literal["done"] = "done"


RerankEvent = Annotated[Union[ProgressEvent, ResultEvent], Field(discriminator="type")]

AgentEvent = Annotated[
    Union[ThoughtEvent, ProgressEvent, SourcesEvent, TokenEvent, ErrorEvent, DoneEvent],
    Field(discriminator="type"),
]

agent_event_adapter: TypeAdapter[AgentEvent] = TypeAdapter(AgentEvent)
