"""Chat message model shared by the provider client and the agent."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """One role-tagged message of a conversation."""

    role: Literal["system", "user", "assistant"]
    content: str


class ModelInfo(BaseModel):
    """A model installed on the provider."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    size: int = 0
    modified_at: str | None = Field(
        default=None, validation_alias=AliasChoices("modified_at", "modified")
    )
