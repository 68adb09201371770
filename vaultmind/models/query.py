"""Query-related Pydantic models."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from vaultmind.models.chat import ChatMessage


class ParsedQuery(BaseModel):
    """Structured facets extracted from one raw query string.

    Facet tuples are ordered by first appearance and hold no duplicates.
    """

    model_config = ConfigDict(frozen=True)

    text: tuple[str, ...] = ()
    exact_terms: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()
    path_includes: tuple[str, ...] = ()
    path_excludes: tuple[str, ...] = ()
    text_excludes: tuple[str, ...] = ()

    @property
    def clean_text(self) -> str:
        """Free text followed by exact phrases, without any operators."""
        return " ".join([*self.text, *self.exact_terms])

    @property
    def has_filters(self) -> bool:
        """Whether any facet restricts which chunks may be returned."""
        return bool(
            self.extensions
            or self.path_includes
            or self.path_excludes
            or self.exact_terms
            or self.text_excludes
        )


class SearchRequest(BaseModel):
    """Lexical search request."""

    query: str
    top_k: int | None = Field(
        default=None,
        ge=1,
        le=1000,
        validation_alias=AliasChoices("top_k", "topK"),
        description="Number of candidates to return (server default when omitted)",
    )


class RerankRequest(BaseModel):
    """Hybrid retrieval request for a raw query in the search mini-language."""

    query: str = Field(min_length=1)


class ChatRequest(BaseModel):
    """Question answered from the vault."""

    query: str = Field(min_length=1)
    history: list[ChatMessage] = Field(default_factory=list)
