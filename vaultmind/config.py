"""Application configuration using Pydantic Settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FIELD_BOOSTS: dict[str, float] = {
    "basename": 4.0,
    "aliases": 3.5,
    "h1": 2.5,
    "h2": 2.0,
    "h3": 1.5,
    "tags": 3.0,
    "links": 1.8,
    "urls": 1.3,
    "path": 1.2,
    "content": 1.0,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are validated at startup. Invalid values cause the
    application to fail fast with clear error messages.
    """

    # API Settings
    api_title: str = Field(default="VaultMind", description="API title")
    api_version: str = Field(default="1.0.0", description="API version")

    # Model provider (Ollama, OpenAI-compatible endpoint)
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server",
    )
    llm_model: str = Field(
        default="llama3.2:latest",
        min_length=1,
        description="Model for intent triage and answer generation",
    )
    embedding_model: str = Field(
        default="nomic-embed-text",
        min_length=1,
        description="Model for text embeddings",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Provider request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per provider call before giving up",
    )

    # Logging Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Lexical search
    search_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Seconds to wait for a search round-trip to the index worker",
    )
    default_top_k: int = Field(
        default=30,
        ge=1,
        description="Candidates returned by a search that does not specify top_k",
    )
    field_boosts: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FIELD_BOOSTS),
        description="Per-field relevance weights applied at query time",
    )
    exact_match_max_length: int = Field(
        default=3,
        ge=0,
        description="Terms up to this length are matched exactly (no fuzziness)",
    )
    short_term_max_length: int = Field(
        default=5,
        ge=0,
        description="Terms up to this length use the short-term fuzziness",
    )
    short_term_fuzziness: float = Field(
        default=0.1,
        ge=0.0,
        lt=1.0,
        description="Edit distance tolerance (fraction of length) for short terms",
    )
    long_term_fuzziness: float = Field(
        default=0.2,
        ge=0.0,
        lt=1.0,
        description="Edit distance tolerance (fraction of length) for long terms",
    )
    prefix_min_length: int = Field(
        default=2,
        ge=1,
        description="Minimum term length for prefix matching",
    )

    # Reranking
    candidate_limit: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Lexical candidates fetched for embedding reranking",
    )
    rerank_batch_size: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Chunks embedded concurrently per batch",
    )
    rerank_batch_delay: float = Field(
        default=0.1,
        ge=0.0,
        description="Pause between embedding batches in seconds",
    )
    rerank_top_chunks: int = Field(
        default=50,
        ge=1,
        description="Best chunks considered when grouping into documents",
    )
    rerank_top_documents: int = Field(
        default=20,
        ge=1,
        description="Documents returned after grouping",
    )
    fallback_top_k: int = Field(
        default=12,
        ge=1,
        description="Unreranked candidates returned when reranking fails",
    )
    tag_boost: float = Field(
        default=100.0,
        gt=0.0,
        description="Multiplier for chunks containing a queried #tag",
    )

    # Chat
    history_window: int = Field(
        default=4,
        ge=0,
        le=50,
        description="Recent chat messages passed to intent triage",
    )

    # Chunking
    chunk_size: int = Field(
        default=1024,
        ge=100,
        le=8000,
        description="Maximum chunk size in characters",
    )
    chunk_overlap: int = Field(
        default=50,
        ge=0,
        le=1000,
        description="Overlap between consecutive chunks",
    )

    # Vault
    vault_path: str | None = Field(
        default=None,
        description="Vault directory indexed in the background at startup",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"log_level must be one of {valid_levels}, got '{v}'"
            )
        return v_upper

    @field_validator("ollama_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure the provider URL is an http(s) URL without a trailing slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("ollama_base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("field_boosts")
    @classmethod
    def validate_field_boosts(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure boosts cover known fields only and are positive."""
        unknown = set(v) - set(DEFAULT_FIELD_BOOSTS)
        if unknown:
            raise ValueError(f"field_boosts has unknown fields: {sorted(unknown)}")
        for field_name, boost in v.items():
            if boost <= 0:
                raise ValueError(f"field boost for '{field_name}' must be positive")
        return {**DEFAULT_FIELD_BOOSTS, **v}

    def model_post_init(self, __context) -> None:
        """Additional validation after model initialization."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )

        if self.short_term_max_length < self.exact_match_max_length:
            raise ValueError(
                f"short_term_max_length ({self.short_term_max_length}) must be >= "
                f"exact_match_max_length ({self.exact_match_max_length})"
            )

        if self.rerank_top_chunks > self.candidate_limit:
            raise ValueError(
                f"rerank_top_chunks ({self.rerank_top_chunks}) must be <= "
                f"candidate_limit ({self.candidate_limit})"
            )

        if self.rerank_top_documents > self.rerank_top_chunks:
            raise ValueError(
                f"rerank_top_documents ({self.rerank_top_documents}) must be <= "
                f"rerank_top_chunks ({self.rerank_top_chunks})"
            )


# Global settings instance, created lazily on first access
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Settings: The application settings

    Raises:
        ValueError: If settings validation fails
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


# Convenience function to reload settings (useful for testing)
def reload_settings() -> Settings:
    """Reload settings from environment.

    Returns:
        Settings: The reloaded application settings
    """
    global _settings
    _settings = Settings()
    return _settings
