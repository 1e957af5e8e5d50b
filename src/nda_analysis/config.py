"""
Configuration management for the NDA analysis pipeline.

Loads settings from environment variables with sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # ==========================================================================
    # LLM API Keys
    # ==========================================================================
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openai_api_key: str = Field(default="", description="OpenAI API key for the fallback model")

    # ==========================================================================
    # LLM Configuration
    # ==========================================================================
    primary_llm_model: str = "claude-sonnet-4-20250514"
    primary_llm_provider: Literal["anthropic", "openai"] = "anthropic"
    fallback_llm_model: str = "gpt-4o"
    fallback_llm_provider: Literal["anthropic", "openai"] = "openai"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 4096
    llm_timeout: int = 60

    # Per-stage model overrides (primary provider)
    classifier_model: str = "claude-sonnet-4-20250514"
    risk_scorer_model: str = "claude-sonnet-4-5-20250929"
    gap_analyst_model: str = "claude-sonnet-4-5-20250929"

    # ==========================================================================
    # Redis
    # ==========================================================================
    redis_url: str = "redis://localhost:6379/0"
    redis_enabled: bool = True
    embedding_cache_ttl_seconds: int = Field(default=86400, ge=1)

    # ==========================================================================
    # Qdrant
    # ==========================================================================
    qdrant_host: str = "localhost"
    qdrant_port: int = 6333
    qdrant_collection: str = "nda_references"

    # ==========================================================================
    # Embedding Configuration
    # ==========================================================================
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: int = 384

    # ==========================================================================
    # Retrieval
    # ==========================================================================
    search_cache_max_entries: int = 500
    search_cache_ttl_seconds: float = 300.0
    search_default_limit: int = 5
    reference_selector_max: int = 10

    # ==========================================================================
    # Pipeline Configuration
    # ==========================================================================
    # Classification
    classifier_references_per_chunk: int = 3
    classifier_neighbor_chars: int = 200
    classification_confidence_floor: float = 0.3
    low_confidence_threshold: float = 0.7

    # Risk scoring (normal limits, then reduced limits under budget pressure)
    risk_clause_evidence_limit: int = 3
    risk_template_evidence_limit: int = 2
    risk_span_evidence_limit: int = 2
    risk_clause_evidence_limit_reduced: int = 2
    risk_template_evidence_limit_reduced: int = 1
    risk_span_evidence_limit_reduced: int = 1

    # Gap analysis
    gap_template_limit: int = 2
    max_hypotheses_tested: int = 5
    critical_weight_threshold: float = 1.5

    # Budget
    token_budget: int = 212_000
    budget_warning_ratio: float = 0.8
    input_cost_per_million: float = 3.0
    output_cost_per_million: float = 15.0

    # Orchestration
    analysis_timeout_seconds: float | None = None
    halt_on_zero_clauses: bool = True

    # ==========================================================================
    # Storage Paths
    # ==========================================================================
    category_table_path: Path = Path(__file__).parent / "data" / "cuad_categories.json"

    @field_validator("category_table_path", mode="before")
    @classmethod
    def convert_to_path(cls, v: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(v) if isinstance(v, str) else v

    # ==========================================================================
    # Stage Budgets (informational allocations, in tokens)
    # ==========================================================================
    @property
    def stage_budgets(self) -> dict[str, int]:
        """Per-stage token allocations within the document budget."""
        return {
            "parser": 20_000,
            "classifier": 60_000,
            "risk_scorer": 80_000,
            "gap_analyst": 52_000,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
