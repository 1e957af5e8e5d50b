"""
Gap analysis models.
"""

from pydantic import BaseModel, Field

from nda_analysis.models.taxonomy import (
    ContractNLICategory,
    GapSeverity,
    GapStatus,
    HypothesisStatus,
)
from nda_analysis.models.usage import TokenUsage


class GapItem(BaseModel):
    """A missing or incomplete category."""

    category: str
    status: GapStatus
    severity: GapSeverity
    explanation: str
    suggested_language: str
    template_source: str | None = None
    style_match: str | None = None


class HypothesisResult(BaseModel):
    """Result of testing one ContractNLI hypothesis; also the model's schema."""

    hypothesis_id: str
    category: ContractNLICategory
    status: HypothesisStatus
    supporting_clause_id: str | None = None
    explanation: str


class GapExplanation(BaseModel):
    """Model-drafted explanation and language for one gap."""

    category: str
    explanation: str
    suggested_language: str
    template_source: str | None = None
    style_match: str | None = None


class GapExplanationResponse(BaseModel):
    gaps: list[GapExplanation] = Field(default_factory=list)


class CoverageSummary(BaseModel):
    total_relevant: int = 0
    present_count: int = 0
    missing_count: int = 0
    incomplete_count: int = 0
    coverage_percent: int = 0
    present_categories: list[str] = Field(default_factory=list)


class GapAnalystOutput(BaseModel):
    """Output of the gap analysis stage."""

    gaps: list[GapItem] = Field(default_factory=list)
    hypothesis_coverage: list[HypothesisResult] = Field(default_factory=list)
    gap_score: int = 0
    coverage_summary: CoverageSummary = Field(default_factory=CoverageSummary)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
