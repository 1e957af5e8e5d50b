"""
Classification models.

``ClassificationEntry``/``ClassifierResponse`` describe what the model must
return; ``ChunkClassification``/``ClassifiedClause`` are the pipeline's view
after the confidence floor has been applied.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nda_analysis.models.taxonomy import ClauseCategory
from nda_analysis.models.usage import TokenUsage


class SecondaryLabel(BaseModel):
    """Secondary category with its own confidence."""

    category: ClauseCategory
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("category")
    @classmethod
    def cuad_only(cls, v: ClauseCategory) -> ClauseCategory:
        if v == ClauseCategory.UNCATEGORIZED:
            raise ValueError("secondary labels must be CUAD categories")
        return v


class PrimaryLabel(BaseModel):
    """Primary category assigned to a chunk."""

    category: ClauseCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    rationale: str = ""


# =============================================================================
# Model Response Schema
# =============================================================================

class ClassificationEntry(BaseModel):
    """One classification returned by the model, keyed by chunk index."""

    chunk_index: int
    category: ClauseCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    rationale: str = ""
    secondary_categories: list[SecondaryLabel] = Field(default_factory=list, max_length=2)


class ClassifierResponse(BaseModel):
    """Structured output of the single classification call."""

    classifications: list[ClassificationEntry] = Field(default_factory=list)


# =============================================================================
# Pipeline Views
# =============================================================================

class ChunkClassification(BaseModel):
    """Classification of one chunk after the confidence floor."""

    chunk_index: int
    primary: PrimaryLabel
    secondary: list[SecondaryLabel] = Field(default_factory=list, max_length=2)

    @property
    def is_uncategorized(self) -> bool:
        return self.primary.category == ClauseCategory.UNCATEGORIZED


class ClassifiedClause(BaseModel):
    """A chunk that received a real category."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    chunk_index: int
    clause_text: str
    category: ClauseCategory
    secondary_categories: list[ClauseCategory] = Field(default_factory=list)
    confidence: float
    reasoning: str = ""
    start_position: int
    end_position: int


class ClassifierOutput(BaseModel):
    """Output of the classification stage."""

    raw_classifications: list[ChunkClassification] = Field(default_factory=list)
    clauses: list[ClassifiedClause] = Field(default_factory=list)
    candidate_categories: list[str] = Field(default_factory=list)
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
