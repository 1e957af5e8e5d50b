"""
Stage 4: Gap Analysis

Two sub-algorithms feed one output:
1. Deterministic category-gap detection with rule-based severity; the model
   only explains each gap and drafts language.
2. Sequential ContractNLI hypothesis testing, one model call per hypothesis.
"""

import asyncio
import math
from dataclasses import dataclass
from functools import lru_cache

import structlog

from nda_analysis.budget import BudgetTracker, StageUsage
from nda_analysis.config import get_settings
from nda_analysis.errors import RetrievalError, SchemaViolationError
from nda_analysis.models.classification import ClassifiedClause
from nda_analysis.models.gap import (
    CoverageSummary,
    GapAnalystOutput,
    GapExplanation,
    GapExplanationResponse,
    GapItem,
    HypothesisResult,
)
from nda_analysis.models.reference import Granularity, ReferenceItem
from nda_analysis.models.risk import RiskAssessment
from nda_analysis.models.taxonomy import (
    CONTRACT_NLI_HYPOTHESES,
    CRITICAL_HYPOTHESIS_CATEGORIES,
    GapSeverity,
    GapStatus,
    HypothesisStatus,
    RiskLevel,
)
from nda_analysis.prompts.gap_analyst import (
    GAP_ANALYST_SYSTEM_PROMPT,
    HYPOTHESIS_SYSTEM_PROMPT,
    build_gap_prompt,
    build_hypothesis_prompt,
)
from nda_analysis.services.llm_service import LLMService, get_llm_service
from nda_analysis.services.retrieval import EvidenceRetriever, get_evidence_retriever
from nda_analysis.storage.category_table import CategoryRow, CategorySource, get_category_source

logger = structlog.get_logger(__name__)

STAGE_NAME = "gap_analyst"

SEVERITY_POINTS: dict[GapSeverity, int] = {
    GapSeverity.CRITICAL: 15,
    GapSeverity.IMPORTANT: 8,
    GapSeverity.INFORMATIONAL: 3,
}
CONTRADICTION_POINTS = 15
NOT_MENTIONED_CRITICAL_POINTS = 10
NOT_MENTIONED_POINTS = 5
MAX_GAP_SCORE = 100

_WEAK_LEVELS = {RiskLevel.AGGRESSIVE, RiskLevel.UNKNOWN}


@dataclass(frozen=True)
class CategoryStatus:
    category: str
    status: GapStatus
    risk_weight: float


# =============================================================================
# Deterministic Rules
# =============================================================================

def detect_category_status(
    row: CategoryRow,
    clauses: list[ClassifiedClause],
    assessments: list[RiskAssessment],
    low_confidence_threshold: float = 0.7,
) -> CategoryStatus:
    """
    missing: no clause has this primary category.
    incomplete: no matching clause reaches the threshold, or every
        assessment for the category is aggressive/unknown.
    present: otherwise.
    """
    matching = [c for c in clauses if c.category.value == row.name]
    if not matching:
        return CategoryStatus(row.name, GapStatus.MISSING, row.risk_weight)

    if all(c.confidence < low_confidence_threshold for c in matching):
        return CategoryStatus(row.name, GapStatus.INCOMPLETE, row.risk_weight)

    related = [a for a in assessments if a.category.value == row.name]
    if related and all(a.risk_level in _WEAK_LEVELS for a in related):
        return CategoryStatus(row.name, GapStatus.INCOMPLETE, row.risk_weight)

    return CategoryStatus(row.name, GapStatus.PRESENT, row.risk_weight)


def assign_severity(
    has_template_baseline: bool,
    risk_weight: float,
    critical_weight_threshold: float = 1.5,
) -> GapSeverity:
    """Severity from template presence and category weight only."""
    if has_template_baseline and risk_weight >= critical_weight_threshold:
        return GapSeverity.CRITICAL
    if has_template_baseline:
        return GapSeverity.IMPORTANT
    return GapSeverity.INFORMATIONAL


def calculate_gap_score(
    gaps: list[GapItem],
    hypotheses: list[HypothesisResult],
) -> int:
    score = sum(SEVERITY_POINTS[gap.severity] for gap in gaps)
    for h in hypotheses:
        if h.status == HypothesisStatus.CONTRADICTION:
            score += CONTRADICTION_POINTS
        elif h.status == HypothesisStatus.NOT_MENTIONED:
            if h.category in CRITICAL_HYPOTHESIS_CATEGORIES:
                score += NOT_MENTIONED_CRITICAL_POINTS
            else:
                score += NOT_MENTIONED_POINTS
    return min(MAX_GAP_SCORE, score)


def build_coverage_summary(statuses: list[CategoryStatus]) -> CoverageSummary:
    present = [s.category for s in statuses if s.status == GapStatus.PRESENT]
    total = len(statuses)
    return CoverageSummary(
        total_relevant=total,
        present_count=len(present),
        missing_count=sum(1 for s in statuses if s.status == GapStatus.MISSING),
        incomplete_count=sum(1 for s in statuses if s.status == GapStatus.INCOMPLETE),
        coverage_percent=math.floor(len(present) / total * 100 + 0.5) if total else 0,
        present_categories=present,
    )


def stub_explanation(status: CategoryStatus, templates: list[ReferenceItem]) -> GapExplanation:
    """Explanation used when the model omits a gap."""
    if status.status == GapStatus.MISSING:
        explanation = f"No {status.category} clause was found in this agreement."
    else:
        explanation = (
            f"The {status.category} provisions are low-confidence or assessed as "
            f"aggressive or unclear."
        )
    if templates:
        return GapExplanation(
            category=status.category,
            explanation=explanation,
            suggested_language=templates[0].content,
            template_source=templates[0].id,
        )
    return GapExplanation(
        category=status.category,
        explanation=explanation,
        suggested_language=f"Consider adding a {status.category} clause.",
    )


# =============================================================================
# Stage
# =============================================================================

class GapAnalysisStage:
    """Stage 4: Coverage gap detection and hypothesis testing."""

    def __init__(
        self,
        llm: LLMService | None = None,
        retriever: EvidenceRetriever | None = None,
        category_source: CategorySource | None = None,
    ):
        self.settings = get_settings()
        self._llm = llm
        self._retriever = retriever
        self._category_source = category_source

    @property
    def llm(self) -> LLMService:
        if self._llm is None:
            self._llm = get_llm_service()
        return self._llm

    @property
    def retriever(self) -> EvidenceRetriever:
        if self._retriever is None:
            self._retriever = get_evidence_retriever()
        return self._retriever

    @property
    def category_source(self) -> CategorySource:
        if self._category_source is None:
            self._category_source = get_category_source()
        return self._category_source

    async def analyze(
        self,
        clauses: list[ClassifiedClause],
        assessments: list[RiskAssessment],
        budget: BudgetTracker,
    ) -> GapAnalystOutput:
        """
        Detect coverage gaps and test hypotheses.

        Raises:
            SchemaViolationError: the gap explanation call failed validation
        """
        with budget.stage(STAGE_NAME) as usage:
            rows = self.category_source.relevant_categories()
            statuses = [
                detect_category_status(
                    row, clauses, assessments, self.settings.low_confidence_threshold
                )
                for row in rows
            ]
            pending = [s for s in statuses if s.status != GapStatus.PRESENT]

            logger.info(
                "gap_analysis_started",
                relevant_categories=len(statuses),
                gaps=len(pending),
                clauses=len(clauses),
            )

            gaps = await self._explain_gaps(pending, clauses, usage)
            hypotheses = await self._test_hypotheses(clauses, usage)
            gap_score = calculate_gap_score(gaps, hypotheses)

            logger.info(
                "gap_analysis_completed",
                gaps=len(gaps),
                hypotheses_tested=len(hypotheses),
                gap_score=gap_score,
            )

            return GapAnalystOutput(
                gaps=gaps,
                hypothesis_coverage=hypotheses,
                gap_score=gap_score,
                coverage_summary=build_coverage_summary(statuses),
                token_usage=usage.to_token_usage(),
            )

    # =========================================================================
    # Category Gaps
    # =========================================================================

    async def _fetch_templates(self, category: str) -> list[ReferenceItem]:
        try:
            return await self.retriever.search(
                f"{category} clause for a non-disclosure agreement",
                category=category,
                limit=self.settings.gap_template_limit,
                granularity=Granularity.TEMPLATE,
            )
        except RetrievalError as e:
            logger.warning("gap_template_retrieval_failed", category=category, error=e.message)
            return []

    async def _explain_gaps(
        self,
        pending: list[CategoryStatus],
        clauses: list[ClassifiedClause],
        usage: StageUsage,
    ) -> list[GapItem]:
        if not pending:
            return []

        fetched = await asyncio.gather(*(self._fetch_templates(s.category) for s in pending))
        templates = {s.category: items for s, items in zip(pending, fetched)}

        precomputed = [
            {
                "category": s.category,
                "status": s.status.value,
                "severity": assign_severity(
                    bool(templates[s.category]),
                    s.risk_weight,
                    self.settings.critical_weight_threshold,
                ).value,
            }
            for s in pending
        ]

        try:
            result = await self.llm.generate_structured(
                GAP_ANALYST_SYSTEM_PROMPT,
                build_gap_prompt(precomputed, templates, clauses),
                GapExplanationResponse,
                model=self.settings.gap_analyst_model,
            )
        except SchemaViolationError as e:
            usage.add(e.input_tokens, e.output_tokens)
            logger.error("gap_explanation_schema_violation", error=e.message)
            raise

        usage.add(result.usage.input_tokens, result.usage.output_tokens)

        explained: dict[str, GapExplanation] = {}
        for entry in result.output.gaps:
            explained.setdefault(entry.category, entry)

        gaps = []
        for status, fields in zip(pending, precomputed):
            explanation = explained.get(status.category)
            if explanation is None:
                logger.info("gap_explanation_stubbed", category=status.category)
                explanation = stub_explanation(status, templates[status.category])
            gaps.append(
                GapItem(
                    category=status.category,
                    status=status.status,
                    severity=GapSeverity(fields["severity"]),
                    explanation=explanation.explanation,
                    suggested_language=explanation.suggested_language,
                    template_source=explanation.template_source,
                    style_match=explanation.style_match,
                )
            )

        unmatched = set(explained) - {s.category for s in pending}
        if unmatched:
            logger.warning("gap_explanation_unknown_categories", categories=sorted(unmatched))

        return gaps

    # =========================================================================
    # Hypothesis Testing
    # =========================================================================

    async def _test_hypotheses(
        self,
        clauses: list[ClassifiedClause],
        usage: StageUsage,
    ) -> list[HypothesisResult]:
        clause_ids = {c.chunk_id for c in clauses}
        results = []

        for hypothesis in CONTRACT_NLI_HYPOTHESES[: self.settings.max_hypotheses_tested]:
            try:
                result = await self.llm.generate_structured(
                    HYPOTHESIS_SYSTEM_PROMPT,
                    build_hypothesis_prompt(hypothesis, clauses),
                    HypothesisResult,
                    model=self.settings.gap_analyst_model,
                )
            except SchemaViolationError as e:
                usage.add(e.input_tokens, e.output_tokens)
                logger.warning(
                    "hypothesis_test_failed",
                    hypothesis_id=hypothesis.id,
                    error=e.message,
                )
                continue

            usage.add(result.usage.input_tokens, result.usage.output_tokens)

            output = result.output
            supporting = output.supporting_clause_id
            if supporting is not None and supporting not in clause_ids:
                logger.warning(
                    "hypothesis_unknown_clause",
                    hypothesis_id=hypothesis.id,
                    clause_id=supporting,
                )
                supporting = None

            results.append(
                output.model_copy(
                    update={
                        "hypothesis_id": hypothesis.id,
                        "category": hypothesis.category,
                        "supporting_clause_id": supporting,
                    }
                )
            )

        return results


@lru_cache()
def get_gap_analysis_stage() -> GapAnalysisStage:
    """Get cached gap analysis stage instance."""
    return GapAnalysisStage()
