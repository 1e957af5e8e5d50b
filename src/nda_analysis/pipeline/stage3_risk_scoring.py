"""
Stage 3: Risk Scoring

Scores every classified clause with one batched model call. Each clause is
grounded in three evidence pools: similar clauses of the same category,
template baselines, and entailment evidence spans.
"""

import asyncio
import math
from dataclasses import dataclass
from functools import lru_cache

import structlog

from nda_analysis.budget import BudgetTracker
from nda_analysis.config import get_settings
from nda_analysis.errors import RetrievalError, SchemaViolationError
from nda_analysis.models.classification import ClassifiedClause
from nda_analysis.models.reference import Granularity, ReferenceItem
from nda_analysis.models.risk import (
    ClauseAssessment,
    RiskAssessment,
    RiskScorerOutput,
    RiskScorerResponse,
)
from nda_analysis.models.taxonomy import Perspective, RiskLevel
from nda_analysis.prompts.risk_scorer import (
    RISK_SCORER_SYSTEM_PROMPT,
    ClauseEvidence,
    build_risk_scorer_prompt,
)
from nda_analysis.services.llm_service import LLMService, get_llm_service
from nda_analysis.services.retrieval import EvidenceRetriever, get_evidence_retriever
from nda_analysis.storage.reference_store import ReferenceStore, get_reference_store

logger = structlog.get_logger(__name__)

STAGE_NAME = "risk_scorer"

RISK_WEIGHTS: dict[RiskLevel, float] = {
    RiskLevel.AGGRESSIVE: 3.0,
    RiskLevel.CAUTIOUS: 1.5,
    RiskLevel.STANDARD: 0.0,
    RiskLevel.UNKNOWN: 0.5,
}

MAX_SUMMARY_FINDINGS = 5

# Order of findings in the executive summary
_FINDING_ORDER = {
    RiskLevel.AGGRESSIVE: 0,
    RiskLevel.CAUTIOUS: 1,
    RiskLevel.UNKNOWN: 2,
}


@dataclass(frozen=True)
class EvidenceLimits:
    clauses: int
    templates: int
    spans: int


# =============================================================================
# Scoring
# =============================================================================

def calculate_overall_risk(levels: list[RiskLevel]) -> tuple[int, RiskLevel]:
    """
    Overall score (0-100) and level from per-clause risk levels.

    The weighted sum is normalized by the maximum possible weight and
    rounded half up.
    """
    if not levels:
        return 0, RiskLevel.UNKNOWN

    total = sum(RISK_WEIGHTS[level] for level in levels)
    score = math.floor(total / (3 * len(levels)) * 100 + 0.5)

    if score >= 60:
        return score, RiskLevel.AGGRESSIVE
    if score >= 30:
        return score, RiskLevel.CAUTIOUS
    return score, RiskLevel.STANDARD


def risk_distribution(assessments: list[RiskAssessment]) -> dict[str, int]:
    distribution = {level.value: 0 for level in RiskLevel}
    for assessment in assessments:
        distribution[assessment.risk_level.value] += 1
    return distribution


def build_executive_summary(
    assessments: list[RiskAssessment],
    score: int,
    level: RiskLevel,
) -> str:
    """Header line plus up to five non-standard findings, aggressive first."""
    if not assessments:
        return "No clauses were analyzed."

    header = (
        f"Overall risk: {level.value} ({score}/100) across "
        f"{len(assessments)} assessed clause{'s' if len(assessments) != 1 else ''}."
    )
    findings = sorted(
        (a for a in assessments if a.risk_level != RiskLevel.STANDARD),
        key=lambda a: _FINDING_ORDER[a.risk_level],
    )[:MAX_SUMMARY_FINDINGS]

    if not findings:
        return f"{header}\nNo non-standard clauses found."

    lines = [header]
    for a in findings:
        lines.append(f"- [{a.risk_level.value}] {a.category.value}: {a.explanation}")
    return "\n".join(lines)


# =============================================================================
# Stage
# =============================================================================

class RiskScoringStage:
    """
    Stage 3: Clause risk scoring.

    Retrieves evidence for all clauses concurrently, makes one model call for
    the whole document, then checks cited reference ids against the store
    (log-only) and aggregates an overall score.
    """

    def __init__(
        self,
        llm: LLMService | None = None,
        retriever: EvidenceRetriever | None = None,
        reference_store: ReferenceStore | None = None,
    ):
        self.settings = get_settings()
        self._llm = llm
        self._retriever = retriever
        self._reference_store = reference_store

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
    def reference_store(self) -> ReferenceStore:
        if self._reference_store is None:
            self._reference_store = get_reference_store()
        return self._reference_store

    def evidence_limits(self, budget: BudgetTracker) -> EvidenceLimits:
        """Per-pool retrieval limits, reduced once the budget is in warning."""
        s = self.settings
        if budget.is_warning():
            return EvidenceLimits(
                clauses=s.risk_clause_evidence_limit_reduced,
                templates=s.risk_template_evidence_limit_reduced,
                spans=s.risk_span_evidence_limit_reduced,
            )
        return EvidenceLimits(
            clauses=s.risk_clause_evidence_limit,
            templates=s.risk_template_evidence_limit,
            spans=s.risk_span_evidence_limit,
        )

    async def score(
        self,
        clauses: list[ClassifiedClause],
        budget: BudgetTracker,
        perspective: Perspective = Perspective.BALANCED,
    ) -> RiskScorerOutput:
        """
        Assess every clause and aggregate an overall risk.

        Raises:
            SchemaViolationError: the model output did not match the schema
        """
        perspective = Perspective(perspective)

        with budget.stage(STAGE_NAME) as usage:
            if not clauses:
                logger.info("risk_scoring_skipped", reason="no_clauses")
                return RiskScorerOutput(
                    overall_risk_score=0,
                    overall_risk_level=RiskLevel.UNKNOWN,
                    risk_distribution=risk_distribution([]),
                    executive_summary=build_executive_summary([], 0, RiskLevel.UNKNOWN),
                    perspective=perspective,
                )

            limits = self.evidence_limits(budget)
            logger.info(
                "risk_scoring_started",
                clauses=len(clauses),
                perspective=perspective.value,
                reduced_evidence=budget.is_warning(),
            )

            evidence = await asyncio.gather(
                *(self._gather_evidence(clause, limits) for clause in clauses)
            )
            prompt = build_risk_scorer_prompt(list(evidence), perspective)

            try:
                result = await self.llm.generate_structured(
                    RISK_SCORER_SYSTEM_PROMPT,
                    prompt,
                    RiskScorerResponse,
                    model=self.settings.risk_scorer_model,
                )
            except SchemaViolationError as e:
                usage.add(e.input_tokens, e.output_tokens)
                logger.error("risk_scoring_schema_violation", error=e.message)
                raise

            usage.add(result.usage.input_tokens, result.usage.output_tokens)

            assessments = self._map_assessments(result.output.assessments, clauses)
            await self._verify_citations(assessments)

            score, level = calculate_overall_risk([a.risk_level for a in assessments])
            distribution = risk_distribution(assessments)

            logger.info(
                "risk_scoring_completed",
                assessments=len(assessments),
                overall_risk_score=score,
                overall_risk_level=level.value,
            )

            return RiskScorerOutput(
                assessments=assessments,
                overall_risk_score=score,
                overall_risk_level=level,
                risk_distribution=distribution,
                executive_summary=build_executive_summary(assessments, score, level),
                perspective=perspective,
                token_usage=usage.to_token_usage(),
            )

    # =========================================================================
    # Evidence
    # =========================================================================

    async def _safe_search(
        self,
        query: str,
        limit: int,
        granularity: Granularity,
        category: str | None = None,
    ) -> list[ReferenceItem]:
        if limit <= 0:
            return []
        try:
            return await self.retriever.search(
                query,
                category=category,
                limit=limit,
                granularity=granularity,
            )
        except RetrievalError as e:
            logger.warning(
                "risk_evidence_retrieval_failed",
                granularity=granularity.value,
                category=category,
                error=e.message,
            )
            return []

    async def _gather_evidence(
        self,
        clause: ClassifiedClause,
        limits: EvidenceLimits,
    ) -> ClauseEvidence:
        similar, templates, spans = await asyncio.gather(
            self._safe_search(
                clause.clause_text,
                limits.clauses,
                Granularity.CLAUSE,
                category=clause.category.value,
            ),
            self._safe_search(clause.clause_text, limits.templates, Granularity.TEMPLATE),
            self._safe_search(clause.clause_text, limits.spans, Granularity.SPAN),
        )
        return ClauseEvidence(
            clause=clause,
            similar_clauses=similar,
            templates=templates,
            spans=spans,
        )

    # =========================================================================
    # Result Mapping
    # =========================================================================

    @staticmethod
    def _map_assessments(
        raw: list[ClauseAssessment],
        clauses: list[ClassifiedClause],
    ) -> list[RiskAssessment]:
        """Join assessments to clauses by clause id, in clause order."""
        by_id = {clause.chunk_id: clause for clause in clauses}
        mapped: dict[str, RiskAssessment] = {}

        for assessment in raw:
            clause = by_id.get(assessment.clause_id)
            if clause is None:
                logger.warning("risk_assessment_unknown_clause", clause_id=assessment.clause_id)
                continue
            if assessment.clause_id in mapped:
                logger.warning("risk_assessment_duplicate_clause", clause_id=assessment.clause_id)
                continue
            mapped[assessment.clause_id] = RiskAssessment(
                **assessment.model_dump(),
                category=clause.category,
                start_position=clause.start_position,
                end_position=clause.end_position,
            )

        missing = [c.chunk_id for c in clauses if c.chunk_id not in mapped]
        if missing:
            logger.warning("risk_assessments_missing", clause_ids=missing)

        return [mapped[c.chunk_id] for c in clauses if c.chunk_id in mapped]

    async def _verify_citations(self, assessments: list[RiskAssessment]) -> None:
        """Log cited reference ids absent from the store. Never strips them."""
        cited = {
            ref.source_id
            for a in assessments
            for ref in a.evidence.references
        }
        if not cited:
            return

        try:
            existing = await asyncio.to_thread(self.reference_store.existing_ids, cited)
        except Exception as e:
            logger.warning("citation_verification_failed", cited=len(cited), error=str(e))
            return

        unverified = sorted(cited - existing)
        if unverified:
            logger.warning(
                "unverified_citations",
                count=len(unverified),
                source_ids=unverified,
            )


@lru_cache()
def get_risk_scoring_stage() -> RiskScoringStage:
    """Get cached risk scoring stage instance."""
    return RiskScoringStage()
