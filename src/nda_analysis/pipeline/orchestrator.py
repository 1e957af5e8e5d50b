"""
Pipeline Orchestrator

Runs the four analysis stages strictly in sequence for one document.
"""

import asyncio
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Callable
from uuid import UUID, uuid4

import structlog

from nda_analysis.budget import BudgetTracker
from nda_analysis.config import get_settings
from nda_analysis.errors import AnalysisError, validation_gate_error
from nda_analysis.models.classification import ClassifierOutput
from nda_analysis.models.document import ParsedDocument
from nda_analysis.models.gap import GapAnalystOutput
from nda_analysis.models.risk import RiskScorerOutput
from nda_analysis.models.taxonomy import Perspective
from nda_analysis.pipeline.stage1_parse import ParseStage, get_parse_stage
from nda_analysis.pipeline.stage2_classification import (
    ClassificationStage,
    get_classification_stage,
)
from nda_analysis.pipeline.stage3_risk_scoring import RiskScoringStage, get_risk_scoring_stage
from nda_analysis.pipeline.stage4_gap_analysis import GapAnalysisStage, get_gap_analysis_stage

logger = structlog.get_logger(__name__)


class PipelineStatus(str, Enum):
    """Pipeline execution status."""
    PENDING = "pending"
    PARSING = "parsing"
    CLASSIFYING = "classifying"
    SCORING = "scoring"
    ANALYZING_GAPS = "analyzing_gaps"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisResult:
    """Result of analyzing one document."""

    def __init__(
        self,
        analysis_id: UUID,
        document_id: str,
        status: PipelineStatus,
        classification: ClassifierOutput | None = None,
        risk: RiskScorerOutput | None = None,
        gaps: GapAnalystOutput | None = None,
        budget_usage: dict[str, Any] | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ):
        self.analysis_id = analysis_id
        self.document_id = document_id
        self.status = status
        self.classification = classification
        self.risk = risk
        self.gaps = gaps
        self.budget_usage = budget_usage or {}
        self.started_at = started_at
        self.completed_at = completed_at

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis_id": str(self.analysis_id),
            "document_id": self.document_id,
            "status": self.status.value,
            "classification": (
                self.classification.model_dump(mode="json") if self.classification else None
            ),
            "risk": self.risk.model_dump(mode="json") if self.risk else None,
            "gaps": self.gaps.model_dump(mode="json") if self.gaps else None,
            "budget_usage": self.budget_usage,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class AnalysisOrchestrator:
    """
    Orchestrates the NDA analysis pipeline.

    Coordinates:
    1. Stage 1: Parse and validate
    2. Stage 2: Classification (zero-clause gate afterwards)
    3. Stage 3: Risk scoring
    4. Stage 4: Gap analysis
    """

    def __init__(
        self,
        parse: ParseStage | None = None,
        classification: ClassificationStage | None = None,
        risk: RiskScoringStage | None = None,
        gaps: GapAnalysisStage | None = None,
    ):
        self.settings = get_settings()

        # Stages
        self._parse = parse
        self._classification = classification
        self._risk = risk
        self._gaps = gaps

        # Callbacks
        self._progress_callback: Callable[[PipelineStatus], None] | None = None

    @property
    def parse(self) -> ParseStage:
        if self._parse is None:
            self._parse = get_parse_stage()
        return self._parse

    @property
    def classification(self) -> ClassificationStage:
        if self._classification is None:
            self._classification = get_classification_stage()
        return self._classification

    @property
    def risk(self) -> RiskScoringStage:
        if self._risk is None:
            self._risk = get_risk_scoring_stage()
        return self._risk

    @property
    def gaps(self) -> GapAnalysisStage:
        if self._gaps is None:
            self._gaps = get_gap_analysis_stage()
        return self._gaps

    def set_progress_callback(self, callback: Callable[[PipelineStatus], None]) -> None:
        """Set callback for stage transitions."""
        self._progress_callback = callback

    def _report_progress(self, status: PipelineStatus) -> None:
        if self._progress_callback:
            self._progress_callback(status)

    # =========================================================================
    # Main Pipeline
    # =========================================================================

    async def analyze(
        self,
        source: ParsedDocument | dict[str, Any],
        perspective: Perspective = Perspective.BALANCED,
        budget: BudgetTracker | None = None,
        timeout: float | None = None,
    ) -> AnalysisResult:
        """
        Run the full analysis pipeline on one document.

        Args:
            source: ParsedDocument or a document mapping
            perspective: Party the risk assessment is written for
            budget: Run budget; a fresh tracker is created when omitted.
                Pass one in to inspect usage after a failure.
            timeout: Overall timeout in seconds; defaults to the configured
                analysis timeout. Expiry cancels the in-flight stage.

        Returns:
            AnalysisResult with every stage output and the usage report
        """
        budget = budget if budget is not None else BudgetTracker()
        timeout = timeout if timeout is not None else self.settings.analysis_timeout_seconds

        analysis_id = uuid4()
        document_id = (
            source.document_id if isinstance(source, ParsedDocument)
            else str(source.get("document_id", ""))
        )
        started_at = datetime.now()

        structlog.contextvars.bind_contextvars(analysis_id=str(analysis_id))
        logger.info(
            "pipeline_started",
            document_id=document_id,
            perspective=Perspective(perspective).value,
        )

        try:
            run = self._run(source, Perspective(perspective), budget)
            if timeout:
                classification, risk, gaps = await asyncio.wait_for(run, timeout)
            else:
                classification, risk, gaps = await run
        except asyncio.TimeoutError:
            self._report_progress(PipelineStatus.FAILED)
            logger.error(
                "pipeline_timed_out",
                document_id=document_id,
                timeout_seconds=timeout,
                usage=budget.get_usage()["total"],
            )
            raise
        except AnalysisError as e:
            self._report_progress(PipelineStatus.FAILED)
            logger.error(
                "pipeline_failed",
                document_id=document_id,
                **e.to_dict(),
                usage=budget.get_usage()["total"],
            )
            raise
        except Exception as e:
            self._report_progress(PipelineStatus.FAILED)
            logger.error(
                "pipeline_failed",
                document_id=document_id,
                error=str(e),
                error_type=type(e).__name__,
                usage=budget.get_usage()["total"],
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("analysis_id")

        result = AnalysisResult(
            analysis_id=analysis_id,
            document_id=document_id,
            status=PipelineStatus.COMPLETED,
            classification=classification,
            risk=risk,
            gaps=gaps,
            budget_usage=budget.get_usage(),
            started_at=started_at,
            completed_at=datetime.now(),
        )
        self._report_progress(PipelineStatus.COMPLETED)

        logger.info(
            "pipeline_completed",
            document_id=document_id,
            clauses=len(classification.clauses),
            overall_risk_score=risk.overall_risk_score,
            gap_score=gaps.gap_score,
            total_tokens=budget.total_tokens,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def _run(
        self,
        source: ParsedDocument | dict[str, Any],
        perspective: Perspective,
        budget: BudgetTracker,
    ) -> tuple[ClassifierOutput, RiskScorerOutput, GapAnalystOutput]:
        # Stage 1: Parse
        self._report_progress(PipelineStatus.PARSING)
        document = self.parse.parse(source, budget)

        # Stage 2: Classification
        self._report_progress(PipelineStatus.CLASSIFYING)
        classification = await self.classification.classify(document, budget)

        if not classification.clauses and self.settings.halt_on_zero_clauses:
            logger.warning("validation_gate_failed", code="ZERO_CLAUSES", document_id=document.document_id)
            raise validation_gate_error("ZERO_CLAUSES", "classifier")

        # Stage 3: Risk scoring
        self._report_progress(PipelineStatus.SCORING)
        risk = await self.risk.score(classification.clauses, budget, perspective)

        # Stage 4: Gap analysis
        self._report_progress(PipelineStatus.ANALYZING_GAPS)
        gaps = await self.gaps.analyze(classification.clauses, risk.assessments, budget)

        return classification, risk, gaps


@lru_cache()
def get_analysis_orchestrator() -> AnalysisOrchestrator:
    """Get cached analysis orchestrator instance."""
    return AnalysisOrchestrator()
