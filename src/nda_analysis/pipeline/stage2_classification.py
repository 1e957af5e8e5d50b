"""
Stage 2: Classification

Classifies every chunk of a document against the CUAD taxonomy with a
single batched model call, grounded in reference passages retrieved for
each chunk.
"""

import asyncio
from functools import lru_cache

import structlog

from nda_analysis.budget import BudgetTracker
from nda_analysis.config import get_settings
from nda_analysis.errors import (
    ClassificationEmptyOutputError,
    RetrievalError,
    SchemaViolationError,
)
from nda_analysis.models.classification import (
    ChunkClassification,
    ClassificationEntry,
    ClassifiedClause,
    ClassifierOutput,
    ClassifierResponse,
    PrimaryLabel,
)
from nda_analysis.models.document import DocumentChunk, ParsedDocument
from nda_analysis.models.reference import ReferenceItem
from nda_analysis.models.taxonomy import ClauseCategory
from nda_analysis.prompts.classifier import (
    CLASSIFIER_SYSTEM_PROMPT,
    ChunkPromptView,
    build_classifier_prompt,
)
from nda_analysis.services.llm_service import LLMService, get_llm_service
from nda_analysis.services.reference_selector import select_references
from nda_analysis.services.retrieval import EvidenceRetriever, get_evidence_retriever

logger = structlog.get_logger(__name__)

STAGE_NAME = "classifier"


class ClassificationStage:
    """
    Stage 2: Clause classification.

    Retrieve references per chunk (concurrently), select a diverse subset
    for the whole document, make one model call, then map results back to
    chunks by document-wide index and apply the confidence floor.
    """

    def __init__(
        self,
        llm: LLMService | None = None,
        retriever: EvidenceRetriever | None = None,
    ):
        self.settings = get_settings()
        self._llm = llm
        self._retriever = retriever

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

    async def classify(
        self,
        document: ParsedDocument,
        budget: BudgetTracker,
    ) -> ClassifierOutput:
        """
        Classify all chunks of a document.

        Raises:
            SchemaViolationError: the model output did not match the schema
            ClassificationEmptyOutputError: the model returned no entries
        """
        chunks = sorted(document.chunks, key=lambda c: c.index)
        if not chunks:
            return ClassifierOutput()

        logger.info(
            "classification_started",
            document_id=document.document_id,
            chunks=len(chunks),
        )

        with budget.stage(STAGE_NAME) as usage:
            evidence = await self._retrieve_all(chunks)
            pooled = [item for items in evidence for item in items]
            selection = select_references(pooled, self.settings.reference_selector_max)

            prompt = build_classifier_prompt(
                self._chunk_views(chunks),
                selection.references,
                selection.candidate_categories,
            )

            try:
                result = await self.llm.generate_structured(
                    CLASSIFIER_SYSTEM_PROMPT,
                    prompt,
                    ClassifierResponse,
                    model=self.settings.classifier_model,
                )
            except SchemaViolationError as e:
                usage.add(e.input_tokens, e.output_tokens)
                logger.error(
                    "classification_schema_violation",
                    document_id=document.document_id,
                    error=e.message,
                )
                raise

            usage.add(result.usage.input_tokens, result.usage.output_tokens)

            entries = result.output.classifications
            raw = self._map_results(entries, chunks)
            if not raw:
                logger.error(
                    "classification_empty_output",
                    document_id=document.document_id,
                    chunks=len(chunks),
                    returned=len(entries),
                )
                raise ClassificationEmptyOutputError(
                    "Classifier returned no classifications",
                    stage=STAGE_NAME,
                    chunk_count=len(chunks),
                    first_index=chunks[0].index,
                    last_index=chunks[-1].index,
                )

            clauses = self._filter_clauses(raw, chunks)

            logger.info(
                "classification_completed",
                document_id=document.document_id,
                classified=len(raw),
                clauses=len(clauses),
                uncategorized=sum(1 for c in raw if c.is_uncategorized),
                references=len(selection.references),
            )

            return ClassifierOutput(
                raw_classifications=raw,
                clauses=clauses,
                candidate_categories=selection.candidate_categories,
                token_usage=usage.to_token_usage(),
            )

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def _retrieve_all(self, chunks: list[DocumentChunk]) -> list[list[ReferenceItem]]:
        return await asyncio.gather(*(self._retrieve_for_chunk(c) for c in chunks))

    async def _retrieve_for_chunk(self, chunk: DocumentChunk) -> list[ReferenceItem]:
        try:
            return await self.retriever.search(
                chunk.content,
                limit=self.settings.classifier_references_per_chunk,
            )
        except RetrievalError as e:
            logger.warning("chunk_retrieval_failed", chunk_index=chunk.index, error=e.message)
            return []

    # =========================================================================
    # Prompt Assembly
    # =========================================================================

    def _chunk_views(self, chunks: list[DocumentChunk]) -> list[ChunkPromptView]:
        """Render chunks with the tail of the previous and head of the next chunk."""
        n = self.settings.classifier_neighbor_chars
        views = []
        for i, chunk in enumerate(chunks):
            prev_context = chunks[i - 1].content[-n:] if i > 0 and n > 0 else ""
            next_context = chunks[i + 1].content[:n] if i + 1 < len(chunks) and n > 0 else ""
            views.append(
                ChunkPromptView(
                    index=chunk.index,
                    content=chunk.content,
                    section_path=list(chunk.section_path),
                    prev_context=prev_context,
                    next_context=next_context,
                )
            )
        return views

    # =========================================================================
    # Result Mapping
    # =========================================================================

    def _map_results(
        self,
        entries: list[ClassificationEntry],
        chunks: list[DocumentChunk],
    ) -> list[ChunkClassification]:
        """Join entries to chunks by index, dropping unknown and duplicate indices."""
        known = {c.index for c in chunks}
        mapped: dict[int, ChunkClassification] = {}

        for entry in entries:
            if entry.chunk_index not in known:
                logger.warning("classification_unknown_chunk_index", chunk_index=entry.chunk_index)
                continue
            if entry.chunk_index in mapped:
                logger.warning("classification_duplicate_chunk_index", chunk_index=entry.chunk_index)
                continue
            mapped[entry.chunk_index] = self.apply_confidence_floor(entry)

        missing = sorted(known - mapped.keys())
        if missing:
            logger.warning("classification_missing_chunks", chunk_indices=missing)

        return [mapped[i] for i in sorted(mapped)]

    def apply_confidence_floor(self, entry: ClassificationEntry) -> ChunkClassification:
        """Force Uncategorized below the floor, keeping the confidence; drop weak secondaries."""
        floor = self.settings.classification_confidence_floor
        category = entry.category if entry.confidence >= floor else ClauseCategory.UNCATEGORIZED
        return ChunkClassification(
            chunk_index=entry.chunk_index,
            primary=PrimaryLabel(
                category=category,
                confidence=entry.confidence,
                rationale=entry.rationale,
            ),
            secondary=[s for s in entry.secondary_categories if s.confidence >= floor],
        )

    @staticmethod
    def _filter_clauses(
        raw: list[ChunkClassification],
        chunks: list[DocumentChunk],
    ) -> list[ClassifiedClause]:
        by_index = {c.index: c for c in chunks}
        clauses = []
        for classification in raw:
            if classification.is_uncategorized:
                continue
            chunk = by_index[classification.chunk_index]
            clauses.append(
                ClassifiedClause(
                    chunk_id=chunk.id,
                    chunk_index=chunk.index,
                    clause_text=chunk.content,
                    category=classification.primary.category,
                    secondary_categories=[s.category for s in classification.secondary],
                    confidence=classification.primary.confidence,
                    reasoning=classification.primary.rationale,
                    start_position=chunk.start_position,
                    end_position=chunk.end_position,
                )
            )
        return clauses


@lru_cache()
def get_classification_stage() -> ClassificationStage:
    """Get cached classification stage instance."""
    return ClassificationStage()
