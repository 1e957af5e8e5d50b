"""
Stage 1: Parse

Accepts the document supplied by the caller (raw text plus positional
chunks), validates it and produces an immutable ParsedDocument. Chunking
and section detection happen upstream.
"""

from functools import lru_cache
from typing import Any

import structlog
from pydantic import ValidationError

from nda_analysis.budget import BudgetTracker
from nda_analysis.errors import AnalysisError, validation_gate_error
from nda_analysis.models.document import DocumentChunk, ParsedDocument

logger = structlog.get_logger(__name__)

STAGE_NAME = "parser"


class ParseStage:
    """
    Stage 1: Document intake and validation.

    Gates:
    - EMPTY_DOCUMENT: raw text is empty or whitespace
    - NO_CHUNKS: the document carries no chunks
    Chunks must have unique document-wide indices and non-overlapping
    positions inside the raw text.
    """

    def parse(
        self,
        source: ParsedDocument | dict[str, Any],
        budget: BudgetTracker | None = None,
    ) -> ParsedDocument:
        """
        Validate a document source.

        Args:
            source: ParsedDocument or a mapping with document_id, title,
                raw_text and chunks
            budget: run budget; parsing makes no model calls but still
                records a zero-usage entry

        Returns:
            ParsedDocument with chunks ordered by index
        """
        if budget is not None:
            with budget.stage(STAGE_NAME):
                return self._parse(source)
        return self._parse(source)

    def _parse(self, source: ParsedDocument | dict[str, Any]) -> ParsedDocument:
        if isinstance(source, dict):
            try:
                document = ParsedDocument.model_validate(source)
            except ValidationError as e:
                raise AnalysisError(
                    f"Invalid document source: {e.error_count()} validation error(s)",
                    stage=STAGE_NAME,
                    details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
                ) from e
        else:
            document = source

        if not document.raw_text.strip():
            logger.warning("validation_gate_failed", code="EMPTY_DOCUMENT", document_id=document.document_id)
            raise validation_gate_error("EMPTY_DOCUMENT", STAGE_NAME)

        if not document.chunks:
            logger.warning("validation_gate_failed", code="NO_CHUNKS", document_id=document.document_id)
            raise validation_gate_error("NO_CHUNKS", STAGE_NAME)

        chunks = sorted(document.chunks, key=lambda c: c.index)
        self._check_chunks(chunks, len(document.raw_text))

        logger.info(
            "document_parsed",
            document_id=document.document_id,
            chunks=len(chunks),
            characters=len(document.raw_text),
        )

        if chunks == list(document.chunks):
            return document
        return document.model_copy(update={"chunks": chunks})

    @staticmethod
    def _check_chunks(chunks: list[DocumentChunk], text_length: int) -> None:
        """Check index and id uniqueness and position bounds/overlap."""
        seen: set[int] = set()
        seen_ids: set[str] = set()
        previous_end = 0
        for chunk in chunks:
            if chunk.index in seen:
                raise AnalysisError(
                    f"Duplicate chunk index {chunk.index}",
                    stage=STAGE_NAME,
                    details={"chunk_id": chunk.id},
                )
            seen.add(chunk.index)

            if chunk.id in seen_ids:
                raise AnalysisError(
                    f"Duplicate chunk id {chunk.id!r}",
                    stage=STAGE_NAME,
                    details={"chunk_index": chunk.index},
                )
            seen_ids.add(chunk.id)

            if chunk.end_position < chunk.start_position or chunk.end_position > text_length:
                raise AnalysisError(
                    f"Chunk {chunk.index} has invalid positions "
                    f"[{chunk.start_position}, {chunk.end_position})",
                    stage=STAGE_NAME,
                    details={"chunk_id": chunk.id, "text_length": text_length},
                )

            if chunk.start_position < previous_end:
                raise AnalysisError(
                    f"Chunk {chunk.index} overlaps the preceding chunk",
                    stage=STAGE_NAME,
                    details={"chunk_id": chunk.id},
                )
            previous_end = chunk.end_position


@lru_cache()
def get_parse_stage() -> ParseStage:
    """Get cached parse stage instance."""
    return ParseStage()
