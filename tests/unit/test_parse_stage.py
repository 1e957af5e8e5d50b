"""Tests for nda_analysis/pipeline/stage1_parse.py: intake validation and gates."""

import pytest

from nda_analysis.budget import BudgetTracker
from nda_analysis.errors import AnalysisError, ValidationGateError
from nda_analysis.models.document import ParsedDocument
from nda_analysis.pipeline.stage1_parse import ParseStage


def _chunk(index, start, end, content="x"):
    return {
        "id": f"chunk-{index}",
        "index": index,
        "content": content,
        "start_position": start,
        "end_position": end,
    }


class TestParse:

    def test_accepts_parsed_document(self, sample_document):
        parsed = ParseStage().parse(sample_document)
        assert parsed is sample_document

    def test_accepts_mapping(self, sample_document):
        parsed = ParseStage().parse(sample_document.model_dump())
        assert isinstance(parsed, ParsedDocument)
        assert len(parsed.chunks) == 6

    def test_orders_chunks_by_index(self):
        source = {
            "document_id": "d1",
            "raw_text": "0123456789",
            "chunks": [_chunk(1, 5, 10), _chunk(0, 0, 5)],
        }
        parsed = ParseStage().parse(source)
        assert [c.index for c in parsed.chunks] == [0, 1]

    def test_records_zero_usage(self, sample_document):
        budget = BudgetTracker()
        ParseStage().parse(sample_document, budget)
        assert budget.get_usage()["by_stage"]["parser"]["total"] == 0


class TestGates:

    def test_empty_document(self):
        with pytest.raises(ValidationGateError) as exc_info:
            ParseStage().parse({"document_id": "d1", "raw_text": "   \n", "chunks": []})
        assert exc_info.value.code == "EMPTY_DOCUMENT"
        assert exc_info.value.stage == "parser"
        assert exc_info.value.user_message

    def test_no_chunks(self):
        with pytest.raises(ValidationGateError) as exc_info:
            ParseStage().parse({"document_id": "d1", "raw_text": "Some text", "chunks": []})
        assert exc_info.value.code == "NO_CHUNKS"

    def test_gate_failure_still_records_stage(self):
        budget = BudgetTracker()
        with pytest.raises(ValidationGateError):
            ParseStage().parse({"document_id": "d1", "raw_text": "", "chunks": []}, budget)
        assert "parser" in budget.get_usage()["by_stage"]


class TestChunkChecks:

    def test_invalid_source(self):
        with pytest.raises(AnalysisError) as exc_info:
            ParseStage().parse({"document_id": "d1"})
        assert exc_info.value.details["errors"]

    def test_negative_index_rejected(self):
        with pytest.raises(AnalysisError):
            ParseStage().parse(
                {"document_id": "d1", "raw_text": "abc", "chunks": [_chunk(-1, 0, 3)]}
            )

    def test_duplicate_index(self):
        with pytest.raises(AnalysisError, match="Duplicate chunk index"):
            ParseStage().parse(
                {
                    "document_id": "d1",
                    "raw_text": "0123456789",
                    "chunks": [_chunk(0, 0, 5), _chunk(0, 5, 10)],
                }
            )

    def test_duplicate_id(self):
        second = {**_chunk(1, 5, 10), "id": "chunk-0"}
        with pytest.raises(AnalysisError, match="Duplicate chunk id") as exc_info:
            ParseStage().parse(
                {
                    "document_id": "d1",
                    "raw_text": "0123456789",
                    "chunks": [_chunk(0, 0, 5), second],
                }
            )
        assert exc_info.value.details == {"chunk_index": 1}

    def test_overlapping_positions(self):
        with pytest.raises(AnalysisError, match="overlaps"):
            ParseStage().parse(
                {
                    "document_id": "d1",
                    "raw_text": "0123456789",
                    "chunks": [_chunk(0, 0, 6), _chunk(1, 5, 10)],
                }
            )

    def test_end_beyond_text(self):
        with pytest.raises(AnalysisError, match="invalid positions"):
            ParseStage().parse(
                {"document_id": "d1", "raw_text": "short", "chunks": [_chunk(0, 0, 50)]}
            )

    def test_end_before_start(self):
        with pytest.raises(AnalysisError, match="invalid positions"):
            ParseStage().parse(
                {"document_id": "d1", "raw_text": "0123456789", "chunks": [_chunk(0, 6, 3)]}
            )

    def test_adjacent_chunks_allowed(self):
        parsed = ParseStage().parse(
            {
                "document_id": "d1",
                "raw_text": "0123456789",
                "chunks": [_chunk(0, 0, 5), _chunk(1, 5, 10)],
            }
        )
        assert len(parsed.chunks) == 2
