"""Tests for nda_analysis/pipeline/stage2_classification.py."""

import asyncio

import pytest

from nda_analysis.budget import BudgetTracker
from nda_analysis.errors import (
    ClassificationEmptyOutputError,
    RetrievalError,
    SchemaViolationError,
)
from nda_analysis.models.classification import (
    ClassificationEntry,
    ClassifierResponse,
    SecondaryLabel,
)
from nda_analysis.models.document import ParsedDocument
from nda_analysis.models.taxonomy import ClauseCategory
from nda_analysis.pipeline.stage2_classification import ClassificationStage


def _entry(index, category, confidence, secondary=None):
    return ClassificationEntry(
        chunk_index=index,
        category=category,
        confidence=confidence,
        rationale=f"chunk {index}",
        secondary_categories=secondary or [],
    )


@pytest.fixture
def stage(mock_llm, mock_retriever):
    return ClassificationStage(llm=mock_llm, retriever=mock_retriever)


def _classify(stage, document, budget=None):
    budget = budget or BudgetTracker()
    return asyncio.run(stage.classify(document, budget)), budget


class TestScenarios:

    def test_governing_law_single_chunk(self, stage, mock_llm, governing_law_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[_entry(0, ClauseCategory.GOVERNING_LAW, 0.95)])
        )
        output, _ = _classify(stage, governing_law_document)
        assert len(output.clauses) == 1
        assert output.clauses[0].category == ClauseCategory.GOVERNING_LAW
        assert output.clauses[0].start_position == 0

    def test_below_floor_forced_uncategorized(self, stage, mock_llm, governing_law_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(
                        0,
                        ClauseCategory.GOVERNING_LAW,
                        0.2,
                        secondary=[SecondaryLabel(category=ClauseCategory.PARTIES, confidence=0.15)],
                    )
                ]
            )
        )
        output, _ = _classify(stage, governing_law_document)
        assert output.clauses == []
        assert len(output.raw_classifications) == 1
        raw = output.raw_classifications[0]
        assert raw.primary.category == ClauseCategory.UNCATEGORIZED
        assert raw.primary.confidence == 0.2
        assert raw.secondary == []

    def test_six_chunks_one_model_call(self, stage, mock_llm, mock_retriever, sample_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(i, ClauseCategory.PARTIES, 0.8) for i in range(6)
                ]
            )
        )
        output, _ = _classify(stage, sample_document)
        assert mock_llm.generate_structured.await_count == 1
        assert mock_retriever.search.await_count == 6
        assert len(output.clauses) == 6


class TestConfidenceFloor:

    def test_filtered_clauses_meet_floor(self, stage, mock_llm, sample_document, structured_result):
        confidences = [0.1, 0.29, 0.3, 0.5, 0.9, 0.0]
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(i, ClauseCategory.NON_COMPETE, c) for i, c in enumerate(confidences)
                ]
            )
        )
        output, _ = _classify(stage, sample_document)
        assert [c.chunk_index for c in output.clauses] == [2, 3, 4]
        for clause in output.clauses:
            assert clause.category != ClauseCategory.UNCATEGORIZED
            assert clause.confidence >= 0.3
        raw_conf = [r.primary.confidence for r in output.raw_classifications]
        assert raw_conf == confidences

    def test_model_uncategorized_excluded(self, stage, mock_llm, governing_law_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[_entry(0, ClauseCategory.UNCATEGORIZED, 0.9)])
        )
        output, _ = _classify(stage, governing_law_document)
        assert output.clauses == []
        assert output.raw_classifications[0].is_uncategorized

    def test_weak_secondary_dropped_strong_kept(self, stage):
        entry = _entry(
            0,
            ClauseCategory.NON_COMPETE,
            0.8,
            secondary=[
                SecondaryLabel(category=ClauseCategory.NO_SOLICIT_OF_EMPLOYEES, confidence=0.6),
                SecondaryLabel(category=ClauseCategory.EXCLUSIVITY, confidence=0.1),
            ],
        )
        result = stage.apply_confidence_floor(entry)
        assert [s.category for s in result.secondary] == [ClauseCategory.NO_SOLICIT_OF_EMPLOYEES]


class TestResultMapping:

    def test_unknown_index_dropped(self, stage, mock_llm, governing_law_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(0, ClauseCategory.GOVERNING_LAW, 0.9),
                    _entry(7, ClauseCategory.PARTIES, 0.9),
                ]
            )
        )
        output, _ = _classify(stage, governing_law_document)
        assert [r.chunk_index for r in output.raw_classifications] == [0]

    def test_duplicate_index_keeps_first(self, stage, mock_llm, governing_law_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(0, ClauseCategory.GOVERNING_LAW, 0.9),
                    _entry(0, ClauseCategory.PARTIES, 0.95),
                ]
            )
        )
        output, _ = _classify(stage, governing_law_document)
        assert len(output.raw_classifications) == 1
        assert output.clauses[0].category == ClauseCategory.GOVERNING_LAW

    def test_results_ordered_by_index(self, stage, mock_llm, sample_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(
                classifications=[
                    _entry(i, ClauseCategory.PARTIES, 0.8) for i in (5, 1, 3)
                ]
            )
        )
        output, _ = _classify(stage, sample_document)
        assert [c.chunk_index for c in output.clauses] == [1, 3, 5]
        assert output.clauses[0].chunk_id == "nda-001-chunk-1"
        assert output.clauses[0].clause_text == sample_document.chunks[1].content


class TestFailures:

    def test_empty_output_raises_with_context(self, stage, mock_llm, sample_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[]), input_tokens=900, output_tokens=12
        )
        budget = BudgetTracker()
        with pytest.raises(ClassificationEmptyOutputError) as exc_info:
            asyncio.run(stage.classify(sample_document, budget))
        err = exc_info.value
        assert err.chunk_count == 6
        assert err.first_index == 0
        assert err.last_index == 5
        assert budget.stage_usage("classifier").input_tokens == 900
        assert budget.stage_usage("classifier").output_tokens == 12

    def test_only_unknown_indices_raises(self, stage, mock_llm, sample_document, structured_result):
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[_entry(999, ClauseCategory.PARTIES, 0.9)]),
            input_tokens=800,
            output_tokens=40,
        )
        budget = BudgetTracker()
        with pytest.raises(ClassificationEmptyOutputError) as exc_info:
            asyncio.run(stage.classify(sample_document, budget))
        err = exc_info.value
        assert err.chunk_count == 6
        assert (err.first_index, err.last_index) == (0, 5)
        assert budget.stage_usage("classifier").input_tokens == 800

    def test_schema_violation_records_usage(self, stage, mock_llm, sample_document):
        mock_llm.generate_structured.side_effect = SchemaViolationError(
            "bad output", input_tokens=700, output_tokens=30, raw_text="{"
        )
        budget = BudgetTracker()
        with pytest.raises(SchemaViolationError):
            asyncio.run(stage.classify(sample_document, budget))
        assert budget.stage_usage("classifier").input_tokens == 700

    def test_retrieval_failure_degrades_to_no_evidence(
        self, stage, mock_llm, mock_retriever, sample_document, structured_result, reference_factory
    ):
        calls = {"n": 0}

        async def flaky_search(query, **kwargs):
            calls["n"] += 1
            if calls["n"] % 2:
                raise RetrievalError("store down", query=query)
            return [reference_factory(f"r{calls['n']}", "Parties", 0.7)]

        mock_retriever.search.side_effect = flaky_search
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[_entry(0, ClauseCategory.PARTIES, 0.9)])
        )
        output, _ = _classify(stage, sample_document)
        assert len(output.clauses) == 1
        assert output.candidate_categories == ["Parties"]

    def test_empty_document_makes_no_call(self, stage, mock_llm):
        document = ParsedDocument(document_id="d", raw_text="text", chunks=[])
        output, _ = _classify(stage, document)
        assert output.clauses == []
        mock_llm.generate_structured.assert_not_awaited()


class TestPromptAssembly:

    def test_prompt_carries_neighbor_context_and_candidates(
        self, stage, mock_llm, mock_retriever, sample_document, structured_result, reference_factory
    ):
        mock_retriever.search.return_value = [
            reference_factory("gl-1", "Governing Law", 0.9),
            reference_factory("nc-1", "Non-Compete", 0.5),
        ]
        mock_llm.generate_structured.return_value = structured_result(
            ClassifierResponse(classifications=[_entry(0, ClauseCategory.PARTIES, 0.9)])
        )
        _classify(stage, sample_document)

        args = mock_llm.generate_structured.call_args
        prompt = args.args[1]
        assert args.args[2] is ClassifierResponse
        assert args.kwargs["model"] == stage.settings.classifier_model
        assert "### Chunk 0" in prompt and "### Chunk 5" in prompt
        assert "[PRECEDING CONTEXT]" in prompt
        assert "[FOLLOWING CONTEXT]" in prompt
        assert "[Section: Section 2]" in prompt
        assert "Governing Law" in prompt and "Non-Compete" in prompt

    def test_neighbor_context_bounded(self, stage, document_factory):
        document = document_factory(["A" * 500, "B" * 500, "C" * 500])
        views = stage._chunk_views(list(document.chunks))
        assert views[0].prev_context == ""
        assert views[1].prev_context == "A" * 200
        assert views[1].next_context == "C" * 200
        assert views[2].next_context == ""
