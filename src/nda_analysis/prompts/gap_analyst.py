"""
Prompts for gap explanation and ContractNLI hypothesis testing.
"""

from nda_analysis.models.classification import ClassifiedClause
from nda_analysis.models.reference import ReferenceItem
from nda_analysis.models.taxonomy import Hypothesis

GAP_ANALYST_SYSTEM_PROMPT = """You are an NDA completeness analyst.
You are given coverage gaps that have already been detected: each has a category, a status (missing or incomplete) and a severity.
Do not change the status or severity. For each gap:
- explain in plain language why the gap matters for an NDA;
- draft suggested clause language that closes the gap, matching the style of the template baseline when one is provided;
- set template_source to the source_id of the template you adapted, if any, and describe in style_match how closely the draft follows it.

Return one entry per gap, using the exact category name given."""

HYPOTHESIS_SYSTEM_PROMPT = """You are an NDA analyst testing ContractNLI hypotheses.
For the hypothesis, determine its coverage status against the document:
- entailment: a clause supports or includes this protection
- contradiction: a clause explicitly opposes it
- not_mentioned: no clause addresses the topic

When a clause supports or contradicts the hypothesis, set supporting_clause_id to that clause's id."""


def build_gap_prompt(
    gaps: list[dict],
    templates: dict[str, list[ReferenceItem]],
    clauses: list[ClassifiedClause],
) -> str:
    """User prompt asking for explanations and language for precomputed gaps."""
    gap_lines = []
    for gap in gaps:
        gap_lines.append(
            f"### {gap['category']}\nStatus: {gap['status']}\nSeverity: {gap['severity']}"
        )
        baselines = templates.get(gap["category"], [])
        if baselines:
            gap_lines.append("Template baselines:")
            for t in baselines:
                gap_lines.append(f"- source_id={t.id} ({t.source.value}): {t.content[:300]}")
        else:
            gap_lines.append("Template baselines: none available.")

    clause_block = "\n".join(
        f"[{c.chunk_id}] {c.category.value}: {c.clause_text[:150]}..." for c in clauses
    ) or "No clauses provided."

    return f"""## Detected Gaps ({len(gaps)})
{chr(10).join(gap_lines)}

## Classified Clauses
{clause_block}

Explain each gap and draft suggested language. Return JSON only."""


def build_hypothesis_prompt(
    hypothesis: Hypothesis,
    clauses: list[ClassifiedClause],
    max_clauses: int = 10,
) -> str:
    clause_summary = "\n".join(
        f"- [{c.chunk_id}] {c.category.value}: {c.clause_text[:150]}..."
        for c in clauses[:max_clauses]
    ) or "No clauses provided."

    return f"""Test this hypothesis against the document:

Hypothesis ID: {hypothesis.id}
Category: {hypothesis.category.value}
Importance: {hypothesis.importance}
Hypothesis: "{hypothesis.text}"

Document clauses:
{clause_summary}

Determine if the document supports (entailment), opposes (contradiction), or doesn't address (not_mentioned) this hypothesis. Return JSON only."""
