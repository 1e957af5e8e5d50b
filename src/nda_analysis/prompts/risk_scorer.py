"""
Prompts for batched clause risk scoring.
"""

from dataclasses import dataclass, field

from nda_analysis.models.classification import ClassifiedClause
from nda_analysis.models.reference import ReferenceItem
from nda_analysis.models.taxonomy import Perspective

RISK_SCORER_SYSTEM_PROMPT = """You are a legal risk assessment expert specializing in NDA analysis.
Your task is to evaluate clause risk levels with evidence-based explanations.

## Risk Levels

- standard: Normal, market-friendly terms found in most NDAs. Balanced obligations.
- cautious: Slightly one-sided but generally acceptable. Minor negotiation may be warranted.
- aggressive: Clearly one-sided or unusual provisions. Significant exposure, negotiate.
- unknown: Cannot determine risk level due to ambiguous or unclear language.

## Assessment Criteria

1. Scope: broader scope means higher risk (worldwide vs. specific geography)
2. Duration: longer duration means higher risk (5 years vs. 2 years)
3. Remedies: unlimited liability or liquidated damages mean higher risk
4. Balance: one-sided enforcement or obligations mean higher risk
5. Market standard: compare to the reference and template evidence provided

## Evidence Requirements

Every assessment MUST include:
1. citations: 1 to 5 quotes, each tagged with source_type clause, reference or template
2. references: up to 5 of the provided reference passages you relied on, by their source_id
3. baseline_comparison: how the clause differs from the template baseline, when one is provided

Keep each explanation under 500 characters. Flag atypical_language when the wording departs from market norms and explain it in atypical_language_note.
Return exactly one assessment per clause, using the clause_id shown in each clause header."""

PERSPECTIVE_FRAMING = {
    Perspective.RECEIVING: (
        "Assess risk from the perspective of the RECEIVING party: obligations, "
        "restrictions and liabilities that burden the recipient of confidential "
        "information weigh most."
    ),
    Perspective.DISCLOSING: (
        "Assess risk from the perspective of the DISCLOSING party: weak protection "
        "of the disclosed information and limited remedies weigh most."
    ),
    Perspective.BALANCED: (
        "Assess risk from a BALANCED perspective: flag terms that are one-sided in "
        "either direction."
    ),
}


@dataclass
class ClauseEvidence:
    """Evidence gathered for one clause."""

    clause: ClassifiedClause
    similar_clauses: list[ReferenceItem] = field(default_factory=list)
    templates: list[ReferenceItem] = field(default_factory=list)
    spans: list[ReferenceItem] = field(default_factory=list)


def _format_refs(label: str, refs: list[ReferenceItem]) -> str:
    if not refs:
        return f"{label}: none available."
    lines = [f"{label}:"]
    for r in refs:
        section = f", section {r.section}" if r.section else ""
        lines.append(
            f"- source_id={r.id} ({r.source.value}{section}, {round(r.similarity * 100)}% similar): "
            f"{r.content[:200]}..."
        )
    return "\n".join(lines)


def format_clause_section(evidence: ClauseEvidence) -> str:
    clause = evidence.clause
    return "\n".join([
        f"### Clause {clause.chunk_id}",
        f"Category: {clause.category.value}",
        "",
        clause.clause_text,
        "",
        _format_refs("Similar reference clauses", evidence.similar_clauses),
        _format_refs("Template baselines", evidence.templates),
        _format_refs("Entailment evidence", evidence.spans),
    ])


def build_risk_scorer_prompt(
    evidence: list[ClauseEvidence],
    perspective: Perspective,
) -> str:
    """User prompt assessing every clause of a document in one call."""
    sections = "\n\n".join(format_clause_section(e) for e in evidence)
    return f"""## Perspective
{PERSPECTIVE_FRAMING[perspective]}

## Clauses to Assess ({len(evidence)} clauses)

{sections}

Assess each clause. Return JSON with an assessments array containing one entry per clause."""
