"""
Prompts for batch clause classification.
"""

from dataclasses import dataclass

from nda_analysis.models.reference import ReferenceItem
from nda_analysis.models.taxonomy import ClauseCategory

_CATEGORY_LIST = "\n".join(
    f"{i}. {c.value}"
    for i, c in enumerate(ClauseCategory.cuad(), start=1)
)

CLASSIFIER_SYSTEM_PROMPT = f"""You are a legal clause classifier specializing in NDA analysis.
Your task is to classify legal text chunks into the CUAD taxonomy.
You receive every chunk of the document in one request. Classify each chunk independently, using the surrounding context only to understand clause boundaries.

## CUAD Categories
{_CATEGORY_LIST}

## Classification Guidelines

1. Primary category: exactly one most relevant category per chunk.
2. Secondary categories: up to 2 additional CUAD categories when a chunk clearly spans multiple topics.
3. Uncategorized: use when no CUAD category fits (boilerplate, recitals, signature blocks, definitions without substantive obligations).
4. Use the neighbor context to resolve ambiguous boundaries, but classify only the chunk content itself.

## Confidence Scoring

- 0.9-1.0: Unambiguous match, clear legal language
- 0.7-0.9: Strong match with minor ambiguity
- 0.5-0.7: Moderate confidence, recommend human review
- below 0.5: Low confidence, uncertain classification

## Important Notes

- Focus on legal substance, not just keywords.
- "Term" could be Renewal Term OR Expiration Date; read carefully.
- Compare against the provided reference examples.
- Chunks below 0.3 confidence should use "Uncategorized".
- Return one entry per chunk. chunk_index must be the document-wide index shown in each chunk header."""


@dataclass
class ChunkPromptView:
    """A chunk as rendered into the prompt."""

    index: int
    content: str
    section_path: list[str]
    prev_context: str = ""
    next_context: str = ""


def format_reference_block(references: list[ReferenceItem]) -> str:
    if not references:
        return "No similar references found."
    return "\n".join(
        f"[{i}] {r.category} ({r.source.value}, {round(r.similarity * 100)}%): {r.content[:200]}..."
        for i, r in enumerate(references, start=1)
    )


def format_chunk(chunk: ChunkPromptView) -> str:
    parts = [f"### Chunk {chunk.index}"]
    if chunk.section_path:
        parts.append(f"[Section: {' > '.join(chunk.section_path)}]")
    if chunk.prev_context:
        parts.append(f"[PRECEDING CONTEXT]: ...{chunk.prev_context}")
    parts.append(chunk.content)
    if chunk.next_context:
        parts.append(f"[FOLLOWING CONTEXT]: {chunk.next_context}...")
    return "\n".join(parts)


def build_classifier_prompt(
    chunks: list[ChunkPromptView],
    references: list[ReferenceItem],
    candidate_categories: list[str],
) -> str:
    """User prompt for classifying every chunk of a document in one call."""
    if candidate_categories:
        candidate_block = "\n".join(
            f"{i}. {c}" for i, c in enumerate(candidate_categories, start=1)
        )
    else:
        candidate_block = "No candidate categories identified."

    chunks_block = "\n\n".join(format_chunk(chunk) for chunk in chunks)

    return f"""## Candidate Categories (from reference corpus)
{candidate_block}

Note: You may also assign categories NOT in this list if the text clearly belongs elsewhere. Use "Uncategorized" only if no CUAD category fits at all.

## Reference Examples
{format_reference_block(references)}

## Chunks to Classify ({len(chunks)} chunks)

{chunks_block}

Classify each chunk. Return JSON with a classifications array containing one entry per chunk."""
