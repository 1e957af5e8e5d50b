"""
Category-diverse selection of reference passages.

Retrieval for a whole document is pooled, so one dominant category could
fill every slot. Selection takes the best passage from each category
first, then fills the rest by similarity.
"""

from dataclasses import dataclass, field

from nda_analysis.models.reference import ReferenceItem


@dataclass
class ReferenceSelection:
    references: list[ReferenceItem] = field(default_factory=list)
    candidate_categories: list[str] = field(default_factory=list)


def select_references(
    items: list[ReferenceItem],
    max_references: int = 10,
) -> ReferenceSelection:
    """
    Select at most ``max_references`` diverse references.

    1. Stable sort by similarity, highest first.
    2. Deduplicate by id, keeping the highest-similarity instance.
    3. Group by category in order of first appearance.
    4. Round 1: best item of each category.
    5. Round 2: remaining capacity by similarity, any category.
    """
    if max_references <= 0 or not items:
        return ReferenceSelection()

    ranked = sorted(items, key=lambda item: item.similarity, reverse=True)

    seen_ids: set[str] = set()
    unique: list[ReferenceItem] = []
    for item in ranked:
        if item.id not in seen_ids:
            seen_ids.add(item.id)
            unique.append(item)

    by_category: dict[str, list[ReferenceItem]] = {}
    for item in unique:
        by_category.setdefault(item.category, []).append(item)

    selected: list[ReferenceItem] = []
    selected_ids: set[str] = set()

    # Round 1
    for group in by_category.values():
        if len(selected) >= max_references:
            break
        selected.append(group[0])
        selected_ids.add(group[0].id)

    # Round 2
    for item in unique:
        if len(selected) >= max_references:
            break
        if item.id not in selected_ids:
            selected.append(item)
            selected_ids.add(item.id)

    categories = list(dict.fromkeys(item.category for item in selected))
    return ReferenceSelection(references=selected, candidate_categories=categories)
