"""
CUAD category table: per-category risk weight and NDA relevance.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import structlog

from nda_analysis.config import get_settings
from nda_analysis.models.taxonomy import (
    CRITICAL_CATEGORIES,
    CRITICAL_FALLBACK_WEIGHT,
    IMPORTANT_CATEGORIES,
    IMPORTANT_FALLBACK_WEIGHT,
    ClauseCategory,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CategoryRow:
    name: str
    risk_weight: float = 1.0
    is_nda_relevant: bool = True


def fallback_categories() -> list[CategoryRow]:
    """Relevant categories used when the table yields nothing."""
    return [
        CategoryRow(c.value, CRITICAL_FALLBACK_WEIGHT) for c in CRITICAL_CATEGORIES
    ] + [
        CategoryRow(c.value, IMPORTANT_FALLBACK_WEIGHT) for c in IMPORTANT_CATEGORIES
    ]


class CategorySource:
    """
    Reads the category table from a JSON file.

    A missing, unreadable or empty table is not an error; callers fall back
    to the hardcoded list.
    """

    def __init__(self, path: Path | None = None):
        self.path = path or get_settings().category_table_path
        self._rows: list[CategoryRow] | None = None

    def load(self) -> list[CategoryRow]:
        """Load rows, dropping names outside the CUAD taxonomy."""
        if self._rows is not None:
            return self._rows

        try:
            raw = json.loads(Path(self.path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("category_table_unavailable", path=str(self.path), error=str(e))
            raw = []

        valid_names = {c.value for c in ClauseCategory.cuad()}
        rows = []
        for entry in raw if isinstance(raw, list) else []:
            if not isinstance(entry, dict):
                logger.warning("category_table_invalid_row", row=entry)
                continue
            name = entry.get("name")
            if name not in valid_names:
                logger.warning("category_table_unknown_name", name=name)
                continue
            try:
                weight = float(entry.get("risk_weight", 1.0))
            except (TypeError, ValueError):
                logger.warning(
                    "category_table_invalid_weight", name=name, risk_weight=entry.get("risk_weight")
                )
                continue
            rows.append(
                CategoryRow(
                    name=name,
                    risk_weight=weight,
                    is_nda_relevant=bool(entry.get("is_nda_relevant", True)),
                )
            )
        self._rows = rows
        return rows

    def relevant_categories(self) -> list[CategoryRow]:
        """NDA-relevant rows, or the fallback list if there are none."""
        relevant = [row for row in self.load() if row.is_nda_relevant]
        if not relevant:
            logger.info("category_table_fallback", count=len(fallback_categories()))
            return fallback_categories()
        return relevant


@lru_cache()
def get_category_source() -> CategorySource:
    """Get cached category source instance."""
    return CategorySource()
