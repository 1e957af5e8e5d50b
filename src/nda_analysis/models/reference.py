"""
Reference corpus models.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ReferenceSource(str, Enum):
    """Corpus a reference passage came from."""

    CUAD = "cuad"
    CONTRACT_NLI = "contract_nli"
    BONTERMS = "bonterms"
    COMMONACCORD = "commonaccord"


class Granularity(str, Enum):
    """Granularity of a reference passage."""

    DOCUMENT = "document"
    SECTION = "section"
    CLAUSE = "clause"
    SPAN = "span"
    TEMPLATE = "template"


class ReferenceItem(BaseModel):
    """A reference passage returned by evidence retrieval."""

    id: str
    content: str
    category: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    source: ReferenceSource
    granularity: Granularity | None = None
    section: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Payload stored alongside the vector in the reference store."""
        payload = {
            "reference_id": self.id,
            "content": self.content,
            "category": self.category,
            "source": self.source.value,
        }
        if self.granularity:
            payload["granularity"] = self.granularity.value
        if self.section:
            payload["section"] = self.section
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any], similarity: float) -> "ReferenceItem":
        return cls(
            id=payload["reference_id"],
            content=payload.get("content", ""),
            category=payload.get("category", "Unknown"),
            similarity=min(max(similarity, 0.0), 1.0),
            source=payload.get("source", ReferenceSource.CUAD.value),
            granularity=payload.get("granularity"),
            section=payload.get("section"),
        )
