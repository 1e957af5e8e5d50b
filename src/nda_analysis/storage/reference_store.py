"""
Qdrant-backed reference store.

Holds embedded reference passages (CUAD clauses, ContractNLI evidence spans,
Bonterms/CommonAccord templates) for similarity search.
"""

import uuid
from functools import lru_cache
from typing import Any, Iterable

import structlog
from qdrant_client import QdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.exceptions import UnexpectedResponse

from nda_analysis.config import get_settings
from nda_analysis.models.reference import Granularity, ReferenceItem

logger = structlog.get_logger(__name__)

# Namespace for deriving Qdrant point ids from reference ids
_POINT_NAMESPACE = uuid.UUID("6f1c1f0e-2b8a-4c43-9a57-4f7d2f9d6a11")


def point_id_for(reference_id: str) -> str:
    """Deterministic Qdrant point id for a reference id."""
    return str(uuid.uuid5(_POINT_NAMESPACE, reference_id))


class ReferenceStore:
    """
    Qdrant reference store adapter.

    Handles vector storage and filtered similarity search for reference
    passages.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        collection_name: str | None = None,
    ):
        settings = get_settings()
        self.host = host or settings.qdrant_host
        self.port = port or settings.qdrant_port
        self.collection_name = collection_name or settings.qdrant_collection
        self.dimension = settings.embedding_dimension

        self._client: QdrantClient | None = None

    def connect(self) -> QdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            self._client = QdrantClient(host=self.host, port=self.port)
            logger.info("qdrant_connected", host=self.host, port=self.port)
        return self._client

    @property
    def client(self) -> QdrantClient:
        """Get the Qdrant client."""
        return self.connect()

    def close(self) -> None:
        """Close the Qdrant client."""
        if self._client:
            self._client.close()
            self._client = None

    def health_check(self) -> bool:
        """Check Qdrant connectivity."""
        try:
            self.client.get_collections()
            return True
        except Exception as e:
            logger.error("qdrant_health_check_failed", error=str(e))
            return False

    # =========================================================================
    # Collection Management
    # =========================================================================

    def create_collection(self) -> None:
        """Create the reference collection with keyword indexes for filtering."""
        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=qdrant_models.VectorParams(
                size=self.dimension,
                distance=qdrant_models.Distance.COSINE,
            ),
        )
        for field_name in ("category", "granularity", "source", "reference_id"):
            self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=qdrant_models.PayloadSchemaType.KEYWORD,
            )
        logger.info("qdrant_collection_created", collection=self.collection_name)

    def ensure_collection(self) -> None:
        """Ensure collection exists, creating if necessary."""
        if not self.client.collection_exists(self.collection_name):
            self.create_collection()

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert_references(
        self,
        references: list[ReferenceItem],
        vectors: list[list[float]],
    ) -> int:
        """Upsert reference passages with their embeddings."""
        self.ensure_collection()

        points = [
            qdrant_models.PointStruct(
                id=point_id_for(ref.id),
                vector=vector,
                payload=ref.to_payload(),
            )
            for ref, vector in zip(references, vectors)
        ]
        if not points:
            return 0

        self.client.upsert(
            collection_name=self.collection_name,
            points=points,
        )
        logger.debug("references_upserted", count=len(points))
        return len(points)

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _build_filter(
        category: str | None,
        granularity: Granularity | None,
    ) -> qdrant_models.Filter | None:
        conditions = []
        if category:
            conditions.append(
                qdrant_models.FieldCondition(
                    key="category",
                    match=qdrant_models.MatchValue(value=category),
                )
            )
        if granularity:
            conditions.append(
                qdrant_models.FieldCondition(
                    key="granularity",
                    match=qdrant_models.MatchValue(value=Granularity(granularity).value),
                )
            )
        return qdrant_models.Filter(must=conditions) if conditions else None

    def search(
        self,
        query_vector: list[float],
        limit: int = 5,
        category: str | None = None,
        granularity: Granularity | None = None,
    ) -> list[ReferenceItem]:
        """
        Search for the most similar reference passages.

        Returns items ordered by descending similarity.
        """
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=query_vector,
            limit=limit,
            query_filter=self._build_filter(category, granularity),
            with_payload=True,
        )

        items = [
            ReferenceItem.from_payload(point.payload or {}, float(point.score))
            for point in response.points
            if point.payload and "reference_id" in point.payload
        ]
        items.sort(key=lambda item: item.similarity, reverse=True)
        return items

    def existing_ids(self, reference_ids: Iterable[str]) -> set[str]:
        """Return the subset of reference ids present in the store."""
        ids = list(dict.fromkeys(reference_ids))
        if not ids:
            return set()

        records = self.client.retrieve(
            collection_name=self.collection_name,
            ids=[point_id_for(ref_id) for ref_id in ids],
            with_payload=["reference_id"],
            with_vectors=False,
        )
        return {
            r.payload["reference_id"]
            for r in records
            if r.payload and "reference_id" in r.payload
        }

    def get_collection_info(self) -> dict[str, Any]:
        """Get collection statistics."""
        try:
            info = self.client.get_collection(self.collection_name)
            return {
                "name": self.collection_name,
                "points_count": info.points_count,
                "status": info.status,
            }
        except UnexpectedResponse:
            return {"name": self.collection_name, "status": "not_found"}


@lru_cache()
def get_reference_store() -> ReferenceStore:
    """Get cached reference store instance."""
    return ReferenceStore()
