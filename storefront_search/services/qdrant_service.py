"""
Qdrant vector database service for semantic product search.

Product points are expected to carry their catalog attributes in the payload
(id, name, base_price, image_url, in_stock, category_id, brand_id, brand_name,
variant_count) so results can be filtered inside Qdrant and normalized without
a second lookup.
"""

import logging
from functools import lru_cache
from typing import Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import FieldCondition, Filter, MatchAny, Range

from storefront_search.core.config import settings
from storefront_search.core.exceptions import StrategyUnavailableError, VectorSearchError
from storefront_search.schemas.search import FilterOptions
from storefront_search.services.embedding_service import EmbeddingService, get_embedding_service

logger = logging.getLogger(__name__)


def build_qdrant_filter(filters: FilterOptions | None) -> Filter | None:
    """
    Convert storefront filters to a Qdrant Filter object

    Qdrant supports:
    - MatchAny for id set matching (like $in)
    - Range for numeric comparisons

    Args:
        filters: Caller supplied filter options

    Returns:
        Qdrant Filter object, or None when no filter is active
    """
    if filters is None:
        return None

    must_conditions = []

    if filters.category_ids:
        must_conditions.append(FieldCondition(key="category_id", match=MatchAny(any=sorted(filters.category_ids))))

    if filters.brand_ids:
        must_conditions.append(FieldCondition(key="brand_id", match=MatchAny(any=sorted(filters.brand_ids))))

    price_range = {}
    if filters.min_price is not None:
        price_range["gte"] = filters.min_price
    if filters.max_price is not None:
        price_range["lte"] = filters.max_price
    if price_range:
        must_conditions.append(FieldCondition(key="base_price", range=Range(**price_range)))

    if filters.in_stock_only:
        must_conditions.append(FieldCondition(key="in_stock", range=Range(gt=0)))

    if not must_conditions:
        return None

    # All conditions must be satisfied = AND logic
    return Filter(must=must_conditions)


class QdrantService:
    """Service for querying product embeddings in Qdrant"""

    def __init__(
        self,
        client: AsyncQdrantClient | None = None,
        embedding_service: EmbeddingService | None = None,
        collection_name: str | None = None,
        score_threshold: float | None = None,
    ):
        if client is None:
            if settings.QDRANT_URL:
                client = AsyncQdrantClient(url=settings.QDRANT_URL)
            else:
                # Use local persistent storage
                client = AsyncQdrantClient(path=settings.QDRANT_PATH)
        self.client = client
        self.embedding_service = embedding_service or get_embedding_service()
        self.collection_name = collection_name or settings.QDRANT_COLLECTION_NAME
        self.score_threshold = score_threshold if score_threshold is not None else settings.VECTOR_MATCH_THRESHOLD

    async def _ensure_collection(self) -> None:
        try:
            exists = await self.client.collection_exists(collection_name=self.collection_name)
        except Exception as e:
            raise VectorSearchError(f"Failed to reach Qdrant: {str(e)}") from e
        if not exists:
            raise StrategyUnavailableError(f"Qdrant collection '{self.collection_name}' does not exist")

    async def search_vector(
        self,
        query_text: str,
        limit: int,
        offset: int = 0,
        filters: FilterOptions | None = None,
    ) -> list[dict[str, Any]]:
        """
        Rank products by semantic similarity to free text.

        Args:
            query_text: Search query
            limit: Page size
            offset: Number of ranked matches to skip
            filters: Optional filters applied inside Qdrant

        Returns:
            Payload records in rank order, each with a "similarity" score.
            An empty list means no product passed the match threshold.

        Raises:
            StrategyUnavailableError: embeddings not configured or collection missing
            VectorSearchError: Qdrant query failed
            EmbeddingError: embedding generation failed
        """
        if not self.embedding_service.is_configured:
            raise StrategyUnavailableError("Embedding service is not configured")
        await self._ensure_collection()

        query_embedding = await self.embedding_service.create_embedding(query_text)

        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=query_embedding,
                query_filter=build_qdrant_filter(filters),
                limit=limit,
                offset=offset,
                score_threshold=self.score_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise VectorSearchError(f"Failed to query Qdrant: {str(e)}") from e

        records = []
        for point in response.points:
            record = dict(point.payload or {})
            record.setdefault("id", point.id)
            # Qdrant returns score (higher = more similar)
            record["similarity"] = point.score
            records.append(record)

        logger.info(f"✅ Qdrant returned {len(records)} points (offset={offset}, limit={limit})")
        return records

    async def get_count(self) -> int:
        """Get total number of embeddings in collection"""
        result = await self.client.count(collection_name=self.collection_name, exact=True)
        return result.count

    async def get_health_status(self) -> dict[str, Any]:
        """Get vector store health status"""
        try:
            if not await self.client.collection_exists(collection_name=self.collection_name):
                return {"status": "unavailable", "collection": self.collection_name}
            return {
                "status": "healthy",
                "vectors_count": await self.get_count(),
                "collection": self.collection_name,
                "embeddings_configured": self.embedding_service.is_configured,
            }
        except Exception as e:
            logger.error(f"❌ Qdrant health check failed: {e}")
            return {"status": "unhealthy", "collection": self.collection_name}


@lru_cache
def get_qdrant_service() -> QdrantService:
    """Dependency injection for Qdrant service"""
    return QdrantService()
