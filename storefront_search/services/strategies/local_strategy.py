"""
Local similarity strategy, the last resort of the fallback chain.

Scores one catalog page in process: cosine similarity against stored name
embeddings where present, a text-overlap heuristic otherwise.
"""

import logging
from typing import Any

from storefront_search.schemas.search import FilterOptions
from storefront_search.services.embedding_service import EmbeddingService
from storefront_search.services.filter_engine import adjust_count, filter_and_sort
from storefront_search.services.normalizer import normalize_records
from storefront_search.services.product_service import ProductService
from storefront_search.services.similarity import cosine_similarity, text_overlap_score
from storefront_search.services.strategies.base import SearchStrategy, StrategyResult

logger = logging.getLogger(__name__)

EMBEDDING_FIELD = "name_embedding"


class LocalSimilaritySearchStrategy(SearchStrategy):
    name = "local"

    def __init__(self, product_service: ProductService, embedding_service: EmbeddingService):
        self.product_service = product_service
        self.embedding_service = embedding_service

    async def execute(self, query_text: str, limit: int, offset: int, filters: FilterOptions) -> StrategyResult:
        records, total = await self.product_service.fetch_products_with_embeddings(limit, offset)
        if not records:
            return StrategyResult(products=[], count=total, filters_applied=True)

        variant_counts = await self.product_service.count_variants([record["id"] for record in records if "id" in record])

        # Only pay for a query embedding when some candidate can use it
        query_embedding = None
        if any(record.get(EMBEDDING_FIELD) for record in records):
            query_embedding = await self.embedding_service.create_embedding(query_text)

        scored = [
            self._score_record(record, query_text, query_embedding, variant_counts)
            for record in records
        ]
        # Stable: equal scores keep catalog order
        scored.sort(key=lambda record: record["similarity"], reverse=True)

        ranked = normalize_records(scored)
        products = filter_and_sort(ranked, filters)
        logger.info(f"✅ Local similarity: {len(products)} of {len(ranked)} candidates kept")
        return StrategyResult(
            products=products,
            count=adjust_count(total, len(ranked), len(products)),
            filters_applied=True,
        )

    @staticmethod
    def _score_record(
        record: dict[str, Any],
        query_text: str,
        query_embedding: list[float] | None,
        variant_counts: dict[int, int],
    ) -> dict[str, Any]:
        scored = {key: value for key, value in record.items() if key != EMBEDDING_FIELD}
        embedding = record.get(EMBEDDING_FIELD)
        if embedding and query_embedding is not None:
            scored["similarity"] = cosine_similarity(query_embedding, embedding)
        else:
            scored["similarity"] = text_overlap_score(query_text, str(record.get("name") or ""))
        scored["variant_count"] = variant_counts.get(record.get("id"), 0)
        return scored
