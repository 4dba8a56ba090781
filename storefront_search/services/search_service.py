"""Search service for product search with a sequential strategy fallback chain"""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Sequence

from storefront_search.core.config import settings
from storefront_search.core.exceptions import InvalidSearchRequestError, StrategyUnavailableError
from storefront_search.core.mongo import get_mongo_db
from storefront_search.schemas.search import FilterOptions, SearchResult
from storefront_search.services.embedding_service import get_embedding_service
from storefront_search.services.filter_engine import adjust_count, filter_and_sort
from storefront_search.services.product_service import ProductService
from storefront_search.services.qdrant_service import QdrantService, get_qdrant_service
from storefront_search.services.strategies.base import SearchStrategy, StrategyResult
from storefront_search.services.strategies.lexical_strategy import LexicalSearchStrategy
from storefront_search.services.strategies.local_strategy import LocalSimilaritySearchStrategy
from storefront_search.services.strategies.semantic_strategy import SemanticSearchStrategy

logger = logging.getLogger(__name__)


class SearchService:
    """
    Handles product search by trying strategies in priority order.

    Default chain:
    1. Semantic: OpenAI embeddings + Qdrant with filters applied in the query
    2. Lexical: MongoDB full-text search with filters and sort applied in the query
    3. Local: cosine similarity over one catalog page, filtered in memory

    Strategies run one at a time so later (costlier or less relevant) ones are
    only paid for when earlier ones come back empty or unavailable. The first
    non-empty page wins; the last strategy's answer stands even when empty.
    """

    def __init__(
        self,
        strategies: Sequence[SearchStrategy],
        timeout_seconds: float | None = None,
        fallback_on_error: bool | None = None,
        vector_store: QdrantService | None = None,
    ):
        if not strategies:
            raise ValueError("SearchService needs at least one strategy")
        self.strategies = list(strategies)
        self.timeout = timeout_seconds if timeout_seconds is not None else settings.STRATEGY_TIMEOUT_SECONDS
        self.fallback_on_error = settings.FALLBACK_ON_ERROR if fallback_on_error is None else fallback_on_error
        self.vector_store = vector_store

    async def search(
        self,
        query_text: str,
        page: int = 1,
        items_per_page: int = 16,
        filters: FilterOptions | None = None,
    ) -> SearchResult:
        """
        Search products and return one page of results.

        Args:
            query_text: Free-text search query
            page: 1-based page number
            items_per_page: Page size
            filters: Optional filters and sort order

        Returns:
            SearchResult. Empty products without error means no matches; a set
            error means search itself is broken.

        Raises:
            InvalidSearchRequestError: blank query, page < 1 or items_per_page < 1
        """
        if not query_text or not query_text.strip():
            raise InvalidSearchRequestError("Query text is required")
        if page < 1:
            raise InvalidSearchRequestError(f"page must be >= 1, got {page}")
        if items_per_page < 1:
            raise InvalidSearchRequestError(f"items_per_page must be >= 1, got {items_per_page}")

        filters = filters or FilterOptions()
        offset = (page - 1) * items_per_page

        logger.info(f"🔍 Search Query: {query_text!r} (page={page}, items_per_page={items_per_page}, offset={offset})")
        logger.info(f"🔍 Filters: {filters.model_dump(exclude_defaults=True)}")

        empty_result: SearchResult | None = None
        last_error: Exception | None = None

        for position, strategy in enumerate(self.strategies, start=1):
            is_last = position == len(self.strategies)
            try:
                outcome = await asyncio.wait_for(
                    strategy.execute(query_text, items_per_page, offset, filters),
                    timeout=self.timeout,
                )
            except StrategyUnavailableError as e:
                logger.info(f"↪️ Strategy {strategy.name} unavailable ({e}), trying next")
                last_error = e
                continue
            except Exception as e:
                # A hard failure that ends the chain is an error even after earlier empty pages
                if is_last or not self.fallback_on_error:
                    return self._failure_result(e)
                logger.warning(f"⚠️ Strategy {strategy.name} failed ({type(e).__name__}: {e}), trying next")
                last_error = e
                continue

            result = self._finalize(strategy, outcome, filters)
            if result.products or is_last:
                return result

            logger.info(f"↪️ Strategy {strategy.name} returned no results, trying next")
            empty_result = empty_result or result

        # Remaining strategies were only unavailable, so an earlier empty page stands as "no results"
        if empty_result is not None:
            return empty_result

        return self._failure_result(last_error)

    def _finalize(self, strategy: SearchStrategy, outcome: StrategyResult, filters: FilterOptions) -> SearchResult:
        products = outcome.products
        count = outcome.count
        if not outcome.filters_applied:
            products = filter_and_sort(outcome.products, filters)
            count = adjust_count(outcome.count, len(outcome.products), len(products))

        logger.info(f"✅ Strategy {strategy.name}: {len(products)} results (count={count})")
        return SearchResult(products=products, count=count, strategy=strategy.name)

    def _failure_result(self, error: Exception | None) -> SearchResult:
        if error is None:
            logger.error("❌ Search failed: no strategy produced a result")
        else:
            logger.error(f"❌ Search failed: {type(error).__name__}: {error}", exc_info=error)
        return SearchResult(products=[], count=0, error=settings.SEARCH_UNAVAILABLE_MESSAGE)

    async def get_health_status(self) -> dict[str, Any]:
        """Get search service health status"""
        status: dict[str, Any] = {
            "status": "healthy",
            "strategies": [strategy.name for strategy in self.strategies],
        }
        if self.vector_store is not None:
            status["vector_store"] = await self.vector_store.get_health_status()
        return status


def build_default_strategies(product_service: ProductService, vector_store: QdrantService) -> list[SearchStrategy]:
    """Semantic, lexical and local strategies in fallback order."""
    return [
        SemanticSearchStrategy(vector_store),
        LexicalSearchStrategy(product_service),
        LocalSimilaritySearchStrategy(product_service, get_embedding_service()),
    ]


@lru_cache
def get_search_service() -> SearchService:
    """Get cached search service instance"""
    product_service = ProductService(get_mongo_db())
    vector_store = get_qdrant_service()
    return SearchService(
        strategies=build_default_strategies(product_service, vector_store),
        vector_store=vector_store,
    )
