import logging

from storefront_search.schemas.search import FilterOptions
from storefront_search.services.filter_engine import sort_products
from storefront_search.services.normalizer import normalize_records
from storefront_search.services.qdrant_service import QdrantService
from storefront_search.services.strategies.base import SearchStrategy, StrategyResult

logger = logging.getLogger(__name__)


class SemanticSearchStrategy(SearchStrategy):
    """
    Embedding based search through the vector store.

    Filters are pushed into the Qdrant query; Qdrant only ranks by score, so
    non-relevance sort modes are applied to the returned page in memory.
    """

    name = "semantic"

    def __init__(self, vector_search: QdrantService):
        self.vector_search = vector_search

    async def execute(self, query_text: str, limit: int, offset: int, filters: FilterOptions) -> StrategyResult:
        records = await self.vector_search.search_vector(query_text, limit=limit, offset=offset, filters=filters)
        products = sort_products(normalize_records(records), filters.sort_by)

        # The vector store reports no total, so this is a lower bound; a full
        # page counts one extra match so callers can still ask for the next page
        if not products:
            count = 0
        elif len(records) >= limit:
            count = offset + limit + 1
        else:
            count = offset + len(products)
        logger.info(f"✅ Semantic search: {len(products)} results (offset={offset})")
        return StrategyResult(products=products, count=count, filters_applied=True)
