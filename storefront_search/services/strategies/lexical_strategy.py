import logging

from storefront_search.schemas.search import FilterOptions
from storefront_search.services.normalizer import normalize_records
from storefront_search.services.product_service import ProductService
from storefront_search.services.strategies.base import SearchStrategy, StrategyResult

logger = logging.getLogger(__name__)


class LexicalSearchStrategy(SearchStrategy):
    """Keyword search over product names with filters and sort applied in MongoDB."""

    name = "lexical"

    def __init__(self, product_service: ProductService):
        self.product_service = product_service

    async def execute(self, query_text: str, limit: int, offset: int, filters: FilterOptions) -> StrategyResult:
        records, total = await self.product_service.search_text(query_text, filters, limit, offset)
        if not records:
            return StrategyResult(products=[], count=total, filters_applied=True)

        variant_counts = await self.product_service.count_variants([record["id"] for record in records if "id" in record])
        for record in records:
            record["variant_count"] = variant_counts.get(record.get("id"), 0)

        products = normalize_records(records)
        logger.info(f"✅ Lexical search: {len(products)} of {total} matches")
        return StrategyResult(products=products, count=total, filters_applied=True)
