import asyncio
from typing import Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import OperationFailure, PyMongoError

from storefront_search.core.config import settings
from storefront_search.core.exceptions import CatalogQueryError, StrategyUnavailableError
from storefront_search.schemas.search import FilterOptions, SortOption

# MongoDB error code for a $text query without a text index
TEXT_INDEX_NOT_FOUND = 27

DEFAULT_PRICE_RANGE = {"min": 0.0, "max": 1000.0}

PRODUCT_PROJECTION = {
    "_id": 0,
    "id": 1,
    "name": 1,
    "base_price": 1,
    "image_url": 1,
    "in_stock": 1,
    "category_id": 1,
    "brand_id": 1,
    "brands.name": 1,
}

# NEWEST/OLDEST use the id as recency proxy, matching the in-memory engine
QUERY_SORTS: dict[SortOption, dict[str, Any]] = {
    SortOption.RELEVANCE: {"score": {"$meta": "textScore"}, "id": 1},
    SortOption.NEWEST: {"id": -1},
    SortOption.OLDEST: {"id": 1},
    SortOption.PRICE_ASC: {"base_price": 1, "id": 1},
    SortOption.PRICE_DESC: {"base_price": -1, "id": 1},
    SortOption.NAME_ASC: {"name": 1, "id": 1},
    SortOption.NAME_DESC: {"name": -1, "id": 1},
}


def build_filter_match(filters: FilterOptions | None, exclude_repair_parts: bool = True) -> dict[str, Any]:
    """Translate storefront filters into a MongoDB match document."""
    match: dict[str, Any] = {}
    if exclude_repair_parts:
        match["is_repair_part"] = {"$ne": True}
    if filters is None:
        return match

    price: dict[str, float] = {}
    if filters.min_price is not None:
        price["$gte"] = filters.min_price
    if filters.max_price is not None:
        price["$lte"] = filters.max_price
    if price:
        match["base_price"] = price

    if filters.category_ids:
        match["category_id"] = {"$in": sorted(filters.category_ids)}
    if filters.brand_ids:
        match["brand_id"] = {"$in": sorted(filters.brand_ids)}
    if filters.in_stock_only:
        match["in_stock"] = {"$gt": 0}
    return match


def build_text_search_pipeline(
    query_text: str,
    filters: FilterOptions | None,
    limit: int,
    offset: int,
    brands_collection: str,
    exclude_repair_parts: bool = True,
) -> list[dict[str, Any]]:
    """Aggregation pipeline for one page of full-text matches on the product name."""
    match = {"$text": {"$search": query_text}}
    match.update(build_filter_match(filters, exclude_repair_parts))
    sort_by = filters.sort_by if filters else SortOption.RELEVANCE

    return [
        {"$match": match},
        {"$sort": QUERY_SORTS[sort_by]},
        {"$skip": offset},
        {"$limit": limit},
        {"$lookup": {"from": brands_collection, "localField": "brand_id", "foreignField": "id", "as": "brands"}},
        {"$project": PRODUCT_PROJECTION},
    ]


class ProductService:
    """Catalog reads backing the lexical and local-similarity strategies"""

    def __init__(self, db: AsyncIOMotorDatabase, exclude_repair_parts: bool | None = None):
        self.db = db
        self.collection = db[settings.PRODUCTS_COLLECTION]
        self.variants_collection = db[settings.PRODUCT_VARIANTS_COLLECTION]
        self.brands_collection = db[settings.BRANDS_COLLECTION]
        self.categories_collection = db[settings.CATEGORIES_COLLECTION]
        self.exclude_repair_parts = (
            settings.EXCLUDE_REPAIR_PARTS if exclude_repair_parts is None else exclude_repair_parts
        )

    # ============================================================================
    # Search Methods
    # ============================================================================

    async def search_text(
        self, query_text: str, filters: FilterOptions | None, limit: int, offset: int
    ) -> tuple[list[dict[str, Any]], int]:
        """
        Full-text search over product names with filters and sort applied in MongoDB.

        Returns:
            (records for the requested page, total number of matches)

        Raises:
            StrategyUnavailableError: the products collection has no text index
            CatalogQueryError: any other MongoDB failure
        """
        pipeline = build_text_search_pipeline(
            query_text,
            filters,
            limit,
            offset,
            brands_collection=settings.BRANDS_COLLECTION,
            exclude_repair_parts=self.exclude_repair_parts,
        )
        try:
            cursor = self.collection.aggregate(pipeline)
            records = await cursor.to_list(length=None)
            total = await self.collection.count_documents(pipeline[0]["$match"])
        except OperationFailure as e:
            if e.code == TEXT_INDEX_NOT_FOUND:
                raise StrategyUnavailableError("Products collection has no text index") from e
            raise CatalogQueryError(f"Text search failed: {str(e)}") from e
        except PyMongoError as e:
            raise CatalogQueryError(f"Text search failed: {str(e)}") from e

        return records, total

    async def fetch_products_with_embeddings(self, limit: int, offset: int) -> tuple[list[dict[str, Any]], int]:
        """
        Fetch one catalog page in id order, including stored name embeddings.

        Returns:
            (records with an optional "name_embedding" key, total catalog size)
        """
        match = build_filter_match(None, self.exclude_repair_parts)
        pipeline = [
            {"$match": match},
            {"$sort": {"id": 1}},
            {"$skip": offset},
            {"$limit": limit},
            {"$lookup": {"from": settings.BRANDS_COLLECTION, "localField": "brand_id", "foreignField": "id", "as": "brands"}},
            {"$project": {**PRODUCT_PROJECTION, "name_embedding": 1}},
        ]
        try:
            cursor = self.collection.aggregate(pipeline)
            records = await cursor.to_list(length=None)
            total = await self.collection.count_documents(match)
        except PyMongoError as e:
            raise CatalogQueryError(f"Failed to fetch products: {str(e)}") from e

        return records, total

    async def count_variants(self, product_ids: list[int]) -> dict[int, int]:
        """Count variants per product; the per-product counts run concurrently."""
        try:
            counts = await asyncio.gather(
                *(self.variants_collection.count_documents({"product_id": pid}) for pid in product_ids)
            )
        except PyMongoError as e:
            raise CatalogQueryError(f"Failed to count variants: {str(e)}") from e
        return dict(zip(product_ids, counts))

    # ============================================================================
    # Filter Facet Methods
    # ============================================================================

    async def fetch_brands(self) -> list[dict[str, Any]]:
        """Get all brands ordered by name."""
        cursor = self.brands_collection.find({}, {"_id": 0, "id": 1, "name": 1, "image_url": 1}).sort("name", 1)
        return await cursor.to_list(length=None)

    async def fetch_categories(self) -> list[dict[str, Any]]:
        """Get all categories ordered by name."""
        cursor = self.categories_collection.find(
            {}, {"_id": 0, "id": 1, "name": 1, "image_url": 1, "parent_id": 1}
        ).sort("name", 1)
        return await cursor.to_list(length=None)

    async def fetch_price_range(self) -> dict[str, float]:
        """Get lowest and highest base price; defaults to 0-1000 for an empty catalog."""
        pipeline = [
            {"$match": build_filter_match(None, self.exclude_repair_parts)},
            {"$group": {"_id": None, "min": {"$min": "$base_price"}, "max": {"$max": "$base_price"}}},
        ]
        cursor = self.collection.aggregate(pipeline)
        rows = await cursor.to_list(length=1)
        if not rows or rows[0].get("min") is None:
            return dict(DEFAULT_PRICE_RANGE)
        return {"min": float(rows[0]["min"]), "max": float(rows[0]["max"])}
