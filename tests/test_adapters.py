"""
Unit tests for the storage and AI adapters

Covers Qdrant filter building and unavailability, MongoDB pipeline building
and error translation, and the OpenAI embedding wrapper.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from storefront_search.core.config import settings
from storefront_search.core.exceptions import (
    CatalogQueryError,
    EmbeddingError,
    EmbeddingUnavailableError,
    StrategyUnavailableError,
    VectorSearchError,
)
from storefront_search.schemas.search import FilterOptions, SortOption
from storefront_search.services.embedding_service import EmbeddingService
from storefront_search.services.product_service import (
    DEFAULT_PRICE_RANGE,
    ProductService,
    build_filter_match,
    build_text_search_pipeline,
)
from storefront_search.services.qdrant_service import QdrantService, build_qdrant_filter


@pytest.mark.unit
class TestBuildQdrantFilter:

    def test_no_filters(self):
        assert build_qdrant_filter(None) is None
        assert build_qdrant_filter(FilterOptions(sort_by=SortOption.NAME_ASC)) is None

    def test_all_conditions(self):
        filters = FilterOptions(category_ids={5, 2}, brand_ids={1}, min_price=20, max_price=80, in_stock_only=True)

        qdrant_filter = build_qdrant_filter(filters)

        conditions = {condition.key: condition for condition in qdrant_filter.must}
        assert conditions["category_id"].match.any == [2, 5]
        assert conditions["brand_id"].match.any == [1]
        assert conditions["base_price"].range.gte == 20
        assert conditions["base_price"].range.lte == 80
        assert conditions["in_stock"].range.gt == 0

    def test_open_price_range(self):
        qdrant_filter = build_qdrant_filter(FilterOptions(min_price=20))

        price = qdrant_filter.must[0].range
        assert price.gte == 20
        assert price.lte is None


@pytest.mark.unit
class TestQdrantService:

    @pytest.fixture
    def qdrant_client(self):
        client = MagicMock()
        client.collection_exists = AsyncMock(return_value=True)
        client.query_points = AsyncMock(
            return_value=SimpleNamespace(
                points=[
                    SimpleNamespace(id=11, score=0.83, payload={"name": "iPhone 13", "base_price": 699, "in_stock": 2}),
                    SimpleNamespace(id=12, score=0.51, payload={"id": 40, "name": "iPhone 12"}),
                ]
            )
        )
        client.count = AsyncMock(return_value=SimpleNamespace(count=250))
        return client

    @pytest.fixture
    def service(self, qdrant_client, mock_embedding_service):
        return QdrantService(
            client=qdrant_client,
            embedding_service=mock_embedding_service,
            collection_name="products",
            score_threshold=0.4,
        )

    @pytest.mark.asyncio
    async def test_search_vector_returns_scored_payloads(self, service, qdrant_client):
        records = await service.search_vector("iphone", limit=16, offset=32, filters=FilterOptions(brand_ids={1}))

        assert records[0] == {"name": "iPhone 13", "base_price": 699, "in_stock": 2, "id": 11, "similarity": 0.83}
        assert records[1]["id"] == 40
        kwargs = qdrant_client.query_points.await_args.kwargs
        assert kwargs["collection_name"] == "products"
        assert kwargs["query"] == [1.0, 0.0]
        assert kwargs["limit"] == 16
        assert kwargs["offset"] == 32
        assert kwargs["score_threshold"] == 0.4
        assert kwargs["query_filter"].must[0].key == "brand_id"

    @pytest.mark.asyncio
    async def test_missing_collection_is_unavailable(self, service, qdrant_client, mock_embedding_service):
        qdrant_client.collection_exists.return_value = False

        with pytest.raises(StrategyUnavailableError):
            await service.search_vector("iphone", limit=16)

        mock_embedding_service.create_embedding.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_embeddings_is_unavailable(self, service, qdrant_client, mock_embedding_service):
        mock_embedding_service.is_configured = False

        with pytest.raises(StrategyUnavailableError):
            await service.search_vector("iphone", limit=16)

        qdrant_client.query_points.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_failure_is_hard_error(self, service, qdrant_client):
        qdrant_client.query_points.side_effect = ConnectionError("connection refused")

        with pytest.raises(VectorSearchError):
            await service.search_vector("iphone", limit=16)

    @pytest.mark.asyncio
    async def test_no_matches(self, service, qdrant_client):
        qdrant_client.query_points.return_value = SimpleNamespace(points=[])

        assert await service.search_vector("iphone", limit=16) == []

    @pytest.mark.asyncio
    async def test_health_status(self, service):
        status = await service.get_health_status()

        assert status["status"] == "healthy"
        assert status["vectors_count"] == 250

    @pytest.mark.asyncio
    async def test_health_status_hides_error_detail(self, service, qdrant_client):
        qdrant_client.collection_exists.side_effect = ConnectionError("secret-host:6333 refused")

        status = await service.get_health_status()

        assert status == {"status": "unhealthy", "collection": "products"}


@pytest.mark.unit
class TestMongoQueryBuilding:

    def test_filter_match(self):
        filters = FilterOptions(category_ids={3, 1}, brand_ids={2}, min_price=20, max_price=80, in_stock_only=True)

        match = build_filter_match(filters)

        assert match == {
            "is_repair_part": {"$ne": True},
            "base_price": {"$gte": 20, "$lte": 80},
            "category_id": {"$in": [1, 3]},
            "brand_id": {"$in": [2]},
            "in_stock": {"$gt": 0},
        }

    def test_filter_match_without_repair_part_exclusion(self):
        assert build_filter_match(FilterOptions(), exclude_repair_parts=False) == {}

    def test_text_search_pipeline(self):
        pipeline = build_text_search_pipeline(
            "iphone", FilterOptions(sort_by=SortOption.PRICE_DESC), limit=16, offset=32, brands_collection="brands"
        )

        assert pipeline[0]["$match"]["$text"] == {"$search": "iphone"}
        assert pipeline[1] == {"$sort": {"base_price": -1, "id": 1}}
        assert pipeline[2] == {"$skip": 32}
        assert pipeline[3] == {"$limit": 16}
        assert pipeline[4]["$lookup"]["from"] == "brands"
        assert "_id" in pipeline[5]["$project"]

    def test_relevance_sorts_by_text_score(self):
        pipeline = build_text_search_pipeline("iphone", FilterOptions(), limit=16, offset=0, brands_collection="brands")

        assert pipeline[1]["$sort"]["score"] == {"$meta": "textScore"}

    def test_newest_sorts_by_id(self):
        pipeline = build_text_search_pipeline(
            "iphone", FilterOptions(sort_by=SortOption.NEWEST), limit=16, offset=0, brands_collection="brands"
        )

        assert pipeline[1] == {"$sort": {"id": -1}}


@pytest.mark.unit
class TestProductService:

    @pytest.fixture
    def service(self, mock_mongo_db):
        return ProductService(mock_mongo_db, exclude_repair_parts=True)

    @pytest.mark.asyncio
    async def test_search_text(self, service):
        records = [{"id": 1, "name": "iPhone 13", "base_price": 699, "in_stock": 1, "brands": [{"name": "Apple"}]}]
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=records)
        service.collection.aggregate = MagicMock(return_value=cursor)
        service.collection.count_documents = AsyncMock(return_value=41)

        result, total = await service.search_text("iphone", FilterOptions(in_stock_only=True), 16, 0)

        assert result == records
        assert total == 41
        count_filter = service.collection.count_documents.await_args.args[0]
        assert count_filter["$text"] == {"$search": "iphone"}
        assert count_filter["in_stock"] == {"$gt": 0}

    @pytest.mark.asyncio
    async def test_missing_text_index_is_unavailable(self, service):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(side_effect=OperationFailure("text index required for $text query", code=27))
        service.collection.aggregate = MagicMock(return_value=cursor)

        with pytest.raises(StrategyUnavailableError):
            await service.search_text("iphone", FilterOptions(), 16, 0)

    @pytest.mark.asyncio
    async def test_other_mongo_failure_is_hard_error(self, service):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))
        service.collection.aggregate = MagicMock(return_value=cursor)

        with pytest.raises(CatalogQueryError):
            await service.search_text("iphone", FilterOptions(), 16, 0)

    @pytest.mark.asyncio
    async def test_fetch_products_with_embeddings(self, service):
        records = [{"id": 1, "name": "iPhone 13", "base_price": 699, "in_stock": 1, "name_embedding": [0.1]}]
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=records)
        service.collection.aggregate = MagicMock(return_value=cursor)
        service.collection.count_documents = AsyncMock(return_value=300)

        result, total = await service.fetch_products_with_embeddings(16, 32)

        assert result == records
        assert total == 300
        pipeline = service.collection.aggregate.call_args.args[0]
        assert {"$skip": 32} in pipeline
        assert {"$limit": 16} in pipeline
        assert pipeline[-1]["$project"]["name_embedding"] == 1

    @pytest.mark.asyncio
    async def test_count_variants(self, service):
        service.variants_collection.count_documents = AsyncMock(side_effect=[2, 0, 5])

        counts = await service.count_variants([10, 11, 12])

        assert counts == {10: 2, 11: 0, 12: 5}
        service.variants_collection.count_documents.assert_any_await({"product_id": 11})

    @pytest.mark.asyncio
    async def test_price_range(self, service):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=[{"_id": None, "min": 4.5, "max": 1299}])
        service.collection.aggregate = MagicMock(return_value=cursor)

        assert await service.fetch_price_range() == {"min": 4.5, "max": 1299.0}

    @pytest.mark.asyncio
    async def test_price_range_defaults_for_empty_catalog(self, service):
        cursor = MagicMock()
        cursor.to_list = AsyncMock(return_value=[])
        service.collection.aggregate = MagicMock(return_value=cursor)

        assert await service.fetch_price_range() == DEFAULT_PRICE_RANGE

    def test_uses_configured_collections(self, service, mock_mongo_db):
        assert service.collection is mock_mongo_db[settings.PRODUCTS_COLLECTION]
        assert service.variants_collection is mock_mongo_db[settings.PRODUCT_VARIANTS_COLLECTION]


@pytest.mark.unit
class TestEmbeddingService:

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        service = EmbeddingService(api_key="")

        assert service.is_configured is False
        with pytest.raises(EmbeddingUnavailableError):
            await service.create_embedding("iphone")

    @pytest.mark.asyncio
    async def test_create_embedding(self):
        service = EmbeddingService(api_key="sk-test", model="text-embedding-ada-002")
        service.client = MagicMock()
        service.client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])
        )

        assert await service.create_embedding("iphone") == [0.1, 0.2, 0.3]
        service.client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-ada-002", input="iphone", encoding_format="float"
        )

    @pytest.mark.asyncio
    async def test_api_failure_is_embedding_error(self):
        service = EmbeddingService(api_key="sk-test")
        service.client = MagicMock()
        service.client.embeddings.create = AsyncMock(side_effect=OpenAIError("rate limited"))

        with pytest.raises(EmbeddingError):
            await service.create_embedding("iphone")
