"""
Shared test fixtures

Settings are read at import time, so the required environment is set here
before any storefront_search module is imported. External collaborators
(MongoDB, Qdrant, OpenAI) are always mocked.
"""

import os

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ["OPENAI_API_KEY"] = ""

from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront_search.schemas.search import ProductResult


@pytest.fixture
def product_factory():
    """Build ProductResult objects with sensible defaults"""

    def _make(**overrides) -> ProductResult:
        data = {
            "id": 1,
            "name": "Product 1",
            "base_price": 10.0,
            "in_stock": 5,
        }
        data.update(overrides)
        return ProductResult(**data)

    return _make


@pytest.fixture
def raw_product_records():
    """Raw records in the shapes different backing queries return"""
    return [
        {
            "id": 1,
            "name": "Apple iPhone 13",
            "base_price": 699.0,
            "image_url": "https://cdn.example.com/iphone13.jpg",
            "in_stock": 4,
            "category_id": 2,
            "brand_id": 1,
            "brands": {"name": "Apple"},
        },
        {
            "id": 2,
            "name": "Samsung Galaxy S22",
            "basePrice": 649.0,
            "inStock": 0,
            "brands": [{"name": "Samsung"}],
            "variant_count": 3,
        },
        {
            "id": 3,
            "name": "Screen Protector",
            "base_price": 9.99,
            "in_stock": 120,
            "brand_name": "Generic",
            "similarity": 0.42,
        },
        {
            "id": 4,
            "name": "Charging Cable",
            "base_price": 12.5,
            "in_stock": 8,
            "brands": None,
        },
    ]


@pytest.fixture
def mock_product_service():
    """Mock ProductService with async catalog reads"""
    service = MagicMock()
    service.search_text = AsyncMock(return_value=([], 0))
    service.fetch_products_with_embeddings = AsyncMock(return_value=([], 0))
    service.count_variants = AsyncMock(return_value={})
    return service


@pytest.fixture
def mock_embedding_service():
    """Mock configured EmbeddingService"""
    service = MagicMock()
    service.is_configured = True
    service.create_embedding = AsyncMock(return_value=[1.0, 0.0])
    return service


@pytest.fixture
def mock_mongo_db():
    """Mock motor database handing out one mock per collection name"""
    collections: dict[str, MagicMock] = {}
    db = MagicMock()
    db.__getitem__.side_effect = lambda name: collections.setdefault(name, MagicMock(name=name))
    return db
