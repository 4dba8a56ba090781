from fastapi import APIRouter, Depends

from storefront_search.core.mongo import get_mongo_db
from storefront_search.schemas.catalog import Brand, Category, PriceRange
from storefront_search.services.product_service import ProductService

router = APIRouter(prefix="/catalog", tags=["Catalog"])


def get_product_service() -> ProductService:
    db = get_mongo_db()
    return ProductService(db)


@router.get("/brands", response_model=list[Brand])
async def get_brands(service: ProductService = Depends(get_product_service)):
    """Get all brands available as search filters."""
    return await service.fetch_brands()


@router.get("/categories", response_model=list[Category])
async def get_categories(service: ProductService = Depends(get_product_service)):
    """Get all categories available as search filters."""
    return await service.fetch_categories()


@router.get("/price-range", response_model=PriceRange)
async def get_price_range(service: ProductService = Depends(get_product_service)):
    """Get the lowest and highest product price for the price slider."""
    return await service.fetch_price_range()
