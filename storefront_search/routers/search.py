import math

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront_search.core.config import settings
from storefront_search.core.exceptions import InvalidSearchRequestError
from storefront_search.schemas.search import (
    FilterOptions,
    SearchRequest,
    SearchResponse,
    SearchResult,
    SortOption,
)
from storefront_search.services.search_service import SearchService, get_search_service

router = APIRouter(prefix="/search", tags=["search"])


def parse_id_list(raw: str | None, param: str) -> set[int]:
    """Parse a comma separated id list such as "3,7,12"."""
    if not raw:
        return set()
    try:
        return {int(part) for part in raw.split(",") if part.strip()}
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{param} must be a comma separated list of integer ids",
        )


async def _run_search(
    service: SearchService, query: str, page: int, items_per_page: int, filters: FilterOptions
) -> SearchResponse:
    try:
        result: SearchResult = await service.search(query, page=page, items_per_page=items_per_page, filters=filters)
    except InvalidSearchRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if result.error:
        # Detail is already logged by the service; clients only get the generic message
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result.error)

    return SearchResponse(
        query=query,
        page=page,
        items_per_page=items_per_page,
        total_pages=math.ceil(result.count / items_per_page) if result.count else 0,
        count=result.count,
        strategy=result.strategy,
        products=result.products,
    )


@router.get("", response_model=SearchResponse)
async def search_products(
    q: str = Query(..., min_length=1, description="Search query"),
    page: int = Query(1, ge=1),
    items_per_page: int = Query(settings.DEFAULT_ITEMS_PER_PAGE, ge=1, le=settings.MAX_ITEMS_PER_PAGE),
    min_price: float | None = Query(None, alias="minPrice", ge=0),
    max_price: float | None = Query(None, alias="maxPrice", ge=0),
    in_stock: bool = Query(False, alias="inStock"),
    categories: str | None = Query(None, description="Comma separated category ids"),
    brands: str | None = Query(None, description="Comma separated brand ids"),
    sort: SortOption = Query(SortOption.RELEVANCE),
    service: SearchService = Depends(get_search_service),
):
    """
    Product search using the storefront URL filter format.

    Example: `/search?q=iphone&minPrice=100&categories=2,5&inStock=true&sort=priceAsc`
    """
    filters = FilterOptions(
        category_ids=parse_id_list(categories, "categories"),
        brand_ids=parse_id_list(brands, "brands"),
        min_price=min_price,
        max_price=max_price,
        in_stock_only=in_stock,
        sort_by=sort,
    )
    return await _run_search(service, q, page, items_per_page, filters)


@router.post("", response_model=SearchResponse)
async def search_products_json(
    request: SearchRequest,
    service: SearchService = Depends(get_search_service),
):
    """
    Product search with a JSON body.

    Tries semantic search first, then keyword search, then local embedding
    similarity, and returns the first page that has results.
    """
    if request.items_per_page > settings.MAX_ITEMS_PER_PAGE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"items_per_page must be <= {settings.MAX_ITEMS_PER_PAGE}",
        )
    return await _run_search(service, request.query, request.page, request.items_per_page, request.filters)


@router.get("/health")
async def search_health(service: SearchService = Depends(get_search_service)):
    """Check if search service is healthy"""
    return await service.get_health_status()
