from enum import Enum

from pydantic import BaseModel, Field


class SortOption(str, Enum):
    """Sort orders accepted by the storefront (values are the wire format)."""
    RELEVANCE = "relevance"
    NEWEST = "newest"
    OLDEST = "oldest"
    PRICE_ASC = "priceAsc"
    PRICE_DESC = "priceDesc"
    NAME_ASC = "nameAsc"
    NAME_DESC = "nameDesc"


class FilterOptions(BaseModel):
    """Declarative filters; every supplied criterion must hold (AND), id sets match any member (OR)."""
    category_ids: set[int] = Field(default_factory=set)
    brand_ids: set[int] = Field(default_factory=set)
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)
    in_stock_only: bool = False
    sort_by: SortOption = SortOption.RELEVANCE


class ProductResult(BaseModel):
    """Canonical product shape shared by every search strategy"""
    id: int
    name: str = Field(..., min_length=1)
    base_price: float = Field(..., ge=0)
    image_url: str | None = None
    in_stock: int = Field(..., ge=0)
    brand_names: list[str] = Field(default_factory=list)
    category_id: int | None = None  # Only present when the strategy selected it
    brand_id: int | None = None
    variant_count: int = Field(default=0, ge=0)
    similarity: float | None = None  # Relevance score, absent for plain keyword matches


class SearchResult(BaseModel):
    """One page of search results"""
    products: list[ProductResult] = Field(default_factory=list)
    count: int = 0  # Total matches before pagination, approximate after in-memory filtering
    error: str | None = None  # Caller-safe message; set only when search itself is broken
    strategy: str | None = None  # Strategy that produced the answer


class SearchRequest(BaseModel):
    """Search request body"""
    query: str = Field(..., description="Free-text search query", min_length=1)
    page: int = Field(default=1, ge=1)
    items_per_page: int = Field(default=16, ge=1)
    filters: FilterOptions = Field(default_factory=FilterOptions)


class SearchResponse(BaseModel):
    """Response model for search results"""
    query: str
    page: int
    items_per_page: int
    total_pages: int
    count: int
    strategy: str | None = None
    products: list[ProductResult]
