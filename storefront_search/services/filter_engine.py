"""
In-memory filter and sort engine.

Used whenever a strategy could not push filters and ordering down to its
backing query, and as the single definition of what each sort mode means.
All sorts are stable: items with equal keys keep the order the strategy
ranked them in.
"""

from typing import Any, Callable

from storefront_search.schemas.search import FilterOptions, ProductResult, SortOption

# Mode -> (key, descending). NEWEST/OLDEST key off the product id because no
# creation timestamp reaches the search results; higher ids are newer rows.
SORT_KEYS: dict[SortOption, tuple[Callable[[ProductResult], Any], bool]] = {
    SortOption.NEWEST: (lambda p: p.id, True),
    SortOption.OLDEST: (lambda p: p.id, False),
    SortOption.PRICE_ASC: (lambda p: p.base_price, False),
    SortOption.PRICE_DESC: (lambda p: p.base_price, True),
    SortOption.NAME_ASC: (lambda p: p.name, False),
    SortOption.NAME_DESC: (lambda p: p.name, True),
}


def has_active_filters(filters: FilterOptions | None) -> bool:
    if filters is None:
        return False
    return bool(
        filters.category_ids
        or filters.brand_ids
        or filters.min_price is not None
        or filters.max_price is not None
        or filters.in_stock_only
    )


def matches_filters(product: ProductResult, filters: FilterOptions) -> bool:
    """Check a single product against every active predicate."""
    if filters.min_price is not None and product.base_price < filters.min_price:
        return False
    if filters.max_price is not None and product.base_price > filters.max_price:
        return False

    # A product without the foreign key cannot satisfy an active id filter
    if filters.category_ids and product.category_id not in filters.category_ids:
        return False
    if filters.brand_ids and product.brand_id not in filters.brand_ids:
        return False

    if filters.in_stock_only and product.in_stock <= 0:
        return False

    return True


def apply_filters(products: list[ProductResult], filters: FilterOptions | None) -> list[ProductResult]:
    if not has_active_filters(filters):
        return list(products)
    return [product for product in products if matches_filters(product, filters)]


def sort_products(products: list[ProductResult], sort_by: SortOption = SortOption.RELEVANCE) -> list[ProductResult]:
    """
    Order products by the given sort mode.

    RELEVANCE re-sorts by descending similarity only when every product carries
    a score; otherwise the incoming (strategy-ranked) order is kept.
    """
    if sort_by == SortOption.RELEVANCE:
        if products and all(p.similarity is not None for p in products):
            return sorted(products, key=lambda p: p.similarity, reverse=True)
        return list(products)

    key, descending = SORT_KEYS[sort_by]
    # sorted() stays stable with reverse=True
    return sorted(products, key=key, reverse=descending)


def filter_and_sort(products: list[ProductResult], filters: FilterOptions | None) -> list[ProductResult]:
    filters = filters or FilterOptions()
    return sort_products(apply_filters(products, filters), filters.sort_by)


def adjust_count(count: int, fetched: int, kept: int) -> int:
    """
    Best-effort total after in-memory filtering.

    When filtering removed items from the fetched page the backing total no
    longer applies, so the number of kept items is reported instead.
    """
    if kept < fetched:
        return kept
    return count or kept
