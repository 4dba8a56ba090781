"""
Base Search Strategy Interface

Defines the contract shared by the semantic, lexical and local-similarity
strategies that make up the search fallback chain.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from storefront_search.schemas.search import FilterOptions, ProductResult


class StrategyResult(BaseModel):
    """
    Normalized page produced by one strategy.

    Attributes:
        products: Normalized products for the requested page, in rank order
        count: Total matches reported by the backing capability
        filters_applied: True when filters and sort were already honored, so
            the orchestrator must not post-filter again. The built-in
            strategies all push filters down and set it; a strategy over a
            backend without filter support leaves it False and the
            orchestrator filters and sorts its page in memory.
    """
    products: list[ProductResult] = Field(default_factory=list)
    count: int = 0
    filters_applied: bool = False


class SearchStrategy(ABC):
    """Abstract base class for all search strategies."""

    name: str = "base"

    @abstractmethod
    async def execute(
        self,
        query_text: str,
        limit: int,
        offset: int,
        filters: FilterOptions,
    ) -> StrategyResult:
        """
        Execute search using this strategy.

        Args:
            query_text: Free-text query
            limit: Page size
            offset: Number of matches to skip
            filters: Caller supplied filters and sort order

        Returns:
            StrategyResult with normalized products

        Raises:
            StrategyUnavailableError: the backing capability is not present
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
