"""Exception types raised by the search pipeline and its storage/AI adapters."""

from typing import Any


class SearchError(Exception):
    """Base class for all search pipeline errors."""


class StrategyUnavailableError(SearchError):
    """The backing capability of a strategy is not configured or not present.

    The orchestrator treats this as a signal to try the next strategy.
    """


class EmbeddingUnavailableError(StrategyUnavailableError):
    """No embedding client is configured."""


class MalformedRecordError(SearchError):
    """A backing record is missing a required field or carries an invalid value."""

    def __init__(self, index: int, fields: list[str], record: dict[str, Any] | None = None):
        self.index = index
        self.fields = fields
        self.record_id = record.get("id") if isinstance(record, dict) else None
        super().__init__(
            f"Malformed product record at position {index} (id={self.record_id}): "
            f"missing or invalid {', '.join(fields)}"
        )


class VectorSearchError(SearchError):
    """The vector store failed while executing a query."""


class EmbeddingError(SearchError):
    """The embedding provider failed to produce a vector."""


class CatalogQueryError(SearchError):
    """The product catalog store failed while executing a query."""


class InvalidSearchRequestError(SearchError, ValueError):
    """The caller passed arguments outside the search contract."""
