"""
Result normalizer.

Every strategy reads products from a different backing query, so the raw
records disagree on key casing and on how the brand is attached:

- ``{"brands": {"name": "Apple"}}``          single joined row
- ``{"brands": [{"name": "Apple"}]}``        joined rows as a list
- ``{"brand_name": "Apple"}``                flattened vector-store payload
- ``{"brand_names": ["Apple"]}``             already normalized
- no brand key at all

normalize_records() turns all of them into ProductResult. A batch containing a
record without id, name, base price or stock fails as a whole with
MalformedRecordError; nothing is dropped silently.
"""

import logging
from typing import Any, Iterable

from pydantic import ValidationError

from storefront_search.core.exceptions import MalformedRecordError
from storefront_search.schemas.search import ProductResult

logger = logging.getLogger(__name__)

# canonical field -> accepted source keys, first match wins
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "name": ("name",),
    "base_price": ("base_price", "basePrice"),
    "in_stock": ("in_stock", "inStock"),
}

OPTIONAL_FIELDS: dict[str, tuple[str, ...]] = {
    "image_url": ("image_url", "imageUrl"),
    "category_id": ("category_id", "categoryId"),
    "brand_id": ("brand_id", "brandId"),
    "variant_count": ("variant_count", "variantCount"),
    "similarity": ("similarity",),
}

BRAND_KEYS = ("brand_names", "brandNames", "brands", "brand_name", "brandName")


def _pick(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def brand_names_from(value: Any) -> list[str]:
    """
    Collapse any supported brand shape into a list of brand names.

    Raises:
        ValueError: if the value is not one of the supported shapes
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, dict):
        name = value.get("name")
        if name is not None and not isinstance(name, str):
            raise ValueError(f"Brand name must be a string, got {type(name).__name__}")
        return [name] if name else []
    if isinstance(value, (list, tuple)):
        names = []
        for item in value:
            if isinstance(item, (list, tuple)):
                raise ValueError("Nested brand lists are not supported")
            names.extend(brand_names_from(item))
        return names
    raise ValueError(f"Unsupported brand shape: {type(value).__name__}")


def normalize_record(record: dict[str, Any] | ProductResult, index: int = 0) -> ProductResult:
    """
    Convert one raw record into a ProductResult.

    Args:
        record: Raw record from a backing query (or an already normalized result)
        index: Position of the record in its batch, used in error messages

    Returns:
        Normalized ProductResult

    Raises:
        MalformedRecordError: if a required field is missing or a value is invalid
    """
    if isinstance(record, ProductResult):
        record = record.model_dump()
    if not isinstance(record, dict):
        raise MalformedRecordError(index, ["record"])

    data: dict[str, Any] = {}
    missing = []
    for field, keys in REQUIRED_FIELDS.items():
        value = _pick(record, keys)
        if value is None:
            missing.append(field)
        data[field] = value
    if missing:
        raise MalformedRecordError(index, missing, record)

    for field, keys in OPTIONAL_FIELDS.items():
        data[field] = _pick(record, keys)
    if data["variant_count"] is None:
        data["variant_count"] = 0

    brand_value = _pick(record, BRAND_KEYS)
    try:
        data["brand_names"] = brand_names_from(brand_value)
    except ValueError as e:
        logger.debug(f"Rejecting brand field of record {index}: {e}")
        raise MalformedRecordError(index, ["brands"], record) from e

    try:
        return ProductResult.model_validate(data)
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise MalformedRecordError(index, fields or ["record"], record) from e


def normalize_records(records: Iterable[dict[str, Any] | ProductResult]) -> list[ProductResult]:
    """
    Normalize a batch of raw records, preserving their order.

    The first malformed record fails the whole batch.
    """
    return [normalize_record(record, index) for index, record in enumerate(records)]
