from pydantic import BaseModel


class Brand(BaseModel):
    """Brand facet for search filters"""

    id: int
    name: str
    image_url: str | None = None


class Category(BaseModel):
    """Category facet for search filters"""

    id: int
    name: str
    image_url: str | None = None
    parent_id: int | None = None


class PriceRange(BaseModel):
    """Lowest and highest base price in the catalog"""

    min: float
    max: float
