from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Storefront Search API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # MongoDB settings
    MONGO_URL: str
    MONGO_DB_NAME: str = "storefront"

    # Collection names
    PRODUCTS_COLLECTION: str = "products"
    PRODUCT_VARIANTS_COLLECTION: str = "product_variants"
    BRANDS_COLLECTION: str = "brands"
    CATEGORIES_COLLECTION: str = "categories"
    EXCLUDE_REPAIR_PARTS: bool = True  # Repair parts are not sold through the storefront search

    # OpenAI settings
    OPENAI_API_KEY: str | None = None  # Without a key the embedding capability is unavailable
    EMBEDDING_MODEL: str = "text-embedding-ada-002"

    # Qdrant settings
    QDRANT_URL: str | None = None  # Remote server; falls back to local storage at QDRANT_PATH
    QDRANT_PATH: str = "./qdrant_db"
    QDRANT_COLLECTION_NAME: str = "products"
    VECTOR_MATCH_THRESHOLD: float = 0.4

    # Search settings
    DEFAULT_ITEMS_PER_PAGE: int = 16
    MAX_ITEMS_PER_PAGE: int = 100
    STRATEGY_TIMEOUT_SECONDS: float = 10.0
    FALLBACK_ON_ERROR: bool = True  # Keep walking the strategy chain after a hard failure
    SEARCH_UNAVAILABLE_MESSAGE: str = "Search is temporarily unavailable. Please try again later."


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
