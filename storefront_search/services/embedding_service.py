from functools import lru_cache

from openai import AsyncOpenAI, OpenAIError

from storefront_search.core.config import settings
from storefront_search.core.exceptions import EmbeddingError, EmbeddingUnavailableError


class EmbeddingService:
    """Service for creating query embeddings using OpenAI"""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.client = AsyncOpenAI(api_key=self.api_key) if self.api_key else None

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    async def create_embedding(self, text: str) -> list[float]:
        """
        Create embedding vector from text using OpenAI API

        Raises:
            EmbeddingUnavailableError: if no API key is configured
            EmbeddingError: if the API call fails or returns no vector
        """
        if self.client is None:
            raise EmbeddingUnavailableError("OPENAI_API_KEY is not configured")

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                encoding_format="float"
            )
        except OpenAIError as e:
            raise EmbeddingError(f"Failed to create embedding: {str(e)}") from e

        if not response.data:
            raise EmbeddingError("Embedding response contained no vectors")
        return response.data[0].embedding


@lru_cache
def get_embedding_service() -> EmbeddingService:
    """Get cached embedding service instance"""
    return EmbeddingService()
