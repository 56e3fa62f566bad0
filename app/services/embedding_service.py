"""Embedding service for turning queries into dense vectors.

Talks to an OpenAI-compatible embeddings endpoint (OpenAI or Azure OpenAI).
Model: text-embedding-3-large (3072 dimensions) by default.
"""

import httpx
from typing import Dict, List, Optional
from app.core.config import settings


class EmbeddingService:
    """Service for generating text embeddings via the OpenAI embeddings API."""

    EMBEDDINGS_ENDPOINT = "/embeddings"
    DEFAULT_AZURE_API_VERSION = "2024-02-15-preview"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        api_version: Optional[str] = None,
    ):
        self.api_key = api_key or settings.EMBEDDING_API_KEY
        self.api_url = (api_url or settings.EMBEDDING_API_URL).rstrip("/")
        self.model = model or settings.EMBEDDING_MODEL
        self.provider = provider or settings.EMBEDDING_PROVIDER
        self.api_version = api_version or settings.EMBEDDING_API_VERSION

    def _endpoint(self) -> str:
        if self.provider == "azure-openai":
            # The model name is the Azure deployment name
            api_version = self.api_version or self.DEFAULT_AZURE_API_VERSION
            return f"{self.api_url}/openai/deployments/{self.model}{self.EMBEDDINGS_ENDPOINT}?api-version={api_version}"
        return f"{self.api_url}{self.EMBEDDINGS_ENDPOINT}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.provider == "azure-openai":
            headers["api-key"] = self.api_key
        else:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def generate_embedding(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Args:
            text: The text to embed

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValueError: if no API key is configured or the response has no embedding
            httpx.HTTPError: if the API call fails
        """
        if not self.api_key:
            raise ValueError("EMBEDDING_API_KEY is not configured")

        payload = {
            "model": self.model,
            "input": text,
        }

        async with httpx.AsyncClient(timeout=settings.EMBEDDING_TIMEOUT) as client:
            response = await client.post(
                self._endpoint(),
                headers=self._headers(),
                json=payload
            )
            response.raise_for_status()

            data = response.json()
            items = data.get("data") or []
            if not items:
                raise ValueError("Embedding API response has no embedding data")
            return items[0]["embedding"]


# Singleton instance
_embedding_service: Optional[EmbeddingService] = None


def get_embedding_service() -> EmbeddingService:
    """Get or create the embedding service singleton."""
    global _embedding_service
    if _embedding_service is None:
        _embedding_service = EmbeddingService()
    return _embedding_service
