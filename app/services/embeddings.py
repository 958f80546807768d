# app/services/embeddings.py
import logging
from typing import List

from openai import AsyncOpenAI, OpenAIError

from app.core.errors import EmbeddingServiceError

log = logging.getLogger(__name__)

def vec_literal(vec: List[float]) -> str:
    """Format a list of floats as a pgvector literal: '[0.1,-0.2,...]'"""
    if not vec:
        return "[]"
    return "[" + ",".join(f"{x:.6f}" for x in vec) + "]"


class EmbeddingClient:
    """
    Thin wrapper over the OpenAI embeddings endpoint.

    Built once at startup and injected into the pipeline. Every failure
    (SDK error, empty or malformed response) surfaces as EmbeddingServiceError;
    a zero vector is never returned in place of a real embedding.
    """

    def __init__(self, client: AsyncOpenAI, model: str = "text-embedding-3-small", dimensions: int = 1536):
        self._client = client
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        t = (text or "").strip()
        if not t:
            raise EmbeddingServiceError("cannot embed empty text")
        try:
            resp = await self._client.embeddings.create(model=self.model, input=t)
        except OpenAIError as e:
            raise EmbeddingServiceError(f"embedding request failed: {e}") from e

        data = getattr(resp, "data", None) or []
        if not data:
            raise EmbeddingServiceError("embedding response has no data")
        vec = list(data[0].embedding or [])
        if len(vec) != self.dimensions:
            raise EmbeddingServiceError(
                f"embedding has {len(vec)} dimensions, expected {self.dimensions}"
            )
        return vec

    async def aclose(self) -> None:
        await self._client.close()
