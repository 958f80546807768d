from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from app.core.errors import EmbeddingServiceError
from app.services.embeddings import EmbeddingClient, vec_literal


def _client(create):
    client = MagicMock()
    client.embeddings.create = create
    client.close = AsyncMock()
    return client

def _response(*vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=v) for v in vectors])


def test_vec_literal():
    assert vec_literal([0.1, -0.25, 1]) == "[0.100000,-0.250000,1.000000]"
    assert vec_literal([]) == "[]"


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_returns_vector(self):
        create = AsyncMock(return_value=_response([0.5, 0.25, 0.125]))
        emb = EmbeddingClient(_client(create), model="m", dimensions=3)
        assert await emb.embed("  hello  ") == [0.5, 0.25, 0.125]
        create.assert_awaited_once_with(model="m", input="hello")

    @pytest.mark.asyncio
    async def test_empty_text_is_rejected(self):
        create = AsyncMock()
        emb = EmbeddingClient(_client(create), dimensions=3)
        with pytest.raises(EmbeddingServiceError):
            await emb.embed("   ")
        create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sdk_error(self):
        emb = EmbeddingClient(_client(AsyncMock(side_effect=OpenAIError("rate limited"))), dimensions=3)
        with pytest.raises(EmbeddingServiceError, match="rate limited"):
            await emb.embed("text")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        emb = EmbeddingClient(_client(AsyncMock(return_value=_response())), dimensions=3)
        with pytest.raises(EmbeddingServiceError, match="no data"):
            await emb.embed("text")

    @pytest.mark.asyncio
    async def test_wrong_dimension(self):
        emb = EmbeddingClient(_client(AsyncMock(return_value=_response([0.1, 0.2]))), dimensions=3)
        with pytest.raises(EmbeddingServiceError, match="2 dimensions, expected 3"):
            await emb.embed("text")

    @pytest.mark.asyncio
    async def test_aclose(self):
        client = _client(AsyncMock())
        await EmbeddingClient(client).aclose()
        client.close.assert_awaited_once()
