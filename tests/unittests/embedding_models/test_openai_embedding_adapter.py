from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from sitebrain.embedding_models.openai_embeddings import OpenAIEmbeddingAdapter
from sitebrain.main.exceptions import BadRequestException, EmbeddingException


def _response(vectors):
    return MagicMock(data=[MagicMock(embedding=vector) for vector in vectors])


@pytest.fixture
def adapter(test_settings):
    adapter = OpenAIEmbeddingAdapter(test_settings.model_copy(update={"embedding_dimensions": 3}))
    adapter.client = MagicMock()
    adapter.client.embeddings.create = AsyncMock()
    return adapter


@pytest.mark.asyncio
async def test_embed_many_returns_one_vector_per_text(adapter):
    adapter.client.embeddings.create.return_value = _response([[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]])

    vectors = await adapter.embed_many(["first", "second"])

    assert vectors == [[0.1, 0.2, 0.3], [0.4, 0.5, 0.6]]
    kwargs = adapter.client.embeddings.create.await_args.kwargs
    assert kwargs["input"] == ["first", "second"]
    assert kwargs["model"] == "text-embedding-3-small"


@pytest.mark.asyncio
async def test_embed_single_text(adapter):
    adapter.client.embeddings.create.return_value = _response([[0.1, 0.2, 0.3]])

    assert await adapter.embed("hello") == [0.1, 0.2, 0.3]


@pytest.mark.asyncio
async def test_empty_input_skips_api(adapter):
    assert await adapter.embed_many([]) == []
    adapter.client.embeddings.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_wrong_dimensions_are_rejected(adapter):
    adapter.client.embeddings.create.return_value = _response([[0.1, 0.2]])

    with pytest.raises(EmbeddingException):
        await adapter.embed_many(["hello"])


@pytest.mark.asyncio
async def test_bad_request_is_not_retried(adapter):
    adapter.client.embeddings.create.side_effect = openai.BadRequestError(
        "input too long", response=MagicMock(status_code=400), body=None
    )

    with pytest.raises(BadRequestException):
        await adapter.embed_many(["x" * 100000])

    adapter.client.embeddings.create.assert_awaited_once()
