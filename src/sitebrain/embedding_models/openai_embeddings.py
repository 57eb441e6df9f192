import abc
from abc import abstractmethod

import openai
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from sitebrain.main.config import Settings, get_settings
from sitebrain.main.exceptions import BadRequestException, EmbeddingException
from sitebrain.main.logging import get_logger

logger = get_logger(__name__)


class EmbeddingAdapter(abc.ABC):
    """Converts text into fixed-length vectors."""

    dimensions: int

    @abstractmethod
    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        raise NotImplementedError

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_many([text])
        return embeddings[0]


class OpenAIEmbeddingAdapter(EmbeddingAdapter):
    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.model_name = settings.embedding_model
        self.dimensions = settings.embedding_dimensions
        self.client = openai.AsyncOpenAI(api_key=settings.openai_api_key)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        embeddings = await self._get_embeddings(texts)

        for embedding in embeddings:
            if len(embedding) != self.dimensions:
                raise EmbeddingException(
                    f"Expected {self.dimensions} dimensions, got {len(embedding)}"
                )

        return embeddings

    @retry(
        wait=wait_random_exponential(min=1, max=20),
        stop=stop_after_attempt(3),
        retry=retry_if_not_exception_type(BadRequestException),
        reraise=True,
    )
    async def _get_embeddings(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self.client.embeddings.create(
                input=texts,
                model=self.model_name,
                dimensions=self.dimensions,
            )

        except openai.BadRequestError as e:
            logger.exception("Bad request error:")
            raise BadRequestException("Invalid input") from e
        except openai.RateLimitError as e:
            logger.exception("Rate limit error:")
            raise EmbeddingException("OpenAI ratelimit exception") from e
        except Exception as e:
            logger.exception("Unknown OpenAI exception:")
            raise EmbeddingException("Unknown OpenAI exception") from e

        return [embedding.embedding for embedding in response.data]
