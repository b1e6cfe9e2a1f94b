from __future__ import annotations

import asyncio

import openai
import structlog
from openai import AsyncOpenAI

from studypotion_service.domain.exceptions import (
    DimensionMismatchError,
    EmbeddingProviderError,
    QuotaExceededError,
)
from studypotion_service.domain.interfaces import EmbeddingProviderPort

logger = structlog.get_logger(__name__)


class OpenAIEmbeddingClient(EmbeddingProviderPort):
    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        batch_size: int = 32,
        max_concurrency: int = 4,
        dimensions: int | None = None,
    ) -> None:
        self._client = client
        self._model = model
        self._batch_size = batch_size
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._dimensions = dimensions or None

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        batches = [
            texts[start : start + self._batch_size]
            for start in range(0, len(texts), self._batch_size)
        ]
        tasks = [asyncio.create_task(self._embed_batch(batch, number)) for number, batch in enumerate(batches)]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        embeddings = [vector for batch_vectors in results for vector in batch_vectors]
        self._check_dimensions(embeddings)

        logger.info(
            "embedding.completed",
            count=len(embeddings),
            batches=len(batches),
            dimensions=len(embeddings[0]),
            model=self._model,
        )
        return embeddings

    async def _embed_batch(self, texts: list[str], batch_number: int) -> list[list[float]]:
        async with self._semaphore:
            try:
                response = await self._client.embeddings.create(input=texts, model=self._model)
            except openai.RateLimitError as exc:
                logger.error("embedding.quota_exceeded", batch=batch_number, error=str(exc))
                raise QuotaExceededError(str(exc)) from exc
            except openai.APIStatusError as exc:
                if getattr(exc, "code", None) == "insufficient_quota":
                    logger.error("embedding.quota_exceeded", batch=batch_number, error=str(exc))
                    raise QuotaExceededError(str(exc)) from exc
                logger.error(
                    "embedding.batch.failed",
                    batch=batch_number,
                    status_code=exc.status_code,
                    error=str(exc),
                )
                raise EmbeddingProviderError(str(exc)) from exc
            except openai.OpenAIError as exc:
                logger.error("embedding.batch.failed", batch=batch_number, error=str(exc))
                raise EmbeddingProviderError(str(exc)) from exc

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(texts):
            raise EmbeddingProviderError(
                f"batch {batch_number}: expected {len(texts)} embeddings, received {len(items)}"
            )

        logger.debug(
            "embedding.batch.completed",
            batch=batch_number,
            count=len(texts),
            model=self._model,
            total_tokens=response.usage.total_tokens if response.usage else None,
        )
        return [list(item.embedding) for item in items]

    def _check_dimensions(self, embeddings: list[list[float]]) -> None:
        expected = self._dimensions or len(embeddings[0])
        for index, vector in enumerate(embeddings):
            if len(vector) != expected:
                logger.error(
                    "embedding.dimension_mismatch",
                    expected=expected,
                    actual=len(vector),
                    index=index,
                )
                raise DimensionMismatchError(expected, len(vector), index)
