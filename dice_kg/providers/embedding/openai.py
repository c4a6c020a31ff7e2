"""
OpenAI embeddings through LangChain's OpenAIEmbeddings.

Backs vector search in the in-memory entity and proposition stores.
OpenAIEmbeddings is synchronous, so requests run on a worker thread.
"""

from __future__ import annotations

import asyncio
import time

from langchain_openai import OpenAIEmbeddings
from pydantic import SecretStr

from dice_kg.config.pricing import estimate_cost_usd
from dice_kg.providers.base import EmbeddingProvider
from dice_kg.types.telemetry import CostUsageRecord
from dice_kg.utils.cost_telemetry import current_stage, record_usage
from dice_kg.utils.token_count import count_text_tokens

DEFAULT_MODEL = "text-embedding-3-large"
DEFAULT_BATCH_SIZE = 256


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Args:
        api_key: Falls back to OPENAI_API_KEY when None
        model: Embedding model name
        batch_size: Texts per embed_documents request
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._batch_size = max(1, batch_size)
        self._embeddings: OpenAIEmbeddings | None = None

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def _client(self) -> OpenAIEmbeddings:
        if self._embeddings is None:
            if self._api_key:
                self._embeddings = OpenAIEmbeddings(model=self._model, api_key=SecretStr(self._api_key))
            else:
                self._embeddings = OpenAIEmbeddings(model=self._model)
        return self._embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        started = time.perf_counter_ns()
        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self._batch_size):
            batch = texts[offset : offset + self._batch_size]
            vectors.extend(await asyncio.to_thread(self._client.embed_documents, batch))

        # The embeddings endpoint reports no usage through LangChain
        tokens = sum(count_text_tokens(text, self._model) for text in texts)
        cost, priced = estimate_cost_usd(self._model, input_tokens=tokens)
        record_usage(
            CostUsageRecord(
                provider="openai",
                model=self._model,
                operation="embed",
                stage=current_stage(),
                input_tokens=tokens,
                total_tokens=tokens,
                estimated_cost_usd=cost,
                latency_ms=(time.perf_counter_ns() - started) // 1_000_000,
                estimated=True,
                metadata={"texts": len(texts), "pricing_found": priced},
            )
        )
        return vectors
