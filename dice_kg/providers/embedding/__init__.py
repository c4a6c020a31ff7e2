"""Embedding provider implementations."""

from dice_kg.providers.embedding.openai import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
