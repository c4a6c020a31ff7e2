"""
LLM and Embedding Providers

Provider-agnostic interfaces for LLM and embedding operations.

Modules:
    base: Abstract provider interfaces
    llm/: LLM provider implementations
    embedding/: Embedding provider implementations

Example:
    >>> from dice_kg.providers import LLMProvider, EmbeddingProvider
    >>> from dice_kg.providers.llm import OpenAILLMProvider
    >>> from dice_kg.providers.embedding import OpenAIEmbeddingProvider
"""

from dice_kg.providers.base import EmbeddingProvider, LLMProvider

__all__ = ["LLMProvider", "EmbeddingProvider"]
