"""LLM provider implementations."""

from dice_kg.providers.llm.openai import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
