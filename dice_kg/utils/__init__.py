"""
Utility Functions

Modules:
    text: Name normalisation, canonical text, labels, Levenshtein distance
    similarity: Cosine similarity over embedding vectors
    cost_telemetry: Context-scoped LLM usage collection
    token_count: tiktoken-based token counting
"""

from dice_kg.utils.text import (
    canonicalize,
    levenshtein_distance,
    normalize_name,
    simple_label,
    simple_labels,
)

__all__ = [
    "canonicalize",
    "levenshtein_distance",
    "normalize_name",
    "simple_label",
    "simple_labels",
]
