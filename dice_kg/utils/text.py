"""
Text Processing Utilities

Functions for name normalisation, label handling and edit distance used by
the match strategies, searchers and proposition reviser.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_TITLE_PATTERN = re.compile(r"^(Mr\.?|Mrs\.?|Ms\.?|Dr\.?|Prof\.?)\s+", re.IGNORECASE)
_SUFFIX_PATTERN = re.compile(r"\s+(Jr\.?|Sr\.?|II|III|IV)$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

# Labels added by persistence frameworks that say nothing about the domain type
FRAMEWORK_LABELS = frozenset({"__Entity__", "Entity", "Reference"})


def normalize_name(name: str) -> str:
    """
    Strip leading honorifics and trailing generational suffixes.

    Args:
        name: e.g., "Dr.  John Watson Jr."

    Returns:
        Normalized name e.g., "John Watson"
    """
    name = name.strip()
    name = _TITLE_PATTERN.sub("", name)
    name = _SUFFIX_PATTERN.sub("", name)
    name = _WHITESPACE.sub(" ", name)
    return name.strip()


def canonicalize(text: str) -> str:
    """
    Canonical form of proposition text for exact-duplicate detection.

    Casefolded with Unicode punctuation and symbols removed, so letters of
    every script survive. Whitespace runs collapse to one space.
    """
    folded = unicodedata.normalize("NFC", text.casefold())
    text = "".join(ch for ch in folded if unicodedata.category(ch)[0] not in "PS")
    return _WHITESPACE.sub(" ", text).strip()


def simple_label(label: str) -> str:
    """Drop any namespace qualifier: "com.example.Person" -> "Person"."""
    return label.rsplit(".", 1)[-1]


def simple_labels(labels: Iterable[str]) -> set[str]:
    """Simple labels, without framework-reserved ones."""
    return {
        simple
        for simple in (simple_label(label) for label in labels)
        if simple not in FRAMEWORK_LABELS
    }


def levenshtein_distance(s1: str, s2: str) -> int:
    """Classic edit distance using a rolling row."""
    if not s1:
        return len(s2)
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, 1):
        current = [i]
        for j, c2 in enumerate(s2, 1):
            cost = 0 if c1 == c2 else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def name_parts(name: str) -> list[str]:
    """Lower-cased whitespace-separated parts of a normalized name."""
    normalized = normalize_name(name).lower()
    return normalized.split() if normalized else []


def truncate(text: str, max_chars: int, suffix: str = "...") -> str:
    """Truncate text to max_chars, appending suffix when cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix
