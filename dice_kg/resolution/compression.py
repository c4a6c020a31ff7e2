"""
Context Compression

Reduces long source text to the parts that mention an entity before it is
sent to the LLM bakeoff, keeping prompts small.

Compressors:
    - NoOpContextCompressor: returns the text unchanged
    - WindowContextCompressor: character windows around each mention
    - SentenceContextCompressor: sentences mentioning the entity, with neighbours
    - AdaptiveContextCompressor: picks one of the above by text length
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

# How far a window edge may move to land on a word boundary
_BOUNDARY_SLACK = 20


class ContextCompressor(ABC):
    """Extracts the context relevant to an entity from source text."""

    @abstractmethod
    def compress(self, source_text: str | None, entity_name: str) -> str | None:
        """Relevant context for entity_name, or None when there is none."""
        ...

    def compress_for_all(self, source_text: str | None, entity_names: list[str]) -> str | None:
        """Context covering several entities, distinct snippets joined by ' ... '."""
        if source_text is None:
            return None
        snippets: list[str] = []
        for name in entity_names:
            snippet = self.compress(source_text, name)
            if snippet is not None and snippet not in snippets:
                snippets.append(snippet)
        return " ... ".join(snippets) if snippets else None


class NoOpContextCompressor(ContextCompressor):
    def compress(self, source_text: str | None, entity_name: str) -> str | None:
        return source_text


class WindowContextCompressor(ContextCompressor):
    """
    Windows of window_chars around each mention of the entity.

    Full-name mentions are found case-insensitively; when there are none,
    whole-word mentions of name parts of at least three characters are used.
    Mentions closer than window_chars are merged. With no mention at all, the
    text is truncated at a sentence boundary.
    """

    def __init__(
        self,
        window_chars: int = 100,
        max_snippets: int = 3,
        max_total_chars: int = 500,
    ) -> None:
        self.window_chars = window_chars
        self.max_snippets = max_snippets
        self.max_total_chars = max_total_chars

    def compress(self, source_text: str | None, entity_name: str) -> str | None:
        if not source_text or not source_text.strip() or not entity_name.strip():
            return None

        mentions = self._find_mentions(source_text, entity_name)
        if not mentions:
            return truncate_to_sentences(source_text, self.max_total_chars)

        snippets = [self._extract_snippet(source_text, m) for m in mentions[: self.max_snippets]]
        combined = " ... ".join(snippets)
        if len(combined) > self.max_total_chars:
            return combined[: self.max_total_chars] + "..."
        return combined

    def _find_mentions(self, text: str, entity_name: str) -> list[tuple[int, int]]:
        lower_text = text.lower()
        lower_name = entity_name.lower()
        mentions: list[tuple[int, int]] = []

        index = lower_text.find(lower_name)
        while index >= 0:
            mentions.append((index, index + len(lower_name)))
            index = lower_text.find(lower_name, index + 1)

        if not mentions:
            for word in (w for w in entity_name.split() if len(w) >= 3):
                pattern = rf"(?<![0-9a-z]){re.escape(word.lower())}(?![0-9a-z])"
                mentions.extend(m.span() for m in re.finditer(pattern, lower_text))

        return self._merge_ranges(mentions)

    def _merge_ranges(self, ranges: list[tuple[int, int]]) -> list[tuple[int, int]]:
        if not ranges:
            return []
        ordered = sorted(ranges)
        merged = [ordered[0]]
        for start, end in ordered[1:]:
            last_start, last_end = merged[-1]
            if start <= last_end + self.window_chars:
                merged[-1] = (last_start, max(last_end, end))
            else:
                merged.append((start, end))
        return merged

    def _extract_snippet(self, text: str, mention: tuple[int, int]) -> str:
        start = max(0, mention[0] - self.window_chars)
        end = min(len(text), mention[1] + self.window_chars)

        if start > 0:
            space = text.rfind(" ", 0, start + 1)
            if space >= start - _BOUNDARY_SLACK:
                start = space + 1
        if end < len(text):
            space = text.find(" ", end)
            if 0 <= space <= end + _BOUNDARY_SLACK:
                end = space

        snippet = text[start:end].strip()
        prefix = "..." if start > 0 else ""
        suffix = "..." if end < len(text) else ""
        return f"{prefix}{snippet}{suffix}"


class SentenceContextCompressor(ContextCompressor):
    """Sentences that mention the entity, optionally with their neighbours."""

    _SENTENCE_BREAK = re.compile(r"[.!?]+\s+")

    def __init__(self, max_sentences: int = 3, include_surrounding: bool = True) -> None:
        self.max_sentences = max_sentences
        self.include_surrounding = include_surrounding

    def compress(self, source_text: str | None, entity_name: str) -> str | None:
        if not source_text or not source_text.strip() or not entity_name.strip():
            return None

        sentences = [
            s.strip().rstrip(".!?") for s in self._SENTENCE_BREAK.split(source_text)
            if s.strip().rstrip(".!?")
        ]
        if not sentences:
            return source_text

        lower_name = entity_name.lower()
        name_words = [w.lower() for w in entity_name.split() if len(w) >= 3]
        mentioned = [
            i for i, sentence in enumerate(sentences)
            if lower_name in sentence.lower() or any(w in sentence.lower() for w in name_words)
        ]
        if not mentioned:
            return ". ".join(sentences[: self.max_sentences]) + "."

        selected: set[int] = set()
        for i in mentioned[: self.max_sentences]:
            selected.add(i)
            if self.include_surrounding:
                selected.update(j for j in (i - 1, i + 1) if 0 <= j < len(sentences))
        chosen = sorted(selected)[: self.max_sentences + 2]
        return ". ".join(sentences[i] for i in chosen) + "."


class AdaptiveContextCompressor(ContextCompressor):
    """Short text as-is, medium text by sentence, long text by window."""

    def __init__(self, short_threshold: int = 500, medium_threshold: int = 2000) -> None:
        self.short_threshold = short_threshold
        self.medium_threshold = medium_threshold
        self._sentences = SentenceContextCompressor()
        self._windows = WindowContextCompressor()

    def compress(self, source_text: str | None, entity_name: str) -> str | None:
        if source_text is None:
            return None
        if len(source_text) < self.short_threshold:
            return source_text
        if len(source_text) < self.medium_threshold:
            return self._sentences.compress(source_text, entity_name)
        return self._windows.compress(source_text, entity_name)


def truncate_to_sentences(text: str, max_chars: int) -> str:
    """Cut text to max_chars, preferably after a sentence end in the second half."""
    if len(text) <= max_chars:
        return text
    truncated = text[:max_chars]
    last_end = max(truncated.rfind("."), truncated.rfind("!"), truncated.rfind("?"))
    if last_end > max_chars // 2:
        return truncated[: last_end + 1]
    head, _, _ = truncated.rpartition(" ")
    return (head or truncated) + "..."
