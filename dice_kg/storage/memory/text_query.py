"""
Text query parsing and scoring for the in-memory entity store.

Supports the subset of Lucene syntax the searchers emit:

    "Sherlock Holmes"^2 OR sherlock OR sherlock~ OR holmes OR holmes~

Quoted phrases (boosts are accepted and ignored), bare terms and fuzzy
terms. OR/AND are treated as separators. Scores are normalised to [0, 1]:

    - a phrase equal to the whole name scores 1.0
    - a phrase contained in the name scores 0.9
    - otherwise the larger of the fraction of name tokens hit by terms and
      the fraction of distinct terms that hit a name token
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from dice_kg.utils.text import levenshtein_distance

_PHRASE = re.compile(r'"([^"]*)"(?:\^[\d.]+)?')
_TOKEN = re.compile(r"[a-z0-9]+")
_OPERATORS = frozenset({"or", "and"})


def tokenize(text: str) -> list[str]:
    return _TOKEN.findall(text.lower())


def _max_edits(term: str) -> int:
    return 1 if len(term) < 6 else 2


@dataclass
class TextQuery:
    phrases: list[str] = field(default_factory=list)
    terms: set[str] = field(default_factory=set)
    fuzzy_terms: set[str] = field(default_factory=set)

    @classmethod
    def parse(cls, query: str) -> "TextQuery":
        parsed = cls()
        for phrase in _PHRASE.findall(query):
            normalized = " ".join(tokenize(phrase))
            if normalized:
                parsed.phrases.append(normalized)

        remainder = _PHRASE.sub(" ", query)
        for raw in remainder.split():
            fuzzy = raw.endswith("~") or re.search(r"~\d*$", raw) is not None
            for token in tokenize(re.sub(r"~\d*$", "", raw)):
                if token in _OPERATORS and raw.isupper():
                    continue
                if fuzzy:
                    parsed.fuzzy_terms.add(token)
                else:
                    parsed.terms.add(token)
        return parsed

    @property
    def is_empty(self) -> bool:
        return not (self.phrases or self.terms or self.fuzzy_terms)

    def _term_hits(self, token: str) -> set[str]:
        hits = {t for t in self.terms if t == token}
        hits |= {
            t for t in self.fuzzy_terms
            if levenshtein_distance(t, token) <= _max_edits(t)
        }
        return hits

    def score(self, text: str) -> float:
        """Score text (an entity name) against this query."""
        tokens = tokenize(text)
        if not tokens:
            return 0.0
        joined = " ".join(tokens)

        for phrase in self.phrases:
            if phrase == joined:
                return 1.0
        for phrase in self.phrases:
            if re.search(rf"\b{re.escape(phrase)}\b", joined):
                return 0.9

        # A fuzzy term and its exact twin count once
        all_terms = self.terms | self.fuzzy_terms
        if not all_terms:
            return 0.0

        matched_terms: set[str] = set()
        matched_tokens = 0
        for token in tokens:
            hits = self._term_hits(token)
            if hits:
                matched_tokens += 1
                matched_terms |= hits

        token_fraction = matched_tokens / len(tokens)
        term_fraction = len(matched_terms) / len(all_terms)
        return max(token_fraction, term_fraction)
