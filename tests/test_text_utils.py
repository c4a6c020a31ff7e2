"""Tests for name normalisation, canonical text and label helpers."""

import pytest

from dice_kg.utils.similarity import cosine_similarities
from dice_kg.utils.text import (
    canonicalize,
    levenshtein_distance,
    name_parts,
    normalize_name,
    simple_label,
    simple_labels,
    truncate,
)


class TestNormalizeName:
    """Test honorific and suffix stripping."""

    def test_strips_title_and_suffix(self):
        assert normalize_name("Dr.  John Watson Jr.") == "John Watson"

    def test_title_without_period(self):
        assert normalize_name("Mrs Hudson") == "Hudson"

    def test_title_prefix_inside_word_is_kept(self):
        """'Drake' starts with 'Dr' but is not a title."""
        assert normalize_name("Drake") == "Drake"

    def test_roman_numeral_suffix(self):
        assert normalize_name("Henry Ford III") == "Henry Ford"


class TestCanonicalize:
    """Test canonical proposition text."""

    def test_punctuation_case_and_whitespace(self):
        assert canonicalize("Alice works at Acme.") == canonicalize("alice  works at ACME")

    def test_canonical_form(self):
        assert canonicalize("  Bob's  cat, Tom! ") == "bobs cat tom"

    def test_non_latin_letters_are_kept(self):
        assert canonicalize("Мария живёт в Париже!") == "мария живёт в париже"
        assert canonicalize("東京は首都です。") == "東京は首都です"
        assert canonicalize("Мария живёт в Париже") != canonicalize("Иван уволился с работы")

    def test_unicode_punctuation_and_underscores_dropped(self):
        assert canonicalize("«Hello» — snake_case…") == "hello snakecase"


class TestLabels:
    """Test label simplification."""

    def test_simple_label_drops_namespace(self):
        assert simple_label("com.example.Person") == "Person"
        assert simple_label("Person") == "Person"

    def test_simple_labels_drop_framework_labels(self):
        assert simple_labels(["Entity", "x.Person", "__Entity__", "org.Reference"]) == {"Person"}


class TestLevenshtein:
    """Test edit distance."""

    def test_known_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_empty_strings(self):
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3
        assert levenshtein_distance("", "") == 0


def test_name_parts_are_normalized_and_lowercased() -> None:
    """Name parts should skip titles and lowercase each word."""
    assert name_parts("Dr. Sherlock Holmes") == ["sherlock", "holmes"]
    assert name_parts("   ") == []


def test_truncate_appends_suffix_only_when_cut() -> None:
    """Truncate should leave short text alone."""
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("abc", 3) == "abc"


def test_cosine_similarities_handles_zero_vectors() -> None:
    """A zero vector has no direction and scores 0.0 rather than NaN."""
    scores = cosine_similarities([1.0, 0.0], [[2.0, 0.0], [0.0, 1.0], [0.0, 0.0]])
    assert scores[0] == pytest.approx(1.0)
    assert abs(scores[1]) < 1e-9
    assert scores[2] == 0.0
    assert cosine_similarities([1.0], []) == []
