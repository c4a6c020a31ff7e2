"""
Mention Filters

Drop low-quality entity mentions before they reach entity resolution.

    - SchemaValidatedMentionFilter: span must satisfy the type's "name" property rules
    - PropositionDuplicateFilter: a span that is the whole (long) proposition is not an entity
    - CompositeMentionFilter: all filters must pass
    - ObservableMentionFilter: wraps any filter and counts outcomes per entity type
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter

from dice_kg.schema import DataDictionary, DomainType
from dice_kg.types import SuggestedMention

logger = logging.getLogger(__name__)


class MentionFilter(ABC):
    @abstractmethod
    def is_valid(self, mention: SuggestedMention, proposition_text: str) -> bool:
        ...

    def rejection_reason(self, mention: SuggestedMention) -> str | None:
        """Human-readable reason, when the filter can tell."""
        return None


class SchemaValidatedMentionFilter(MentionFilter):
    """
    Validates spans against the validation rules of a type's property.

    Types without a schema entry, or without a validated property, allow
    every mention.

    Args:
        schema: Data dictionary holding the types
        property_name: Property whose rules apply to the span
    """

    def __init__(self, schema: DataDictionary, property_name: str = "name") -> None:
        self.schema = schema
        self.property_name = property_name

    def is_valid(self, mention: SuggestedMention, proposition_text: str) -> bool:
        reason = self.rejection_reason(mention)
        if reason is not None:
            logger.debug(f"Mention '{mention.span}' for type '{mention.type}' failed validation: {reason}")
        return reason is None

    def rejection_reason(self, mention: SuggestedMention) -> str | None:
        domain_type = self._find_domain_type(mention.type)
        if domain_type is None:
            return None
        definition = domain_type.property(self.property_name)
        if definition is None or not definition.validated:
            return None
        return definition.failure_reason(mention.span)

    def _find_domain_type(self, entity_type: str) -> DomainType | None:
        exact = self.schema.domain_type_for_labels([entity_type])
        if exact is not None:
            return exact
        lowered = entity_type.lower()
        return next((t for t in self.schema.domain_types if t.name.lower() == lowered), None)


class PropositionDuplicateFilter(MentionFilter):
    """
    Rejects a mention whose span is the entire proposition.

    Short propositions may legitimately be the entity (a title, a trademark),
    so only propositions of at least min_proposition_length are checked.
    """

    def __init__(self, min_proposition_length: int = 50) -> None:
        self.min_proposition_length = min_proposition_length

    def is_valid(self, mention: SuggestedMention, proposition_text: str) -> bool:
        text = proposition_text.strip()
        if len(text) < self.min_proposition_length:
            return True
        return mention.span.strip() != text


class CompositeMentionFilter(MentionFilter):
    def __init__(self, filters: list[MentionFilter]) -> None:
        self.filters = list(filters)

    def is_valid(self, mention: SuggestedMention, proposition_text: str) -> bool:
        return all(f.is_valid(mention, proposition_text) for f in self.filters)

    def rejection_reason(self, mention: SuggestedMention) -> str | None:
        for f in self.filters:
            reason = f.rejection_reason(mention)
            if reason is not None:
                return reason
        return None


class ObservableMentionFilter(MentionFilter):
    """
    Counts validations of the wrapped filter by (entity type, valid).

    Example:
        >>> observed = ObservableMentionFilter(SchemaValidatedMentionFilter(schema))
        >>> observed.is_valid(mention, text)
        >>> observed.counts[("Company", False)]
    """

    def __init__(self, delegate: MentionFilter) -> None:
        self.delegate = delegate
        self.counts: Counter[tuple[str, bool]] = Counter()

    def is_valid(self, mention: SuggestedMention, proposition_text: str) -> bool:
        valid = self.delegate.is_valid(mention, proposition_text)
        self.counts[(mention.type, valid)] += 1
        if not valid:
            reason = self.delegate.rejection_reason(mention) or "filtered"
            logger.warning(f"Filtered mention '{mention.span}' ({mention.type}): {reason}")
        return valid

    def rejection_reason(self, mention: SuggestedMention) -> str | None:
        return self.delegate.rejection_reason(mention)

    def rejected(self, entity_type: str) -> int:
        return self.counts[(entity_type, False)]

    def accepted(self, entity_type: str) -> int:
        return self.counts[(entity_type, True)]
