"""
Schema Registry

The data dictionary describes the domain types entities may take. Types are
stored as an arena of nodes keyed by name, with parent-name edges, so the
hierarchy walk is an explicit graph traversal with cycle and depth
protection.

Example:
    >>> schema = InMemoryDataDictionary([
    ...     DomainType(name="Person"),
    ...     DomainType(name="Detective", parent_names=["Person"]),
    ...     DomainType(name="Work", creation_permitted=False),
    ... ])
    >>> schema.is_subtype_of("Detective", "Person")
    True
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from dice_kg.utils.text import simple_label

# Schemas should be acyclic; the walk is bounded regardless
MAX_HIERARCHY_DEPTH = 32


class PropertyDefinition(BaseModel):
    """A property of a domain type, with optional validation rules for its values."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    pattern: str | None = Field(default=None, description="Regex the whole value must match")
    min_length: int | None = None
    max_length: int | None = None
    disallowed_values: frozenset[str] = frozenset()

    @property
    def validated(self) -> bool:
        return any((
            self.pattern is not None,
            self.min_length is not None,
            self.max_length is not None,
            bool(self.disallowed_values),
        ))

    def failure_reason(self, value: str) -> str | None:
        """Why value violates the rules, or None when it satisfies them."""
        stripped = value.strip()
        if self.min_length is not None and len(stripped) < self.min_length:
            return f"'{value}' is shorter than {self.min_length} characters"
        if self.max_length is not None and len(stripped) > self.max_length:
            return f"'{value}' is longer than {self.max_length} characters"
        if stripped.lower() in {v.lower() for v in self.disallowed_values}:
            return f"'{value}' is not an allowed {self.name}"
        if self.pattern is not None and not re.fullmatch(self.pattern, stripped):
            return f"'{value}' does not match pattern {self.pattern}"
        return None

    def is_valid(self, value: str) -> bool:
        return self.failure_reason(value) is None


class DomainType(BaseModel):
    """
    A node in the type hierarchy.

    Attributes:
        name: Simple type name, also the entity label
        parent_names: Names of direct parent types
        creation_permitted: False for reference or closed-world types whose
            entities must already exist
        properties: Property definitions (validation rules for mention filtering)
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parent_names: list[str] = Field(default_factory=list)
    creation_permitted: bool = True
    properties: list[PropertyDefinition] = Field(default_factory=list)

    def property(self, name: str) -> PropertyDefinition | None:
        return next((p for p in self.properties if p.name == name), None)


class DataDictionary(ABC):
    """Schema contract consumed by resolution."""

    @property
    @abstractmethod
    def domain_types(self) -> list[DomainType]:
        ...

    @abstractmethod
    def domain_type(self, name: str) -> DomainType | None:
        """Type by name, case-insensitive."""
        ...

    def parents(self, domain_type: DomainType) -> list[DomainType]:
        """Direct parents. Unknown parent names are skipped."""
        found = (self.domain_type(name) for name in domain_type.parent_names)
        return [t for t in found if t is not None]

    def ancestors(self, domain_type: DomainType) -> list[DomainType]:
        """All transitive parents, nearest first, each once."""
        seen = {domain_type.name.lower()}
        result: list[DomainType] = []
        frontier = [domain_type]
        depth = 0
        while frontier and depth < MAX_HIERARCHY_DEPTH:
            next_frontier: list[DomainType] = []
            for current in frontier:
                for parent in self.parents(current):
                    key = parent.name.lower()
                    if key in seen:
                        continue
                    seen.add(key)
                    result.append(parent)
                    next_frontier.append(parent)
            frontier = next_frontier
            depth += 1
        return result

    def is_subtype_of(self, child: DomainType | str, parent: DomainType | str) -> bool:
        child_type = self._as_type(child)
        parent_name = parent.name if isinstance(parent, DomainType) else parent
        if child_type is None:
            return False
        return any(a.name.lower() == parent_name.lower() for a in self.ancestors(child_type))

    def domain_type_for_labels(self, labels: Iterable[str]) -> DomainType | None:
        """
        The most specific known type among the labels.

        When several labels name known types, a type that descends from
        another wins; otherwise the first label in iteration order wins.
        """
        matches: list[DomainType] = []
        for label in labels:
            found = self.domain_type(simple_label(label))
            if found is not None and found not in matches:
                matches.append(found)
        if not matches:
            return None
        for candidate in matches:
            others = [m for m in matches if m is not candidate]
            if all(self.is_subtype_of(candidate, other) for other in others):
                return candidate
        return matches[0]

    def _as_type(self, value: DomainType | str) -> DomainType | None:
        return value if isinstance(value, DomainType) else self.domain_type(value)


class InMemoryDataDictionary(DataDictionary):
    """Data dictionary backed by a dict of domain types keyed by lower-cased name."""

    def __init__(self, domain_types: Iterable[DomainType] = ()) -> None:
        self._types: dict[str, DomainType] = {}
        for domain_type in domain_types:
            self.add(domain_type)

    def add(self, domain_type: DomainType) -> None:
        self._types[domain_type.name.lower()] = domain_type

    @property
    def domain_types(self) -> list[DomainType]:
        return list(self._types.values())

    def domain_type(self, name: str) -> DomainType | None:
        return self._types.get(name.lower())


class InMemorySchemaRegistry:
    """Named data dictionaries with a default."""

    def __init__(
        self,
        default_schema: DataDictionary,
        named_schemas: dict[str, DataDictionary] | None = None,
    ) -> None:
        self._default = default_schema
        self._schemas = dict(named_schemas or {})

    def get(self, name: str) -> DataDictionary | None:
        return self._schemas.get(name)

    def get_default(self) -> DataDictionary:
        return self._default

    def get_or_default(self, name: str | None) -> DataDictionary:
        if name is None:
            return self._default
        return self._schemas.get(name, self._default)

    def register(self, name: str, schema: DataDictionary) -> None:
        self._schemas[name] = schema

    def names(self) -> set[str]:
        return set(self._schemas)
