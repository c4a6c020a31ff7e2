"""
Schema

Domain types, their hierarchy and creation policy.

Modules:
    registry: DataDictionary contract, InMemoryDataDictionary, InMemorySchemaRegistry
"""

from dice_kg.schema.registry import (
    DataDictionary,
    DomainType,
    InMemoryDataDictionary,
    InMemorySchemaRegistry,
    PropertyDefinition,
)

__all__ = [
    "DataDictionary",
    "DomainType",
    "InMemoryDataDictionary",
    "InMemorySchemaRegistry",
    "PropertyDefinition",
]
