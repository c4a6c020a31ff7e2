"""
Entity resolver contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dice_kg.schema import DataDictionary
from dice_kg.types import EntityResolution, Resolutions, SuggestedEntities


class EntityResolver(ABC):
    """
    Decides, for each suggested entity, whether it is new or already stored.

    resolve() returns one resolution per suggestion, in input order, tagged
    with the chunk ids of the input.
    """

    @abstractmethod
    async def resolve(
        self,
        suggested_entities: SuggestedEntities,
        schema: DataDictionary,
    ) -> Resolutions[EntityResolution]:
        ...
