"""
Proposition Revision

Merges, reinforces, contradicts or adds new propositions against the store.
"""

from dice_kg.revision.reviser import (
    LlmPropositionReviser,
    PendingClassification,
    PropositionReviser,
    contradict_proposition,
    has_entity_overlap,
    merge_propositions,
    reinforce_proposition,
)

__all__ = [
    "PropositionReviser",
    "LlmPropositionReviser",
    "PendingClassification",
    "merge_propositions",
    "reinforce_proposition",
    "contradict_proposition",
    "has_entity_overlap",
]
