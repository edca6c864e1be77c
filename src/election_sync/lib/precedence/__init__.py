"""Precedence library — merge one entity's fields across sources.

Public API:
    - PrecedenceRule: Ordered source ranking for a field
    - PrecedencePolicy: Per-field rules plus a default ranking
    - merge_field: Resolve a single field
    - MergedField / MergedRecord: Merge outcomes
"""

from election_sync.lib.precedence.merge import (
    MergedField,
    MergedRecord,
    PrecedencePolicy,
    PrecedenceRule,
    merge_field,
    rank_sources,
)

__all__ = [
    "MergedField",
    "MergedRecord",
    "PrecedencePolicy",
    "PrecedenceRule",
    "merge_field",
    "rank_sources",
]
