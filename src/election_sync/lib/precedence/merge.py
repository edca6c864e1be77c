"""Field-level precedence merge across sources.

For every field the value from the highest-ranked source that supplied one
wins. Sources missing from a field's ranking come after the ranked ones in
alphabetical order. Values from every other source are kept as
supplementary values.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PrecedenceRule:
    """Ordered source ranking for one merged field; earlier sources win."""

    field: str
    sources: tuple[str, ...]


@dataclass(frozen=True)
class MergedField:
    """Outcome of merging one field."""

    value: Any
    source: str
    supplementary: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MergedRecord:
    """Outcome of merging every field of one entity."""

    fields: dict[str, Any]
    provenance: dict[str, str]
    supplementary: dict[str, dict[str, Any]]
    primary_source: str


def _supplied(value: Any) -> bool:
    return value is not None and value != ""


def rank_sources(sources: Sequence[str], ranking: Sequence[str]) -> list[str]:
    """Order ``sources`` by ``ranking``; unranked sources follow alphabetically."""
    position = {name: index for index, name in enumerate(ranking)}
    ranked = sorted((s for s in sources if s in position), key=position.__getitem__)
    unranked = sorted(s for s in sources if s not in position)
    return ranked + unranked


def merge_field(values: Mapping[str, Any], ranking: Sequence[str]) -> MergedField | None:
    """Pick the winning value for one field.

    Args:
        values: Value supplied by each source. None or empty strings count
            as not supplied.
        ranking: Source names in precedence order.

    Returns:
        The merged field, or None if no source supplied a value.
    """
    supplied = {source: value for source, value in values.items() if _supplied(value)}
    if not supplied:
        return None
    ordered = rank_sources(list(supplied), ranking)
    winner = ordered[0]
    return MergedField(
        value=supplied[winner],
        source=winner,
        supplementary={source: supplied[source] for source in ordered[1:]},
    )


class PrecedencePolicy:
    """Per-field precedence rules with a default ranking for unlisted fields.

    Args:
        rules: Field-specific rankings.
        default_order: Ranking for fields without a rule (normally the
            provider fallback order).
    """

    def __init__(self, rules: Sequence[PrecedenceRule] = (), default_order: Sequence[str] = ()) -> None:
        self._rules = {rule.field: rule.sources for rule in rules}
        self._default_order = tuple(default_order)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Sequence[str]], default_order: Sequence[str]) -> "PrecedencePolicy":
        rules = [PrecedenceRule(field=name, sources=tuple(sources)) for name, sources in mapping.items()]
        return cls(rules, default_order)

    @property
    def default_order(self) -> tuple[str, ...]:
        return self._default_order

    def ranking_for(self, field_name: str) -> tuple[str, ...]:
        return self._rules.get(field_name, self._default_order)

    def merge(self, contributions: Mapping[str, Mapping[str, Any]]) -> MergedRecord:
        """Merge per-source field values into one record.

        Args:
            contributions: Mapping of source name to that source's fields.

        Returns:
            The merged record. ``primary_source`` is the source that won the
            most fields, ties going to the higher-ranked source by default order.

        Raises:
            ValueError: If there are no contributions.
        """
        if not contributions:
            msg = "Cannot merge a record without contributions"
            raise ValueError(msg)

        field_names: dict[str, None] = {}
        for values in contributions.values():
            field_names.update(dict.fromkeys(values))

        merged: dict[str, Any] = {}
        provenance: dict[str, str] = {}
        supplementary: dict[str, dict[str, Any]] = {}
        wins: dict[str, int] = dict.fromkeys(contributions, 0)

        for name in field_names:
            candidates = {source: values.get(name) for source, values in contributions.items()}
            result = merge_field(candidates, self.ranking_for(name))
            if result is None:
                merged[name] = None
                continue
            merged[name] = result.value
            provenance[name] = result.source
            wins[result.source] += 1
            if result.supplementary:
                supplementary[name] = result.supplementary

        ordered = rank_sources(list(contributions), self._default_order)
        primary = max(ordered, key=lambda source: (wins[source], -ordered.index(source)))
        return MergedRecord(fields=merged, provenance=provenance, supplementary=supplementary, primary_source=primary)
