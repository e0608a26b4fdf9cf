"""Name normalisation and lookup indexes over local organisation units."""
from __future__ import annotations

import logging
import unicodedata
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from dqa_setup.domain import OrgUnit

logger = logging.getLogger(__name__)

PREFIX_TOKENS = 3


def normalize(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name).strip().lower()
    return " ".join(normalized.split())


def prefix_keys(normalized: str, tokens: int = PREFIX_TOKENS) -> list[str]:
    """Leading-token keys from longest to shortest, without repeats."""

    words = normalized.split()
    keys: list[str] = []
    for size in range(min(tokens, len(words)), 0, -1):
        key = " ".join(words[:size])
        if key not in keys:
            keys.append(key)
    return keys


@dataclass(slots=True)
class OrgUnitIndex:
    """Exact and prefix lookups over a collection of local units.

    ``exact`` keeps the first unit seen for a normalised name; units that
    normalise to an already indexed name are collected in ``duplicates`` so
    callers can ask the user to disambiguate.
    """

    exact: dict[str, OrgUnit] = field(default_factory=dict)
    prefixes: dict[str, list[OrgUnit]] = field(default_factory=dict)
    duplicates: dict[str, list[OrgUnit]] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)

    def lookup_exact(self, normalized: str) -> OrgUnit | None:
        return self.exact.get(normalized)

    def candidates(self, normalized: str) -> Iterator[OrgUnit]:
        seen: set[str] = set()
        for key in prefix_keys(normalized):
            for unit in self.prefixes.get(key, ()):
                if unit.id in seen:
                    continue
                seen.add(unit.id)
                yield unit

    def normalized_name(self, unit: OrgUnit) -> str:
        return self.names.get(unit.id) or normalize(unit.display_name)


def build_index(local_units: Iterable[OrgUnit]) -> OrgUnitIndex:
    index = OrgUnitIndex()
    for unit in local_units:
        if not unit.id or not unit.display_name:
            continue
        name = normalize(unit.display_name)
        if not name:
            continue
        index.names[unit.id] = name

        if name in index.exact:
            index.duplicates.setdefault(name, []).append(unit)
            logger.warning(
                "Local unit %s shares normalised name %r with %s; keeping the first",
                unit.id,
                name,
                index.exact[name].id,
            )
        else:
            index.exact[name] = unit

        for key in prefix_keys(name):
            index.prefixes.setdefault(key, []).append(unit)
    return index
