"""Organisation-unit reconciliation between external and local hierarchies.

``reconcile`` walks the external units in input order and assigns each one at
most one local unit. A local unit can only be assigned once per pass, so the
input order decides conflicts: the first external unit to claim a local unit
keeps it. Manual mappings supplied from a previous pass are kept as they are
and their local units are reserved before any automatic matching happens.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from dqa_setup.core.name_normalize import OrgUnitIndex, build_index, normalize
from dqa_setup.domain import Confidence, Mapping, MappingOrigin, OrgUnit

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationResult:
    mappings: list[Mapping] = field(default_factory=list)
    exact_matches: int = 0
    partial_matches: int = 0
    no_matches: int = 0
    manual: int = 0

    def counts(self) -> dict[str, int]:
        return {
            "exact_matches": self.exact_matches,
            "partial_matches": self.partial_matches,
            "no_matches": self.no_matches,
            "manual": self.manual,
        }

    def by_external(self) -> dict[str, Mapping]:
        return {mapping.external_id: mapping for mapping in self.mappings}

    def unmatched(self) -> list[str]:
        return [mapping.external_id for mapping in self.mappings if not mapping.is_mapped]


def _is_substring_match(left: str, right: str) -> bool:
    return left in right or right in left


def _match_unit(
    unit: OrgUnit,
    index: OrgUnitIndex,
    consumed: frozenset[str],
) -> tuple[Mapping, frozenset[str]]:
    name = normalize(unit.display_name)

    exact = index.lookup_exact(name)
    if exact is not None and exact.id not in consumed:
        return Mapping(unit.id, exact.id, Confidence.EXACT), consumed | {exact.id}

    for candidate in index.candidates(name):
        if candidate.id in consumed:
            continue
        if _is_substring_match(name, index.normalized_name(candidate)):
            return Mapping(unit.id, candidate.id, Confidence.PARTIAL), consumed | {candidate.id}

    return Mapping(unit.id, None, Confidence.NONE), consumed


def reconcile(
    external: Sequence[OrgUnit],
    local: Sequence[OrgUnit],
    existing: Iterable[Mapping] = (),
) -> ReconciliationResult:
    """Map external units onto local units, one-to-one.

    Only mappings with ``MappingOrigin.MANUAL`` are taken from ``existing``;
    automatic mappings from earlier passes are recomputed.
    """

    manual: dict[str, Mapping] = {}
    for mapping in existing:
        if mapping.origin is MappingOrigin.MANUAL:
            manual[mapping.external_id] = mapping

    index = build_index(local)
    consumed = frozenset(m.local_id for m in manual.values() if m.is_mapped)

    result = ReconciliationResult()
    seen: set[str] = set()
    for unit in external:
        if not unit.id or not unit.display_name:
            result.no_matches += 1
            continue
        if unit.id in seen:
            logger.warning("External unit %s listed more than once; ignoring repeat", unit.id)
            continue
        seen.add(unit.id)

        pinned = manual.get(unit.id)
        if pinned is not None:
            result.mappings.append(pinned)
            result.manual += 1
            continue

        mapping, consumed = _match_unit(unit, index, consumed)
        result.mappings.append(mapping)
        if mapping.confidence is Confidence.EXACT:
            result.exact_matches += 1
        elif mapping.confidence is Confidence.PARTIAL:
            result.partial_matches += 1
        else:
            result.no_matches += 1

    # manual decisions for units outside this input are carried through untouched
    for external_id, mapping in manual.items():
        if external_id not in seen:
            result.mappings.append(mapping)

    logger.info(
        "Reconciled %d external units: %d exact, %d partial, %d unmatched, %d manual",
        len(seen),
        result.exact_matches,
        result.partial_matches,
        result.no_matches,
        result.manual,
    )
    return result


def set_mapping(mappings: Sequence[Mapping], external_id: str, local_id: str) -> list[Mapping]:
    """Pin ``external_id`` to ``local_id``, evicting any other holder of that local unit."""

    updated: list[Mapping] = []
    assigned = Mapping(external_id, local_id, Confidence.EXACT, MappingOrigin.MANUAL)
    replaced = False
    for mapping in mappings:
        if mapping.external_id == external_id:
            updated.append(assigned)
            replaced = True
        elif mapping.local_id == local_id:
            logger.info("Evicting %s from local unit %s in favour of %s", mapping.external_id, local_id, external_id)
            updated.append(Mapping(mapping.external_id, None, Confidence.NONE, MappingOrigin.AUTO))
        else:
            updated.append(mapping)
    if not replaced:
        updated.append(assigned)
    return updated


def clear_mapping(mappings: Sequence[Mapping], external_id: str) -> list[Mapping]:
    """Unmap ``external_id`` and drop any manual pin it carried."""

    return [
        Mapping(external_id, None, Confidence.NONE, MappingOrigin.AUTO) if mapping.external_id == external_id else mapping
        for mapping in mappings
    ]


def tally(mappings: Iterable[Mapping]) -> dict[str, int]:
    """Count a mapping list the way :meth:`ReconciliationResult.counts` does."""

    counts = {"exact_matches": 0, "partial_matches": 0, "no_matches": 0, "manual": 0}
    for mapping in mappings:
        if mapping.origin is MappingOrigin.MANUAL:
            counts["manual"] += 1
        elif mapping.confidence is Confidence.EXACT:
            counts["exact_matches"] += 1
        elif mapping.confidence is Confidence.PARTIAL:
            counts["partial_matches"] += 1
        else:
            counts["no_matches"] += 1
    return counts
