"""Existence queries against the target metadata system."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Collection, Iterable

from dqa_setup.domain import MetadataKind
from dqa_setup.infrastructure.metadata import DEFAULT_FIELDS, MetadataClient

logger = logging.getLogger(__name__)

SEPARATOR = " - "


def _has_part(name: str, label: str) -> bool:
    return name == label or name.endswith(SEPARATOR + label) or name.startswith(label + SEPARATOR)


@dataclass(frozen=True, slots=True)
class ExistingObject:
    kind: MetadataKind
    id: str
    name: str = ""
    code: str | None = None
    description: str = ""


class ExistingMetadataIndex:
    """Answers "does this already exist?" for the provisioning engine.

    Two strategies are offered. ``find_by_label`` matches against a snapshot
    fetched once per run; ``find_by_code`` asks the remote system directly and
    is used while resolving create conflicts. The snapshot is never updated by
    the run that loaded it.
    """

    def __init__(self, client: MetadataClient) -> None:
        self._client = client
        self._snapshot: dict[MetadataKind, tuple[ExistingObject, ...]] = {}

    @staticmethod
    def _to_object(kind: MetadataKind, item: dict) -> ExistingObject | None:
        if not item.get("id"):
            return None
        return ExistingObject(
            kind=kind,
            id=str(item["id"]),
            name=str(item.get("name") or item.get("displayName") or ""),
            code=item.get("code"),
            description=str(item.get("description") or ""),
        )

    def load_snapshot(self, kinds: Iterable[MetadataKind]) -> dict[MetadataKind, int]:
        """Fetch every object of ``kinds``; raises the client's error on failure."""

        loaded: dict[MetadataKind, int] = {}
        for kind in kinds:
            items = self._client.query(kind.value, fields=DEFAULT_FIELDS)
            objects = tuple(obj for obj in (self._to_object(kind, item) for item in items) if obj is not None)
            self._snapshot[kind] = objects
            loaded[kind] = len(objects)
        return loaded

    def find_by_label(
        self,
        kind: MetadataKind,
        label: str,
        scope: str | None = None,
        exclude: Collection[str] = (),
    ) -> ExistingObject | None:
        """Find an object whose name carries ``label`` and ``scope``.

        A name holding ``label`` as a whole ``" - "``-separated part wins over
        one that merely contains it, so "REG - ANC visit" does not settle for
        "REG - ANC visit 1st". Ids in ``exclude`` are never returned.
        """

        if not label:
            return None
        label_lower = label.lower()
        scope_lower = (scope or "").lower()
        candidates = [
            obj
            for obj in self._snapshot.get(kind, ())
            if obj.id not in exclude
            and label_lower in obj.name.lower()
            and scope_lower in obj.name.lower()
        ]
        for obj in candidates:
            if _has_part(obj.name.lower(), label_lower):
                return obj
        return candidates[0] if candidates else None

    def find_by_code(self, kind: MetadataKind, code: str) -> ExistingObject | None:
        if not code:
            return None
        items = self._client.query(kind.value, filters=[f"code:eq:{code}"], fields=DEFAULT_FIELDS)
        for item in items:
            obj = self._to_object(kind, item)
            if obj is not None:
                return obj
        return None

    def lookup(
        self,
        kind: MetadataKind,
        name_part: str,
        code: str,
        scope: str | None = None,
        exclude: Collection[str] = (),
    ) -> ExistingObject | None:
        return self.find_by_label(kind, name_part, scope, exclude) or self.find_by_code(kind, code)
