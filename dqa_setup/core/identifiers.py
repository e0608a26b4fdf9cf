"""Identifier and code generation for newly created metadata objects.

Identifiers only need to be statistically collision resistant; uniqueness
against the remote system is handled by the provisioning engine's conflict
resolution.
"""
from __future__ import annotations

import random
import string
from typing import Protocol

UID_LENGTH = 11
UID_ALPHABET = string.ascii_letters + string.digits
CODE_ALPHABET = string.ascii_uppercase + string.digits


class IdGenerator(Protocol):
    """Contract for identifier sources injected into the engines."""

    def new_object_id(self) -> str: ...

    def new_code(self, prefix: str = "", length: int = 8) -> str: ...


class RandomIdGenerator:
    """Uniform pseudo-random generator; seedable for reproducible runs."""

    def __init__(self, seed: int | None = None, *, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random(seed)

    def new_object_id(self) -> str:
        # the target system rejects identifiers that start with a digit
        first = self._rng.choice(string.ascii_letters)
        rest = "".join(self._rng.choice(UID_ALPHABET) for _ in range(UID_LENGTH - 1))
        return first + rest

    def new_code(self, prefix: str = "", length: int = 8) -> str:
        remaining = max(0, length - len(prefix))
        return prefix + "".join(self._rng.choice(CODE_ALPHABET) for _ in range(remaining))
