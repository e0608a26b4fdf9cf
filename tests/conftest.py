import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from dqa_setup.application import reset_session_state
from dqa_setup.infrastructure import InMemoryMetadataClient, configure_metadata_client


class SequenceIds:
    """Deterministic identifier source; hands out queued codes first."""

    def __init__(self, codes=()):
        self._codes = list(codes)
        self._uid = 0
        self._code = 0

    def new_object_id(self) -> str:
        self._uid += 1
        return f"uid{self._uid:08d}"

    def new_code(self, prefix: str = "", length: int = 8) -> str:
        if self._codes:
            return self._codes.pop(0)
        self._code += 1
        width = max(1, length - len(prefix))
        return f"{prefix}{self._code:0{width}d}"


@pytest.fixture(autouse=True)
def reset_state():
    reset_session_state()
    configure_metadata_client(InMemoryMetadataClient())
    yield
    reset_session_state()
    configure_metadata_client(InMemoryMetadataClient())


@pytest.fixture()
def ids():
    return SequenceIds()
