from __future__ import annotations

from fastapi import APIRouter, HTTPException

from dqa_setup.application import get_session_service
from dqa_setup.core.schema import MappingUpdateModel, ReconcileRequestModel

router = APIRouter(prefix="/sessions", tags=["mapping"])


def _serialise(session_id: str, mappings, counts: dict[str, int]) -> dict:
    return {
        "session_id": session_id,
        "items": [mapping.to_dict() for mapping in mappings],
        "counts": counts,
    }


@router.post("/{session_id}/reconcile")
async def reconcile_org_units(session_id: str, payload: ReconcileRequestModel) -> dict:
    """Auto-map external organisation units onto local ones, keeping manual choices."""
    service = get_session_service()
    result = service.reconcile(
        session_id,
        [unit.to_domain() for unit in payload.external],
        [unit.to_domain() for unit in payload.local],
    )
    return _serialise(session_id, result.mappings, result.counts())


@router.get("/{session_id}/mappings")
async def list_mappings(session_id: str) -> dict:
    service = get_session_service()
    if not service.has_session(session_id):
        raise HTTPException(status_code=404, detail="session not found")
    return _serialise(session_id, service.list_mappings(session_id), service.get_counts(session_id))


@router.put("/{session_id}/mappings/{external_id}")
async def update_mapping(session_id: str, external_id: str, payload: MappingUpdateModel) -> dict:
    service = get_session_service()
    mappings = service.set_mapping(session_id, external_id, payload.local_id)
    return _serialise(session_id, mappings, service.get_counts(session_id))


@router.delete("/{session_id}/mappings/{external_id}")
async def clear_mapping(session_id: str, external_id: str) -> dict:
    service = get_session_service()
    try:
        mappings = service.clear_mapping(session_id, external_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="mapping not found") from exc
    return _serialise(session_id, mappings, service.get_counts(session_id))
