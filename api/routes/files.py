from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from api.deps import get_access_context, get_object_store, get_store
from api.schemas import PresignPayload, SignedUrlResponse
from core.security.access import AccessContext
from storage.entity_store import EntityStore
from storage.object_store import EXPORTS, ObjectStore, signed_url

router = APIRouter(prefix="/files", tags=["files"])


@router.post("/presign", response_model=SignedUrlResponse)
def presign(
    payload: PresignPayload,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> SignedUrlResponse:
    """Presign an object in one of the known buckets.

    Problem, solution and proof-code keys start with the dataset id and need
    membership; export objects are admin only.
    """
    if not payload.bucket or not payload.key:
        raise HTTPException(status_code=400, detail="bucket and key are required")
    if payload.operation not in {"get", "put"}:
        raise HTTPException(status_code=400, detail="invalid operation")
    slot = object_store.slot_for(payload.bucket)
    if slot == EXPORTS:
        ctx.require_admin()
    else:
        dataset_id = payload.key.split("/", 1)[0]
        ctx.require_member(store, dataset_id)
    url = signed_url(object_store, slot, payload.key, payload.operation)  # type: ignore[arg-type]
    return SignedUrlResponse(presigned_url=url)
