from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_access_context, get_store
from api.schemas import ProfileResponse
from core.security.access import AccessContext, datasets_for
from storage.entity_store import EntityStore

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=ProfileResponse)
def me(
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> ProfileResponse:
    """Caller profile, including datasets reached through past submissions."""
    datasets = datasets_for(store, ctx.user_id, include_submissions=True)
    return ProfileResponse(
        user_id=ctx.user_id,
        username=ctx.caller.username,
        email=ctx.caller.email,
        groups=sorted(ctx.groups),
        is_admin=ctx.is_admin,
        datasets=sorted(datasets),
    )
