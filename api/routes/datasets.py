from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.deps import get_access_context, get_object_store, get_store, require_admin
from api.schemas import (
    DatasetCreate,
    DatasetUpdate,
    MemberAdd,
    MemberRemove,
    ProblemCreate,
)
from core.security.access import AccessContext
from services.datasets import (
    add_member,
    create_dataset,
    get_dataset_or_404,
    list_datasets,
    list_members,
    remove_member,
    update_dataset,
)
from services.problems import create_problem, list_dataset_problems
from storage.entity_store import EntityStore
from storage.object_store import ObjectStore

router = APIRouter(prefix="/datasets", tags=["datasets"])


@router.post("", status_code=201)
def create_dataset_endpoint(
    payload: DatasetCreate,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return create_dataset(store, ctx.caller, payload.name, payload.description)


@router.get("")
def list_datasets_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"datasets": list_datasets(store, ctx)}


@router.get("/{dataset_id}")
def get_dataset_endpoint(
    dataset_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    ctx.require_member(store, dataset_id)
    return get_dataset_or_404(store, dataset_id)


@router.patch("/{dataset_id}")
def update_dataset_endpoint(
    dataset_id: str,
    payload: DatasetUpdate,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return update_dataset(store, dataset_id, payload.model_dump(exclude_unset=True))


@router.get("/{dataset_id}/members")
def list_members_endpoint(
    dataset_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    ctx.require_member(store, dataset_id)
    get_dataset_or_404(store, dataset_id)
    return {"members": list_members(store, dataset_id)}


@router.post("/{dataset_id}/members", status_code=201)
def add_member_endpoint(
    dataset_id: str,
    payload: MemberAdd,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    member = add_member(
        store, dataset_id, payload.user_id, payload.username, payload.role
    )
    return {"message": "Member added successfully", "member": member}


@router.delete("/{dataset_id}/members")
def remove_member_endpoint(
    dataset_id: str,
    payload: MemberRemove,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, str]:
    remove_member(store, dataset_id, payload.user_id)
    return {"message": "Member removed successfully"}


@router.get("/{dataset_id}/problems")
def list_problems_endpoint(
    dataset_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"problems": list_dataset_problems(store, ctx, dataset_id)}


@router.post("/{dataset_id}/problems", status_code=201)
def create_problem_endpoint(
    dataset_id: str,
    payload: ProblemCreate,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    problem, presigned = create_problem(
        store, object_store, ctx, dataset_id, payload.model_dump(by_alias=True)
    )
    return {"problem": problem, "presignedUrls": presigned}
