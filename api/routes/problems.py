from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.deps import get_access_context, get_event_notifier, get_object_store, get_store
from api.schemas import ProblemUpdate, SearchPayload
from core.notify import Notifier
from core.security.access import AccessContext
from services.problems import (
    LEAN4_SLOT,
    attach_artifact,
    finalize_problem,
    get_problem,
    update_problem,
)
from services.search import (
    ProblemFilter,
    problems_by_label,
    problems_by_submitter,
    search_problems,
)
from storage.entity_store import EntityStore
from storage.object_store import ObjectStore

router = APIRouter(prefix="/problems", tags=["problems"])


@router.get("/mine")
def my_problems(
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"problems": problems_by_submitter(store, ctx, ctx.user_id)}


@router.get("/labels/{label}")
def problems_with_label(
    label: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"problems": problems_by_label(store, ctx, label)}


@router.post("/search")
def search(
    payload: SearchPayload,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    criteria = ProblemFilter(
        labels=payload.labels,
        user=payload.user,
        status=payload.status,
        dataset_id=payload.dataset_id,
    )
    return {"problems": search_problems(store, ctx, criteria)}


@router.get("/{problem_id}")
def get_problem_endpoint(
    problem_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    return get_problem(store, object_store, ctx, problem_id)


@router.patch("/{problem_id}")
def update_problem_endpoint(
    problem_id: str,
    payload: ProblemUpdate,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    changes = payload.model_dump(by_alias=True, exclude_unset=True)
    return update_problem(store, ctx, problem_id, changes)


@router.post("/{problem_id}/finalize")
def finalize(
    problem_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    notifier: Notifier = Depends(get_event_notifier),
) -> dict[str, Any]:
    problem = finalize_problem(store, notifier, ctx, problem_id)
    return {"message": "Problem finalized successfully", "problem": problem}


def _attach(
    problem_id: str,
    slot: str,
    ctx: AccessContext,
    store: EntityStore,
    object_store: ObjectStore,
) -> dict[str, Any]:
    problem, url = attach_artifact(store, object_store, ctx, problem_id, slot)
    return {
        "message": f"{slot} attachment prepared",
        "presignedUrl": url,
        "problem": problem,
    }


@router.put("/{problem_id}/artifacts/{slot}")
def attach_artifact_endpoint(
    problem_id: str,
    slot: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    return _attach(problem_id, slot, ctx, store, object_store)


@router.put("/{problem_id}/lean4")
def attach_lean4(
    problem_id: str,
    ctx: AccessContext = Depends(get_access_context),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> dict[str, Any]:
    return _attach(problem_id, LEAN4_SLOT, ctx, store, object_store)
