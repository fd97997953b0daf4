from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from api.deps import get_event_notifier, get_object_store, get_store, require_admin
from api.schemas import ExportPayload, ExportResponse, ReviewPayload, StatsResponse
from core.lifecycle import ReviewState
from core.notify import Notifier
from core.security.access import AccessContext
from services.admin import compute_stats, export_dataset, review_problem
from services.reconcile import reconcile
from services.search import problems_by_state
from storage.entity_store import EntityStore
from storage.object_store import ObjectStore

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/review")
def review(
    payload: ReviewPayload,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
    notifier: Notifier = Depends(get_event_notifier),
) -> dict[str, Any]:
    problem, state = review_problem(
        store, notifier, ctx, payload.problem_id, payload.action, payload.comments
    )
    return {
        "message": f"Problem {state.value} successfully",
        "problemId": problem["problemId"],
        "action": payload.action,
        "reviewedBy": ctx.user_id,
        "review": problem["review"],
    }


@router.post("/export", response_model=ExportResponse)
def export(
    payload: ExportPayload,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
    object_store: ObjectStore = Depends(get_object_store),
) -> ExportResponse:
    result = export_dataset(store, object_store, ctx, payload.dataset_id, payload.format)
    return ExportResponse.model_validate(result)


@router.get("/stats", response_model=StatsResponse)
def stats(
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> StatsResponse:
    return StatsResponse.model_validate(compute_stats(store, ctx))


@router.get("/queue")
def review_queue(
    state: str = ReviewState.PENDING.value,
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"problems": problems_by_state(store, ctx, state)}


@router.post("/reconcile")
def reconcile_endpoint(
    ctx: AccessContext = Depends(require_admin),
    store: EntityStore = Depends(get_store),
) -> dict[str, Any]:
    return {"repairs": reconcile(store)}
