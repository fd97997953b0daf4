from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import HTTPException

from core.lifecycle import (
    InvalidTransition,
    ReviewState,
    check_transition,
    current_state,
    empty_review,
    primary_label,
)
from core.notify import Notifier
from core.security.access import AccessContext
from observability.metrics import LIFECYCLE_TRANSITIONS
from services.datasets import get_dataset_or_404
from services.notifications import notify_submission_finalized
from storage.entity_store import EntityStore, Item
from storage.keys import (
    LOCATOR_SK,
    PROBLEM_PREFIX,
    PROFILE_SK,
    dataset_pk,
    locator_pk,
    problem_sk,
    utc_now,
)
from storage.object_store import (
    PROBLEMS,
    PROOF_CODE,
    SOLUTIONS,
    ObjectStore,
    problem_file_key,
    signed_url,
)

logger = logging.getLogger(__name__)

LEAN4_SLOT = "lean4"

# slot -> (bucket slot, filename, content type)
ARTIFACT_SLOTS: dict[str, tuple[str, str, str]] = {
    "problemLatex": (PROBLEMS, "problem.tex", "text/plain"),
    "solutionLatex": (SOLUTIONS, "solution.tex", "text/plain"),
    "problemMarkdown": (PROBLEMS, "problem.md", "text/markdown"),
    "solutionMarkdown": (SOLUTIONS, "solution.md", "text/markdown"),
    LEAN4_SLOT: (PROOF_CODE, "code.lean", "text/plain"),
}
FILE_SLOTS = [slot for slot in ARTIFACT_SLOTS if slot != LEAN4_SLOT]

EDITABLE_FIELDS = {
    "problemText",
    "solutionText",
    "labels",
    "originality",
    "variationSource",
}


def find_problem(store: EntityStore, problem_id: str) -> Item | None:
    """Resolve a problem by id alone.

    The locator row gives the owning dataset; rows without one fall back to a
    scan on the sort key.
    """
    locator = store.get(locator_pk(problem_id), LOCATOR_SK)
    if locator is not None:
        problem = store.get(dataset_pk(locator["datasetId"]), problem_sk(problem_id))
        if problem is not None:
            return problem
    matches = store.scan(
        lambda item: item.get("sk") == problem_sk(problem_id),
        sk_prefix=problem_sk(problem_id),
        reason="problem_by_id",
    )
    return matches[0] if matches else None


def get_problem_or_404(store: EntityStore, problem_id: str) -> Item:
    problem = find_problem(store, problem_id)
    if problem is None:
        raise HTTPException(status_code=404, detail="problem not found")
    return problem


def _require_text(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=f"{field} is required")
    return value


def _transition(problem: Item, target: ReviewState) -> None:
    try:
        check_transition(current_state(problem), target)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


def create_problem(
    store: EntityStore,
    object_store: ObjectStore,
    ctx: AccessContext,
    dataset_id: str,
    payload: dict[str, Any],
) -> tuple[Item, dict[str, str]]:
    ctx.require_member(store, dataset_id)
    problem_text = _require_text(payload, "problemText")
    solution_text = _require_text(payload, "solutionText")
    get_dataset_or_404(store, dataset_id)

    problem_id = str(uuid.uuid4())
    labels = list(payload.get("labels") or [])
    now = utc_now()
    s3_keys: dict[str, str | None] = {slot: None for slot in FILE_SLOTS}
    presigned: dict[str, str] = {}
    if payload.get("requestPresignedUrls"):
        for slot in FILE_SLOTS:
            bucket, filename, content_type = ARTIFACT_SLOTS[slot]
            key = problem_file_key(dataset_id, problem_id, filename)
            presigned[slot] = signed_url(
                object_store, bucket, key, "put", content_type=content_type
            )
            s3_keys[slot] = key

    problem = {
        "pk": dataset_pk(dataset_id),
        "sk": problem_sk(problem_id),
        "problemId": problem_id,
        "datasetId": dataset_id,
        "submittedBy": ctx.caller.user_id,
        "username": ctx.caller.username,
        "email": ctx.caller.email,
        "labels": labels,
        "originality": payload.get("originality") or "original",
        "variationSource": payload.get("variationSource"),
        "problemText": problem_text,
        "solutionText": solution_text,
        "s3Keys": s3_keys,
        "lean4": {"attached": False, "s3Key": None},
        "attachments": {},
        "review": empty_review(),
        "createdAt": now,
        "updatedAt": now,
        "reviewState": ReviewState.DRAFT.value,
        "label": primary_label(labels),
    }
    store.put(problem)
    store.put(
        {
            "pk": locator_pk(problem_id),
            "sk": LOCATOR_SK,
            "problemId": problem_id,
            "datasetId": dataset_id,
        }
    )
    store.increment(dataset_pk(dataset_id), PROFILE_SK, "problemCount")
    LIFECYCLE_TRANSITIONS.labels(state=ReviewState.DRAFT.value).inc()
    logger.info(
        "problem created",
        extra={
            "problem_id": problem_id,
            "dataset_id": dataset_id,
            "user_id": ctx.user_id,
        },
    )
    return problem, presigned


def read_urls(object_store: ObjectStore, problem: Item) -> dict[str, str]:
    urls: dict[str, str] = {}
    for slot, key in (problem.get("s3Keys") or {}).items():
        if key and slot in ARTIFACT_SLOTS:
            urls[slot] = signed_url(object_store, ARTIFACT_SLOTS[slot][0], key)
    lean4 = problem.get("lean4") or {}
    if lean4.get("s3Key"):
        urls[LEAN4_SLOT] = signed_url(object_store, PROOF_CODE, lean4["s3Key"])
    return urls


def get_problem(
    store: EntityStore, object_store: ObjectStore, ctx: AccessContext, problem_id: str
) -> Item:
    problem = get_problem_or_404(store, problem_id)
    ctx.require_member(store, problem["datasetId"])
    return {**problem, "signedUrls": read_urls(object_store, problem)}


def update_problem(
    store: EntityStore, ctx: AccessContext, problem_id: str, changes: dict[str, Any]
) -> Item:
    problem = get_problem_or_404(store, problem_id)
    ctx.require_member(store, problem["datasetId"])
    if current_state(problem) is not ReviewState.DRAFT:
        raise HTTPException(status_code=409, detail="only draft problems can be edited")
    mutations = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
    for field in ("problemText", "solutionText"):
        if field in mutations:
            _require_text(mutations, field)
    if "labels" in mutations:
        mutations["labels"] = list(mutations["labels"] or [])
        mutations["label"] = primary_label(mutations["labels"])
    mutations["updatedAt"] = utc_now()
    updated = store.update(problem["pk"], problem["sk"], mutations)
    if updated is None:
        raise HTTPException(status_code=404, detail="problem not found")
    return updated


def finalize_problem(
    store: EntityStore, notifier: Notifier, ctx: AccessContext, problem_id: str
) -> Item:
    problem = get_problem_or_404(store, problem_id)
    ctx.require_member(store, problem["datasetId"])
    _transition(problem, ReviewState.PENDING)
    now = utc_now()
    updated = store.update(
        problem["pk"],
        problem["sk"],
        {
            "review.state": ReviewState.PENDING.value,
            "review.at": now,
            "reviewState": ReviewState.PENDING.value,
            "updatedAt": now,
        },
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="problem not found")
    LIFECYCLE_TRANSITIONS.labels(state=ReviewState.PENDING.value).inc()
    logger.info(
        "problem finalized",
        extra={
            "problem_id": problem_id,
            "dataset_id": problem["datasetId"],
            "user_id": ctx.user_id,
        },
    )
    notify_submission_finalized(
        notifier, updated, updated.get("username") or ctx.caller.username
    )
    return updated


def attach_artifact(
    store: EntityStore,
    object_store: ObjectStore,
    ctx: AccessContext,
    problem_id: str,
    slot: str,
) -> tuple[Item, str]:
    if slot not in ARTIFACT_SLOTS:
        raise HTTPException(status_code=400, detail="invalid artifact slot")
    problem = get_problem_or_404(store, problem_id)
    ctx.require_member(store, problem["datasetId"])
    bucket, filename, content_type = ARTIFACT_SLOTS[slot]
    key = problem_file_key(problem["datasetId"], problem_id, filename)
    url = signed_url(object_store, bucket, key, "put", content_type=content_type)
    now = utc_now()
    if slot == LEAN4_SLOT:
        mutations: dict[str, Any] = {
            "lean4": {"attached": True, "s3Key": key, "attachedAt": now}
        }
    else:
        mutations = {
            f"s3Keys.{slot}": key,
            f"attachments.{slot}": {"attached": True, "s3Key": key, "attachedAt": now},
        }
    mutations["updatedAt"] = now
    updated = store.update(problem["pk"], problem["sk"], mutations)
    if updated is None:
        raise HTTPException(status_code=404, detail="problem not found")
    return updated, url


def list_dataset_problems(
    store: EntityStore, ctx: AccessContext, dataset_id: str
) -> list[Item]:
    ctx.require_member(store, dataset_id)
    get_dataset_or_404(store, dataset_id)
    return store.query(dataset_pk(dataset_id), PROBLEM_PREFIX)


__all__ = [
    "ARTIFACT_SLOTS",
    "LEAN4_SLOT",
    "find_problem",
    "get_problem_or_404",
    "create_problem",
    "get_problem",
    "read_urls",
    "update_problem",
    "finalize_problem",
    "attach_artifact",
    "list_dataset_problems",
]
