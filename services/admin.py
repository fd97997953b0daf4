from __future__ import annotations

import csv
import io
import json
import logging
from collections import Counter
from typing import Any, Literal

from fastapi import HTTPException

from core.lifecycle import (
    ACTION_OUTCOMES,
    InvalidTransition,
    ReviewAction,
    ReviewState,
    check_transition,
    current_state,
)
from core.notify import Notifier
from core.security.access import AccessContext
from observability.metrics import LIFECYCLE_TRANSITIONS
from services.notifications import notify_review_outcome
from services.problems import get_problem_or_404
from storage.entity_store import EntityStore, Item
from storage.keys import (
    DATASET_PREFIX,
    MEMBER_PREFIX,
    PROBLEM_PREFIX,
    PROFILE_SK,
    dataset_pk,
    utc_now,
)
from storage.object_store import EXPORTS, ObjectStore, export_key, signed_url

logger = logging.getLogger(__name__)

ExportFormat = Literal["json", "csv"]

EXPORT_FIELDS = [
    "problemId",
    "submittedBy",
    "email",
    "labels",
    "originality",
    "variationSource",
    "problemText",
    "solutionText",
    "s3Keys",
    "lean4",
    "attachments",
    "review",
    "createdAt",
    "updatedAt",
]

CONTENT_TYPES = {"json": "application/json", "csv": "text/csv"}


def review_problem(
    store: EntityStore,
    notifier: Notifier,
    ctx: AccessContext,
    problem_id: str | None,
    action: str | None,
    comments: str | None,
) -> tuple[Item, ReviewState]:
    ctx.require_admin()
    if not problem_id or action not in {a.value for a in ReviewAction}:
        raise HTTPException(
            status_code=400,
            detail="provide problemId and action (approve/reject)",
        )
    target = ACTION_OUTCOMES[ReviewAction(action)]
    problem = get_problem_or_404(store, problem_id)
    try:
        check_transition(current_state(problem), target)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    now = utc_now()
    updated = store.update(
        problem["pk"],
        problem["sk"],
        {
            "review": {
                "state": target.value,
                "by": ctx.user_id,
                "at": now,
                "comments": comments or None,
            },
            "reviewState": target.value,
            "updatedAt": now,
        },
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="problem not found")
    LIFECYCLE_TRANSITIONS.labels(state=target.value).inc()
    logger.info(
        "problem reviewed",
        extra={"problem_id": problem_id, "state": target.value, "user_id": ctx.user_id},
    )
    notify_review_outcome(notifier, updated, target.value, comments)
    return updated, target


def export_record(item: Item) -> dict[str, Any]:
    """Deterministic projection of a stored problem for export."""
    record = {name: item.get(name) for name in EXPORT_FIELDS}
    record["submittedBy"] = item.get("username") or item.get("submittedBy")
    return record


def _csv_value(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return value


def render_export(
    dataset_id: str, exported_by: str, exported_at: str, records: list[dict], fmt: str
) -> bytes:
    if fmt == "json":
        doc = {
            "datasetId": dataset_id,
            "exportedAt": exported_at,
            "exportedBy": exported_by,
            "problemCount": len(records),
            "problems": records,
        }
        return json.dumps(doc, indent=2).encode("utf-8")
    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=EXPORT_FIELDS, lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow({k: _csv_value(record[k]) for k in EXPORT_FIELDS})
    return out.getvalue().encode("utf-8")


def export_dataset(
    store: EntityStore,
    object_store: ObjectStore,
    ctx: AccessContext,
    dataset_id: str | None,
    fmt: str | None,
) -> dict[str, Any]:
    ctx.require_admin()
    if not dataset_id:
        raise HTTPException(status_code=400, detail="datasetId required")
    fmt = fmt or "json"
    if fmt not in CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="invalid format")
    problems = store.query(dataset_pk(dataset_id), PROBLEM_PREFIX)
    if not problems:
        raise HTTPException(status_code=404, detail="no problems found in dataset")
    exported_at = utc_now()
    records = [export_record(p) for p in problems]
    body = render_export(dataset_id, ctx.user_id, exported_at, records, fmt)
    key = export_key(dataset_id, exported_at, fmt)
    object_store.put_bytes(EXPORTS, key, body, CONTENT_TYPES[fmt])
    logger.info("exported %d problems from %s to %s", len(records), dataset_id, key)
    return {
        "message": "Export generated successfully",
        "downloadUrl": signed_url(object_store, EXPORTS, key),
        "exportKey": key,
        "problemCount": len(records),
    }


def compute_stats(store: EntityStore, ctx: AccessContext) -> dict[str, Any]:
    ctx.require_admin()
    datasets = store.scan(
        lambda item: item.get("sk") == PROFILE_SK,
        pk_prefix=DATASET_PREFIX,
        reason="stats_datasets",
    )
    problems = store.scan(sk_prefix=PROBLEM_PREFIX, reason="stats_problems")
    members = store.scan(sk_prefix=MEMBER_PREFIX, reason="stats_members")

    by_status: dict[str, int] = {state.value: 0 for state in ReviewState}
    by_label: Counter[str] = Counter()
    for problem in problems:
        state = (problem.get("review") or {}).get("state") or ReviewState.DRAFT.value
        by_status[state] = by_status.get(state, 0) + 1
        by_label.update(problem.get("labels") or [])
    return {
        "totalDatasets": len(datasets),
        "totalProblems": len(problems),
        "totalMembers": len({m.get("userId") for m in members if m.get("userId")}),
        "problemsByStatus": by_status,
        "problemsByLabel": dict(by_label),
    }


__all__ = [
    "EXPORT_FIELDS",
    "review_problem",
    "export_record",
    "render_export",
    "export_dataset",
    "compute_stats",
]
