from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from fastapi import HTTPException

from core.lifecycle import ReviewState
from core.security.access import AccessContext
from storage.entity_store import (
    LABEL_SEARCH_INDEX,
    REVIEW_QUEUE_INDEX,
    USER_SUBMISSIONS_INDEX,
    EntityStore,
    Item,
)
from storage.keys import PROBLEM_PREFIX, dataset_pk


@dataclass
class ProblemFilter:
    labels: list[str] = field(default_factory=list)
    user: str | None = None
    status: str | None = None
    dataset_id: str | None = None

    def matches(self, item: Item) -> bool:
        if not item.get("sk", "").startswith(PROBLEM_PREFIX):
            return False
        if self.labels and not set(self.labels).issubset(item.get("labels") or []):
            return False
        if self.user and item.get("submittedBy") != self.user:
            return False
        if self.status and (item.get("review") or {}).get("state") != self.status:
            return False
        if self.dataset_id and item.get("datasetId") != self.dataset_id:
            return False
        return True


def _only_visible(
    store: EntityStore, ctx: AccessContext, items: Iterable[Item]
) -> list[Item]:
    visible = ctx.visible_datasets(store)
    if visible is None:
        return list(items)
    return [item for item in items if item.get("datasetId") in visible]


def _valid_state(state: str) -> str:
    try:
        return ReviewState(state).value
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid status")


def problems_by_submitter(
    store: EntityStore, ctx: AccessContext, user_id: str
) -> list[Item]:
    return _only_visible(store, ctx, store.query_index(USER_SUBMISSIONS_INDEX, user_id))


def problems_by_state(store: EntityStore, ctx: AccessContext, state: str) -> list[Item]:
    return _only_visible(store, ctx, store.query_index(REVIEW_QUEUE_INDEX, _valid_state(state)))


def problems_by_label(store: EntityStore, ctx: AccessContext, label: str) -> list[Item]:
    return _only_visible(store, ctx, store.query_index(LABEL_SEARCH_INDEX, label))


def search_problems(
    store: EntityStore, ctx: AccessContext, criteria: ProblemFilter
) -> list[Item]:
    """Composite filter over problems.

    No single index covers the combined predicate, so the dataset partition
    is queried when known and the whole table is scanned otherwise.
    """
    if criteria.status:
        _valid_state(criteria.status)
    if criteria.dataset_id:
        candidates = store.query(dataset_pk(criteria.dataset_id), PROBLEM_PREFIX)
        results = [item for item in candidates if criteria.matches(item)]
    else:
        results = store.scan(
            criteria.matches, sk_prefix=PROBLEM_PREFIX, reason="problem_search"
        )
    return _only_visible(store, ctx, results)


__all__ = [
    "ProblemFilter",
    "problems_by_submitter",
    "problems_by_state",
    "problems_by_label",
    "search_problems",
]
