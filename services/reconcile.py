"""Repair derived rows that drifted from their source records.

Membership rows are authoritative for UserDatasetLink rows, child rows are
authoritative for the dataset counters, and problem rows for their locators.
"""

from __future__ import annotations

import logging
from collections import Counter

from observability.metrics import RECONCILE_REPAIRS
from storage.entity_store import EntityStore
from storage.keys import (
    DATASET_PREFIX,
    LOCATOR_SK,
    MEMBER_PREFIX,
    PROBLEM_PREFIX,
    PROFILE_SK,
    USER_PREFIX,
    dataset_pk,
    link_sk,
    locator_pk,
    member_sk,
    strip_prefix,
    user_pk,
)

logger = logging.getLogger(__name__)


def _repair(report: Counter[str], kind: str) -> None:
    report[kind] += 1
    RECONCILE_REPAIRS.labels(kind=kind).inc()


def reconcile_memberships(store: EntityStore, report: Counter[str]) -> None:
    members = store.scan(sk_prefix=MEMBER_PREFIX, reason="reconcile_members")
    for member in members:
        dataset_id = strip_prefix(member["pk"], DATASET_PREFIX)
        user_id = member.get("userId") or strip_prefix(member["sk"], MEMBER_PREFIX)
        link = store.get(user_pk(user_id), link_sk(dataset_id))
        if link is not None and link.get("role") == member.get("role"):
            continue
        store.put(
            {
                "pk": user_pk(user_id),
                "sk": link_sk(dataset_id),
                "datasetId": dataset_id,
                "role": member.get("role"),
                "addedAt": member.get("addedAt"),
            }
        )
        _repair(report, "link_created" if link is None else "link_updated")

    links = store.scan(
        pk_prefix=USER_PREFIX, sk_prefix=DATASET_PREFIX, reason="reconcile_links"
    )
    for link in links:
        user_id = strip_prefix(link["pk"], USER_PREFIX)
        dataset_id = strip_prefix(link["sk"], DATASET_PREFIX)
        if store.get(dataset_pk(dataset_id), member_sk(user_id)) is None:
            store.delete(link["pk"], link["sk"])
            _repair(report, "link_deleted")


def reconcile_problems(store: EntityStore, report: Counter[str]) -> None:
    problems = store.scan(
        pk_prefix=DATASET_PREFIX, sk_prefix=PROBLEM_PREFIX, reason="reconcile_problems"
    )
    for problem in problems:
        problem_id = strip_prefix(problem["sk"], PROBLEM_PREFIX)
        dataset_id = strip_prefix(problem["pk"], DATASET_PREFIX)
        locator = store.get(locator_pk(problem_id), LOCATOR_SK)
        if locator is not None and locator.get("datasetId") == dataset_id:
            continue
        store.put(
            {
                "pk": locator_pk(problem_id),
                "sk": LOCATOR_SK,
                "problemId": problem_id,
                "datasetId": dataset_id,
            }
        )
        _repair(report, "locator_created")


def reconcile_counters(store: EntityStore, report: Counter[str]) -> None:
    profiles = store.scan(
        lambda item: item.get("sk") == PROFILE_SK,
        pk_prefix=DATASET_PREFIX,
        reason="reconcile_counters",
    )
    for profile in profiles:
        members = len(store.query(profile["pk"], MEMBER_PREFIX))
        problems = len(store.query(profile["pk"], PROBLEM_PREFIX))
        mutations = {}
        if profile.get("memberCount") != members:
            mutations["memberCount"] = members
        if profile.get("problemCount") != problems:
            mutations["problemCount"] = problems
        if mutations:
            store.update(profile["pk"], PROFILE_SK, mutations)
            _repair(report, "counter_fixed")


def reconcile(store: EntityStore) -> dict[str, int]:
    report: Counter[str] = Counter()
    reconcile_memberships(store, report)
    reconcile_problems(store, report)
    reconcile_counters(store, report)
    if report:
        logger.warning("reconciliation repaired %s", dict(report))
    return {
        "link_created": report["link_created"],
        "link_updated": report["link_updated"],
        "link_deleted": report["link_deleted"],
        "locator_created": report["locator_created"],
        "counter_fixed": report["counter_fixed"],
    }


__all__ = [
    "reconcile",
    "reconcile_memberships",
    "reconcile_problems",
    "reconcile_counters",
]
