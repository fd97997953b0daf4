from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import HTTPException

from core.auth import Caller
from core.security.access import AccessContext
from storage.entity_store import EntityStore, Item
from storage.keys import (
    DATASET_PREFIX,
    MEMBER_PREFIX,
    PROFILE_SK,
    dataset_pk,
    link_sk,
    member_sk,
    user_pk,
    utc_now,
)

logger = logging.getLogger(__name__)

ROLES = {"owner", "annotator"}


def get_dataset_or_404(store: EntityStore, dataset_id: str) -> Item:
    dataset = store.get(dataset_pk(dataset_id), PROFILE_SK)
    if dataset is None:
        raise HTTPException(status_code=404, detail="dataset not found")
    return dataset


def write_membership(
    store: EntityStore, dataset_id: str, user_id: str, username: str | None, role: str
) -> bool:
    """Write a Membership and its UserDatasetLink; True if the member is new.

    The two puts are adjacent but not atomic; reconciliation heals a missing
    link.
    """
    now = utc_now()
    existing = store.get(dataset_pk(dataset_id), member_sk(user_id))
    store.put(
        {
            "pk": dataset_pk(dataset_id),
            "sk": member_sk(user_id),
            "datasetId": dataset_id,
            "userId": user_id,
            "username": username,
            "role": role,
            "addedAt": existing["addedAt"] if existing else now,
        }
    )
    store.put(
        {
            "pk": user_pk(user_id),
            "sk": link_sk(dataset_id),
            "datasetId": dataset_id,
            "role": role,
            "addedAt": existing["addedAt"] if existing else now,
        }
    )
    return existing is None


def create_dataset(
    store: EntityStore, caller: Caller, name: str | None, description: str | None
) -> Item:
    if not name or not name.strip():
        raise HTTPException(status_code=400, detail="name required")
    dataset_id = str(uuid.uuid4())
    now = utc_now()
    store.put(
        {
            "pk": dataset_pk(dataset_id),
            "sk": PROFILE_SK,
            "datasetId": dataset_id,
            "name": name.strip(),
            "description": description or "",
            "createdBy": caller.user_id,
            "createdAt": now,
            "updatedAt": now,
            "problemCount": 0,
            "memberCount": 0,
        }
    )
    if write_membership(store, dataset_id, caller.user_id, caller.username, "owner"):
        store.increment(dataset_pk(dataset_id), PROFILE_SK, "memberCount")
    logger.info("dataset %s created by %s", dataset_id, caller.user_id)
    return get_dataset_or_404(store, dataset_id)


def update_dataset(
    store: EntityStore, dataset_id: str, changes: dict[str, Any]
) -> Item:
    get_dataset_or_404(store, dataset_id)
    mutations = {k: v for k, v in changes.items() if k in {"name", "description"}}
    if "name" in mutations:
        name = (mutations["name"] or "").strip()
        if not name:
            raise HTTPException(status_code=400, detail="name required")
        mutations["name"] = name
    mutations["updatedAt"] = utc_now()
    updated = store.update(dataset_pk(dataset_id), PROFILE_SK, mutations)
    if updated is None:
        raise HTTPException(status_code=404, detail="dataset not found")
    return updated


def list_datasets(store: EntityStore, ctx: AccessContext) -> list[Item]:
    if ctx.is_admin:
        return store.scan(
            lambda item: item.get("sk") == PROFILE_SK,
            pk_prefix=DATASET_PREFIX,
            reason="list_datasets",
        )
    datasets: list[Item] = []
    for dataset_id in sorted(ctx.visible_datasets(store) or ()):
        item = store.get(dataset_pk(dataset_id), PROFILE_SK)
        if item is not None:
            datasets.append(item)
    return datasets


def list_members(store: EntityStore, dataset_id: str) -> list[Item]:
    return store.query(dataset_pk(dataset_id), MEMBER_PREFIX)


def add_member(
    store: EntityStore,
    dataset_id: str,
    user_id: str | None,
    username: str | None,
    role: str | None,
) -> Item:
    if not user_id:
        raise HTTPException(status_code=400, detail="userId required")
    role = role or "annotator"
    if role not in ROLES:
        raise HTTPException(status_code=400, detail="invalid role")
    get_dataset_or_404(store, dataset_id)
    if write_membership(store, dataset_id, user_id, username, role):
        store.increment(dataset_pk(dataset_id), PROFILE_SK, "memberCount")
    logger.info("member %s added to %s as %s", user_id, dataset_id, role)
    member = store.get(dataset_pk(dataset_id), member_sk(user_id))
    if member is None:
        raise HTTPException(status_code=404, detail="member not found")
    return member


def remove_member(store: EntityStore, dataset_id: str, user_id: str | None) -> None:
    if not user_id:
        raise HTTPException(status_code=400, detail="userId required")
    removed = store.delete(dataset_pk(dataset_id), member_sk(user_id))
    link_removed = store.delete(user_pk(user_id), link_sk(dataset_id))
    if not removed and not link_removed:
        raise HTTPException(status_code=404, detail="member not found")
    if removed:
        store.increment(dataset_pk(dataset_id), PROFILE_SK, "memberCount", -1)
    logger.info("member %s removed from %s", user_id, dataset_id)


__all__ = [
    "ROLES",
    "get_dataset_or_404",
    "write_membership",
    "create_dataset",
    "update_dataset",
    "list_datasets",
    "list_members",
    "add_member",
    "remove_member",
]
