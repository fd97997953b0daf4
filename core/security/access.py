from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import HTTPException

from core.auth import Caller
from core.identity import IdentityProvider
from core.settings import get_settings
from storage.entity_store import USER_SUBMISSIONS_INDEX, EntityStore
from storage.keys import (
    DATASET_PREFIX,
    dataset_pk,
    member_sk,
    strip_prefix,
    user_pk,
)

logger = logging.getLogger(__name__)


def resolve_groups(identity: IdentityProvider, username: str) -> set[str]:
    """Return the caller's groups, or an empty set if the provider fails."""
    try:
        return identity.list_groups_for_user(username)
    except Exception:
        logger.warning("group lookup failed for %s", username, exc_info=True)
        return set()


def is_admin(identity: IdentityProvider, username: str) -> bool:
    return get_settings().admin_group in resolve_groups(identity, username)


def datasets_for(
    store: EntityStore, user_id: str, *, include_submissions: bool = False
) -> set[str]:
    """Dataset ids reachable by ``user_id`` through the reverse index.

    With ``include_submissions`` the datasets of the user's own problems are
    added from the submitter index.
    """
    datasets = {
        item["datasetId"]
        for item in store.query(user_pk(user_id), DATASET_PREFIX)
        if item.get("datasetId")
    }
    if include_submissions:
        for item in store.query_index(USER_SUBMISSIONS_INDEX, user_id):
            if item.get("datasetId"):
                datasets.add(item["datasetId"])
            elif item.get("pk", "").startswith(DATASET_PREFIX):
                datasets.add(strip_prefix(item["pk"], DATASET_PREFIX))
    return datasets


def can_access(
    store: EntityStore, user_id: str, dataset_id: str, is_admin: bool
) -> bool:
    if is_admin:
        return True
    return store.get(dataset_pk(dataset_id), member_sk(user_id)) is not None


@dataclass
class AccessContext:
    caller: Caller
    is_admin: bool
    groups: set[str] = field(default_factory=set)

    @property
    def user_id(self) -> str:
        return self.caller.user_id

    def require_admin(self) -> None:
        if not self.is_admin:
            raise HTTPException(status_code=403, detail="admin access required")

    def require_member(self, store: EntityStore, dataset_id: str) -> None:
        if not can_access(store, self.caller.user_id, dataset_id, self.is_admin):
            raise HTTPException(status_code=403, detail="forbidden")

    def visible_datasets(self, store: EntityStore) -> set[str] | None:
        """``None`` means unrestricted (admin)."""
        if self.is_admin:
            return None
        return datasets_for(store, self.caller.user_id)


def build_access_context(caller: Caller, identity: IdentityProvider) -> AccessContext:
    groups = resolve_groups(identity, caller.username)
    return AccessContext(
        caller=caller,
        is_admin=get_settings().admin_group in groups,
        groups=groups,
    )


__all__ = [
    "AccessContext",
    "build_access_context",
    "can_access",
    "datasets_for",
    "is_admin",
    "resolve_groups",
]
