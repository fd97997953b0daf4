from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Iterable, Mapping

import sqlalchemy as sa
from sqlalchemy.orm import Session

from models import Entity, EntityType
from observability.metrics import STORE_SCAN_FALLBACKS
from storage.keys import (
    DATASET_PREFIX,
    LOCATOR_SK,
    MEMBER_PREFIX,
    PROBLEM_PREFIX,
    PROFILE_SK,
    USER_PREFIX,
)

logger = logging.getLogger(__name__)

Item = dict[str, Any]

USER_SUBMISSIONS_INDEX = "UserSubmissionsIndex"
REVIEW_QUEUE_INDEX = "ReviewQueueIndex"
LABEL_SEARCH_INDEX = "LabelSearchIndex"

INDEXES = {
    USER_SUBMISSIONS_INDEX: Entity.submitted_by,
    REVIEW_QUEUE_INDEX: Entity.review_state,
    LABEL_SEARCH_INDEX: Entity.label,
}


def entity_type_for(pk: str, sk: str) -> EntityType:
    if sk == LOCATOR_SK:
        return EntityType.PROBLEM_LOCATOR
    if sk.startswith(PROBLEM_PREFIX):
        return EntityType.PROBLEM
    if pk.startswith(DATASET_PREFIX):
        if sk == PROFILE_SK:
            return EntityType.DATASET
        if sk.startswith(MEMBER_PREFIX):
            return EntityType.MEMBERSHIP
    if pk.startswith(USER_PREFIX) and sk.startswith(DATASET_PREFIX):
        return EntityType.USER_DATASET_LINK
    return EntityType.UNKNOWN


def _project(row: Entity, item: Mapping[str, Any]) -> None:
    row.entity_type = entity_type_for(row.pk, row.sk).value
    row.submitted_by = item.get("submittedBy")
    row.review_state = item.get("reviewState")
    row.label = item.get("label")
    row.created_at = item.get("createdAt")


def _set_path(data: Item, path: str, value: Any) -> None:
    parts = path.split(".")
    target = data
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    target[parts[-1]] = value


class EntityStore:
    """Single-table key-value store over the ``entities`` table.

    Writes are committed per call; nothing here spans two keys atomically.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _row(self, pk: str, sk: str, *, for_update: bool = False) -> Entity | None:
        stmt = sa.select(Entity).where(Entity.pk == pk, Entity.sk == sk)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.scalar(stmt)

    @staticmethod
    def _item(row: Entity) -> Item:
        return copy.deepcopy(row.data)

    def get(self, pk: str, sk: str) -> Item | None:
        row = self._row(pk, sk)
        return self._item(row) if row is not None else None

    def put(self, item: Mapping[str, Any]) -> Item:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("item requires pk and sk")
        data = copy.deepcopy(dict(item))
        row = self._row(pk, sk)
        if row is None:
            row = Entity(pk=pk, sk=sk)
            self.db.add(row)
        row.data = data
        _project(row, data)
        self.db.commit()
        return copy.deepcopy(data)

    def delete(self, pk: str, sk: str) -> bool:
        row = self._row(pk, sk)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def update(self, pk: str, sk: str, mutations: Mapping[str, Any]) -> Item | None:
        """Apply ``mutations`` (dotted paths allowed) to one item."""
        row = self._row(pk, sk, for_update=True)
        if row is None:
            self.db.rollback()
            return None
        data = copy.deepcopy(row.data)
        for path, value in mutations.items():
            _set_path(data, path, value)
        row.data = data
        _project(row, data)
        self.db.commit()
        return copy.deepcopy(data)

    def increment(self, pk: str, sk: str, field: str, delta: int = 1) -> int | None:
        row = self._row(pk, sk, for_update=True)
        if row is None:
            self.db.rollback()
            return None
        data = copy.deepcopy(row.data)
        value = int(data.get(field) or 0) + delta
        data[field] = value
        row.data = data
        self.db.commit()
        return value

    def query(self, pk: str, sk_prefix: str = "") -> list[Item]:
        stmt = sa.select(Entity).where(Entity.pk == pk)
        if sk_prefix:
            stmt = stmt.where(Entity.sk.startswith(sk_prefix, autoescape=True))
        rows = self.db.scalars(stmt.order_by(Entity.sk)).all()
        return [self._item(r) for r in rows]

    def query_index(self, index_name: str, key: str) -> list[Item]:
        column = INDEXES.get(index_name)
        if column is None:
            raise ValueError(f"unknown index {index_name}")
        stmt = (
            sa.select(Entity)
            .where(column == key)
            .order_by(Entity.created_at, Entity.sk)
        )
        return [self._item(r) for r in self.db.scalars(stmt).all()]

    def scan(
        self,
        predicate: Callable[[Item], bool] | None = None,
        *,
        pk_prefix: str | None = None,
        sk_prefix: str | None = None,
        reason: str = "unspecified",
    ) -> list[Item]:
        """Full-table scan with an optional key-prefix filter and predicate."""
        STORE_SCAN_FALLBACKS.labels(reason=reason).inc()
        logger.debug("entity scan: %s", reason)
        stmt = sa.select(Entity)
        if pk_prefix:
            stmt = stmt.where(Entity.pk.startswith(pk_prefix, autoescape=True))
        if sk_prefix:
            stmt = stmt.where(Entity.sk.startswith(sk_prefix, autoescape=True))
        items: Iterable[Item] = (
            self._item(r) for r in self.db.scalars(stmt.order_by(Entity.pk, Entity.sk))
        )
        if predicate is None:
            return list(items)
        return [item for item in items if predicate(item)]


__all__ = [
    "EntityStore",
    "Item",
    "INDEXES",
    "USER_SUBMISSIONS_INDEX",
    "REVIEW_QUEUE_INDEX",
    "LABEL_SEARCH_INDEX",
    "entity_type_for",
]
