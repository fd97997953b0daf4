from __future__ import annotations

import enum
from typing import Any


class ReviewState(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


ACTION_OUTCOMES = {
    ReviewAction.APPROVE: ReviewState.APPROVED,
    ReviewAction.REJECT: ReviewState.REJECTED,
}

TRANSITIONS: dict[ReviewState, frozenset[ReviewState]] = {
    ReviewState.DRAFT: frozenset({ReviewState.PENDING}),
    ReviewState.PENDING: frozenset({ReviewState.APPROVED, ReviewState.REJECTED}),
    ReviewState.APPROVED: frozenset(),
    ReviewState.REJECTED: frozenset(),
}

TERMINAL = frozenset({ReviewState.APPROVED, ReviewState.REJECTED})

UNTAGGED = "untagged"


class InvalidTransition(Exception):
    def __init__(self, current: ReviewState, target: ReviewState) -> None:
        super().__init__(f"cannot move from {current.value} to {target.value}")
        self.current = current
        self.target = target


def current_state(problem: dict[str, Any]) -> ReviewState:
    review = problem.get("review") or {}
    return ReviewState(review.get("state") or ReviewState.DRAFT.value)


def check_transition(current: ReviewState, target: ReviewState) -> None:
    """Raise ``InvalidTransition`` unless ``current -> target`` is allowed.

    A reviewed problem may be reviewed again with the same outcome; that is
    treated as an overwrite of the review record.
    """
    if target in TRANSITIONS[current]:
        return
    if current in TERMINAL and current == target:
        return
    raise InvalidTransition(current, target)


def empty_review() -> dict[str, Any]:
    return {"state": ReviewState.DRAFT.value, "by": None, "at": None, "comments": None}


def primary_label(labels: list[str] | None) -> str:
    return labels[0] if labels else UNTAGGED


__all__ = [
    "ReviewState",
    "ReviewAction",
    "ACTION_OUTCOMES",
    "TRANSITIONS",
    "TERMINAL",
    "UNTAGGED",
    "InvalidTransition",
    "current_state",
    "check_transition",
    "empty_review",
    "primary_label",
]
