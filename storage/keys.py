"""Key layout of the shared entity table."""

from datetime import datetime, timezone

DATASET_PREFIX = "DATASET#"
USER_PREFIX = "USER#"
MEMBER_PREFIX = "MEMBER#"
PROBLEM_PREFIX = "PROBLEM#"
PROFILE_SK = "PROFILE"
LOCATOR_SK = "LOCATOR"


def dataset_pk(dataset_id: str) -> str:
    return f"{DATASET_PREFIX}{dataset_id}"


def user_pk(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def member_sk(user_id: str) -> str:
    return f"{MEMBER_PREFIX}{user_id}"


def link_sk(dataset_id: str) -> str:
    return f"{DATASET_PREFIX}{dataset_id}"


def problem_sk(problem_id: str) -> str:
    return f"{PROBLEM_PREFIX}{problem_id}"


def locator_pk(problem_id: str) -> str:
    return f"{PROBLEM_PREFIX}{problem_id}"


def strip_prefix(key: str, prefix: str) -> str:
    return key[len(prefix) :] if key.startswith(prefix) else key


def utc_now() -> str:
    """ISO-8601 UTC timestamp; lexical order equals chronological order."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


__all__ = [
    "DATASET_PREFIX",
    "USER_PREFIX",
    "MEMBER_PREFIX",
    "PROBLEM_PREFIX",
    "PROFILE_SK",
    "LOCATOR_SK",
    "dataset_pk",
    "user_pk",
    "member_sk",
    "link_sk",
    "problem_sk",
    "locator_pk",
    "strip_prefix",
    "utc_now",
]
