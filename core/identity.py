from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import boto3  # type: ignore[import-untyped]


def create_client(*, region: str) -> Any:
    return boto3.client("cognito-idp", region_name=region)


@dataclass
class IdentityProvider:
    """Group lookups against a Cognito user pool."""

    client: Any
    user_pool_id: str | None

    def list_groups_for_user(self, username: str) -> set[str]:
        if not self.user_pool_id:
            raise RuntimeError("user pool not configured")
        groups: set[str] = set()
        kwargs: dict[str, Any] = {
            "UserPoolId": self.user_pool_id,
            "Username": username,
        }
        while True:
            resp = self.client.admin_list_groups_for_user(**kwargs)
            groups.update(g["GroupName"] for g in resp.get("Groups", []))
            token = resp.get("NextToken")
            if not token:
                return groups
            kwargs["NextToken"] = token
