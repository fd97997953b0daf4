from dataclasses import dataclass, field
from typing import Literal

import boto3  # type: ignore[import-untyped]
from botocore.client import BaseClient  # type: ignore[import-untyped]
from fastapi import HTTPException

from core.settings import Settings, get_settings

PROBLEMS = "problems"
SOLUTIONS = "solutions"
PROOF_CODE = "proof_code"
EXPORTS = "exports"

EXPORTS_PREFIX = "exports"

Operation = Literal["get", "put"]

_CLIENT_METHODS = {"get": "get_object", "put": "put_object"}


def problem_file_key(dataset_id: str, problem_id: str, filename: str) -> str:
    return f"{dataset_id}/{problem_id}/{filename}"


def proof_code_key(dataset_id: str, problem_id: str) -> str:
    return problem_file_key(dataset_id, problem_id, "code.lean")


def export_key(dataset_id: str, stamp: str, fmt: str) -> str:
    return f"{EXPORTS_PREFIX}/{dataset_id}/{stamp}-export.{fmt}"


def create_client(*, region: str, endpoint: str | None = None) -> BaseClient:
    return boto3.client("s3", region_name=region, endpoint_url=endpoint)


def buckets_from_settings(settings: Settings) -> dict[str, str]:
    return {
        PROBLEMS: settings.problems_bucket,
        SOLUTIONS: settings.solutions_bucket,
        PROOF_CODE: settings.proof_code_bucket,
        EXPORTS: settings.exports_bucket,
    }


@dataclass
class ObjectStore:
    """Blob store restricted to an allow-list of named buckets."""

    client: BaseClient
    buckets: dict[str, str] = field(default_factory=dict)

    def bucket(self, slot: str) -> str:
        try:
            return self.buckets[slot]
        except KeyError:
            raise HTTPException(status_code=403, detail="invalid bucket")

    def slot_for(self, bucket_name: str) -> str:
        for slot, name in self.buckets.items():
            if name == bucket_name:
                return slot
        raise HTTPException(status_code=403, detail="invalid bucket")

    def put_bytes(
        self,
        slot: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> None:
        self.client.put_object(
            Bucket=self.bucket(slot), Key=key, Body=data, ContentType=content_type
        )

    def get_bytes(self, slot: str, key: str) -> bytes:
        resp = self.client.get_object(Bucket=self.bucket(slot), Key=key)
        return resp["Body"].read()

    def presign(
        self,
        slot: str,
        key: str,
        operation: Operation,
        expiry: int,
        content_type: str | None = None,
    ) -> str:
        params = {"Bucket": self.bucket(slot), "Key": key}
        if operation == "put" and content_type:
            params["ContentType"] = content_type
        return self.client.generate_presigned_url(
            _CLIENT_METHODS[operation], Params=params, ExpiresIn=expiry
        )


def signed_url(
    store: "ObjectStore",
    slot: str,
    key: str,
    operation: Operation = "get",
    *,
    expiry: int | None = None,
    content_type: str | None = None,
) -> str:
    """Presign ``key`` with the configured expiry, clamped to the maximum."""
    settings = get_settings()
    exp = min(
        expiry or settings.signed_url_expiry_seconds,
        settings.signed_url_max_expiry_seconds,
    )
    return store.presign(slot, key, operation, exp, content_type=content_type)


__all__ = [
    "ObjectStore",
    "PROBLEMS",
    "SOLUTIONS",
    "PROOF_CODE",
    "EXPORTS",
    "create_client",
    "buckets_from_settings",
    "problem_file_key",
    "proof_code_key",
    "export_key",
    "signed_url",
]
