import os
from collections.abc import Generator
from io import BytesIO
from typing import Any, NamedTuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "DEV")

from api.deps import (
    get_db,
    get_event_notifier,
    get_identity_provider,
    get_object_store,
)
from api.main import app
from core.identity import IdentityProvider
from core.notify import Notifier
from models import Base
from storage.entity_store import EntityStore
from storage.object_store import ObjectStore

BUCKETS = {
    "problems": "test-problems",
    "solutions": "test-solutions",
    "proof_code": "test-lean4",
    "exports": "test-exports",
}
TOPIC_ARN = "arn:aws:sns:us-east-1:000000000000:submissions"

ADMIN = {"X-User-Id": "u-admin", "X-Username": "admin", "X-User-Email": "admin@example.com"}
ALICE = {"X-User-Id": "u-alice", "X-Username": "alice", "X-User-Email": "alice@example.com"}
BOB = {"X-User-Id": "u-bob", "X-Username": "bob"}
CAROL = {"X-User-Id": "u-carol", "X-Username": "carol"}


class FakeS3Client:
    def __init__(self) -> None:
        self.store: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}

    def put_object(
        self, Bucket: str, Key: str, Body: bytes, ContentType: str | None = None
    ) -> None:  # noqa: N803
        self.store[(Bucket, Key)] = Body
        if ContentType:
            self.content_types[(Bucket, Key)] = ContentType

    def get_object(self, Bucket: str, Key: str) -> dict:  # noqa: N803
        return {"Body": BytesIO(self.store[(Bucket, Key)])}

    def generate_presigned_url(
        self, operation: str, Params: dict, ExpiresIn: int
    ) -> str:  # noqa: N803
        return (
            f"https://{Params['Bucket']}.example.com/{Params['Key']}"
            f"?op={operation}&X-Amz-Expires={ExpiresIn}"
        )


class FakeCognito:
    def __init__(self, groups: dict[str, list[str]] | None = None) -> None:
        self.groups = groups or {}
        self.fail = False
        self.calls: list[str] = []

    def admin_list_groups_for_user(
        self, UserPoolId: str, Username: str, **kwargs: Any
    ) -> dict:  # noqa: N803
        self.calls.append(Username)
        if self.fail:
            raise RuntimeError("identity provider unavailable")
        return {"Groups": [{"GroupName": g} for g in self.groups.get(Username, [])]}


class FakeSNS:
    def __init__(self) -> None:
        self.published: list[dict] = []
        self.failures = 0

    def publish(self, **kwargs: Any) -> dict:
        if self.failures:
            self.failures -= 1
            raise RuntimeError("sns unavailable")
        self.published.append(kwargs)
        return {"MessageId": str(len(self.published))}


class FakeEvents:
    def __init__(self) -> None:
        self.entries: list[dict] = []
        self.failures = 0

    def put_events(self, Entries: list[dict]) -> dict:  # noqa: N803
        if self.failures:
            self.failures -= 1
            raise RuntimeError("eventbridge unavailable")
        self.entries.extend(Entries)
        return {"FailedEntryCount": 0}


class AppHarness(NamedTuple):
    client: TestClient
    s3: FakeS3Client
    cognito: FakeCognito
    sns: FakeSNS
    events: FakeEvents
    sessions: sessionmaker


def make_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def store() -> Generator[EntityStore, None, None]:
    TestingSessionLocal = sessionmaker(bind=make_engine())
    with TestingSessionLocal() as session:
        yield EntityStore(session)


@pytest.fixture
def test_app() -> Generator[AppHarness, None, None]:
    TestingSessionLocal = sessionmaker(bind=make_engine())

    s3 = FakeS3Client()
    object_store = ObjectStore(client=s3, buckets=dict(BUCKETS))
    cognito = FakeCognito({"admin": ["admin"], "alice": ["annotators"]})
    identity = IdentityProvider(client=cognito, user_pool_id="us-east-1_test")
    sns = FakeSNS()
    events = FakeEvents()
    notifier = Notifier(
        sns_client=sns,
        events_client=events,
        topic_arn=TOPIC_ARN,
        event_bus_name="test-bus",
        event_source="mdf.submissions",
        max_retries=3,
        backoff_factor=0,
    )

    def override_get_db() -> Generator[Session, None, None]:
        with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_event_notifier] = lambda: notifier

    client = TestClient(app)

    try:
        yield AppHarness(client, s3, cognito, sns, events, TestingSessionLocal)
    finally:
        app.dependency_overrides.clear()


def create_dataset(client: TestClient, name: str = "Olympiad Algebra") -> str:
    resp = client.post(
        "/datasets", json={"name": name, "description": "test set"}, headers=ADMIN
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["datasetId"]


def add_member(
    client: TestClient, dataset_id: str, user: dict, role: str = "annotator"
) -> None:
    resp = client.post(
        f"/datasets/{dataset_id}/members",
        json={
            "userId": user["X-User-Id"],
            "username": user["X-Username"],
            "role": role,
        },
        headers=ADMIN,
    )
    assert resp.status_code == 201, resp.text


def create_problem(
    client: TestClient, dataset_id: str, user: dict, **fields: Any
) -> dict:
    body = {
        "problemText": "Prove that sqrt(2) is irrational.",
        "solutionText": "Assume p/q in lowest terms...",
        "labels": ["algebra"],
    }
    body.update(fields)
    resp = client.post(f"/datasets/{dataset_id}/problems", json=body, headers=user)
    assert resp.status_code == 201, resp.text
    return resp.json()["problem"]
