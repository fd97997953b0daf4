from urllib.parse import parse_qs, urlparse

from storage.entity_store import EntityStore
from tests.conftest import ADMIN, ALICE, BOB, add_member, create_dataset, create_problem


def _setup(test_app) -> str:
    ds = create_dataset(test_app.client)
    add_member(test_app.client, ds, ALICE)
    return ds


def test_create_problem_defaults(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    problem = create_problem(client, ds, ALICE, labels=["algebra", "nt"])
    assert problem["datasetId"] == ds
    assert problem["submittedBy"] == "u-alice"
    assert problem["username"] == "alice"
    assert problem["email"] == "alice@example.com"
    assert problem["originality"] == "original"
    assert problem["review"] == {"state": "draft", "by": None, "at": None, "comments": None}
    assert problem["lean4"] == {"attached": False, "s3Key": None}
    assert set(problem["s3Keys"]) == {
        "problemLatex",
        "solutionLatex",
        "problemMarkdown",
        "solutionMarkdown",
    }
    assert client.get(f"/datasets/{ds}", headers=ALICE).json()["problemCount"] == 1


def test_create_problem_with_presigned_urls(test_app) -> None:
    ds = _setup(test_app)
    resp = test_app.client.post(
        f"/datasets/{ds}/problems",
        json={"problemText": "p", "solutionText": "s", "requestPresignedUrls": True},
        headers=ALICE,
    )
    assert resp.status_code == 201
    body = resp.json()
    pid = body["problem"]["problemId"]
    urls = body["presignedUrls"]
    assert set(urls) == set(body["problem"]["s3Keys"])
    latex = urlparse(urls["problemLatex"])
    assert latex.netloc == "test-problems.example.com"
    assert latex.path == f"/{ds}/{pid}/problem.tex"
    assert parse_qs(latex.query)["op"] == ["put_object"]
    assert body["problem"]["s3Keys"]["solutionMarkdown"] == f"{ds}/{pid}/solution.md"


def test_empty_text_rejected_and_nothing_persisted(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    resp = client.post(
        f"/datasets/{ds}/problems",
        json={"problemText": "", "solutionText": "s"},
        headers=ALICE,
    )
    assert resp.status_code == 400
    resp = client.post(
        f"/datasets/{ds}/problems", json={"problemText": "p"}, headers=ALICE
    )
    assert resp.status_code == 400
    assert client.get(f"/datasets/{ds}/problems", headers=ALICE).json()["problems"] == []
    assert client.get(f"/datasets/{ds}", headers=ALICE).json()["problemCount"] == 0


def test_non_member_cannot_create_or_read(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    resp = client.post(
        f"/datasets/{ds}/problems",
        json={"problemText": "p", "solutionText": "s"},
        headers=BOB,
    )
    assert resp.status_code == 403
    problem = create_problem(client, ds, ALICE)
    assert client.get(f"/problems/{problem['problemId']}", headers=BOB).status_code == 403


def test_get_problem_includes_signed_urls(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    resp = client.put(f"/problems/{pid}/artifacts/problemLatex", headers=ALICE)
    assert resp.status_code == 200
    got = client.get(f"/problems/{pid}", headers=ALICE)
    assert got.status_code == 200
    urls = got.json()["signedUrls"]
    assert list(urls) == ["problemLatex"]
    assert parse_qs(urlparse(urls["problemLatex"]).query)["op"] == ["get_object"]
    assert client.get("/problems/unknown", headers=ALICE).status_code == 404


def test_lifecycle_finalize_then_review(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]

    resp = client.post(f"/problems/{pid}/finalize", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Problem finalized successfully"
    problem = resp.json()["problem"]
    assert problem["review"]["state"] == "pending"
    assert problem["review"]["at"] is not None

    # only drafts may be finalized or edited
    assert client.post(f"/problems/{pid}/finalize", headers=ALICE).status_code == 409
    assert (
        client.patch(f"/problems/{pid}", json={"problemText": "x"}, headers=ALICE).status_code
        == 409
    )

    published = test_app.sns.published
    assert len(published) == 1
    assert published[0]["Subject"] == "New Submission Finalized"
    assert f"Problem ID: {pid}" in published[0]["Message"]
    assert "Submitted by: alice" in published[0]["Message"]
    assert test_app.events.entries[0]["DetailType"] == "New Submission Finalized"


def test_update_draft_problem(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    resp = client.patch(
        f"/problems/{pid}",
        json={"labels": ["geometry"], "originality": "variation", "variationSource": "IMO 2001"},
        headers=ALICE,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["labels"] == ["geometry"]
    assert body["label"] == "geometry"
    assert body["variationSource"] == "IMO 2001"
    assert (
        client.patch(f"/problems/{pid}", json={"solutionText": " "}, headers=ALICE).status_code
        == 400
    )
    geometry = client.get("/problems/labels/geometry", headers=ALICE).json()["problems"]
    assert [p["problemId"] for p in geometry] == [pid]


def test_attach_lean4_and_invalid_slot(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    resp = client.put(f"/problems/{pid}/lean4", headers=ALICE)
    assert resp.status_code == 200
    body = resp.json()
    assert body["problem"]["lean4"]["attached"] is True
    assert body["problem"]["lean4"]["s3Key"] == f"{ds}/{pid}/code.lean"
    assert urlparse(body["presignedUrl"]).netloc == "test-lean4.example.com"

    bad = client.put(f"/problems/{pid}/artifacts/video", headers=ALICE)
    assert bad.status_code == 400


def test_lookup_falls_back_to_scan_without_locator(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    with test_app.sessions() as session:
        assert EntityStore(session).delete(f"PROBLEM#{pid}", "LOCATOR")
    resp = client.get(f"/problems/{pid}", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["problemId"] == pid


def test_my_problems_lists_own_submissions(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    add_member(client, ds, BOB)
    mine = create_problem(client, ds, ALICE)["problemId"]
    create_problem(client, ds, BOB)
    resp = client.get("/problems/mine", headers=ALICE)
    assert [p["problemId"] for p in resp.json()["problems"]] == [mine]


def test_admin_reads_any_problem(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    assert client.get(f"/problems/{pid}", headers=ADMIN).status_code == 200


def test_attach_file_slot_records_attachment(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    resp = client.put(f"/problems/{pid}/artifacts/problemLatex", headers=ALICE)
    assert resp.status_code == 200
    problem = resp.json()["problem"]
    key = f"{ds}/{pid}/problem.tex"
    assert problem["s3Keys"]["problemLatex"] == key
    attachment = problem["attachments"]["problemLatex"]
    assert attachment["attached"] is True
    assert attachment["s3Key"] == key
    assert attachment["attachedAt"]
    assert "solutionLatex" not in problem["attachments"]
    assert problem["review"]["state"] == "draft"


def test_finalize_survives_notification_failure(test_app) -> None:
    client = test_app.client
    ds = _setup(test_app)
    pid = create_problem(client, ds, ALICE)["problemId"]
    test_app.sns.failures = 10
    test_app.events.failures = 10
    resp = client.post(f"/problems/{pid}/finalize", headers=ALICE)
    assert resp.status_code == 200
    assert test_app.sns.published == []
    problem = client.get(f"/problems/{pid}", headers=ALICE).json()
    assert problem["review"]["state"] == "pending"
    assert problem["reviewState"] == problem["review"]["state"]
