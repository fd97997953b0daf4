from tests.conftest import ADMIN, ALICE, BOB, CAROL, add_member, create_dataset, create_problem


def _seed(test_app) -> dict:
    client = test_app.client
    ds_a = create_dataset(client, "A")
    ds_b = create_dataset(client, "B")
    add_member(client, ds_a, ALICE)
    add_member(client, ds_a, BOB)
    add_member(client, ds_b, CAROL)
    p1 = create_problem(client, ds_a, ALICE, labels=["algebra", "nt"])["problemId"]
    p2 = create_problem(client, ds_a, BOB, labels=["algebra"])["problemId"]
    p3 = create_problem(client, ds_b, CAROL, labels=["algebra"])["problemId"]
    client.post(f"/problems/{p1}/finalize", headers=ALICE)
    return {"ds_a": ds_a, "ds_b": ds_b, "p1": p1, "p2": p2, "p3": p3}


def _ids(resp) -> set[str]:
    assert resp.status_code == 200, resp.text
    return {p["problemId"] for p in resp.json()["problems"]}


def test_status_filter_excludes_other_datasets(test_app) -> None:
    seeded = _seed(test_app)
    client = test_app.client
    resp = client.post("/problems/search", json={"status": "pending"}, headers=BOB)
    assert _ids(resp) == {seeded["p1"]}
    resp = client.post("/problems/search", json={"status": "draft"}, headers=BOB)
    assert _ids(resp) == {seeded["p2"]}
    resp = client.post("/problems/search", json={"status": "draft"}, headers=CAROL)
    assert _ids(resp) == {seeded["p3"]}


def test_labels_must_all_match(test_app) -> None:
    seeded = _seed(test_app)
    client = test_app.client
    both = client.post("/problems/search", json={"labels": ["algebra", "nt"]}, headers=ADMIN)
    assert _ids(both) == {seeded["p1"]}
    one = client.post("/problems/search", json={"labels": ["algebra"]}, headers=ADMIN)
    assert _ids(one) == {seeded["p1"], seeded["p2"], seeded["p3"]}


def test_user_and_dataset_filters(test_app) -> None:
    seeded = _seed(test_app)
    client = test_app.client
    by_user = client.post("/problems/search", json={"user": "u-bob"}, headers=ALICE)
    assert _ids(by_user) == {seeded["p2"]}
    by_ds = client.post(
        "/problems/search", json={"datasetId": seeded["ds_b"]}, headers=ADMIN
    )
    assert _ids(by_ds) == {seeded["p3"]}
    hidden = client.post(
        "/problems/search", json={"datasetId": seeded["ds_b"]}, headers=ALICE
    )
    assert _ids(hidden) == set()


def test_invalid_status_rejected(test_app) -> None:
    _seed(test_app)
    resp = test_app.client.post("/problems/search", json={"status": "done"}, headers=ADMIN)
    assert resp.status_code == 400


def test_label_index_respects_visibility(test_app) -> None:
    seeded = _seed(test_app)
    client = test_app.client
    assert _ids(client.get("/problems/labels/algebra", headers=CAROL)) == {seeded["p3"]}
    assert _ids(client.get("/problems/labels/algebra", headers=ADMIN)) == {
        seeded["p1"],
        seeded["p2"],
        seeded["p3"],
    }
    assert _ids(client.get("/problems/labels/geometry", headers=ADMIN)) == set()


def test_untagged_problems_share_a_label_bucket(test_app) -> None:
    client = test_app.client
    ds = create_dataset(client)
    pid = create_problem(client, ds, ADMIN, labels=[])["problemId"]
    assert _ids(client.get("/problems/labels/untagged", headers=ADMIN)) == {pid}
