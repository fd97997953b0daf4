from tests.conftest import ADMIN, ALICE, add_member, create_dataset


def test_submission_flow_end_to_end(test_app) -> None:
    client = test_app.client
    ds = create_dataset(client, "D1")
    add_member(client, ds, ALICE)

    created = client.post(
        f"/datasets/{ds}/problems",
        json={"problemText": "2+2=?", "solutionText": "4"},
        headers=ALICE,
    )
    assert created.status_code == 201
    pid = created.json()["problem"]["problemId"]

    finalized = client.post(f"/problems/{pid}/finalize", headers=ALICE)
    assert finalized.json()["problem"]["review"]["state"] == "pending"
    queue = client.get("/admin/queue", headers=ADMIN).json()["problems"]
    assert [p["problemId"] for p in queue] == [pid]

    reviewed = client.post(
        "/admin/review",
        json={"problemId": pid, "action": "approve", "comments": "nice"},
        headers=ADMIN,
    )
    assert reviewed.status_code == 200

    stats = client.get("/admin/stats", headers=ADMIN).json()
    assert stats["totalProblems"] == 1
    assert stats["problemsByStatus"]["approved"] == 1

    problem = client.get(f"/problems/{pid}", headers=ALICE).json()
    assert problem["review"]["by"] == "u-admin"
    assert problem["review"]["comments"] == "nice"
    assert [e["DetailType"] for e in test_app.events.entries] == [
        "New Submission Finalized",
        "Submission approved",
    ]
