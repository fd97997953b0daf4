from __future__ import annotations

from typing import Any

from core.notify import Notifier


def notify_submission_finalized(
    notifier: Notifier, problem: dict[str, Any], username: str
) -> None:
    labels = problem.get("labels") or []
    message = (
        "New submission finalized:\n\n"
        f"Problem ID: {problem['problemId']}\n"
        f"Dataset: {problem['datasetId']}\n"
        f"Submitted by: {username}\n"
        f"Labels: {', '.join(labels) if labels else 'None'}"
    )
    notifier.publish(message, "New Submission Finalized")
    notifier.emit(
        "New Submission Finalized",
        {
            "problemId": problem["problemId"],
            "datasetId": problem["datasetId"],
            "submittedBy": problem.get("submittedBy"),
            "username": username,
            "labels": labels,
        },
    )


def notify_review_outcome(
    notifier: Notifier, problem: dict[str, Any], state: str, comments: str | None
) -> None:
    message = f"Your submission (Problem ID: {problem['problemId']}) has been {state}."
    if comments:
        message += f"\n\nComments: {comments}"
    notifier.publish(message, f"Submission {state}")
    notifier.emit(
        f"Submission {state}",
        {
            "problemId": problem["problemId"],
            "datasetId": problem.get("datasetId"),
            "submittedBy": problem.get("submittedBy"),
            "state": state,
        },
    )
