from __future__ import annotations

import logging

import pytest

from cibot.models import WorkflowRunContext
from cibot.policy.eligibility import evaluate_eligibility, is_pull_request_eligible_for_fix


def _event(
    *,
    conclusion: str = "failure",
    head_repo_id: int = 1,
    base_repo_id: int = 1,
    base_ref: str = "main",
    default_branch: str = "main",
    n_prs: int = 1,
) -> dict:
    prs = [
        {
            "number": 42 + i,
            "head": {"ref": "feature", "repo": {"id": head_repo_id, "name": "head-repo"}},
            "base": {"ref": base_ref, "repo": {"id": base_repo_id, "name": "base-repo"}},
        }
        for i in range(n_prs)
    ]
    return {
        "workflow_run": {
            "id": 7,
            "conclusion": conclusion,
            "jobs_url": "https://api.github.com/repos/o/r/actions/runs/7/jobs",
            "head_branch": "feature",
            "pull_requests": prs,
        },
        "repository": {"default_branch": default_branch, "full_name": "o/r"},
    }


def test_eligible_failing_same_repo_pr_on_default_branch() -> None:
    ctx = WorkflowRunContext.from_event(_event())
    assert is_pull_request_eligible_for_fix(ctx) is True


@pytest.mark.parametrize("conclusion", ["success", "cancelled", "skipped", "timed_out", None])
def test_non_failure_conclusion_is_ineligible(conclusion) -> None:
    ctx = WorkflowRunContext.from_event(_event(conclusion=conclusion))
    assert is_pull_request_eligible_for_fix(ctx) is False


@pytest.mark.parametrize("conclusion", ["failure", "success"])
@pytest.mark.parametrize("base_ref", ["main", "release"])
def test_fork_is_ineligible_regardless_of_other_fields(conclusion, base_ref) -> None:
    ctx = WorkflowRunContext.from_event(_event(conclusion=conclusion, base_ref=base_ref, head_repo_id=2))
    d = evaluate_eligibility(ctx)
    assert d.eligible is False
    assert "fork" in (d.reason or "")


@pytest.mark.parametrize("n_prs", [0, 2])
def test_requires_exactly_one_pull_request(n_prs) -> None:
    ctx = WorkflowRunContext.from_event(_event(n_prs=n_prs))
    d = evaluate_eligibility(ctx)
    assert d.eligible is False
    assert "exactly 1" in (d.reason or "")


def test_pr_not_targeting_default_branch_is_ineligible() -> None:
    ctx = WorkflowRunContext.from_event(_event(base_ref="release"))
    d = evaluate_eligibility(ctx)
    assert d.eligible is False
    assert "default branch" in (d.reason or "")


def test_first_failing_check_wins_and_is_logged(caplog) -> None:
    # Fork and wrong conclusion at once: the fork check runs first.
    ctx = WorkflowRunContext.from_event(_event(head_repo_id=9, conclusion="success"))
    with caplog.at_level(logging.WARNING, logger="cibot.policy.eligibility"):
        assert is_pull_request_eligible_for_fix(ctx) is False
    assert len(caplog.records) == 1
    assert "fork" in caplog.records[0].getMessage()


def test_missing_repo_ids_on_both_sides_is_not_a_fork() -> None:
    event = _event()
    pr = event["workflow_run"]["pull_requests"][0]
    pr["head"] = {"ref": "feature"}
    pr["base"] = {"ref": "main"}
    d = evaluate_eligibility(WorkflowRunContext.from_event(event))
    assert d.eligible is True


def test_missing_head_repo_id_with_known_base_is_a_fork() -> None:
    event = _event()
    event["workflow_run"]["pull_requests"][0]["head"] = {"ref": "feature"}
    d = evaluate_eligibility(WorkflowRunContext.from_event(event))
    assert d.eligible is False
    assert "fork" in (d.reason or "")
