from __future__ import annotations

import logging
from dataclasses import dataclass

from cibot.models import WorkflowRunContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: str | None = None


def evaluate_eligibility(ctx: WorkflowRunContext) -> EligibilityDecision:
    """
    Decide whether a workflow run qualifies for an automated fix.

    Checks run in a fixed order and the first failing one wins:
    single associated PR, same-repo (non-fork) head, failed conclusion,
    PR targeting the default branch.
    """
    if len(ctx.pull_requests) != 1:
        return EligibilityDecision(
            False,
            f"Workflow run is associated with {len(ctx.pull_requests)} pull requests (expected exactly 1)",
        )

    pr = ctx.pull_requests[0]
    head_repo = pr.head.repo
    base_repo = pr.base.repo
    head_id = head_repo.id if head_repo else None
    base_id = base_repo.id if base_repo else None
    if head_id != base_id:
        return EligibilityDecision(
            False,
            f"PR originates from a fork: base repo is {base_repo.name if base_repo else None}, "
            f"but PR branch is from {head_repo.name if head_repo else None}",
        )

    if ctx.conclusion != "failure":
        return EligibilityDecision(False, f"Workflow run did not fail (conclusion {ctx.conclusion})")

    if pr.base.ref != ctx.default_branch:
        return EligibilityDecision(
            False,
            f"PR is not targeting the default branch: PR base is {pr.base.ref}, "
            f"but default branch is {ctx.default_branch}",
        )

    return EligibilityDecision(True)


def is_pull_request_eligible_for_fix(ctx: WorkflowRunContext) -> bool:
    decision = evaluate_eligibility(ctx)
    if not decision.eligible:
        logger.warning("%s; skipping action.", decision.reason)
        return False
    logger.info("PR #%s is eligible for fix.", ctx.pull_requests[0].number)
    return True
