from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

import httpx

from cibot.context.artifacts import collect_artifact_contents, read_optional_text
from cibot.context.jobs import fetch_job_status, filter_failed_jobs
from cibot.errors import JobFetchError
from cibot.feedback.recorder import FeedbackRecorder
from cibot.gitops.github_rest import GitHubRestClient
from cibot.gitops.pr_creator import FollowupPrCreator, FollowupPrResult
from cibot.llm.tensorzero_client import TensorZeroClient
from cibot.models import ParsedLlmReply, PromptContext, WorkflowRunContext
from cibot.policy.eligibility import is_pull_request_eligible_for_fix
from cibot.prompting.response import parse_llm_reply
from cibot.prompting.template import SYSTEM_PROMPT, render_pr_patch_prompt
from cibot.reports.render import render_issue_comment
from cibot.settings import Settings
from cibot.telemetry.artifacts import ARTIFACT_SEPARATOR, RunArtifacts
from cibot.telemetry.audit import AuditLogger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateOutcome:
    status: Literal["skipped", "no_output", "completed"]
    reason: Optional[str] = None
    inference_id: Optional[str] = None
    reply: ParsedLlmReply = field(default_factory=ParsedLlmReply)
    followup: Optional[FollowupPrResult] = None
    recorded: bool = False
    comment_body: str = ""
    comment_id: Optional[int] = None


async def generate_pr_patch(
    *,
    settings: Settings,
    ctx: WorkflowRunContext,
    owner: str,
    repo: str,
    token: str,
    github: GitHubRestClient,
    llm: TensorZeroClient,
    recorder: FeedbackRecorder,
    audit: AuditLogger | None = None,
    artifacts: RunArtifacts | None = None,
    event_payload: Optional[Dict[str, Any]] = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> GenerateOutcome:
    """
    Failing run -> evidence -> prompt -> model -> optional follow-up PR ->
    inference record -> one comment on the original PR.

    Job fetch and inference failures propagate. Follow-up PR failures and
    bookkeeping failures degrade to a comment-only reply.
    """
    audit = audit or AuditLogger()
    artifacts = artifacts or RunArtifacts()
    cid = audit.new_correlation_id()

    if event_payload is not None:
        artifacts.write_json("payload.json", event_payload)

    if not is_pull_request_eligible_for_fix(ctx):
        audit.write(cid, "pipeline.skipped", {"run_id": ctx.run_id})
        return GenerateOutcome(status="skipped", reason="ineligible")
    original = ctx.pull_requests[0]
    audit.write(cid, "pipeline.eligible", {"run_id": ctx.run_id, "pr_number": original.number})

    if not ctx.jobs_url:
        raise JobFetchError("Missing jobs_url from workflow_run")
    logger.info("Fetching jobs from: %s", ctx.jobs_url)
    jobs = await fetch_job_status(ctx.jobs_url, token, timeout_s=settings.http_timeout_s, transport=http_transport)
    artifacts.write_json("workflow-jobs.json", jobs.model_dump(mode="json"))
    failed_jobs = filter_failed_jobs(jobs)
    audit.write(cid, "evidence.jobs", {"failed_jobs": [j.name for j in failed_jobs]})

    diff_summary = read_optional_text(settings.diff_summary_path, what="diff summary")
    full_diff = read_optional_text(settings.full_diff_path, what="full diff")
    artifact_contents = collect_artifact_contents(settings.input_logs_dir)
    audit.write(cid, "evidence.collected", {"artifacts": [a.label for a in artifact_contents]})

    prompt = render_pr_patch_prompt(
        PromptContext(
            repo_full_name=f"{owner}/{repo}",
            branch=ctx.head_branch,
            pr_number=original.number,
            diff_summary=diff_summary,
            full_diff=full_diff,
            artifact_contents=artifact_contents,
            failed_jobs=failed_jobs,
        )
    )
    artifacts.write_text("llm-prompt.txt", prompt)
    artifacts.write_text(
        "artifact-contents.txt",
        ARTIFACT_SEPARATOR.join(f"## {a.label}\n\n{a.content}" for a in artifact_contents),
    )
    audit.write(cid, "prompt.rendered", {"chars": len(prompt)})

    response = await llm.chat(system_prompt=SYSTEM_PROMPT, user_prompt=prompt)
    artifacts.write_json("llm-response.json", response.payload)
    reply = parse_llm_reply(response.raw)
    audit.write(
        cid,
        "llm.parsed",
        {
            "inference_id": response.inference_id,
            "has_comment": bool(reply.comment.strip()),
            "has_command": bool(reply.command.strip()),
            "has_diff": bool(reply.diff.strip()),
        },
    )

    if not reply.comment.strip() and not reply.diff.strip():
        logger.info("LLM response contained neither comments nor diff; finishing without changes.")
        return GenerateOutcome(status="no_output", inference_id=response.inference_id, reply=reply)

    pull_request = await github.get_pull_request(number=original.number)

    followup: Optional[FollowupPrResult] = None
    if reply.diff.strip():
        creator = FollowupPrCreator(
            github=github,
            token=token,
            owner=owner,
            repo=repo,
            git_host=settings.git_host,
            audit=audit,
            artifacts=artifacts,
        )
        followup = await creator.create(pull_request=pull_request, diff=reply.diff, correlation_id=cid)

    recorded = False
    followup_pr = followup.pr if followup and followup.ok else None
    if followup_pr:
        recorded = await recorder.record(
            inference_id=response.inference_id,
            followup_pr_id=followup_pr.id,
            original_pr_url=pull_request.html_url,
        )

    body = render_issue_comment(comment=reply.comment, command=reply.command, followup=followup_pr)
    comment_id: Optional[int] = None
    if body:
        comment_id = await github.create_issue_comment(number=original.number, body=body)
        audit.write(cid, "comment.posted", {"pr_number": original.number, "comment_id": comment_id})

    return GenerateOutcome(
        status="completed",
        inference_id=response.inference_id,
        reply=reply,
        followup=followup,
        recorded=recorded,
        comment_body=body,
        comment_id=comment_id,
    )


async def close_pr_feedback(
    *,
    settings: Settings,
    pull_request_id: int,
    merged: bool,
    llm: TensorZeroClient,
    recorder: FeedbackRecorder,
) -> int:
    """Report a closed follow-up PR's outcome back to the gateway."""
    return await recorder.report_outcome(
        client=llm,
        pull_request_id=pull_request_id,
        merged=merged,
        metric_name=settings.feedback_metric_name,
    )
