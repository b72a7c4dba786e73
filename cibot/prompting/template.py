from __future__ import annotations

from typing import List

from cibot.models import FailedJobSummary, PromptContext
from cibot.prompting.response import COMMAND_TAG, COMMENTS_TAG, DIFF_TAG


SYSTEM_PROMPT = (
    "You are a meticulous senior engineer who produces concise plans and clean patches "
    "to repair failing pull requests."
)

UNKNOWN = "(unknown)"
NO_FAILED_JOBS = "No failing jobs were detected in the most recent run."
NO_DIFF_SUMMARY = "Diff summary not supplied."
NO_FULL_DIFF = "Full diff not supplied."
NO_ARTIFACTS = "No artifacts were available from the failing run."

OUTPUT_CONTRACT = f"""Your response should contain the following:

* a comment about the failure to be posted to the original PR as a comment. Include the comment in the comments block like this:

<{COMMENTS_TAG}>
Comments about the failure.
</{COMMENTS_TAG}>

* if the failure can be fixed by the user running a command, write a comment that includes the command and its expected output. Include the comment in the comments block, and wrap the command itself like this:

<{COMMAND_TAG}>
the command to run
</{COMMAND_TAG}>

* if the failure is due to an issue in the code, provide a unified diff patch that applies those fixes. Your diff will be opened as a new PR against the original PR branch.
The diff should be wrapped in a block like this:

<{DIFF_TAG}>
Verbatim diff that you generated that can be applied as a patch to the original PR branch.
</{DIFF_TAG}>

If there is nothing to fix, only write a comment about the failure."""


def _render_failed_jobs(failed_jobs: List[FailedJobSummary]) -> List[str]:
    lines = ["## Failed Jobs"]
    if not failed_jobs:
        lines.append(NO_FAILED_JOBS)
        return lines
    for job in failed_jobs:
        line = f"- {job.name} (conclusion: {job.conclusion or 'unknown'})"
        if job.html_url:
            line += f" - {job.html_url}"
        lines.append(line)
        if job.failed_steps:
            lines.append("  Failed steps:")
            for step in job.failed_steps:
                detail = f"status: {step.status}"
                if step.conclusion:
                    detail += f", conclusion: {step.conclusion}"
                lines.append(f"  * {step.name} ({detail})")
    return lines


def render_pr_patch_prompt(ctx: PromptContext) -> str:
    """
    Render the user prompt for a failing PR. Pure: the same context always
    yields the same text.
    """
    lines: List[str] = []
    lines.append(
        "You are an expert software engineer helping to craft a follow-up pull request "
        "that fixes CI failures in the original PR."
    )
    lines.append("")
    lines.append(f"Repository: {ctx.repo_full_name}")
    lines.append(f"Target Branch: {ctx.branch or UNKNOWN}")
    lines.append(f"Original PR: {f'#{ctx.pr_number}' if ctx.pr_number else UNKNOWN}")
    lines.append("")

    lines.extend(_render_failed_jobs(ctx.failed_jobs))
    lines.append("")

    lines.append("## Diff Summary")
    lines.append(ctx.diff_summary.strip() if ctx.diff_summary and ctx.diff_summary.strip() else NO_DIFF_SUMMARY)
    lines.append("")

    lines.append("## Full Diff")
    lines.append(ctx.full_diff.rstrip() if ctx.full_diff and ctx.full_diff.strip() else NO_FULL_DIFF)
    lines.append("")

    lines.append("## Failure Artifacts")
    if ctx.artifact_contents:
        for art in ctx.artifact_contents:
            lines.append(f"### {art.label}")
            lines.append("")
            lines.append(art.content.rstrip())
            lines.append("")
    else:
        lines.append(NO_ARTIFACTS)
        lines.append("")

    lines.append(OUTPUT_CONTRACT)
    return "\n".join(lines).strip()
