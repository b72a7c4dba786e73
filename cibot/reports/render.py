from __future__ import annotations

from typing import Optional

from cibot.models import FollowupPullRequest


def render_followup_pr_title(*, original_pr_number: int) -> str:
    return f"Automated follow-up for #{original_pr_number}"


def render_followup_pr_body(*, original_pr_number: int) -> str:
    lines = [
        f"This pull request was generated automatically in response to failing CI on #{original_pr_number}.",
        "",
        "The proposed changes were produced from an LLM-provided diff.",
    ]
    return "\n".join(lines)


def render_commit_message(*, original_pr_number: int) -> str:
    return f"chore: automated fix for PR #{original_pr_number}"


def render_issue_comment(
    *,
    comment: str,
    command: str = "",
    followup: Optional[FollowupPullRequest] = None,
) -> str:
    """
    Body of the single comment posted on the original PR. Empty string means
    there is nothing worth posting.
    """
    body = (comment or "").strip()

    cmd = (command or "").strip()
    if cmd and cmd not in body:
        block = f"Suggested command:\n\n```\n{cmd}\n```"
        body = f"{body}\n\n{block}" if body else block

    if followup:
        link = f"[#{followup.number}]({followup.html_url})"
        if body:
            body += f"\n\nI've also opened an automated follow-up PR {link} with proposed fixes."
        else:
            body = f"I've opened an automated follow-up PR {link} with proposed fixes."
    return body
