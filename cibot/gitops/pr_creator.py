from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from enum import Enum

from cibot.gitops.git import mask_secret, run_git
from cibot.gitops.github_rest import GitHubRestClient
from cibot.models import FollowupPullRequest, PullRequestData
from cibot.reports.render import render_commit_message, render_followup_pr_body, render_followup_pr_title
from cibot.telemetry.artifacts import RunArtifacts
from cibot.telemetry.audit import AuditLogger

logger = logging.getLogger(__name__)

BOT_USER_NAME = "github-actions[bot]"
BOT_USER_EMAIL = "41898282+github-actions[bot]@users.noreply.github.com"
PATCH_FILENAME = "cibot.patch"


class PatchStage(str, Enum):
    start = "start"
    workspace_created = "workspace_created"
    cloned = "cloned"
    branch_created = "branch_created"
    patch_written = "patch_written"
    patch_applied = "patch_applied"
    committed = "committed"
    pushed = "pushed"
    pr_created = "pr_created"
    cleaned = "cleaned"
    aborted = "aborted"


@dataclass(frozen=True)
class FollowupPrResult:
    ok: bool
    stage: PatchStage
    pr: FollowupPullRequest | None = None
    # Last stage reached before aborting.
    failed_stage: PatchStage | None = None
    detail: str | None = None


def normalize_llm_diff(diff_text: str) -> str:
    """
    Clean up a model-produced diff before handing it to `git apply`:
    drop markdown fences and patch sentinels, normalize CRLF, start at the
    first diff header and end with a newline. Returns "" when nothing is left.
    """
    lines = []
    for ln in (diff_text or "").splitlines():
        s = ln.rstrip("\r")
        # Only column-0 fences; " ```" is a hunk context line.
        if s.startswith("```"):
            continue
        if s.startswith("*** Begin Patch") or s.startswith("*** End Patch"):
            continue
        lines.append(s)

    s = "\n".join(lines)
    if not s.strip():
        return ""
    for marker in ("diff --git ", "--- "):
        idx = s.find(marker)
        if idx != -1:
            s = s[idx:]
            break
    else:
        s = s.lstrip("\n")
    # Trailing " " lines are blank context lines, so only newlines are trimmed.
    return s.rstrip("\n") + "\n"


def fix_branch_name(pr_number: int, *, now_ms: int | None = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"cibot/pr-{pr_number}-{ts}"


@dataclass
class _Progress:
    correlation_id: str
    audit: AuditLogger
    stage: PatchStage = PatchStage.start
    history: list[PatchStage] = field(default_factory=list)

    def advance(self, stage: PatchStage, **payload: object) -> None:
        self.history.append(stage)
        self.stage = stage
        self.audit.write(self.correlation_id, f"followup.{stage.value}", dict(payload))


@dataclass(frozen=True)
class FollowupPrCreator:
    """
    Turns a model-provided diff into a follow-up PR against the original PR's
    head branch.

    Works in a fresh temp clone that is always removed, and never raises:
    any failure is logged (token masked) and reported as an aborted result so
    the caller can fall back to a comment-only reply.
    """

    github: GitHubRestClient
    token: str
    owner: str
    repo: str
    git_host: str = "github.com"
    audit: AuditLogger = field(default_factory=AuditLogger)
    artifacts: RunArtifacts = field(default_factory=RunArtifacts)

    @property
    def remote_url(self) -> str:
        return f"https://x-access-token:{self.token}@{self.git_host}/{self.owner}/{self.repo}.git"

    async def create(
        self,
        *,
        pull_request: PullRequestData,
        diff: str,
        correlation_id: str | None = None,
    ) -> FollowupPrResult:
        progress = _Progress(correlation_id=correlation_id or self.audit.new_correlation_id(), audit=self.audit)

        normalized = normalize_llm_diff(diff)
        if not normalized.strip():
            logger.info("Diff content empty after trimming; skipping follow-up PR creation.")
            return self._abort(progress, "empty_diff")

        head_repo = pull_request.head.repo
        if not head_repo or head_repo.full_name != f"{self.owner}/{self.repo}":
            logger.warning("Original PR branch lives in a fork; skipping follow-up PR creation.")
            return self._abort(progress, "fork")

        masked_remote = mask_secret(self.remote_url, self.token)
        workspace: str | None = None
        try:
            workspace = tempfile.mkdtemp(prefix="cibot-pr-")
            progress.advance(PatchStage.workspace_created)
            repo_dir = os.path.join(workspace, "repo")

            await run_git(
                [
                    "clone",
                    "--origin",
                    "origin",
                    "--branch",
                    pull_request.head.ref,
                    "--single-branch",
                    "--depth",
                    "1",
                    self.remote_url,
                    repo_dir,
                ],
                cwd=workspace,
                token=self.token,
            )
            progress.advance(PatchStage.cloned, ref=pull_request.head.ref)

            branch = fix_branch_name(pull_request.number)
            await run_git(["checkout", "-b", branch], cwd=repo_dir, token=self.token)
            progress.advance(PatchStage.branch_created, branch=branch)

            patch_path = os.path.join(repo_dir, PATCH_FILENAME)
            try:
                with open(patch_path, "w", encoding="utf-8") as f:
                    f.write(normalized)
                progress.advance(PatchStage.patch_written, bytes=len(normalized.encode("utf-8")))
                await run_git(["apply", "--whitespace=nowarn", patch_path], cwd=repo_dir, token=self.token)
            finally:
                if os.path.exists(patch_path):
                    os.remove(patch_path)
            progress.advance(PatchStage.patch_applied)

            status = await run_git(["status", "--porcelain"], cwd=repo_dir, token=self.token)
            if not status.stdout.strip():
                logger.warning("Diff did not produce any changes; skipping follow-up PR creation.")
                return self._abort(progress, "no_changes")

            await run_git(["config", "user.email", BOT_USER_EMAIL], cwd=repo_dir, token=self.token)
            await run_git(["config", "user.name", BOT_USER_NAME], cwd=repo_dir, token=self.token)
            await run_git(["add", "--all"], cwd=repo_dir, token=self.token)
            await run_git(
                ["commit", "-m", render_commit_message(original_pr_number=pull_request.number)],
                cwd=repo_dir,
                token=self.token,
            )
            progress.advance(PatchStage.committed)

            await run_git(["push", "--set-upstream", "origin", branch], cwd=repo_dir, token=self.token)
            progress.advance(PatchStage.pushed, branch=branch)

            pr = await self.github.create_pull_request(
                title=render_followup_pr_title(original_pr_number=pull_request.number),
                body=render_followup_pr_body(original_pr_number=pull_request.number),
                head=branch,
                base=pull_request.head.ref,
            )
            progress.advance(PatchStage.pr_created, number=pr.number, id=pr.id, url=pr.html_url)
            self.artifacts.write_json("followup-pr-payload.json", pr.model_dump(mode="json"))
            # The workspace is removed by the finally block below before the caller sees this.
            return FollowupPrResult(ok=True, stage=PatchStage.cleaned, pr=pr)
        except Exception as e:  # noqa: BLE001
            detail = mask_secret(str(e), self.token)
            logger.error("Failed to create follow-up PR using remote %s: %s", masked_remote, detail)
            return self._abort(progress, detail)
        finally:
            if workspace:
                shutil.rmtree(workspace, ignore_errors=True)
                progress.advance(PatchStage.cleaned)

    def _abort(self, progress: _Progress, detail: str) -> FollowupPrResult:
        failed_stage = progress.stage
        progress.advance(PatchStage.aborted, reason=detail, failed_stage=failed_stage.value)
        return FollowupPrResult(ok=False, stage=PatchStage.aborted, failed_stage=failed_stage, detail=detail)
