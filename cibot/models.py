from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RepoRef(BaseModel):
    id: Optional[int] = None
    name: Optional[str] = None
    full_name: Optional[str] = None


class BranchRef(BaseModel):
    ref: str
    repo: Optional[RepoRef] = None


class AssociatedPullRequest(BaseModel):
    """A pull request entry as listed on a workflow_run payload."""

    number: int
    head: BranchRef
    base: BranchRef


class WorkflowRunContext(BaseModel):
    """
    The triggering workflow run, read once from the event payload and passed
    explicitly to every stage.
    """

    model_config = ConfigDict(frozen=True)

    run_id: Optional[int] = None
    conclusion: Optional[str] = None
    jobs_url: Optional[str] = None
    head_branch: Optional[str] = None
    pull_requests: List[AssociatedPullRequest] = Field(default_factory=list)
    default_branch: Optional[str] = None
    repository_full_name: Optional[str] = None

    @classmethod
    def from_event(cls, payload: Dict[str, Any]) -> "WorkflowRunContext":
        run = payload.get("workflow_run") or {}
        repo = payload.get("repository") or {}
        return cls(
            run_id=run.get("id"),
            conclusion=run.get("conclusion"),
            jobs_url=run.get("jobs_url"),
            head_branch=run.get("head_branch"),
            pull_requests=run.get("pull_requests") or [],
            default_branch=repo.get("default_branch"),
            repository_full_name=repo.get("full_name"),
        )

    @property
    def pull_request(self) -> Optional[AssociatedPullRequest]:
        return self.pull_requests[0] if len(self.pull_requests) == 1 else None


class WorkflowJobStep(BaseModel):
    name: str
    status: str
    conclusion: Optional[str] = None


class WorkflowJob(BaseModel):
    id: int
    name: str
    status: str
    conclusion: Optional[str] = None
    html_url: Optional[str] = None
    steps: List[WorkflowJobStep] = Field(default_factory=list)


class WorkflowJobsResponse(BaseModel):
    total_count: int = 0
    jobs: List[WorkflowJob] = Field(default_factory=list)


class FailedStepSummary(BaseModel):
    name: str
    status: str
    conclusion: Optional[str] = None


class FailedJobSummary(BaseModel):
    name: str
    conclusion: Optional[str] = None
    html_url: Optional[str] = None
    failed_steps: List[FailedStepSummary] = Field(default_factory=list)


class ArtifactContent(BaseModel):
    label: str
    content: str


class PromptContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    repo_full_name: str
    branch: Optional[str] = None
    pr_number: Optional[int] = None
    diff_summary: Optional[str] = None
    full_diff: Optional[str] = None
    artifact_contents: List[ArtifactContent] = Field(default_factory=list)
    failed_jobs: List[FailedJobSummary] = Field(default_factory=list)


class LlmResponse(BaseModel):
    inference_id: str
    raw: str
    episode_id: Optional[str] = None
    variant_name: Optional[str] = None
    # Full response body, kept for the llm-response.json debug artifact.
    payload: Dict[str, Any] = Field(default_factory=dict)


class ParsedLlmReply(BaseModel):
    comment: str = ""
    command: str = ""
    diff: str = ""


class PullRequestData(BaseModel):
    number: int
    id: int
    html_url: str
    head: BranchRef
    base: BranchRef


class FollowupPullRequest(BaseModel):
    number: int
    id: int
    html_url: str


class InferenceRecord(BaseModel):
    pull_request_id: int
    inference_id: str
    original_pull_request_url: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
