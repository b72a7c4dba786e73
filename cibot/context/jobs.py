from __future__ import annotations

import logging
from typing import List

import httpx
from pydantic import ValidationError

from cibot.errors import JobFetchError
from cibot.models import FailedJobSummary, FailedStepSummary, WorkflowJobsResponse

logger = logging.getLogger(__name__)


async def fetch_job_status(
    jobs_url: str,
    token: str,
    *,
    timeout_s: float = 15.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> WorkflowJobsResponse:
    """
    GET the jobs of a workflow run (single attempt, no retries).
    """
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    try:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            r = await client.get(jobs_url, headers=headers)
    except httpx.HTTPError as e:
        raise JobFetchError(f"Failed to load jobs from {jobs_url}: {type(e).__name__}") from e

    if not r.is_success:
        raise JobFetchError(
            f"Failed to load jobs from {jobs_url}: HTTP {r.status_code} {r.reason_phrase}",
            status_code=r.status_code,
        )
    try:
        return WorkflowJobsResponse.model_validate(r.json())
    except (ValueError, ValidationError) as e:
        raise JobFetchError(f"Unexpected jobs payload from {jobs_url}: {e}") from e


def filter_failed_jobs(response: WorkflowJobsResponse) -> List[FailedJobSummary]:
    out: List[FailedJobSummary] = []
    for job in response.jobs:
        if job.conclusion == "success":
            continue
        out.append(
            FailedJobSummary(
                name=job.name,
                conclusion=job.conclusion,
                html_url=job.html_url,
                failed_steps=[
                    FailedStepSummary(name=s.name, status=s.status, conclusion=s.conclusion)
                    for s in job.steps
                    if s.conclusion and s.conclusion != "success"
                ],
            )
        )
    logger.info("Found %d non-successful job(s) out of %d", len(out), len(response.jobs))
    return out
