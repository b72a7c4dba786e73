from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import httpx

from cibot.models import FollowupPullRequest, PullRequestData


@dataclass(frozen=True)
class GitHubRestClient:
    """
    Minimal async GitHub REST wrapper for the calls the bot makes:
    - read the original pull request
    - open the follow-up pull request
    - comment on the original pull request

    Mockable in tests via an httpx transport override.
    """

    token: str
    repo: str  # owner/name
    api_base: str = "https://api.github.com"
    timeout_s: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport)

    def _url(self, path: str) -> str:
        return f"{self.api_base.rstrip('/')}/repos/{self.repo}/{path.lstrip('/')}"

    async def get_pull_request(self, *, number: int) -> PullRequestData:
        async with self._client() as c:
            r = await c.get(self._url(f"pulls/{number}"), headers=self._headers())
            r.raise_for_status()
            data = r.json()
        return PullRequestData.model_validate(data)

    async def create_pull_request(self, *, title: str, body: str, head: str, base: str) -> FollowupPullRequest:
        payload = {"title": title, "body": body, "head": head, "base": base}
        async with self._client() as c:
            r = await c.post(self._url("pulls"), headers=self._headers(), json=payload)
            r.raise_for_status()
            data = r.json()
        return FollowupPullRequest(number=int(data["number"]), id=int(data["id"]), html_url=str(data["html_url"]))

    async def create_issue_comment(self, *, number: int, body: str) -> int:
        async with self._client() as c:
            r = await c.post(self._url(f"issues/{number}/comments"), headers=self._headers(), json={"body": body})
            r.raise_for_status()
            data = r.json()
        return int(data.get("id") or 0)
