from __future__ import annotations

import asyncio
import json
from typing import Any, Dict

import httpx

from cibot.gitops.github_rest import GitHubRestClient


def _make_transport(state: Dict[str, Any]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        method = request.method.upper()
        assert request.headers["Authorization"] == "Bearer t"

        if method == "GET" and path.endswith("/repos/owner/repo/pulls/42"):
            return httpx.Response(
                200,
                json={
                    "number": 42,
                    "id": 4200,
                    "html_url": "https://github.com/owner/repo/pull/42",
                    "head": {"ref": "feature", "repo": {"id": 1, "full_name": "owner/repo"}},
                    "base": {"ref": "main", "repo": {"id": 1, "full_name": "owner/repo"}},
                    "title": "ignored extra field",
                },
            )

        if method == "POST" and path.endswith("/repos/owner/repo/pulls"):
            body = json.loads(request.content.decode("utf-8"))
            state["prs"].append(body)
            return httpx.Response(
                201,
                json={"number": 43, "id": 4300, "html_url": "https://github.com/owner/repo/pull/43"},
            )

        if method == "POST" and path.endswith("/repos/owner/repo/issues/42/comments"):
            state["comments"].append(json.loads(request.content.decode("utf-8")))
            return httpx.Response(201, json={"id": 777})

        return httpx.Response(404, json={"message": f"unhandled {method} {path}"})

    return httpx.MockTransport(handler)


def test_github_rest_client_pr_and_comment_flow() -> None:
    state: Dict[str, Any] = {"prs": [], "comments": []}
    c = GitHubRestClient(token="t", repo="owner/repo", transport=_make_transport(state))

    async def flow():
        pr = await c.get_pull_request(number=42)
        assert pr.head.ref == "feature"
        assert pr.head.repo.full_name == "owner/repo"

        created = await c.create_pull_request(title="t", body="b", head="cibot/pr-42-1", base=pr.head.ref)
        assert (created.number, created.id) == (43, 4300)

        comment_id = await c.create_issue_comment(number=42, body="hello")
        assert comment_id == 777

    asyncio.run(flow())
    assert state["prs"] == [{"title": "t", "body": "b", "head": "cibot/pr-42-1", "base": "feature"}]
    assert state["comments"] == [{"body": "hello"}]
