from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import uuid
from typing import Any, Dict, List, Optional

from cibot.errors import CibotError, ConfigError
from cibot.feedback.recorder import FeedbackRecorder
from cibot.gitops.github_rest import GitHubRestClient
from cibot.llm.tensorzero_client import TensorZeroClient
from cibot.memory.store import build_inference_store
from cibot.models import WorkflowRunContext
from cibot.pipeline import close_pr_feedback, generate_pr_patch
from cibot.settings import Settings
from cibot.telemetry.artifacts import RunArtifacts
from cibot.telemetry.audit import AuditLogger

logger = logging.getLogger("cibot")


def _load_event(path: Optional[str]) -> Dict[str, Any]:
    p = path or os.environ.get("GITHUB_EVENT_PATH")
    if not p:
        raise ConfigError("No event payload: pass --event-path or set GITHUB_EVENT_PATH.")
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read event payload at {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Event payload at {p} is not a JSON object.")
    return data


def _split_repository(value: Optional[str], event: Dict[str, Any]) -> tuple[str, str]:
    full_name = value or os.environ.get("GITHUB_REPOSITORY") or (event.get("repository") or {}).get("full_name")
    if not full_name or "/" not in full_name:
        raise ConfigError("Repository must be given as owner/name (--repository or GITHUB_REPOSITORY).")
    owner, repo = full_name.split("/", 1)
    return owner, repo


def set_action_output(name: str, value: str) -> None:
    """Append an output for later workflow steps (no-op outside GitHub Actions)."""
    out_path = os.environ.get("GITHUB_OUTPUT")
    if not out_path:
        return
    delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    with open(out_path, "a", encoding="utf-8") as f:
        f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


async def _run_generate(args: argparse.Namespace, settings: Settings) -> int:
    token, base_url = settings.require_generate_inputs()
    event = _load_event(args.event_path)
    owner, repo = _split_repository(args.repository, event)
    ctx = WorkflowRunContext.from_event(event)

    store = build_inference_store(settings)
    try:
        outcome = await generate_pr_patch(
            settings=settings,
            ctx=ctx,
            owner=owner,
            repo=repo,
            token=token,
            github=GitHubRestClient(
                token=token,
                repo=f"{owner}/{repo}",
                api_base=settings.github_api_url,
                timeout_s=settings.http_timeout_s,
            ),
            llm=TensorZeroClient(
                base_url=base_url,
                model=settings.model_name,
                timeout_s=settings.inference_timeout_s,
            ),
            recorder=FeedbackRecorder(store=store),
            audit=AuditLogger(settings.audit_log_path),
            artifacts=RunArtifacts(settings.output_artifacts_dir),
            event_payload=event,
        )
    finally:
        if store is not None:
            await store.close()

    set_action_output("comment", outcome.reply.comment)
    pr = outcome.followup.pr if outcome.followup else None
    set_action_output("followup-pr-number", str(pr.number) if pr else "")
    set_action_output("followup-pr-url", pr.html_url if pr else "")
    logger.info("generate-patch finished: %s", outcome.status)
    return 0


async def _run_feedback(args: argparse.Namespace, settings: Settings) -> int:
    base_url = settings.require_feedback_inputs()
    if args.pull_request_id is not None:
        pull_request_id = int(args.pull_request_id)
        merged = bool(args.merged)
    else:
        event = _load_event(args.event_path)
        if event.get("action") != "closed":
            logger.info("Pull request event action is %r, not 'closed'; nothing to report.", event.get("action"))
            return 0
        pr = event.get("pull_request") or {}
        if pr.get("id") is None:
            raise ConfigError("Event payload has no pull_request.id.")
        pull_request_id = int(pr["id"])
        merged = bool(pr.get("merged"))

    store = build_inference_store(settings)
    try:
        sent = await close_pr_feedback(
            settings=settings,
            pull_request_id=pull_request_id,
            merged=merged,
            llm=TensorZeroClient(base_url=base_url, model=settings.model_name, timeout_s=settings.http_timeout_s),
            recorder=FeedbackRecorder(store=store),
        )
    finally:
        if store is not None:
            await store.close()
    set_action_output("feedback-count", str(sent))
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="cibot", description="Repair failing pull request CI runs with an LLM.")
    sub = ap.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate-patch", help="Handle a failed workflow_run event.")
    gen.add_argument("--event-path", default=None, help="Event JSON (defaults to GITHUB_EVENT_PATH).")
    gen.add_argument("--repository", default=None, help="owner/name (defaults to GITHUB_REPOSITORY).")

    fb = sub.add_parser("pr-feedback", help="Report a closed follow-up PR's outcome to the gateway.")
    fb.add_argument("--event-path", default=None, help="pull_request event JSON (defaults to GITHUB_EVENT_PATH).")
    fb.add_argument("--pull-request-id", type=int, default=None, help="Follow-up PR id (skips the event payload).")
    fb.add_argument("--merged", action="store_true", help="With --pull-request-id: the PR was merged.")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    runner = _run_generate if args.command == "generate-patch" else _run_feedback
    try:
        return asyncio.run(runner(args, settings))
    except CibotError as e:
        # Single annotated failure line for the Actions UI.
        print(f"::error::{e}", file=sys.stderr)
        return 1
