from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import List, Sequence

from cibot.errors import GitCommandError

logger = logging.getLogger(__name__)

SECRET_MASK = "***"


def mask_secret(value: str, secret: str | None) -> str:
    if not secret or not value:
        return value
    return value.replace(secret, SECRET_MASK)


@dataclass(frozen=True)
class GitResult:
    stdout: str
    stderr: str


def _git_env() -> dict[str, str]:
    env = dict(os.environ)
    # Never block on a credential prompt inside CI.
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


async def run_git(args: Sequence[str], *, cwd: str, token: str | None = None) -> GitResult:
    """
    Run `git <args>` in cwd. Raises GitCommandError on a non-zero exit.

    Both the logged command line and the error message have every occurrence
    of token replaced, since remote URLs carry it.
    """
    argv: List[str] = ["git", *args]
    command = mask_secret(" ".join(argv), token)
    logger.info(command)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            env=_git_env(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        out_b, err_b = await proc.communicate()
    except OSError as e:
        raise GitCommandError(f"{command} failed: {mask_secret(str(e), token)}") from None

    stdout = (out_b or b"").decode("utf-8", errors="replace")
    stderr = (err_b or b"").decode("utf-8", errors="replace")
    if proc.returncode != 0:
        detail = stderr.strip() or stdout.strip() or f"exit status {proc.returncode}"
        raise GitCommandError(f"{command} failed: {mask_secret(detail, token)}", returncode=proc.returncode)
    return GitResult(stdout=stdout, stderr=stderr)
