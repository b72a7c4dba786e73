from __future__ import annotations

import re

from cibot.models import ParsedLlmReply

# Markers the prompt asks the model to emit. The template renders these exact
# tags, so both sides of the contract read from here.
COMMENTS_TAG = "comments"
COMMAND_TAG = "command"
DIFF_TAG = "diff"

# <comments> is the documented form and wins wherever it appears; <comment> is
# the fallback for older prompts.
_COMMENTS_RE = re.compile(rf"<{COMMENTS_TAG}>(.*?)</{COMMENTS_TAG}>", re.DOTALL)
_COMMENT_RE = re.compile(r"<comment>(.*?)</comment>", re.DOTALL)
_COMMAND_RE = re.compile(rf"<{COMMAND_TAG}>(.*?)</{COMMAND_TAG}>", re.DOTALL)
_DIFF_RE = re.compile(rf"<{DIFF_TAG}>(.*?)</{DIFF_TAG}>", re.DOTALL)


def extract_comments(response: str) -> str:
    m = _COMMENTS_RE.search(response or "") or _COMMENT_RE.search(response or "")
    return m.group(1) if m else ""


def extract_command(response: str) -> str:
    m = _COMMAND_RE.search(response or "")
    return m.group(1) if m else ""


def extract_diff(response: str) -> str:
    m = _DIFF_RE.search(response or "")
    return m.group(1) if m else ""


def parse_llm_reply(raw: str) -> ParsedLlmReply:
    """
    Lenient marker scan over the model's free text. The model output is not
    guaranteed to be well-formed markup, so nothing here validates structure.
    """
    return ParsedLlmReply(
        comment=extract_comments(raw),
        command=extract_command(raw),
        diff=extract_diff(raw),
    )
