from __future__ import annotations

from cibot.prompting.response import extract_command, extract_comments, extract_diff, parse_llm_reply


def test_extracts_all_markers() -> None:
    response = """prefix
<comments>A detailed summary</comments>
<command>A command line command</command>
<diff>diff --git</diff>
suffix"""
    assert extract_comments(response) == "A detailed summary"
    assert extract_command(response) == "A command line command"
    assert extract_diff(response) == "diff --git"


def test_missing_markers_yield_empty_strings() -> None:
    reply = parse_llm_reply("no structured response here")
    assert (reply.comment, reply.command, reply.diff) == ("", "", "")


def test_singular_comment_marker_is_accepted() -> None:
    assert extract_comments("<comment>legacy</comment>") == "legacy"


def test_multiline_diff_is_returned_verbatim() -> None:
    diff = "\ndiff --git a/x.py b/x.py\n--- a/x.py\n+++ b/x.py\n@@ -1 +1 @@\n-print('a')\n+print('b')\n"
    assert extract_diff(f"intro <diff>{diff}</diff> outro") == diff


def test_first_match_only() -> None:
    response = "<diff>one</diff><diff>two</diff><comments>c1</comments><comment>c2</comment>"
    reply = parse_llm_reply(response)
    assert reply.diff == "one"
    assert reply.comment == "c1"


def test_plural_comments_marker_wins_over_earlier_singular() -> None:
    response = "<comment>older form</comment>\n<comments>documented form</comments>"
    assert extract_comments(response) == "documented form"
