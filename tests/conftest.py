from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Keep tests deterministic and isolated from developer machine / CI runner env.
    """
    for k in list(os.environ.keys()):
        if k.startswith("CIBOT_"):
            monkeypatch.delenv(k, raising=False)
    for k in ("GITHUB_TOKEN", "GITHUB_OUTPUT", "GITHUB_EVENT_PATH", "GITHUB_REPOSITORY"):
        monkeypatch.delenv(k, raising=False)
