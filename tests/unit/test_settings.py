from __future__ import annotations

import pytest

from cibot.errors import ConfigError
from cibot.settings import DEFAULT_MODEL_NAME, Settings


def test_defaults() -> None:
    s = Settings()
    assert s.model_name == DEFAULT_MODEL_NAME
    assert s.github_api_url == "https://api.github.com"
    assert s.feedback_metric_name == "ci_bot_followup_pr_merged"


def test_env_prefix_is_applied(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CIBOT_TENSORZERO_BASE_URL", "http://gw:3000")
    monkeypatch.setenv("CIBOT_MODEL_NAME", "my_function")
    s = Settings()
    assert s.resolved_tensorzero_base_url() == "http://gw:3000"
    assert s.model_name == "my_function"


def test_github_token_falls_back_to_actions_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "from-actions")
    assert Settings().resolved_github_token() == "from-actions"
    assert Settings(github_token="explicit").resolved_github_token() == "explicit"


def test_generate_requires_token_and_gateway() -> None:
    with pytest.raises(ConfigError, match="GitHub token"):
        Settings(tensorzero_base_url="http://gw").require_generate_inputs()
    with pytest.raises(ConfigError, match="TensorZero"):
        Settings(github_token="t", tensorzero_base_url="  ").require_generate_inputs()
    assert Settings(github_token="t", tensorzero_base_url="http://gw").require_generate_inputs() == ("t", "http://gw")


def test_feedback_requires_a_store() -> None:
    with pytest.raises(ConfigError, match="inference store"):
        Settings(tensorzero_base_url="http://gw").require_feedback_inputs()
    assert Settings(tensorzero_base_url="http://gw", sqlite_store_path="x.sqlite").require_feedback_inputs() == "http://gw"
