from __future__ import annotations

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from cibot.errors import ConfigError


DEFAULT_MODEL_NAME = "tensorzero::model_name::openai::gpt-5"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CIBOT_", extra="ignore")

    # GitHub. When unset, the token falls back to GITHUB_TOKEN (see resolved_github_token).
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"
    # Host used to build the authenticated clone/push remote.
    git_host: str = "github.com"

    # TensorZero gateway (OpenAI-compatible endpoint lives under {base}/openai/v1)
    tensorzero_base_url: str | None = None
    model_name: str = DEFAULT_MODEL_NAME
    inference_timeout_s: float = 300.0

    # Evidence inputs, usually produced by earlier steps of the workflow.
    diff_summary_path: str | None = None
    full_diff_path: str | None = None
    input_logs_dir: str | None = None

    # Debug artifacts (payload, prompt, raw response, ...). Disabled when unset.
    output_artifacts_dir: str | None = None

    # Inference <-> PR association store.
    # ClickHouse URL format: http[s]://[user:password@]host:port[/database]
    clickhouse_url: str | None = None
    clickhouse_table: str | None = None
    # Local SQLite store (used when ClickHouse is not configured).
    sqlite_store_path: str | None = None

    feedback_metric_name: str = "ci_bot_followup_pr_merged"

    audit_log_path: str | None = None
    http_timeout_s: float = 30.0
    log_level: str = "INFO"

    def resolved_github_token(self) -> str | None:
        token = (self.github_token or "").strip() or (os.environ.get("GITHUB_TOKEN") or "").strip()
        return token or None

    def resolved_tensorzero_base_url(self) -> str | None:
        url = (self.tensorzero_base_url or "").strip()
        return url or None

    def require_generate_inputs(self) -> tuple[str, str]:
        """
        Validate what the patch pipeline cannot run without.
        Returns (token, tensorzero_base_url).
        """
        token = self.resolved_github_token()
        if not token:
            raise ConfigError(
                "A GitHub token is required. Provide one via CIBOT_GITHUB_TOKEN or the GITHUB_TOKEN env variable."
            )
        base_url = self.resolved_tensorzero_base_url()
        if not base_url:
            raise ConfigError("TensorZero base url is required; provide one via CIBOT_TENSORZERO_BASE_URL.")
        return token, base_url

    def require_feedback_inputs(self) -> str:
        base_url = self.resolved_tensorzero_base_url()
        if not base_url:
            raise ConfigError("TensorZero base url is required; provide one via CIBOT_TENSORZERO_BASE_URL.")
        if not self.clickhouse_url and not self.sqlite_store_path:
            raise ConfigError(
                "An inference store is required to resolve PR feedback; set CIBOT_CLICKHOUSE_URL "
                "(with CIBOT_CLICKHOUSE_TABLE) or CIBOT_SQLITE_STORE_PATH."
            )
        return base_url
