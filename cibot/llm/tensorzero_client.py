from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

import httpx

from cibot.errors import FeedbackError, InferenceError
from cibot.models import LlmResponse
from cibot.settings import DEFAULT_MODEL_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TensorZeroClient:
    """
    Calls a TensorZero gateway.

    Chat:     POST {base_url}/openai/v1/chat/completions (OpenAI-compatible)
    Feedback: POST {base_url}/feedback

    The gateway holds the provider credentials, so no API key is sent.
    Every call is attempted exactly once.
    """

    base_url: str
    model: str = DEFAULT_MODEL_NAME
    timeout_s: float = 300.0
    transport: httpx.AsyncBaseTransport | None = None

    @property
    def gateway_url(self) -> str:
        url = self.base_url
        if url.endswith("/"):
            url = url[:-1]
        return url

    @property
    def openai_base_url(self) -> str:
        return f"{self.gateway_url}/openai/v1"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self.transport)

    async def chat(self, *, system_prompt: str, user_prompt: str) -> LlmResponse:
        url = f"{self.openai_base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        try:
            async with self._client() as c:
                r = await c.post(url, json=payload)
        except httpx.HTTPError as e:
            raise InferenceError(f"tensorzero_transport_error: {type(e).__name__}: {e}") from e

        if not r.is_success:
            raise InferenceError(f"tensorzero_http_{r.status_code}: {r.text[:1500]}")
        try:
            data = r.json()
        except ValueError as e:
            raise InferenceError("tensorzero_response_not_json") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise InferenceError("No LLM response found in the inference result.")

        inference_id = data.get("id")
        if not inference_id:
            raise InferenceError("Inference result is missing its id.")

        logger.info("Received inference %s (variant %s)", inference_id, data.get("variant_name"))
        return LlmResponse(
            inference_id=str(inference_id),
            raw=content,
            episode_id=data.get("episode_id"),
            variant_name=data.get("variant_name"),
            payload=data,
        )

    async def post_feedback(
        self,
        *,
        metric_name: str,
        inference_id: str,
        value: Any,
        tags: Dict[str, str] | None = None,
    ) -> None:
        url = f"{self.gateway_url}/feedback"
        body: Dict[str, Any] = {"metric_name": metric_name, "inference_id": inference_id, "value": value}
        if tags:
            body["tags"] = tags
        logger.info("Feedback request: %s", body)
        try:
            async with self._client() as c:
                r = await c.post(url, json=body)
        except httpx.HTTPError as e:
            raise FeedbackError(f"Failed to provide feedback: {type(e).__name__}") from e
        if not r.is_success:
            raise FeedbackError(f"Failed to provide feedback: {r.reason_phrase}", status_code=r.status_code)
