from __future__ import annotations

import asyncio
import json
from typing import List

import httpx
import pytest

from cibot.errors import FeedbackError, StoreError
from cibot.feedback.recorder import FeedbackRecorder
from cibot.llm.tensorzero_client import TensorZeroClient
from cibot.memory.store import InferenceStore
from cibot.models import InferenceRecord


class MemoryStore(InferenceStore):
    def __init__(self, records: List[InferenceRecord] | None = None, *, fail_insert: bool = False):
        self.records = list(records or [])
        self.fail_insert = fail_insert

    async def insert(self, record: InferenceRecord) -> None:
        if self.fail_insert:
            raise StoreError("clickhouse_http_503")
        self.records.append(record)

    async def find_by_pull_request(self, pull_request_id: int) -> List[InferenceRecord]:
        return [r for r in self.records if r.pull_request_id == pull_request_id]


def _rec(pr_id: int, inference_id: str) -> InferenceRecord:
    return InferenceRecord(pull_request_id=pr_id, inference_id=inference_id, original_pull_request_url="u")


def test_record_inserts_into_store() -> None:
    store = MemoryStore()
    ok = asyncio.run(FeedbackRecorder(store).record(inference_id="i1", followup_pr_id=9, original_pr_url="u"))
    assert ok
    assert [(r.pull_request_id, r.inference_id) for r in store.records] == [(9, "i1")]


def test_record_failure_is_not_fatal(caplog) -> None:
    recorder = FeedbackRecorder(MemoryStore(fail_insert=True))
    with caplog.at_level("WARNING"):
        ok = asyncio.run(recorder.record(inference_id="i1", followup_pr_id=9, original_pr_url="u"))
    assert ok is False
    assert "Failed to record inference i1" in caplog.text


def test_record_without_store_returns_false() -> None:
    assert asyncio.run(FeedbackRecorder().record(inference_id="i1", followup_pr_id=9, original_pr_url="u")) is False


def test_report_outcome_sends_one_feedback_per_record() -> None:
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content.decode("utf-8")))
        return httpx.Response(200, json={"feedback_id": "f"})

    client = TensorZeroClient(base_url="http://gw", transport=httpx.MockTransport(handler))
    recorder = FeedbackRecorder(MemoryStore([_rec(5, "a"), _rec(5, "b"), _rec(6, "c")]))

    n = asyncio.run(recorder.report_outcome(client=client, pull_request_id=5, merged=True, metric_name="m"))
    assert n == 2
    assert sorted(s["inference_id"] for s in sent) == ["a", "b"]
    assert all(s["value"] is True and s["metric_name"] == "m" for s in sent)
    assert all(s["tags"] == {"reason": "merged"} for s in sent)


def test_report_outcome_with_no_records_sends_nothing() -> None:
    calls = []
    client = TensorZeroClient(
        base_url="http://gw", transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200))
    )
    n = asyncio.run(
        FeedbackRecorder(MemoryStore()).report_outcome(client=client, pull_request_id=5, merged=False, metric_name="m")
    )
    assert n == 0
    assert calls == []


def test_report_outcome_raises_after_all_calls_settle() -> None:
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        sent.append(body["inference_id"])
        assert body["value"] is False
        assert body["tags"] == {"reason": "closed_unmerged"}
        return httpx.Response(500) if body["inference_id"] == "a" else httpx.Response(200, json={})

    client = TensorZeroClient(base_url="http://gw", transport=httpx.MockTransport(handler))
    recorder = FeedbackRecorder(MemoryStore([_rec(5, "a"), _rec(5, "b")]))
    with pytest.raises(FeedbackError) as ei:
        asyncio.run(recorder.report_outcome(client=client, pull_request_id=5, merged=False, metric_name="m"))
    assert sorted(sent) == ["a", "b"]
    assert "1 of 2" in str(ei.value)
