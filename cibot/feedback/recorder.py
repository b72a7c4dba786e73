from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from cibot.errors import FeedbackError
from cibot.llm.tensorzero_client import TensorZeroClient
from cibot.memory.store import InferenceStore
from cibot.models import InferenceRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedbackRecorder:
    """
    Links inferences to the follow-up PRs they produced, and later turns the
    PR outcome (merged / closed unmerged) into gateway feedback.
    """

    store: Optional[InferenceStore] = None

    async def record(self, *, inference_id: str, followup_pr_id: int, original_pr_url: str) -> bool:
        # Bookkeeping only: the follow-up PR already exists, so a failure here is never fatal.
        if self.store is None:
            logger.warning(
                "No inference store configured; not recording inference %s for follow-up PR id %s.",
                inference_id,
                followup_pr_id,
            )
            return False
        record = InferenceRecord(
            pull_request_id=followup_pr_id,
            inference_id=inference_id,
            original_pull_request_url=original_pr_url,
        )
        try:
            await self.store.insert(record)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "Failed to record inference %s for follow-up PR id %s: %s", inference_id, followup_pr_id, e
            )
            return False
        logger.info("Recorded inference %s for follow-up PR id %s.", inference_id, followup_pr_id)
        return True

    async def resolve(self, pull_request_id: int) -> List[InferenceRecord]:
        if self.store is None:
            return []
        return await self.store.find_by_pull_request(pull_request_id)

    async def report_outcome(
        self,
        *,
        client: TensorZeroClient,
        pull_request_id: int,
        merged: bool,
        metric_name: str,
    ) -> int:
        """
        Send one boolean feedback per inference linked to the PR. Calls run
        concurrently; if any fails, FeedbackError is raised once all settle.
        Returns the number of feedback calls sent.
        """
        records = await self.resolve(pull_request_id)
        if not records:
            logger.info("No inference recorded for pull request id %s; nothing to report.", pull_request_id)
            return 0

        tags = {"reason": "merged" if merged else "closed_unmerged"}
        results = await asyncio.gather(
            *(
                client.post_feedback(metric_name=metric_name, inference_id=r.inference_id, value=merged, tags=tags)
                for r in records
            ),
            return_exceptions=True,
        )
        failures = [(r, res) for r, res in zip(records, results) if isinstance(res, BaseException)]
        for r, err in failures:
            logger.error("Feedback for inference %s failed: %s", r.inference_id, err)
        if failures:
            raise FeedbackError(f"{len(failures)} of {len(records)} feedback call(s) failed")
        logger.info("Reported merged=%s for %d inference(s) of pull request id %s.", merged, len(records), pull_request_id)
        return len(records)
