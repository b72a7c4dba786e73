from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

ARTIFACT_SEPARATOR = "\n\n" + "=" * 80 + "\n\n"


@dataclass(frozen=True)
class RunArtifacts:
    """
    Debug artifacts for one action run (event payload, prompt, raw model
    response, ...). Every method is a no-op when no directory is configured.
    """

    out_dir: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.out_dir)

    @staticmethod
    def _path(out_dir: str, name: str) -> str:
        os.makedirs(out_dir, exist_ok=True)
        return os.path.join(out_dir, name)

    def write_json(self, name: str, payload: Any) -> str | None:
        if not self.out_dir:
            return None
        path = self._path(self.out_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, default=str)
        logger.info("Wrote %s", path)
        return path

    def write_text(self, name: str, text: str) -> str | None:
        if not self.out_dir:
            return None
        path = self._path(self.out_dir, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text or "")
        logger.info("Wrote %s", path)
        return path
