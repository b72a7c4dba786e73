from __future__ import annotations

import logging
import os
from typing import List

from cibot.models import ArtifactContent

logger = logging.getLogger(__name__)


def _read_file_limited(path: str, max_bytes: int) -> tuple[str, bool]:
    with open(path, "rb") as f:
        data = f.read(max_bytes + 1)
    truncated = len(data) > max_bytes
    if truncated:
        data = data[:max_bytes]
    return data.decode("utf-8", errors="replace"), truncated


def collect_artifact_contents(root_dir: str | None, *, max_bytes: int = 200_000) -> List[ArtifactContent]:
    """
    Read every file under root_dir (recursively, sorted for a stable prompt).

    Best-effort: a missing directory yields [] and a file that cannot be read
    is skipped with a warning. Reads are size-limited per file.
    """
    out: List[ArtifactContent] = []
    if not root_dir:
        return out
    if not os.path.isdir(root_dir):
        logger.warning("Artifact directory does not exist: %s", root_dir)
        return out

    def _on_walk_error(err: OSError) -> None:
        logger.warning("Failed to read directory %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root_dir, onerror=_on_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            abs_path = os.path.join(dirpath, name)
            label = os.path.relpath(abs_path, root_dir)
            if not os.path.isfile(abs_path):
                continue
            try:
                content, truncated = _read_file_limited(abs_path, max_bytes=max_bytes)
            except OSError as e:
                logger.warning("Failed to read file %s: %s", abs_path, e)
                continue
            if truncated:
                logger.warning("Artifact %s exceeds %d bytes; truncated", label, max_bytes)
            out.append(ArtifactContent(label=label, content=content))

    logger.info("Collected %d artifact file(s) from %s", len(out), root_dir)
    return out


def read_optional_text(path: str | None, *, what: str = "file") -> str | None:
    """Read a text input such as the diff summary; None when unset or unreadable."""
    if not path:
        return None
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        logger.warning("Could not read %s at %s: %s", what, path, e)
        return None
