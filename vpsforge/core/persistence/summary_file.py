"""
Summary file persistence — atomic write of the JSON install summary.

Written once at the end of a run to
``<logs_dir>/install_summary_<ts>.json``.  Nothing in vpsforge reads it
back; it exists for auditing and external test tooling.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from vpsforge.core.models.summary import InstallSummary

logger = logging.getLogger(__name__)


def summary_path(logs_dir: Path, stamp: str) -> Path:
    return logs_dir / f"install_summary_{stamp}.json"


def write_summary(summary: InstallSummary, path: Path) -> Path:
    """Save the summary as JSON (atomic write).

    Uses write-to-temp-then-rename to prevent a truncated file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    data = summary.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".summary_",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.rename(path)
            logger.debug("Summary saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.error("Failed to save summary to %s: %s", path, e)
        raise
    return path
