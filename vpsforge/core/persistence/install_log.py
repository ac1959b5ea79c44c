"""
Install log — append-only plain-text record of one run.

    <logs_dir>/install-YYYYmmdd_HHMMSS.log

    === vpsforge Install Log ===
    Started: 2026-01-01T12:00:00+00:00
    Mode: vibe
    User: ubuntu (/home/ubuntu)

    [12:00:01] [base.system] Base packages
    ...

Lines are flushed as they are written so a crash leaves a usable log.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

from vpsforge import __version__
from vpsforge.core.context import InstallContext

logger = logging.getLogger(__name__)

LOG_HEADER = "=== vpsforge Install Log ==="


def run_stamp(now: datetime | None = None) -> str:
    """Timestamp used in artifact file names."""
    return (now or datetime.now(UTC)).strftime("%Y%m%d_%H%M%S")


class InstallLog:
    """Append-only log file for a single install run."""

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def create(cls, ctx: InstallContext, stamp: str | None = None) -> InstallLog:
        """Create ``install-<stamp>.log`` in the logs dir and write the header."""
        logs_dir = ctx.logs_path
        logs_dir.mkdir(parents=True, exist_ok=True)
        log = cls(logs_dir / f"install-{stamp or run_stamp()}.log")
        with log.path.open("a", encoding="utf-8") as fh:
            fh.write(f"{LOG_HEADER}\n")
            fh.write(f"Started: {datetime.now(UTC).isoformat()}\n")
            fh.write(f"Version: {__version__}\n")
            fh.write(f"Mode: {ctx.mode}{' (dry-run)' if ctx.dry_run else ''}\n")
            fh.write(f"User: {ctx.target_user} ({ctx.target_home})\n\n")
        logger.debug("Install log: %s", log.path)
        return log

    def line(self, message: str) -> None:
        stamp = datetime.now(UTC).strftime("%H:%M:%S")
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(f"[{stamp}] {message}\n")

    def close(self, status: str, total_seconds: int) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(f"\nFinished: {datetime.now(UTC).isoformat()}\n")
            fh.write(f"Status: {status} ({total_seconds}s)\n")
