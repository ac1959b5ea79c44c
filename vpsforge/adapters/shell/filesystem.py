"""
Filesystem adapter — write FileSpec steps with receipts.

Writes are atomic (temp file in the same directory, then rename) so a
half-written sudoers or profile file can never be left behind.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.core.models.action import Receipt

logger = logging.getLogger(__name__)


def file_matches(path: Path, content: str, mode: int) -> bool:
    """Whether ``path`` already holds exactly ``content`` with ``mode``."""
    try:
        if not path.is_file():
            return False
        if path.read_text(encoding="utf-8") != content:
            return False
        return (path.stat().st_mode & 0o7777) == mode
    except (OSError, UnicodeDecodeError):
        return False


class FilesystemAdapter(Adapter):
    """Write a file with exact content, mode and (optionally) owner.

    Action params:
        path (str): Target path (placeholders allowed).
        content (str): Exact file content (placeholders allowed).
        mode (int): Permission bits (default 0o644).
        owner (str): Optional ``user`` or ``user:group``.
    """

    @property
    def name(self) -> str:
        return "file"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        if not params.get("path"):
            return False, "Missing required param: 'path'"
        if "content" not in params:
            return False, "Missing required param: 'content'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        install = context.install
        params = context.action.params
        target = Path(install.expand(params["path"]))
        content = install.expand(params["content"])
        mode = int(params.get("mode", 0o644))
        owner = params.get("owner")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".vpsforge_", suffix=".tmp")
            tmp = Path(tmp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(content)
                os.chmod(tmp, mode)
                if owner:
                    user, _, group = install.expand(owner).partition(":")
                    shutil.chown(tmp, user=user, group=group or None)
                tmp.replace(target)
            except Exception:
                tmp.unlink(missing_ok=True)
                raise
        except (OSError, LookupError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                command=f"write {target}",
                metadata={"path": str(target)},
            )

        logger.debug("Wrote %d bytes to %s", len(content), target)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Written {len(content)} bytes to {target}",
            command=f"write {target}",
            metadata={"path": str(target), "size": len(content), "mode": oct(mode)},
        )
