"""
Settings — the validated contents of ``vpsforge.yml``.

Every field has a default so a missing file is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from vpsforge.core.models.module import Mode


class BackoffSettings(BaseModel):
    """Retry policy for rate-limited fetches."""

    initial: float = 1
    multiplier: float = 2
    max_backoff: float = 60
    max_retries: int = 5
    timeout: int = 30


class Settings(BaseModel):
    """Top-level configuration."""

    mode: Mode = "vibe"
    target_user: str = "ubuntu"
    target_home: str = ""            # empty = /root or /home/<target_user>
    logs_dir: str = "{home}/.vpsforge/logs"
    checksums_file: str = ""         # empty = bundled checksums.yaml
    manifest_file: str = ""          # empty = built-in module table
    fix_entrypoint: str = "vpsforge install"
    extra_path: list[str] = Field(
        default_factory=lambda: [
            "{home}/.local/bin",
            "{home}/.bun/bin",
            "{home}/.cargo/bin",
            "{home}/.atuin/bin",
        ]
    )
    backoff: BackoffSettings = Field(default_factory=BackoffSettings)

    def resolved_home(self) -> str:
        if self.target_home:
            return self.target_home
        if self.target_user == "root":
            return "/root"
        return f"/home/{self.target_user}"
