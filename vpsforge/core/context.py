"""
Install context — everything a run needs to know, passed explicitly.

One ``InstallContext`` is built at startup from ``Settings`` plus CLI
flags and threaded through the installer, doctor, updater and adapters.
There is no module-level state: two contexts can coexist in one process
(tests rely on that).
"""

from __future__ import annotations

import getpass
import os
import shlex
from pathlib import Path

from pydantic import BaseModel, Field

from vpsforge.core.models.module import Mode
from vpsforge.core.models.settings import Settings


class InstallContext(BaseModel):
    """Run-wide parameters for install, doctor and update."""

    mode: Mode = "vibe"
    target_user: str = "ubuntu"
    target_home: str = "/home/ubuntu"
    dry_run: bool = False
    assume_yes: bool = False
    logs_dir: str = "{home}/.vpsforge/logs"
    fix_entrypoint: str = "vpsforge install"
    extra_path: list[str] = Field(default_factory=list)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: object) -> InstallContext:
        """Build a context from settings; ``None`` overrides are ignored."""
        data = {
            "mode": settings.mode,
            "target_user": settings.target_user,
            "target_home": settings.resolved_home(),
            "logs_dir": settings.logs_dir,
            "fix_entrypoint": settings.fix_entrypoint,
            "extra_path": list(settings.extra_path),
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)

    def expand(self, value: str) -> str:
        """Expand ``{home}``, ``{user}`` and ``{mode}`` in a single string."""
        return (
            value.replace("{home}", self.target_home)
            .replace("{user}", self.target_user)
            .replace("{mode}", self.mode)
        )

    def expand_all(self, values: list[str]) -> list[str]:
        return [self.expand(v) for v in values]

    def command_line(self, argv: list[str]) -> str:
        """Shell-quoted display of ``argv`` after expansion."""
        return shlex.join(self.expand_all(argv))

    def resolve_user(self, user: str) -> str:
        """Map a Command's ``user`` field to a concrete account name."""
        if user == "self":
            return current_user()
        if user == "target":
            return self.target_user
        return self.expand(user)

    def search_path(self) -> str:
        """PATH used for commands and binary lookups (user tool dirs first)."""
        parts = self.expand_all(self.extra_path)
        parts.extend(p for p in os.environ.get("PATH", "").split(os.pathsep) if p)
        ordered: list[str] = []
        for part in parts:
            if part not in ordered:
                ordered.append(part)
        return os.pathsep.join(ordered)

    @property
    def logs_path(self) -> Path:
        return Path(self.expand(self.logs_dir))


def current_user() -> str:
    """Name of the account running this process."""
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "root" if os.geteuid() == 0 else str(os.geteuid())
