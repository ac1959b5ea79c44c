"""
Host guard checks — evaluate install-step guards.

Every guard check is read-only.  ``binary``, ``path`` and ``owner`` are checked
in-process; ``package`` and ``command`` need a subprocess and so go
through the adapter registry like everything else that touches the host.
Guard action ids are ``guard:<kind>:<target>``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.core.context import InstallContext
from vpsforge.core.models.action import Action
from vpsforge.core.models.module import Guard

logger = logging.getLogger(__name__)

_DPKG_INSTALLED = "install ok installed"


class GuardCheck:
    """Answer "is this step already done?" for a Guard."""

    def __init__(self, registry: AdapterRegistry, ctx: InstallContext):
        self._registry = registry
        self._ctx = ctx

    def holds(self, guard: Guard) -> bool:
        """True when every target of ``guard`` is satisfied."""
        if guard.kind == "command":
            return self.command_succeeds(guard.argv, guard.user)
        if not guard.targets:
            return False

        for target in guard.targets:
            if guard.kind == "binary":
                ok = self.has_binary(target)
            elif guard.kind == "path":
                ok = self.has_path(target)
            elif guard.kind == "package":
                ok = self.has_package(target)
            else:
                ok = self.has_owner(target, guard.owner)
            if not ok:
                logger.debug("Guard not satisfied: %s %s", guard.kind, target)
                return False
        return True

    # ── Individual checks ──

    def has_binary(self, name: str) -> bool:
        return shutil.which(self._ctx.expand(name), path=self._ctx.search_path()) is not None

    def has_path(self, path: str) -> bool:
        return Path(self._ctx.expand(path)).exists()

    def has_owner(self, path: str, owner: str = "{user}") -> bool:
        try:
            return Path(self._ctx.expand(path)).owner() == self._ctx.expand(owner)
        except (OSError, KeyError):
            return False

    def has_package(self, package: str) -> bool:
        receipt = self._registry.execute_action(
            Action(
                id=f"guard:package:{package}",
                adapter="shell",
                description=f"dpkg status of {package}",
                params={"argv": ["dpkg-query", "-W", "-f=${Status}", package]},
            ),
            self._ctx,
        )
        return receipt.ok and _DPKG_INSTALLED in receipt.output

    def command_succeeds(self, argv: list[str], user: str = "self") -> bool:
        if not argv:
            return False
        receipt = self._registry.execute_action(
            Action(
                id=f"guard:command:{argv[0]}",
                adapter="shell",
                params={"argv": list(argv), "user": user, "timeout": 60},
            ),
            self._ctx,
        )
        return receipt.ok
