"""
Updater — bring installed tooling up to date.

Scopes:
    all      apt upgrade + every installed module with update commands
    apt      system packages only
    agents   modules in the ``agents`` category
    cloud    modules in the ``cloud`` category
    stack    modules in the ``stack`` category

A module is only updated if it is installed (its first verify command
passes); otherwise it is skipped.  Update commands are dispatched with
ids ``<module_id>:update:<n>``; apt commands use ``apt:update:<n>``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.core.context import InstallContext
from vpsforge.core.models.action import Action
from vpsforge.core.models.module import Command, Module

logger = logging.getLogger(__name__)

SCOPES = ("all", "apt", "agents", "cloud", "stack")

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

APT_COMMANDS: list[Command] = [
    Command(argv=["apt-get", "update", "-y"], user="root", env=_APT_ENV),
    Command(argv=["apt-get", "upgrade", "-y"], user="root", env=_APT_ENV),
    Command(argv=["apt-get", "autoremove", "-y"], user="root", env=_APT_ENV),
]


@dataclass
class UpdateResult:
    target: str
    status: str                     # updated, skipped, failed, dry_run
    message: str = ""
    failed_command: str | None = None
    dry_run_lines: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"target": self.target, "status": self.status, "message": self.message}
        if self.failed_command:
            data["failed_command"] = self.failed_command
        if self.dry_run_lines:
            data["dry_run_lines"] = self.dry_run_lines
        return data


@dataclass
class UpdateReport:
    scope: str = "all"
    dry_run: bool = False
    results: list[UpdateResult] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def ok(self) -> bool:
        return not any(r.failed for r in self.results)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "dry_run": self.dry_run,
            "ok": self.ok,
            "summary": {s: self.count(s) for s in ("updated", "skipped", "failed", "dry_run")},
            "results": [r.to_dict() for r in self.results],
        }


def modules_for_scope(modules: list[Module], scope: str) -> list[Module]:
    """Modules with update commands that belong to ``scope``."""
    if scope not in SCOPES:
        raise ValueError(f"Unknown update scope: {scope}")
    if scope == "apt":
        return []
    candidates = [m for m in modules if m.update]
    if scope == "all":
        return candidates
    return [m for m in candidates if m.phase == scope]


class Updater:
    """Run update commands through the adapter registry."""

    def __init__(self, registry: AdapterRegistry, ctx: InstallContext):
        self._registry = registry
        self._ctx = ctx

    def run(self, modules: list[Module], scope: str = "all") -> UpdateReport:
        report = UpdateReport(scope=scope, dry_run=self._ctx.dry_run)

        if scope in ("all", "apt"):
            report.results.append(self._run_commands("apt", "apt", APT_COMMANDS))

        for module in modules_for_scope(modules, scope):
            if not module.enabled_in(self._ctx.mode):
                continue
            if not self._is_installed(module):
                report.results.append(UpdateResult(module.id, "skipped", "not installed"))
                continue
            report.results.append(self._run_commands(module.id, module.id, module.update))

        return report

    def _is_installed(self, module: Module) -> bool:
        if not module.verify:
            return True
        cmd = module.verify[0]
        receipt = self._registry.execute_action(
            Action(
                id=f"{module.id}:verify:0",
                adapter="shell",
                module_id=module.id,
                params={"argv": cmd.argv, "user": cmd.user, "cwd": cmd.cwd, "timeout": cmd.timeout},
            ),
            self._ctx,
        )
        return receipt.ok

    def _run_commands(self, target: str, id_prefix: str, commands: list[Command]) -> UpdateResult:
        if self._ctx.dry_run:
            planned = [f"dry-run: update: {self._ctx.command_line(cmd.argv)} ({cmd.user})" for cmd in commands]
            for line in planned:
                logger.info("%s", line)
            return UpdateResult(target, "dry_run", f"{len(commands)} command(s) not run", dry_run_lines=planned)

        for index, cmd in enumerate(commands):
            receipt = self._registry.execute_action(
                Action(
                    id=f"{id_prefix}:update:{index}",
                    adapter="shell",
                    module_id=None if target == "apt" else target,
                    params={
                        "argv": cmd.argv,
                        "user": cmd.user,
                        "cwd": cmd.cwd,
                        "env": cmd.env,
                        "timeout": cmd.timeout,
                    },
                ),
                self._ctx,
            )
            if not receipt.ok:
                display = self._ctx.command_line(cmd.argv)
                logger.error("%s: update command failed: %s", target, display)
                return UpdateResult(target, "failed", receipt.error or "command failed", failed_command=display)

        return UpdateResult(target, "updated", f"{len(commands)} command(s) ok")
