"""
Installer — run one module's install steps idempotently.

For each step:

    guard holds (or file already matches)  → already present, skip
    dry-run                                → plan "dry-run: install: <cmd> (<user>)"
    otherwise                              → execute through the registry
                                             non-zero exit fails the module

After the steps, the module's verify commands run; a failing verify
fails the module.  In dry-run they are planned as
"dry-run: verify: <cmd> (<user>)" instead.  Planned lines are kept on
``ModuleResult.dry_run_lines`` for the CLI to print.

A failed module never raises out of ``install``: the failure is
returned as a ``ModuleResult`` naming the exact command.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.adapters.shell.filesystem import file_matches
from vpsforge.core.context import InstallContext
from vpsforge.core.errors import InstallStepFailure, VerifyFailure
from vpsforge.core.models.action import Action, Receipt
from vpsforge.core.models.module import InstallStep, Module
from vpsforge.core.models.summary import ModuleRecord
from vpsforge.core.persistence.install_log import InstallLog
from vpsforge.core.services.guards import GuardCheck

logger = logging.getLogger(__name__)

INSTALLED = "installed"
ALREADY_PRESENT = "already_present"
FAILED = "failed"
SKIPPED = "skipped"
DRY_RUN = "dry_run"


@dataclass
class StepOutcome:
    """What happened to a single install step."""

    index: int
    description: str
    command: str
    status: str                         # ran, already_present, dry_run, failed
    receipt: Receipt | None = None

    @property
    def mutated(self) -> bool:
        return self.status in ("ran", "failed")


@dataclass
class ModuleResult:
    """Outcome of installing one module."""

    module_id: str
    status: str
    required: bool = True
    phase: str = ""
    message: str = ""
    failed_command: str | None = None
    error: str | None = None
    steps: list[StepOutcome] = field(default_factory=list)
    dry_run_lines: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (INSTALLED, ALREADY_PRESENT, DRY_RUN)

    @property
    def mutating_steps(self) -> int:
        return sum(1 for s in self.steps if s.mutated)

    def to_record(self) -> ModuleRecord:
        return ModuleRecord(
            id=self.module_id,
            status=self.status,
            required=self.required,
            message=self.message,
            failed_command=self.failed_command,
            duration_seconds=round(self.duration_seconds, 3),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.to_record().model_dump(),
            "error": self.error,
            "dry_run_lines": self.dry_run_lines,
            "steps": [
                {"index": s.index, "description": s.description, "command": s.command, "status": s.status}
                for s in self.steps
            ],
        }


def skipped_result(module: Module, reason: str) -> ModuleResult:
    return ModuleResult(
        module_id=module.id,
        status=SKIPPED,
        required=module.required,
        phase=module.phase,
        message=reason,
    )


class Installer:
    """Install modules one at a time through the adapter registry."""

    def __init__(
        self,
        registry: AdapterRegistry,
        ctx: InstallContext,
        log: InstallLog | None = None,
    ):
        self._registry = registry
        self._ctx = ctx
        self._log = log
        self._guards = GuardCheck(registry, ctx)

    def install(self, module: Module) -> ModuleResult:
        start = time.monotonic()
        result = ModuleResult(
            module_id=module.id,
            status=INSTALLED,
            required=module.required,
            phase=module.phase,
        )
        self._note(f"[{module.id}] {module.description or 'installing'}")

        try:
            for index, step in enumerate(module.install):
                outcome = self._run_step(module, index, step)
                result.steps.append(outcome)
                if outcome.status == DRY_RUN:
                    self._plan(result, f"dry-run: install: {outcome.command} ({step.user})")
                if outcome.status == FAILED:
                    assert outcome.receipt is not None  # set whenever a step ran
                    raise InstallStepFailure(
                        module.id,
                        outcome.command,
                        error=outcome.receipt.error or "",
                        return_code=outcome.receipt.return_code,
                    )

            if self._ctx.dry_run:
                for cmd in module.verify:
                    self._plan(result, f"dry-run: verify: {self._ctx.command_line(cmd.argv)} ({cmd.user})")
                result.status = DRY_RUN
                result.message = "dry-run: no changes made"
            else:
                self._verify(module)
                if result.mutating_steps == 0:
                    result.status = ALREADY_PRESENT
                    result.message = "success, already present"
                else:
                    result.status = INSTALLED
                    result.message = "installed"

        except InstallStepFailure as e:
            result.status = FAILED
            result.message = str(e)
            result.failed_command = e.command
            result.error = e.error
        except VerifyFailure as e:
            result.status = FAILED
            result.message = str(e)
            result.failed_command = e.command
            result.error = e.error

        result.duration_seconds = time.monotonic() - start
        if result.ok:
            self._note(f"[{module.id}] {result.message}")
        else:
            logger.error("%s", result.message)
            self._note(f"[{module.id}] FAILED: {result.message}")
            if result.error:
                self._note(f"[{module.id}]   {result.error}")
        return result

    # ── Steps ──

    def _run_step(self, module: Module, index: int, step: InstallStep) -> StepOutcome:
        command = self._display(step)
        outcome = StepOutcome(index=index, description=step.description, command=command, status="ran")

        if self._already_done(step):
            outcome.status = ALREADY_PRESENT
            logger.debug("%s step %d already present: %s", module.id, index, command)
            return outcome

        if self._ctx.dry_run:
            outcome.status = DRY_RUN
            return outcome

        if step.description:
            self._note(f"[{module.id}] {step.description}")
        receipt = self._registry.execute_action(self._action_for(module, index, step), self._ctx)
        outcome.receipt = receipt
        if not receipt.ok:
            outcome.status = FAILED
        return outcome

    def _display(self, step: InstallStep) -> str:
        if step.run is not None:
            return self._ctx.command_line(step.run.argv)
        return self._ctx.expand(step.display())

    def _already_done(self, step: InstallStep) -> bool:
        if step.skip_if is not None and self._guards.holds(step.skip_if):
            return True
        if step.file is not None:
            spec = step.file
            return file_matches(Path(self._ctx.expand(spec.path)), self._ctx.expand(spec.content), spec.mode)
        return False

    def _action_for(self, module: Module, index: int, step: InstallStep) -> Action:
        action_id = f"{module.id}:install:{index}"
        if step.run is not None:
            cmd = step.run
            params: dict[str, Any] = {
                "argv": cmd.argv,
                "user": cmd.user,
                "cwd": cmd.cwd,
                "env": cmd.env,
                "timeout": cmd.timeout,
            }
        elif step.script is not None:
            params = {"url": step.script.url, "args": step.script.args, "user": step.script.user}
        else:
            assert step.file is not None
            params = {
                "path": step.file.path,
                "content": step.file.content,
                "mode": step.file.mode,
                "owner": step.file.owner,
            }
        return Action(
            id=action_id,
            adapter=step.kind,
            description=step.description,
            module_id=module.id,
            params=params,
        )

    def _verify(self, module: Module) -> None:
        for index, cmd in enumerate(module.verify):
            receipt = self._registry.execute_action(
                Action(
                    id=f"{module.id}:verify:{index}",
                    adapter="shell",
                    module_id=module.id,
                    params={"argv": cmd.argv, "user": cmd.user, "cwd": cmd.cwd, "timeout": cmd.timeout},
                ),
                self._ctx,
            )
            if not receipt.ok:
                raise VerifyFailure(module.id, self._ctx.command_line(cmd.argv), error=receipt.error or "")

    def _plan(self, result: ModuleResult, line: str) -> None:
        result.dry_run_lines.append(line)
        self._note(line)

    def _note(self, message: str) -> None:
        logger.info("%s", message)
        if self._log is not None:
            self._log.line(message)
