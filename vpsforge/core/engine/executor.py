"""
Engine executor — the install orchestration loop.

Flow:
    modules → validate graph → order → select (mode, --only)
            → install each in turn → aggregate phases → summary

A failing module never aborts the run.  Modules that depend on a failed
(or skipped) module are skipped with a reason.  The run fails if any
required module failed or was skipped.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vpsforge import __version__
from vpsforge.core.context import InstallContext
from vpsforge.core.engine.dag import resolve_install_order, select_modules
from vpsforge.core.engine.installer import FAILED, SKIPPED, Installer, ModuleResult, skipped_result
from vpsforge.core.models.module import Module
from vpsforge.core.models.summary import EnvironmentInfo, InstallSummary, PhaseRecord

logger = logging.getLogger(__name__)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


def build_plan(
    modules: list[Module],
    mode: str,
    only: list[str] | tuple[str, ...] | None = None,
) -> list[Module]:
    """Dependency-ordered list of modules to install in ``mode``."""
    return select_modules(resolve_install_order(modules), mode, only)


@dataclass
class InstallReport:
    """Result of executing an install plan."""

    operation_id: str = ""
    mode: str = "vibe"
    dry_run: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    total_seconds: float = 0.0
    results: list[ModuleResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> list[ModuleResult]:
        return [r for r in self.results if r.status == FAILED]

    @property
    def skipped(self) -> list[ModuleResult]:
        return [r for r in self.results if r.status == SKIPPED]

    @property
    def required_failures(self) -> list[ModuleResult]:
        return [r for r in self.results if r.required and r.status in (FAILED, SKIPPED)]

    @property
    def status(self) -> str:
        return "failure" if self.required_failures else "success"

    @property
    def exit_code(self) -> int:
        return 1 if self.required_failures else 0

    def result_for(self, module_id: str) -> ModuleResult | None:
        for r in self.results:
            if r.module_id == module_id:
                return r
        return None

    def phases(self) -> list[PhaseRecord]:
        """Aggregate module results by phase, in first-seen order."""
        grouped: dict[str, list[ModuleResult]] = {}
        for r in self.results:
            grouped.setdefault(r.phase or r.module_id.split(".", 1)[0], []).append(r)

        records: list[PhaseRecord] = []
        for phase_id, results in grouped.items():
            if all(r.status == SKIPPED for r in results):
                status = "skipped"
            elif any(r.required and r.status in (FAILED, SKIPPED) for r in results):
                status = "failure"
            elif any(r.status in (FAILED, SKIPPED) for r in results):
                status = "warning"
            else:
                status = "success"
            records.append(PhaseRecord(
                id=phase_id,
                status=status,
                duration_seconds=round(sum(r.duration_seconds for r in results), 3),
                modules=[r.module_id for r in results],
            ))
        return records

    def to_summary(self, ctx: InstallContext, log_file: str | None = None) -> InstallSummary:
        return InstallSummary(
            operation_id=self.operation_id,
            status=self.status,
            timestamp=self.started_at,
            total_seconds=int(round(self.total_seconds)),
            environment=EnvironmentInfo(
                vpsforge_version=__version__,
                mode=ctx.mode,
                target_user=ctx.target_user,
                target_home=ctx.target_home,
            ),
            phases=self.phases(),
            modules=[r.to_record() for r in self.results],
            log_file=log_file,
        )

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "mode": self.mode,
            "dry_run": self.dry_run,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "total_seconds": round(self.total_seconds, 3),
            "modules": [r.to_dict() for r in self.results],
        }


def execute_plan(
    plan: list[Module],
    installer: Installer,
    ctx: InstallContext,
    operation_id: str | None = None,
) -> InstallReport:
    """Install every module in ``plan`` sequentially.

    Args:
        plan: Ordered modules (from ``build_plan``).
        installer: Installer bound to a registry and context.
        ctx: Run context.
        operation_id: Optional explicit operation id.

    Returns:
        InstallReport with one ModuleResult per planned module.
    """
    report = InstallReport(
        operation_id=operation_id or generate_operation_id(),
        mode=ctx.mode,
        dry_run=ctx.dry_run,
    )
    start = time.monotonic()
    blocked: set[str] = set()

    for module in plan:
        broken = [dep for dep in module.depends_on if dep in blocked]
        if broken:
            result = skipped_result(module, f"skipped: dependency failed: {', '.join(broken)}")
        else:
            result = installer.install(module)

        if result.status in (FAILED, SKIPPED):
            blocked.add(module.id)

        report.results.append(result)
        marker = "✓" if result.ok else "✗" if result.status == FAILED else "⊘"
        logger.info("%s %s → %s", marker, module.id, result.status)

    report.total_seconds = time.monotonic() - start
    return report
