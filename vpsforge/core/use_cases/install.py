"""
Install use case — from ``vpsforge install`` flags to written artifacts.

    settings + modules → plan → install each module → log + JSON summary
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vpsforge.adapters.registry import AdapterRegistry, build_default_registry
from vpsforge.core.context import InstallContext
from vpsforge.core.engine.executor import InstallReport, build_plan, execute_plan
from vpsforge.core.engine.installer import Installer
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module
from vpsforge.core.models.settings import Settings
from vpsforge.core.persistence.install_log import InstallLog, run_stamp
from vpsforge.core.persistence.summary_file import summary_path, write_summary

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    report: InstallReport | None = None
    log_file: Path | None = None
    summary_file: Path | None = None
    planned: list[str] | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error or self.report is None:
            return 1
        return self.report.exit_code

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result
        result["planned"] = self.planned or []
        if self.report:
            result["report"] = self.report.to_dict()
        result["log_file"] = str(self.log_file) if self.log_file else None
        result["summary_file"] = str(self.summary_file) if self.summary_file else None
        return result


def run_install(
    settings: Settings,
    modules: list[Module],
    ctx: InstallContext,
    only: list[str] | tuple[str, ...] | None = None,
    registry: AdapterRegistry | None = None,
    write_artifacts: bool = True,
) -> InstallResult:
    """Install the selected modules and write the log and summary.

    Args:
        settings: Loaded settings (checksum table, backoff policy).
        modules: The module registry.
        ctx: Run context (mode, user, dry-run).
        only: Restrict the run to these module ids.
        registry: Optional pre-configured adapter registry.
        write_artifacts: Write the install log and JSON summary.
    """
    result = InstallResult()

    try:
        plan = build_plan(modules, ctx.mode, only)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.planned = [m.id for m in plan]

    if not plan:
        result.error = f"No modules to install in mode '{ctx.mode}'."
        return result

    if registry is None:
        try:
            registry = build_default_registry(settings)
        except ConfigError as e:
            result.error = str(e)
            return result

    stamp = run_stamp()
    log: InstallLog | None = None
    if write_artifacts:
        try:
            log = InstallLog.create(ctx, stamp)
            result.log_file = log.path
        except OSError as e:
            logger.warning("Cannot create install log in %s: %s", ctx.logs_path, e)

    installer = Installer(registry, ctx, log=log)
    report = execute_plan(plan, installer, ctx)
    result.report = report

    if write_artifacts:
        summary = report.to_summary(ctx, log_file=str(result.log_file) if result.log_file else None)
        try:
            result.summary_file = write_summary(summary, summary_path(ctx.logs_path, stamp))
        except OSError as e:
            logger.warning("Cannot write install summary: %s", e)
        if log is not None:
            log.close(report.status, summary.total_seconds)

    return result
