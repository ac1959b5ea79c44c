"""
Update use case — upgrade apt packages and installed tools.
"""

from __future__ import annotations

from dataclasses import dataclass

from vpsforge.adapters.registry import AdapterRegistry, build_default_registry
from vpsforge.core.context import InstallContext
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module
from vpsforge.core.models.settings import Settings
from vpsforge.core.services.updater import UpdateReport, Updater


@dataclass
class UpdateRunResult:
    report: UpdateReport | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error or self.report is None:
            return 1
        return self.report.exit_code

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return self.report.to_dict() if self.report else {}


def run_update(
    settings: Settings,
    modules: list[Module],
    ctx: InstallContext,
    scope: str = "all",
    registry: AdapterRegistry | None = None,
) -> UpdateRunResult:
    if registry is None:
        try:
            registry = build_default_registry(settings)
        except ConfigError as e:
            return UpdateRunResult(error=str(e))
    return UpdateRunResult(report=Updater(registry, ctx).run(modules, scope))
