"""
Doctor use case — verify installed state without changing it.
"""

from __future__ import annotations

from dataclasses import dataclass

from vpsforge.adapters.registry import AdapterRegistry, build_default_registry
from vpsforge.core.context import InstallContext
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module
from vpsforge.core.models.settings import Settings
from vpsforge.core.observability.health import DoctorReport
from vpsforge.core.services.doctor import run_doctor


@dataclass
class DoctorResult:
    report: DoctorReport | None = None
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error or self.report is None:
            return 1
        return 0 if self.report.healthy else 1

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return self.report.to_dict() if self.report else {}


def run_checks(
    settings: Settings,
    modules: list[Module],
    ctx: InstallContext,
    registry: AdapterRegistry | None = None,
) -> DoctorResult:
    if registry is None:
        try:
            registry = build_default_registry(settings)
        except ConfigError as e:
            return DoctorResult(error=str(e))
    return DoctorResult(report=run_doctor(modules, registry, ctx))
