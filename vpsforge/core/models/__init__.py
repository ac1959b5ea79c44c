"""
Domain models — Pydantic types for vpsforge.

    from vpsforge.core.models import Module, InstallStep, Command, Receipt
"""

from vpsforge.core.models.action import Action, Receipt
from vpsforge.core.models.module import (
    ALL_MODES,
    Command,
    FileSpec,
    Guard,
    InstallStep,
    Mode,
    Module,
    VendorScript,
)
from vpsforge.core.models.settings import BackoffSettings, Settings
from vpsforge.core.models.summary import (
    EnvironmentInfo,
    InstallSummary,
    ModuleRecord,
    PhaseRecord,
)

__all__ = [
    "ALL_MODES",
    "Action",
    "BackoffSettings",
    "Command",
    "EnvironmentInfo",
    "FileSpec",
    "Guard",
    "InstallStep",
    "InstallSummary",
    "Mode",
    "Module",
    "ModuleRecord",
    "PhaseRecord",
    "Receipt",
    "Settings",
    "VendorScript",
]
