"""
InstallSummary — the structured record written at the end of a run.

Serialized to ``<logs_dir>/install_summary_<ts>.json`` for post-hoc
auditing.  The installer never reads it back: re-running relies on
each step's own guard, not on this file.
"""

from __future__ import annotations

import platform
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

SUMMARY_SCHEMA_VERSION = 1


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def detect_ubuntu_version() -> str:
    """``VERSION_ID`` from os-release, or ``"unknown"``."""
    try:
        return platform.freedesktop_os_release().get("VERSION_ID", "unknown")
    except OSError:
        return "unknown"


class EnvironmentInfo(BaseModel):
    """Where and how the run happened."""

    vpsforge_version: str
    mode: str
    ubuntu_version: str = Field(default_factory=detect_ubuntu_version)
    target_user: str
    target_home: str


class PhaseRecord(BaseModel):
    """Aggregate of all modules that share a phase (category)."""

    id: str
    status: Literal["success", "warning", "failure", "skipped"] = "success"
    duration_seconds: float = 0.0
    modules: list[str] = Field(default_factory=list)


class ModuleRecord(BaseModel):
    """Per-module line of the summary."""

    id: str
    status: str
    required: bool = True
    message: str = ""
    failed_command: str | None = None
    duration_seconds: float = 0.0


class InstallSummary(BaseModel):
    """Root document of the JSON summary artifact."""

    schema_version: int = SUMMARY_SCHEMA_VERSION
    operation_id: str = ""
    status: Literal["success", "failure"] = "success"
    timestamp: str = Field(default_factory=_now_iso)
    total_seconds: int = 0
    environment: EnvironmentInfo
    phases: list[PhaseRecord] = Field(default_factory=list)
    modules: list[ModuleRecord] = Field(default_factory=list)
    log_file: str | None = None
