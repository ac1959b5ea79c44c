"""
Health report — the doctor's result types.

One ``CheckResult`` per module, aggregated into a ``DoctorReport``.
Both the human tree and the JSON output are rendered from the same
report, so the two views can never disagree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

PASS = "pass"
WARN = "warn"
FAIL = "fail"


@dataclass
class CheckResult:
    """Verification outcome for a single module."""

    module_id: str
    status: str = PASS              # pass, warn, fail
    message: str = ""
    fix: str | None = None
    category: str = ""
    required: bool = True
    failed_commands: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.module_id

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.module_id,
            "module_id": self.module_id,
            "category": self.category,
            "status": self.status,
            "required": self.required,
            "message": self.message,
        }
        if self.fix:
            data["fix"] = self.fix
        if self.failed_commands:
            data["failed_commands"] = self.failed_commands
        return data


@dataclass
class DoctorReport:
    """Aggregate of every module check."""

    mode: str = ""
    timestamp: str = ""
    checks: list[CheckResult] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamp:
            self.timestamp = datetime.now(UTC).isoformat()

    def add(self, check: CheckResult) -> None:
        self.checks.append(check)

    def count(self, status: str) -> int:
        return sum(1 for c in self.checks if c.status == status)

    @property
    def summary(self) -> dict[str, int]:
        return {PASS: self.count(PASS), WARN: self.count(WARN), FAIL: self.count(FAIL)}

    @property
    def status(self) -> str:
        """Worst status across all checks."""
        if self.count(FAIL):
            return FAIL
        if self.count(WARN):
            return WARN
        return PASS

    @property
    def healthy(self) -> bool:
        """True when no required module failed."""
        return self.count(FAIL) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "timestamp": self.timestamp,
            "status": self.status,
            "summary": self.summary,
            "checks": [c.to_dict() for c in self.checks],
        }
