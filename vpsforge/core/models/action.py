"""
Action and Receipt models — the execution contract.

The installer turns each install step, verify command and guard check into
an Action.  Adapters execute Actions and return Receipts.  Never
exceptions: a non-zero exit is a Receipt with ``status="failed"``.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A single operation dispatched to an adapter.

    Ids are deterministic so that tests can target them:
    ``<module_id>:install:<n>``, ``<module_id>:verify:<n>``,
    ``<module_id>:update:<n>`` and ``guard:<kind>:<target>``.
    """

    id: str
    adapter: str                    # shell, file, script
    description: str = ""
    module_id: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)


class Receipt(BaseModel):
    """Outcome of executing one Action."""

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    command: str = ""               # display form of what ran
    return_code: int | None = None
    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
