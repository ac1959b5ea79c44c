"""
Mock adapter — stand-in for the host in tests.

Records every dispatch and answers from canned rules.  Rules match the
action id with ``fnmatch`` and the most recently added rule wins, so
``set_failure("agents.*:verify:*")`` fails every agent check at once
and an exact id still overrides it afterwards.  Unmatched actions
succeed.
"""

from __future__ import annotations

import shlex
from fnmatch import fnmatchcase

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.core.models.action import Receipt


class MockAdapter(Adapter):
    def __init__(
        self,
        name: str = "mock",
        available: bool = True,
        output: str = "[mock] executed",
    ):
        self._name = name
        self._available = available
        self._output = output
        self._rules: list[tuple[str, Receipt]] = []
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    @property
    def action_ids(self) -> list[str]:
        """Ids of every executed action, in dispatch order."""
        return [ctx.action.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(self, pattern: str, receipt: Receipt) -> None:
        self._rules.append((pattern, receipt))

    def set_failure(self, pattern: str, error: str = "Mock failure", return_code: int = 1) -> None:
        self.set_response(
            pattern,
            Receipt.failure(adapter=self._name, action_id=pattern, error=error, return_code=return_code),
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        action = context.action

        for pattern, canned in reversed(self._rules):
            if fnmatchcase(action.id, pattern):
                return canned.model_copy(update={"action_id": action.id})

        argv = action.params.get("argv")
        return Receipt.success(
            adapter=self._name,
            action_id=action.id,
            output=self._output,
            command=shlex.join(argv) if isinstance(argv, list) else "",
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self.call_log.clear()
        self._rules.clear()
