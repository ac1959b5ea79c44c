"""
Adapter base — the contract between the engine and the host.

The installer, doctor and updater never touch the host directly: they
build Actions and dispatch them through the AdapterRegistry to one of

    shell   run a Command argv (as root, the target user, or self)
    file    write a FileSpec
    script  fetch, checksum-verify and run a VendorScript
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from vpsforge.core.context import InstallContext
from vpsforge.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """An adapter's view of one dispatch: the action plus the run context."""

    action: Action
    install: InstallContext

    @property
    def working_dir(self) -> str:
        """``cwd`` from the action params, else the target home."""
        cwd = self.action.params.get("cwd")
        if cwd:
            return self.install.expand(cwd)
        return self.install.target_home


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform host side effects and return receipts.
    They NEVER raise — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (``shell``, ``file``, ``script``)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying tool exists.  Fast, never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Check the action params.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.  Never raises."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
