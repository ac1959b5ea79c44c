"""
Adapter registry — the one door to the host.

Installer, doctor, updater and guard checks build Actions and hand them
to ``execute_action``; the registry picks the adapter named by
``action.adapter``, validates, and runs it.  Whatever happens, the
caller gets a Receipt back.

Tests call ``route_all(mock)`` so that every action, whatever adapter
it names, lands on a single ``MockAdapter``.
"""

from __future__ import annotations

import logging
import time

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.core.context import InstallContext
from vpsforge.core.models.action import Action, Receipt
from vpsforge.core.models.settings import Settings

logger = logging.getLogger(__name__)


def _validation_problem(adapter: Adapter, context: ExecutionContext) -> str:
    """Empty string when the action is valid for ``adapter``."""
    try:
        ok, message = adapter.validate(context)
    except Exception as e:
        return f"Validation error: {e}"
    return "" if ok else f"Validation failed: {message}"


class AdapterRegistry:
    """Adapters by name, plus dispatch."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}
        self._route_all: Adapter | None = None

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %r", adapter.name)
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def route_all(self, adapter: Adapter | None) -> None:
        """Send every action to ``adapter`` (None restores normal routing)."""
        self._route_all = adapter

    def _resolve(self, action: Action) -> Adapter | None:
        if self._route_all is not None:
            return self._route_all
        return self._adapters.get(action.adapter)

    def execute_action(self, action: Action, install: InstallContext) -> Receipt:
        """Check availability, validate and run ``action``.  Never raises."""
        adapter = self._resolve(action)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        if not adapter.is_available():
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Adapter '{adapter.name}' is not available on this host",
            )

        context = ExecutionContext(action=action, install=install)
        problem = _validation_problem(adapter, context)
        if problem:
            return Receipt.failure(adapter=action.adapter, action_id=action.id, error=problem)

        started = time.monotonic()
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.exception("Adapter %s raised on %s", adapter.name, action.id)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )
        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt


def build_default_registry(settings: Settings, fetcher=None) -> AdapterRegistry:
    """Registry with the real ``shell``, ``file`` and ``script`` adapters.

    Args:
        settings: Source of the checksum table path and backoff policy.
        fetcher: ``BackoffFetcher`` used to download scripts
            (default: built from ``settings.backoff``).

    Raises:
        ConfigError: the checksum table cannot be loaded.
    """
    from vpsforge.adapters.shell.command import ShellCommandAdapter
    from vpsforge.adapters.shell.filesystem import FilesystemAdapter
    from vpsforge.adapters.shell.script import VendorScriptAdapter
    from vpsforge.core.reliability.backoff_fetch import BackoffFetcher
    from vpsforge.core.services.script_verify import ChecksumTable

    shell = ShellCommandAdapter()
    registry = AdapterRegistry()
    registry.register(shell)
    registry.register(FilesystemAdapter())
    registry.register(VendorScriptAdapter(
        checksums=ChecksumTable.load_default(settings.checksums_file or None),
        fetch=(fetcher or BackoffFetcher.from_settings(settings.backoff)).fetch,
        runner=shell,
    ))
    return registry
