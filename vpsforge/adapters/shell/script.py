"""
Vendor script adapter — run third-party installers through the checksum gate.

    fetch → verify sha256 → write 0700 temp file → bash <file> <args> → delete

Any gate failure (non-HTTPS, untrusted, mismatch, fetch error) becomes a
failed Receipt before anything is written or executed.
"""

from __future__ import annotations

import logging
import os

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.core.errors import SecurityError, VpsforgeError
from vpsforge.core.models.action import Action, Receipt
from vpsforge.core.services.script_verify import (
    ChecksumTable,
    Fetch,
    cleanup_script,
    verify_and_fetch,
    write_temp_script,
)

logger = logging.getLogger(__name__)


class VendorScriptAdapter(Adapter):
    """Execute a verified vendor script.

    Action params:
        url (str): HTTPS script URL (must be in the checksum table).
        args (list[str]): Arguments passed to the script.
        user (str): Account to run as (default: target).

    The final ``bash`` invocation is delegated to ``runner`` (the shell
    adapter) so user switching and output capture stay in one place.
    """

    def __init__(self, checksums: ChecksumTable, fetch: Fetch, runner: Adapter):
        self._checksums = checksums
        self._fetch = fetch
        self._runner = runner

    @property
    def name(self) -> str:
        return "script"

    def is_available(self) -> bool:
        return self._runner.is_available()

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        params = context.action.params
        if not params.get("url"):
            return False, "Missing required param: 'url'"
        if not isinstance(params.get("args", []), list):
            return False, "'args' must be a list"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        install = context.install
        params = context.action.params
        url = params["url"]
        args = install.expand_all(params.get("args", []))
        user = install.resolve_user(params.get("user", "target"))
        display = f"verified-script {url}"

        try:
            content = verify_and_fetch(url, table=self._checksums, fetch=self._fetch)
        except SecurityError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=str(e),
                command=display,
                metadata={"url": url, "security": True},
            )
        except VpsforgeError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Download failed: {e}",
                command=display,
                metadata={"url": url},
            )

        try:
            script = write_temp_script(content, owner=user if os.geteuid() == 0 else None)
        except (OSError, LookupError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Cannot stage script: {e}",
                command=display,
                metadata={"url": url},
            )

        try:
            run = Action(
                id=context.action.id,
                adapter=self._runner.name,
                module_id=context.action.module_id,
                params={
                    "argv": ["bash", str(script), *args],
                    "user": user,
                    "cwd": params.get("cwd"),
                    "timeout": params.get("timeout", 900),
                },
            )
            receipt = self._runner.execute(ExecutionContext(action=run, install=install))
        finally:
            cleanup_script(script)

        receipt.adapter = self.name
        receipt.command = display
        receipt.metadata = {**receipt.metadata, "url": url, "verified": True}
        return receipt
