"""
Shell command adapter — the single place where host commands run.

Commands arrive as argv lists (never shell strings).  Placeholders are
expanded per element, the command is wrapped for the requested user,
and stdout/stderr are captured into the Receipt.

User switching:
    same account          run directly
    running as root       sudo -n -u <user> -H env PATH=... <argv>
    need root, not root   sudo -n env PATH=... <argv>
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from pathlib import Path

from vpsforge.adapters.base import Adapter, ExecutionContext
from vpsforge.core.context import current_user
from vpsforge.core.models.action import Receipt

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 2000


def wrap_for_user(
    argv: list[str],
    user: str,
    *,
    path: str,
    env: dict[str, str] | None = None,
) -> list[str]:
    """Prefix ``argv`` so it runs as ``user``.

    Pure: no I/O besides reading the current uid.
    """
    if user == current_user():
        return list(argv)

    env_args = [f"PATH={path}"] + [f"{k}={v}" for k, v in (env or {}).items()]
    if user == "root":
        return ["sudo", "-n", "env", *env_args, *argv]
    return ["sudo", "-n", "-u", user, "-H", "env", *env_args, *argv]


class ShellCommandAdapter(Adapter):
    """Execute argv commands and capture output.

    Action params:
        argv (list[str]): The command.
        user (str): ``self``, ``root``, ``target`` or a username (default: self).
        cwd (str): Working directory (default: target home if it exists).
        env (dict): Extra environment variables.
        timeout (int): Seconds (default: 900).
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        argv = context.action.params.get("argv")
        if not argv or not isinstance(argv, list):
            return False, "Missing required param: 'argv'"
        if not all(isinstance(a, str) for a in argv):
            return False, "'argv' must be a list of strings"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        install = context.install
        params = context.action.params
        argv = install.expand_all(params["argv"])
        user = install.resolve_user(params.get("user", "self"))
        extra_env = {k: install.expand(v) for k, v in params.get("env", {}).items()}
        timeout = params.get("timeout", 900)
        path = install.search_path()

        cwd: str | None = context.working_dir
        if not Path(cwd).is_dir():
            cwd = None

        cmd = wrap_for_user(argv, user, path=path, env=extra_env)
        display = shlex.join(argv)

        env = os.environ.copy()
        env["PATH"] = path
        env.update(extra_env)

        logger.debug("Executing as %s: %s (cwd=%s)", user, display, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
                env=env,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                command=display,
                metadata={"user": user},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                command=display,
                metadata={"user": user},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip()[-_OUTPUT_TAIL:]
        stderr = result.stderr.strip()[-_OUTPUT_TAIL:]

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=stdout,
                command=display,
                return_code=0,
                duration_ms=elapsed_ms,
                metadata={"user": user, "stderr": stderr},
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"Command exited with code {result.returncode}",
            output=stdout,
            command=display,
            return_code=result.returncode,
            duration_ms=elapsed_ms,
            metadata={"user": user},
        )
