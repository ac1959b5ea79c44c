"""
Doctor — independently re-verify every module's installed state.

Read-only: the only actions dispatched are the modules' ``verify``
commands (ids ``<module_id>:verify:<n>``).  Nothing is installed,
written or fixed; failing checks carry a remediation command instead.

Classification per module:
    all verify commands succeed         → pass
    any fails, module required          → fail
    any fails, module optional          → warn
"""

from __future__ import annotations

import logging

from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.core.context import InstallContext
from vpsforge.core.models.action import Action
from vpsforge.core.models.module import Module
from vpsforge.core.observability.health import FAIL, PASS, WARN, CheckResult, DoctorReport

logger = logging.getLogger(__name__)

DEFAULT_ENTRYPOINT = "vpsforge install"


def build_fix_hint(module_id: str, mode: str, entrypoint: str = DEFAULT_ENTRYPOINT) -> str:
    """Remediation command that re-runs just ``module_id``.

    Pure string template; nothing is executed.
    """
    return f"{entrypoint} --yes --mode {mode} --only {module_id}"


def check_module(module: Module, registry: AdapterRegistry, ctx: InstallContext) -> CheckResult:
    """Run one module's verify commands and classify the outcome."""
    failed: list[str] = []
    errors: list[str] = []

    for index, cmd in enumerate(module.verify):
        receipt = registry.execute_action(
            Action(
                id=f"{module.id}:verify:{index}",
                adapter="shell",
                description=f"verify {module.id}",
                module_id=module.id,
                params={"argv": cmd.argv, "user": cmd.user, "cwd": cmd.cwd, "timeout": cmd.timeout},
            ),
            ctx,
        )
        if not receipt.ok:
            failed.append(ctx.command_line(cmd.argv))
            if receipt.error:
                errors.append(receipt.error.splitlines()[0])

    check = CheckResult(
        module_id=module.id,
        category=module.category,
        required=module.required,
    )

    if not module.verify:
        check.message = "no verify commands"
        return check

    if not failed:
        check.status = PASS
        check.message = module.description or "ok"
        return check

    check.status = FAIL if module.required else WARN
    check.failed_commands = failed
    check.message = f"{len(failed)}/{len(module.verify)} checks failed: {failed[0]}"
    if errors:
        check.message += f" ({errors[0]})"
    check.fix = build_fix_hint(module.id, ctx.mode, ctx.fix_entrypoint)
    return check


def run_doctor(modules: list[Module], registry: AdapterRegistry, ctx: InstallContext) -> DoctorReport:
    """Check every module enabled in ``ctx.mode``, one at a time, in order."""
    report = DoctorReport(mode=ctx.mode)
    for module in modules:
        if not module.enabled_in(ctx.mode):
            continue
        check = check_module(module, registry, ctx)
        logger.debug("doctor %s → %s", module.id, check.status)
        report.add(check)
    return report
