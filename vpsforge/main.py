"""
vpsforge — CLI entrypoint.

Usage:
    vpsforge --help
    vpsforge install --yes --mode vibe
    vpsforge install --yes --only agents.claude
    vpsforge doctor --json
    vpsforge update --agents-only --dry-run
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from vpsforge import __version__
from vpsforge.core.models.module import ALL_MODES
from vpsforge.core.observability.logging_config import configure_cli_logging
from vpsforge.ui.cli.common import load_modules_or_exit, load_settings_or_exit, make_context


@click.group()
@click.version_option(version=__version__, prog_name="vpsforge")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to vpsforge.yml (default: auto-detect).",
)
@click.option(
    "--manifest",
    "manifest_path",
    type=click.Path(exists=False),
    default=None,
    help="Module manifest YAML (default: built-in modules).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    manifest_path: str | None,
) -> None:
    """vpsforge — provision a fresh Ubuntu VPS with dev tooling and AI agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["manifest_path"] = Path(manifest_path) if manifest_path else None

    configure_cli_logging(verbose=verbose, quiet=quiet, debug=debug)


# ── install ─────────────────────────────────────────────────────


_RESULT_STYLE = {
    "installed": ("✓", "green"),
    "already_present": ("✓", "green"),
    "dry_run": ("○", "cyan"),
    "skipped": ("⊘", "yellow"),
    "failed": ("✗", "red"),
}


@cli.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation.")
@click.option("--mode", type=click.Choice(ALL_MODES), default=None, help="Install mode.")
@click.option("--only", "only", multiple=True, metavar="MODULE_ID", help="Install only this module (repeatable).")
@click.option("--dry-run", is_flag=True, help="Show what would run without changing anything.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    assume_yes: bool,
    mode: str | None,
    only: tuple[str, ...],
    dry_run: bool,
    as_json: bool,
) -> None:
    """Install modules (idempotent; safe to re-run)."""
    from vpsforge.core.use_cases.install import run_install

    settings = load_settings_or_exit(ctx)
    modules = load_modules_or_exit(ctx, settings)
    run_ctx = make_context(settings, mode=mode, dry_run=dry_run, assume_yes=assume_yes)

    if not (assume_yes or dry_run or as_json):
        target = ", ".join(only) if only else "all modules"
        click.confirm(
            f"Install {target} for {run_ctx.target_user} in {run_ctx.mode} mode?",
            abort=True,
        )

    result = run_install(settings, modules, run_ctx, only=only or None)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None  # guaranteed after error check above
    quiet = ctx.obj.get("quiet", False)

    if not quiet:
        title = "🔍 Dry run" if run_ctx.dry_run else "🚀 Install"
        click.secho(f"\n{title} — mode {run_ctx.mode}, user {run_ctx.target_user}\n", fg="cyan", bold=True)

    for r in report.results:
        icon, color = _RESULT_STYLE.get(r.status, ("?", "white"))
        if quiet and r.ok:
            continue
        click.secho(f"   {icon} ", fg=color, nl=False)
        optional = "" if r.required else " (optional)"
        click.echo(f"{r.module_id}{optional}: {r.message}")
        for line in r.dry_run_lines:
            click.echo(f"       {line}")
        if r.failed_command:
            click.secho(f"       command: {r.failed_command}", fg="red")

    click.echo()
    counts = (
        f"{report.succeeded} ok, {len(report.failed)} failed, "
        f"{len(report.skipped)} skipped of {report.total}"
    )
    if report.status == "success":
        click.secho(f"✅ Install complete ({counts})", fg="green", bold=True)
    else:
        click.secho(f"❌ Install failed ({counts})", fg="red", bold=True)
        for r in report.required_failures:
            click.echo(f"   • {r.module_id}")

    if not quiet:
        if result.log_file:
            click.echo(f"   📄 Log:     {result.log_file}")
        if result.summary_file:
            click.echo(f"   📊 Summary: {result.summary_file}")
    click.echo()

    sys.exit(report.exit_code)


# ── doctor ──────────────────────────────────────────────────────


_CHECK_STYLE = {"pass": ("✅", "green"), "warn": ("⚠️ ", "yellow"), "fail": ("❌", "red")}


def _render_check(check) -> None:
    icon, color = _CHECK_STYLE[check.status]
    click.secho(f"   {icon} {check.module_id}", fg=color, nl=False)
    click.echo(f"  {check.message}")
    if check.fix:
        click.secho(f"       fix: {check.fix}", fg="cyan")


def _render_summary_line(report) -> None:
    s = report.summary
    line = f"{s['pass']} passed, {s['warn']} warnings, {s['fail']} failed"
    color = {"pass": "green", "warn": "yellow", "fail": "red"}[report.status]
    click.secho(f"🩺 {line}", fg=color, bold=True)


def render_doctor_tree(report) -> None:
    """Human-readable tree: checks grouped by category."""
    click.secho(f"\n🩺 vpsforge doctor — mode {report.mode}\n", fg="cyan", bold=True)
    grouped: dict[str, list] = {}
    for check in report.checks:
        grouped.setdefault(check.category or check.module_id.split(".", 1)[0], []).append(check)
    for category, checks in grouped.items():
        click.secho(f"  {category}", fg="white", bold=True)
        for check in checks:
            _render_check(check)
    click.echo()
    _render_summary_line(report)
    click.echo()


def render_doctor_quiet(report) -> None:
    """Only the non-passing checks, then the summary line."""
    for check in report.checks:
        if check.status != "pass":
            _render_check(check)
    _render_summary_line(report)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--quiet", "-q", is_flag=True, help="Only show checks that did not pass.")
@click.option("--mode", type=click.Choice(ALL_MODES), default=None, help="Mode used in fix hints.")
@click.pass_context
def doctor(ctx: click.Context, as_json: bool, quiet: bool, mode: str | None) -> None:
    """Verify installed state (read-only) and suggest fixes."""
    from vpsforge.core.use_cases.doctor import run_checks

    settings = load_settings_or_exit(ctx)
    modules = load_modules_or_exit(ctx, settings)
    run_ctx = make_context(settings, mode=mode)

    result = run_checks(settings, modules, run_ctx)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.report is not None  # guaranteed after error check above
    if quiet or ctx.obj.get("quiet", False):
        render_doctor_quiet(result.report)
    else:
        render_doctor_tree(result.report)

    sys.exit(result.exit_code)


# ── update ──────────────────────────────────────────────────────


@cli.command()
@click.option("--apt-only", "scope", flag_value="apt", help="Only upgrade system packages.")
@click.option("--agents-only", "scope", flag_value="agents", help="Only update coding agents.")
@click.option("--cloud-only", "scope", flag_value="cloud", help="Only update cloud CLIs.")
@click.option("--stack", "scope", flag_value="stack", help="Only update stack tools.")
@click.option("--dry-run", is_flag=True, help="Show what would run without changing anything.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(ctx: click.Context, scope: str | None, dry_run: bool, as_json: bool) -> None:
    """Update system packages and installed tools."""
    from vpsforge.core.use_cases.update import run_update

    settings = load_settings_or_exit(ctx)
    modules = load_modules_or_exit(ctx, settings)
    run_ctx = make_context(settings, dry_run=dry_run)

    result = run_update(settings, modules, run_ctx, scope=scope or "all")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None  # guaranteed after error check above
    click.secho(f"\n🔄 Update — {report.scope}{' (dry run)' if report.dry_run else ''}\n", fg="cyan", bold=True)
    for r in report.results:
        icon, color = {
            "updated": ("✓", "green"),
            "dry_run": ("○", "cyan"),
            "skipped": ("⊘", "yellow"),
            "failed": ("✗", "red"),
        }.get(r.status, ("?", "white"))
        click.secho(f"   {icon} ", fg=color, nl=False)
        click.echo(f"{r.target}: {r.message}")
        for line in r.dry_run_lines:
            click.echo(f"       {line}")
        if r.failed_command:
            click.secho(f"       command: {r.failed_command}", fg="red")
    click.echo()

    if report.ok:
        click.secho("✅ Update complete", fg="green", bold=True)
    else:
        click.secho(f"❌ {report.count('failed')} update(s) failed", fg="red", bold=True)
    sys.exit(report.exit_code)


# ── modules ─────────────────────────────────────────────────────


@cli.command("modules")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_modules(ctx: click.Context, as_json: bool) -> None:
    """List modules in install order."""
    from vpsforge.core.engine.dag import resolve_install_order
    from vpsforge.core.errors import ConfigError

    settings = load_settings_or_exit(ctx)
    try:
        modules = resolve_install_order(load_modules_or_exit(ctx, settings))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        data = [
            {
                "id": m.id,
                "category": m.category,
                "description": m.description,
                "required": m.required,
                "modes": list(m.modes),
                "depends_on": m.depends_on,
            }
            for m in modules
        ]
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"\n📦 Modules ({len(modules)})\n", fg="cyan", bold=True)
    for m in modules:
        optional = " (optional)" if not m.required else ""
        modes = "" if len(m.modes) == len(ALL_MODES) else f" [{', '.join(m.modes)} only]"
        click.echo(f"   • {m.id}{optional}{modes}  {m.description}")
        if m.depends_on:
            click.echo(f"       after: {', '.join(m.depends_on)}")
    click.echo()


# ── Register sub-command groups from vpsforge/ui/cli/ ───────────

from vpsforge.ui.cli.checksums import checksums  # noqa: E402
from vpsforge.ui.cli.github import github  # noqa: E402

cli.add_command(checksums)
cli.add_command(github)


if __name__ == "__main__":
    cli()
