"""
CLI commands for the vendor-script checksum table.

Thin wrappers over ``vpsforge.core.services.script_verify``.  ``update``
prints the refreshed table for review and only writes it with --write.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from vpsforge.core.errors import ConfigError
from vpsforge.ui.cli.common import load_settings_or_exit


def _load_table(ctx: click.Context):
    from vpsforge.core.services.script_verify import ChecksumTable

    settings = load_settings_or_exit(ctx)
    try:
        return settings, ChecksumTable.load_default(settings.checksums_file or None)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _fetcher(settings):
    from vpsforge.core.reliability.backoff_fetch import BackoffFetcher

    return BackoffFetcher.from_settings(settings.backoff)


@click.group()
def checksums() -> None:
    """Checksums — trusted digests for vendor install scripts."""


@checksums.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, as_json: bool) -> None:
    """Show the trusted checksum table."""
    _settings, table = _load_table(ctx)

    if as_json:
        data = {
            name: {"url": e.url, "sha256": e.sha256, "trusted": e.trusted}
            for name, e in table.entries.items()
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"\n🔐 Checksum table ({table.source})\n", fg="cyan", bold=True)
    for name, entry in sorted(table.entries.items()):
        if entry.trusted:
            click.secho("   ✓ ", fg="green", nl=False)
            click.echo(f"{name:<10} {entry.sha256[:16]}…  {entry.url}")
        else:
            click.secho("   ✗ ", fg="yellow", nl=False)
            click.echo(f"{name:<10} {'(untrusted)':<17}  {entry.url}")
    click.echo()


@checksums.command("verify")
@click.argument("url")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def verify(ctx: click.Context, url: str, as_json: bool) -> None:
    """Fetch URL and compare it with its trusted digest."""
    from vpsforge.core.services.script_verify import verify_url

    settings, table = _load_table(ctx)
    result = verify_url(url, table, _fetcher(settings).fetch)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        sys.exit(0 if result["ok"] else 1)

    if result["ok"]:
        click.secho(f"✅ {url} matches ({result['actual']})", fg="green", bold=True)
        return

    click.secho(f"❌ {url}: {result['error']}", fg="red", bold=True)
    if result["expected"]:
        click.echo(f"   expected: {result['expected']}")
    if result["actual"]:
        click.echo(f"   actual:   {result['actual']}")
    sys.exit(1)


@checksums.command("update")
@click.option("--write", is_flag=True, help="Write the refreshed table instead of printing it.")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where --write saves the table (default: the table's own file).",
)
@click.pass_context
def update(ctx: click.Context, write: bool, output: str | None) -> None:
    """Recompute digests for every installer URL (review before trusting)."""
    from vpsforge.core.services.script_verify import update_checksums

    settings, table = _load_table(ctx)
    new_table, changes = update_checksums(table, _fetcher(settings).fetch)

    failures = [c for c in changes if c.get("error")]
    for change in changes:
        if change.get("error"):
            click.secho(f"   ✗ {change['name']}: {change['error']}", fg="red", err=True)
        else:
            old = change["old"] or "(none)"
            click.secho(f"   ~ {change['name']}: {old[:16]} → {change['new'][:16]}", fg="yellow", err=True)
    if not changes:
        click.secho("   ✓ all digests unchanged", fg="green", err=True)

    if not write:
        click.echo(new_table.to_yaml(), nl=False)
        sys.exit(1 if failures else 0)

    target = Path(output) if output else new_table.source
    if target is None:
        click.secho("❌ No destination for the table; pass --output", fg="red")
        sys.exit(1)
    new_table.save(target)
    click.secho(f"✅ Wrote {target} — review the diff before committing", fg="green", bold=True)
    sys.exit(1 if failures else 0)
