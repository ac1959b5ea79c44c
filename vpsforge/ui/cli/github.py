"""
CLI commands for rate-limit-aware GitHub access.

Thin wrappers over ``vpsforge.core.reliability.backoff_fetch``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from vpsforge.core.errors import FetchError
from vpsforge.ui.cli.common import load_settings_or_exit


def _fetcher(ctx: click.Context):
    from vpsforge.core.reliability.backoff_fetch import BackoffFetcher

    return BackoffFetcher.from_settings(load_settings_or_exit(ctx).backoff)


@click.group()
def github() -> None:
    """GitHub — API fetches with rate-limit backoff."""


@github.command("latest-release")
@click.argument("repo")
@click.pass_context
def latest_release(ctx: click.Context, repo: str) -> None:
    """Print the latest release tag of REPO (owner/name)."""
    try:
        tag = _fetcher(ctx).latest_release(repo)
    except FetchError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)
    click.echo(tag)


@github.command("fetch")
@click.argument("url")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Save body to a file.")
@click.pass_context
def fetch(ctx: click.Context, url: str, output: str | None) -> None:
    """GET URL with backoff and print (or save) the body."""
    try:
        body = _fetcher(ctx).fetch(url)
    except FetchError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if output:
        Path(output).write_bytes(body)
        click.secho(f"✅ Saved {len(body)} bytes to {output}", fg="green")
        return
    click.echo(body.decode("utf-8", errors="replace"), nl=False)
