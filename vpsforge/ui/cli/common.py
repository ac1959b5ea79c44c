"""
Shared CLI helpers — settings, modules and run context from click state.

Config errors end the command with ``❌ <message>`` and exit code 1.
"""

from __future__ import annotations

import sys

import click

from vpsforge.core.context import InstallContext
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module
from vpsforge.core.models.settings import Settings


def load_settings_or_exit(ctx: click.Context) -> Settings:
    from vpsforge.core.config.loader import load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def load_modules_or_exit(ctx: click.Context, settings: Settings) -> list[Module]:
    from vpsforge.core.config.manifest import load_modules

    try:
        return load_modules(settings, ctx.obj.get("manifest_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def make_context(settings: Settings, **overrides: object) -> InstallContext:
    return InstallContext.from_settings(settings, **overrides)
