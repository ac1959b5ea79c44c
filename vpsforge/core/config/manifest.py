"""
Module manifest — load the module registry from YAML.

By default the registry is the built-in table in
``vpsforge.core.data.modules``.  ``manifest_file`` in vpsforge.yml (or
``--manifest``) replaces it with a YAML file of the same shape::

    modules:
      - id: lang.bun
        category: lang
        depends_on: [base.system]
        install:
          - description: Install bun
            script: {url: "https://bun.sh/install", user: target}
            skip_if: {kind: binary, targets: [bun]}
        verify:
          - argv: [bun, --version]
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Module
from vpsforge.core.models.settings import Settings

logger = logging.getLogger(__name__)


def load_manifest(path: Path) -> list[Module]:
    """Parse a manifest file into validated modules.

    Raises:
        ConfigError: missing file, bad YAML, or invalid module entries.
    """
    if not path.is_file():
        raise ConfigError(f"Manifest not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load manifest {path}: {e}") from e

    entries = data.get("modules") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigError(f"{path}: expected a top-level 'modules' list")

    modules: list[Module] = []
    for i, entry in enumerate(entries):
        try:
            modules.append(Module.model_validate(entry))
        except ValidationError as e:
            ident = entry.get("id", f"#{i}") if isinstance(entry, dict) else f"#{i}"
            raise ConfigError(f"{path}: invalid module {ident}: {e}") from e

    logger.info("Loaded %d modules from %s", len(modules), path)
    return modules


def load_modules(settings: Settings, manifest: Path | None = None) -> list[Module]:
    """The module registry for this run: a manifest file, or the built-in table."""
    path = manifest or (Path(settings.manifest_file) if settings.manifest_file else None)
    if path is not None:
        return load_manifest(path)

    from vpsforge.core.data.modules import MODULES

    return list(MODULES)
