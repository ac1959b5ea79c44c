"""
Module model — an independently installable and verifiable unit.

A Module is declared statically (``vpsforge/core/data/modules.py`` or a
manifest file) and never mutated at runtime.  Its install steps are
typed descriptors, not shell strings:

    Command       argv list + user + cwd + env
    VendorScript  third-party installer fetched through the checksum gate
    FileSpec      a file whose content and mode must match
    Guard         read-only check that says "this step is already done"

``argv`` elements, paths and file content may use the placeholders
``{home}``, ``{user}`` and ``{mode}``; they are expanded per element by
``InstallContext.expand`` just before execution.
"""

from __future__ import annotations

import shlex
from typing import Literal

from pydantic import BaseModel, Field, model_validator

Mode = Literal["vibe", "safe"]
ALL_MODES: tuple[str, ...] = ("vibe", "safe")


class Command(BaseModel):
    """A command to execute, as an argv list.

    ``user`` is one of ``"self"`` (the invoking user), ``"root"``,
    ``"target"`` (the configured target user), or an explicit username.
    """

    argv: list[str]
    user: str = "self"
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    timeout: int = 900

    def display(self) -> str:
        return shlex.join(self.argv)


class Guard(BaseModel):
    """Idempotence check.  Holds when *every* target is satisfied.

    Kinds:
        binary   each target resolves on the search PATH
        path     each target exists
        package  each target is an installed dpkg package
        owner    each target path is owned by ``owner``
        command  ``argv`` exits 0 (run as ``user``)
    """

    kind: Literal["binary", "path", "package", "owner", "command"]
    targets: list[str] = Field(default_factory=list)
    owner: str = "{user}"
    argv: list[str] = Field(default_factory=list)
    user: str = "self"

    def describe(self) -> str:
        if self.kind == "command":
            return f"command {shlex.join(self.argv)}"
        return f"{self.kind} {' '.join(self.targets)}"


class VendorScript(BaseModel):
    """A vendor install script, executed only after checksum verification."""

    url: str
    args: list[str] = Field(default_factory=list)
    user: str = "target"

    def display(self) -> str:
        suffix = f" {shlex.join(self.args)}" if self.args else ""
        return f"verified-script {self.url}{suffix}"


class FileSpec(BaseModel):
    """A file with exact content.  Already satisfied when content and mode match."""

    path: str
    content: str
    mode: int = 0o644
    owner: str | None = None

    def display(self) -> str:
        return f"write {self.path} (mode {self.mode:o})"


class InstallStep(BaseModel):
    """One install step: exactly one of ``run``, ``script`` or ``file``."""

    description: str = ""
    run: Command | None = None
    script: VendorScript | None = None
    file: FileSpec | None = None
    skip_if: Guard | None = None

    @model_validator(mode="after")
    def _exactly_one_action(self) -> InstallStep:
        chosen = [x for x in (self.run, self.script, self.file) if x is not None]
        if len(chosen) != 1:
            raise ValueError("an install step needs exactly one of run, script, file")
        return self

    @property
    def kind(self) -> str:
        if self.run is not None:
            return "shell"
        if self.script is not None:
            return "script"
        return "file"

    @property
    def user(self) -> str:
        if self.run is not None:
            return self.run.user
        if self.script is not None:
            return self.script.user
        return "root"

    def display(self) -> str:
        if self.run is not None:
            return self.run.display()
        if self.script is not None:
            return self.script.display()
        assert self.file is not None
        return self.file.display()


class Module(BaseModel):
    """A named unit such as ``base.system`` or ``agents.claude``."""

    id: str
    description: str = ""
    category: str = ""
    required: bool = True
    depends_on: list[str] = Field(default_factory=list)
    modes: list[Mode] = Field(default_factory=lambda: list(ALL_MODES))

    install: list[InstallStep] = Field(default_factory=list)
    verify: list[Command] = Field(default_factory=list)
    update: list[Command] = Field(default_factory=list)

    @property
    def phase(self) -> str:
        """Summary phase this module reports under."""
        return self.category or self.id.split(".", 1)[0]

    def enabled_in(self, mode: str) -> bool:
        return mode in self.modes
