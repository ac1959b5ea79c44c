"""
Tests for the install engine: dependency graph, installer, executor.
"""

import os
from pathlib import Path

import pytest

from vpsforge.adapters.registry import AdapterRegistry
from vpsforge.adapters.shell.command import ShellCommandAdapter
from vpsforge.adapters.shell.filesystem import FilesystemAdapter
from vpsforge.core.data.modules import MODULES
from vpsforge.core.engine.dag import resolve_install_order, select_modules, validate_graph
from vpsforge.core.engine.executor import build_plan, execute_plan, generate_operation_id
from vpsforge.core.engine.installer import (
    ALREADY_PRESENT,
    DRY_RUN,
    FAILED,
    INSTALLED,
    SKIPPED,
    Installer,
)
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.module import Command, FileSpec, Guard, InstallStep, Module
from vpsforge.core.persistence.install_log import InstallLog
from vpsforge.core.services.guards import GuardCheck
from vpsforge.core.services.script_verify import ChecksumTable


def _step(*argv: str, guard: Guard | None = None, user: str = "self") -> InstallStep:
    return InstallStep(description=f"run {argv[0]}", run=Command(argv=list(argv), user=user), skip_if=guard)


def _module(mid: str, *, deps=(), required=True, modes=("vibe", "safe"), steps=None, verify=None) -> Module:
    return Module(
        id=mid,
        category=mid.split(".", 1)[0],
        required=required,
        depends_on=list(deps),
        modes=list(modes),
        install=steps if steps is not None else [_step("true")],
        verify=verify if verify is not None else [Command(argv=["true"])],
    )


class RecordingRegistry(AdapterRegistry):
    """Real adapters, plus a record of every dispatched action id."""

    def __init__(self):
        super().__init__()
        self.executed: list[str] = []
        self.register(ShellCommandAdapter())
        self.register(FilesystemAdapter())

    def execute_action(self, action, install):
        self.executed.append(action.id)
        return super().execute_action(action, install)


# ── Graph ───────────────────────────────────────────────────────────


class TestValidateGraph:
    def test_valid(self):
        assert validate_graph([_module("a.x"), _module("b.y", deps=["a.x"])]) == []

    def test_duplicate(self):
        errors = validate_graph([_module("a.x"), _module("a.x")])
        assert any("Duplicate" in e for e in errors)

    def test_unknown_dependency(self):
        errors = validate_graph([_module("a.x", deps=["ghost.y"])])
        assert errors == ["Module 'a.x' depends on unknown module 'ghost.y'"]

    def test_cycle(self):
        errors = validate_graph([
            _module("a.x", deps=["c.z"]),
            _module("b.y", deps=["a.x"]),
            _module("c.z", deps=["b.y"]),
        ])
        assert errors == ["Dependency cycle detected among: a.x, b.y, c.z"]


class TestResolveInstallOrder:
    def test_declared_order_kept(self):
        modules = [_module("a.x"), _module("b.y"), _module("c.z", deps=["a.x"])]
        assert [m.id for m in resolve_install_order(modules)] == ["a.x", "b.y", "c.z"]

    def test_dependency_moved_first(self):
        modules = [_module("agents.claude", deps=["lang.bun"]), _module("lang.bun")]
        assert [m.id for m in resolve_install_order(modules)] == ["lang.bun", "agents.claude"]

    def test_invalid_graph_raises(self):
        with pytest.raises(ConfigError, match="Invalid module graph"):
            resolve_install_order([_module("a.x", deps=["a.x"])])


class TestSelectModules:
    def test_mode_filter(self):
        modules = [_module("a.x"), _module("users.sudo", modes=["vibe"])]
        assert [m.id for m in select_modules(modules, "safe")] == ["a.x"]
        assert [m.id for m in select_modules(modules, "vibe")] == ["a.x", "users.sudo"]

    def test_only_does_not_pull_dependencies(self):
        modules = [_module("lang.bun"), _module("agents.claude", deps=["lang.bun"])]
        assert [m.id for m in select_modules(modules, "vibe", ["agents.claude"])] == ["agents.claude"]

    def test_unknown_only(self):
        with pytest.raises(ConfigError, match="Unknown module"):
            select_modules([_module("a.x")], "vibe", ["nope.z"])


class TestBuiltinModules:
    def test_graph_is_valid(self):
        assert validate_graph(MODULES) == []

    def test_declared_in_install_order(self):
        assert [m.id for m in resolve_install_order(MODULES)] == [m.id for m in MODULES]

    def test_claude_is_required_and_needs_node(self):
        claude = next(m for m in MODULES if m.id == "agents.claude")
        assert claude.required
        assert "lang.node" in claude.depends_on
        assert claude.verify

    def test_every_step_is_guarded(self):
        for module in MODULES:
            for step in module.install:
                assert step.skip_if is not None or step.file is not None, f"{module.id}: {step.display()}"

    def test_vendor_scripts_are_listed(self):
        table = ChecksumTable.load_default()
        for module in MODULES:
            for step in module.install:
                if step.script is not None:
                    assert table.for_url(step.script.url) is not None, step.script.url
                    assert step.script.url.startswith("https://")

    def test_required_modules_never_need_an_untrusted_script(self):
        """With the bundled table, every required module and its dependencies can install."""
        table = ChecksumTable.load_default()
        by_id = {m.id: m for m in MODULES}

        def closure(module_id, seen):
            if module_id not in seen:
                seen.add(module_id)
                for dep in by_id[module_id].depends_on:
                    closure(dep, seen)
            return seen

        blocked = []
        for module in MODULES:
            if not module.required:
                continue
            for mid in sorted(closure(module.id, set())):
                for step in by_id[mid].install:
                    if step.script is not None and table.expected(step.script.url) is None:
                        blocked.append((module.id, mid, step.script.url))
        assert blocked == []

    def test_safe_mode_drops_passwordless_sudo(self):
        safe = [m.id for m in build_plan(MODULES, "safe")]
        vibe = [m.id for m in build_plan(MODULES, "vibe")]
        assert "users.sudo_nopasswd" in vibe
        assert "users.sudo_nopasswd" not in safe


# ── Guards ──────────────────────────────────────────────────────────


class TestGuardCheck:
    def test_owner(self, install_ctx, mock_registry, home: Path):
        checker = GuardCheck(mock_registry, install_ctx)
        assert checker.holds(Guard(kind="owner", targets=[str(home)], owner=home.owner()))
        assert not checker.holds(Guard(kind="owner", targets=[str(home)], owner="no-such-user-xyz"))
        assert not checker.holds(Guard(kind="owner", targets=["{home}/missing"]))

    def test_path_needs_every_target(self, install_ctx, mock_registry, home: Path):
        (home / "a").mkdir()
        checker = GuardCheck(mock_registry, install_ctx)
        assert checker.holds(Guard(kind="path", targets=["{home}/a"]))
        assert not checker.holds(Guard(kind="path", targets=["{home}/a", "{home}/b"]))

    def test_empty_targets_never_hold(self, install_ctx, mock_registry):
        assert not GuardCheck(mock_registry, install_ctx).holds(Guard(kind="path"))

    def test_guard_checks_ignore_dry_run(self, install_ctx, mock_registry, mock_adapter):
        ctx = install_ctx.model_copy(update={"dry_run": True})
        assert GuardCheck(mock_registry, ctx).holds(Guard(kind="command", argv=["true"]))
        assert mock_adapter.action_ids == ["guard:command:true"]


# ── Installer ───────────────────────────────────────────────────────


class TestInstallerIdempotence:
    def _workspace_module(self) -> Module:
        return Module(
            id="demo.workspace",
            category="demo",
            install=[
                InstallStep(
                    description="Create workspace",
                    run=Command(argv=["mkdir", "-p", "{home}/projects"]),
                    skip_if=Guard(kind="path", targets=["{home}/projects"]),
                ),
                InstallStep(
                    description="Write marker",
                    file=FileSpec(path="{home}/.vpsforge/marker", content="user={user}\n", mode=0o600),
                ),
            ],
            verify=[
                Command(argv=["test", "-d", "{home}/projects"]),
                Command(argv=["test", "-f", "{home}/.vpsforge/marker"]),
            ],
        )

    def test_second_run_performs_no_work(self, install_ctx, home: Path):
        module = self._workspace_module()

        registry = RecordingRegistry()
        first = Installer(registry, install_ctx).install(module)
        assert first.status == INSTALLED
        assert first.message == "installed"
        assert first.mutating_steps == 2
        assert (home / "projects").is_dir()
        marker = home / ".vpsforge" / "marker"
        assert marker.read_text() == f"user={install_ctx.target_user}\n"
        mtime = marker.stat().st_mtime_ns

        registry = RecordingRegistry()
        second = Installer(registry, install_ctx).install(module)
        assert second.status == ALREADY_PRESENT
        assert second.message == "success, already present"
        assert second.mutating_steps == 0
        assert all(":verify:" in action_id for action_id in registry.executed)
        assert marker.stat().st_mtime_ns == mtime

    def test_drifted_file_is_rewritten(self, install_ctx, home: Path):
        module = self._workspace_module()
        Installer(RecordingRegistry(), install_ctx).install(module)
        marker = home / ".vpsforge" / "marker"
        os.chmod(marker, 0o644)

        registry = RecordingRegistry()
        result = Installer(registry, install_ctx).install(module)
        assert result.status == INSTALLED
        assert registry.executed[0] == "demo.workspace:install:1"
        assert marker.stat().st_mode & 0o777 == 0o600

    def test_command_guard(self, install_ctx, mock_registry, mock_adapter):
        module = _module("shell.zsh", steps=[
            _step("chsh", "-s", "/usr/bin/zsh", guard=Guard(kind="command", argv=["true"])),
        ])
        result = Installer(mock_registry, install_ctx).install(module)
        assert result.status == ALREADY_PRESENT
        assert mock_adapter.action_ids == ["guard:command:true", "shell.zsh:verify:0"]

    def test_binary_guard(self, install_ctx, mock_registry, mock_adapter, home: Path):
        bindir = home / "bin"
        bindir.mkdir()
        tool = bindir / "mytool"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
        ctx = install_ctx.model_copy(update={"extra_path": ["{home}/bin"]})

        module = _module("cli.mytool", steps=[_step("install-mytool", guard=Guard(kind="binary", targets=["mytool"]))])
        result = Installer(mock_registry, ctx).install(module)
        assert result.status == ALREADY_PRESENT
        assert "cli.mytool:install:0" not in mock_adapter.action_ids

    def test_package_guard_uses_dpkg_query(self, install_ctx, mock_registry, mock_adapter):
        module = _module("base.system", steps=[
            _step("apt-get", "install", "-y", "jq", guard=Guard(kind="package", targets=["jq"])),
        ])
        result = Installer(mock_registry, install_ctx).install(module)
        # the mock's default output is not dpkg's "install ok installed"
        assert result.status == INSTALLED
        assert mock_adapter.action_ids[:2] == ["guard:package:jq", "base.system:install:0"]


class TestInstallerFailures:
    def test_failure_names_exact_command(self, install_ctx, mock_registry, mock_adapter):
        module = _module("lang.bun", steps=[
            _step("curl", "-fsSL", "{home}/x"),
            _step("echo", "never"),
        ])
        mock_adapter.set_failure("lang.bun:install:0", error="curl: (6) Could not resolve host", return_code=6)

        result = Installer(mock_registry, install_ctx).install(module)

        assert result.status == FAILED
        assert not result.ok
        assert result.failed_command == f"curl -fsSL {install_ctx.target_home}/x"
        assert "install command failed" in result.message
        assert "Could not resolve host" in result.error
        assert mock_adapter.action_ids == ["lang.bun:install:0"]

    def test_verify_failure(self, install_ctx, mock_registry, mock_adapter):
        module = _module("agents.claude", verify=[Command(argv=["claude", "--version"])])
        mock_adapter.set_failure("agents.claude:verify:0", error="claude: not found", return_code=127)

        result = Installer(mock_registry, install_ctx).install(module)

        assert result.status == FAILED
        assert result.failed_command == "claude --version"
        assert "verify failed" in result.message

    def test_real_nonzero_exit(self, install_ctx):
        module = _module("demo.fail", steps=[_step("sh", "-c", "exit 7")])
        result = Installer(RecordingRegistry(), install_ctx).install(module)
        assert result.status == FAILED
        assert result.failed_command == "sh -c 'exit 7'"
        assert result.steps[0].receipt.return_code == 7


class TestInstallerDryRun:
    def test_nothing_executed(self, install_ctx, mock_registry, mock_adapter, tmp_path: Path):
        ctx = install_ctx.model_copy(update={"dry_run": True})
        log = InstallLog.create(ctx, "20260101_000000")
        module = _module("lang.uv", steps=[_step("sh", "-c", "install uv", user="target")])

        result = Installer(mock_registry, ctx, log=log).install(module)

        assert result.status == DRY_RUN
        assert result.ok
        assert result.message == "dry-run: no changes made"
        assert mock_adapter.call_count == 0
        text = log.path.read_text()
        assert "dry-run: install: sh -c 'install uv' (target)" in text
        assert "Mode: vibe (dry-run)" in text

    def test_present_steps_not_reported(self, install_ctx, mock_registry, home: Path):
        (home / "done").mkdir()
        ctx = install_ctx.model_copy(update={"dry_run": True})
        module = _module("demo.x", steps=[_step("mkdir", "{home}/done", guard=Guard(kind="path", targets=["{home}/done"]))])
        result = Installer(mock_registry, ctx).install(module)
        assert [s.status for s in result.steps] == [ALREADY_PRESENT]


# ── Executor ────────────────────────────────────────────────────────


class TestExecutePlan:
    def _modules(self):
        return [
            _module("lang.bun"),
            _module("agents.claude", deps=["lang.bun"]),
            _module("agents.codex", deps=["lang.bun"], required=False),
            _module("stack.zoxide", required=False),
        ]

    def _run(self, modules, install_ctx, registry):
        plan = build_plan(modules, install_ctx.mode)
        return execute_plan(plan, Installer(registry, install_ctx), install_ctx)

    def test_all_succeed(self, install_ctx, mock_registry):
        report = self._run(self._modules(), install_ctx, mock_registry)
        assert report.total == 4
        assert report.succeeded == 4
        assert report.status == "success"
        assert report.exit_code == 0
        assert report.operation_id.startswith("op-")

    def test_failure_skips_dependents_and_continues(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("lang.bun:install:0")
        report = self._run(self._modules(), install_ctx, mock_registry)

        assert report.result_for("lang.bun").status == FAILED
        claude = report.result_for("agents.claude")
        assert claude.status == SKIPPED
        assert claude.message == "skipped: dependency failed: lang.bun"
        assert report.result_for("agents.codex").status == SKIPPED
        assert report.result_for("stack.zoxide").status == INSTALLED
        assert [r.module_id for r in report.required_failures] == ["lang.bun", "agents.claude"]
        assert report.exit_code == 1

    def test_optional_failure_keeps_exit_zero(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("stack.zoxide:install:0")
        report = self._run(self._modules(), install_ctx, mock_registry)
        assert report.status == "success"
        assert report.exit_code == 0
        phases = {p.id: p.status for p in report.phases()}
        assert phases == {"lang": "success", "agents": "success", "stack": "warning"}

    def test_phase_statuses(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("lang.bun:install:0")
        report = self._run(self._modules(), install_ctx, mock_registry)
        phases = {p.id: p for p in report.phases()}
        assert phases["lang"].status == "failure"
        assert phases["agents"].status == "skipped"
        assert phases["agents"].modules == ["agents.claude", "agents.codex"]
        assert phases["stack"].status == "success"

    def test_summary_fields(self, install_ctx, mock_registry):
        report = self._run(self._modules(), install_ctx, mock_registry)
        summary = report.to_summary(install_ctx, log_file="/tmp/install.log")
        assert summary.schema_version == 1
        assert summary.status == "success"
        assert isinstance(summary.total_seconds, int)
        assert summary.environment.mode == "vibe"
        assert summary.environment.target_user == install_ctx.target_user
        assert [m.id for m in summary.modules] == ["lang.bun", "agents.claude", "agents.codex", "stack.zoxide"]
        assert summary.log_file == "/tmp/install.log"

    def test_operation_ids_unique(self):
        assert generate_operation_id() != generate_operation_id()
