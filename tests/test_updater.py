"""
Tests for the updater: scopes, installed detection, dry-run.
"""

import logging

import pytest

from vpsforge.core.models.module import Command, InstallStep, Module
from vpsforge.core.services.updater import APT_COMMANDS, Updater, modules_for_scope


def _module(mid: str, update=True, required=True) -> Module:
    return Module(
        id=mid,
        category=mid.split(".", 1)[0],
        required=required,
        install=[InstallStep(run=Command(argv=["true"]))],
        verify=[Command(argv=[mid.split(".")[1], "--version"])],
        update=[Command(argv=["{home}/.bun/bin/bun", "update", "-g", mid], user="target")] if update else [],
    )


MODULES = [
    _module("lang.bun"),
    _module("agents.claude"),
    _module("agents.codex", required=False),
    _module("cloud.wrangler", required=False),
    _module("stack.zoxide", update=False),
]


class TestModulesForScope:
    def test_all(self):
        assert [m.id for m in modules_for_scope(MODULES, "all")] == [
            "lang.bun", "agents.claude", "agents.codex", "cloud.wrangler",
        ]

    def test_agents(self):
        assert [m.id for m in modules_for_scope(MODULES, "agents")] == ["agents.claude", "agents.codex"]

    def test_apt_has_no_modules(self):
        assert modules_for_scope(MODULES, "apt") == []

    def test_unknown_scope(self):
        with pytest.raises(ValueError, match="Unknown update scope"):
            modules_for_scope(MODULES, "everything")


class TestUpdater:
    def test_apt_only(self, install_ctx, mock_registry, mock_adapter):
        report = Updater(mock_registry, install_ctx).run(MODULES, "apt")
        assert mock_adapter.action_ids == ["apt:update:0", "apt:update:1", "apt:update:2"]
        argvs = [ctx.action.params["argv"] for ctx in mock_adapter.call_log]
        assert argvs == [c.argv for c in APT_COMMANDS]
        assert all(ctx.action.params["user"] == "root" for ctx in mock_adapter.call_log)
        assert report.ok
        assert report.count("updated") == 1

    def test_agents_checks_installed_first(self, install_ctx, mock_registry, mock_adapter):
        Updater(mock_registry, install_ctx).run(MODULES, "agents")
        assert mock_adapter.action_ids == [
            "agents.claude:verify:0", "agents.claude:update:0",
            "agents.codex:verify:0", "agents.codex:update:0",
        ]

    def test_not_installed_is_skipped(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("agents.codex:verify:0", error="codex: not found")
        report = Updater(mock_registry, install_ctx).run(MODULES, "agents")
        codex = next(r for r in report.results if r.target == "agents.codex")
        assert codex.status == "skipped"
        assert codex.message == "not installed"
        assert "agents.codex:update:0" not in mock_adapter.action_ids
        assert report.exit_code == 0

    def test_failure_reports_command(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("cloud.wrangler:update:0", error="network down")
        report = Updater(mock_registry, install_ctx).run(MODULES, "cloud")
        result = report.results[0]
        assert result.status == "failed"
        assert result.failed_command == f"{install_ctx.target_home}/.bun/bin/bun update -g cloud.wrangler"
        assert report.exit_code == 1
        assert report.to_dict()["summary"]["failed"] == 1

    def test_apt_failure_stops_apt(self, install_ctx, mock_registry, mock_adapter):
        mock_adapter.set_failure("apt:update:0")
        report = Updater(mock_registry, install_ctx).run(MODULES, "all")
        assert "apt:update:1" not in mock_adapter.action_ids
        assert report.results[0].failed_command == "apt-get update -y"
        assert "lang.bun:update:0" in mock_adapter.action_ids

    def test_dry_run_changes_nothing(self, install_ctx, mock_registry, mock_adapter, caplog):
        ctx = install_ctx.model_copy(update={"dry_run": True})
        with caplog.at_level(logging.INFO):
            report = Updater(mock_registry, ctx).run(MODULES, "all")
        assert all(":verify:" in action_id for action_id in mock_adapter.action_ids)
        assert report.dry_run
        assert report.count("dry_run") == 5
        assert any("dry-run: update: apt-get upgrade -y (root)" in r.getMessage() for r in caplog.records)
        assert "dry-run: update: apt-get upgrade -y (root)" in report.results[0].dry_run_lines

    def test_mode_filter(self, install_ctx, mock_registry, mock_adapter):
        vibe_only = _module("agents.yolo")
        vibe_only = vibe_only.model_copy(update={"modes": ["vibe"]})
        ctx = install_ctx.model_copy(update={"mode": "safe"})
        Updater(mock_registry, ctx).run([vibe_only], "agents")
        assert mock_adapter.action_ids == []
