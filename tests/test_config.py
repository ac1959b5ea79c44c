"""
Tests for configuration loading — vpsforge.yml, env overrides, manifests.
"""

import textwrap
from pathlib import Path

import pytest

from vpsforge.core.config.loader import find_config_file, load_settings
from vpsforge.core.config.manifest import load_manifest, load_modules
from vpsforge.core.context import InstallContext
from vpsforge.core.data.modules import MODULES
from vpsforge.core.errors import ConfigError
from vpsforge.core.models.settings import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("VPSFORGE_MODE", "VPSFORGE_TARGET_USER", "VPSFORGE_LOGS_DIR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "vpsforge.yml"
    path.write_text(textwrap.dedent("""\
        mode: safe
        target_user: dev
        logs_dir: /var/log/vpsforge
        backoff:
          max_retries: 3
    """))
    return path


class TestFindConfigFile:
    def test_found_in_parent(self, config_file: Path):
        nested = config_file.parent / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == config_file.resolve()


class TestLoadSettings:
    def test_defaults_without_file(self):
        settings = load_settings(search=False)
        assert settings.mode == "vibe"
        assert settings.target_user == "ubuntu"
        assert settings.backoff.max_retries == 5

    def test_from_file(self, config_file: Path):
        settings = load_settings(config_file)
        assert settings.mode == "safe"
        assert settings.target_user == "dev"
        assert settings.backoff.max_retries == 3
        assert settings.backoff.initial == 1

    def test_search_from_cwd(self, config_file: Path, monkeypatch):
        monkeypatch.chdir(config_file.parent)
        assert load_settings().target_user == "dev"

    def test_nested_key(self, tmp_path: Path):
        path = tmp_path / "vpsforge.yml"
        path.write_text("vpsforge:\n  target_user: nested\n")
        assert load_settings(path).target_user == "nested"

    def test_env_overrides_file(self, config_file: Path, monkeypatch):
        monkeypatch.setenv("VPSFORGE_MODE", "vibe")
        monkeypatch.setenv("VPSFORGE_TARGET_USER", "envuser")
        settings = load_settings(config_file)
        assert settings.mode == "vibe"
        assert settings.target_user == "envuser"

    def test_missing_explicit_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "vpsforge.yml"
        path.write_text("mode: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "vpsforge.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_invalid_mode(self, tmp_path: Path):
        path = tmp_path / "vpsforge.yml"
        path.write_text("mode: yolo\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(path)


class TestInstallContext:
    def test_from_settings(self):
        ctx = InstallContext.from_settings(Settings(target_user="dev"), dry_run=True, mode=None)
        assert ctx.target_home == "/home/dev"
        assert ctx.dry_run is True
        assert ctx.mode == "vibe"
        assert ctx.logs_path == Path("/home/dev/.vpsforge/logs")

    def test_root_home(self):
        assert Settings(target_user="root").resolved_home() == "/root"

    def test_expand(self):
        ctx = InstallContext(target_user="dev", target_home="/home/dev", mode="safe")
        assert ctx.expand("{home}/.bun/bin:{user}:{mode}") == "/home/dev/.bun/bin:dev:safe"
        assert ctx.command_line(["echo", "{home}/a b"]) == "echo '/home/dev/a b'"

    def test_resolve_user(self):
        ctx = InstallContext(target_user="dev")
        assert ctx.resolve_user("target") == "dev"
        assert ctx.resolve_user("root") == "root"
        assert ctx.resolve_user("{user}") == "dev"

    def test_search_path_prefers_tool_dirs(self, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin:/bin:/usr/bin")
        ctx = InstallContext(target_home="/home/dev", extra_path=["{home}/.bun/bin", "/usr/bin"])
        assert ctx.search_path() == "/home/dev/.bun/bin:/usr/bin:/bin"


# ── Manifest ────────────────────────────────────────────────────────


class TestManifest:
    def test_builtin_by_default(self):
        modules = load_modules(Settings())
        assert [m.id for m in modules] == [m.id for m in MODULES]

    def test_load_manifest(self, tmp_path: Path):
        path = tmp_path / "modules.yml"
        path.write_text(textwrap.dedent("""\
            modules:
              - id: lang.bun
                category: lang
                install:
                  - description: Install bun
                    script: {url: "https://bun.sh/install"}
                    skip_if: {kind: binary, targets: [bun]}
                verify:
                  - argv: [bun, --version]
        """))
        modules = load_modules(Settings(manifest_file=str(path)))
        assert len(modules) == 1
        assert modules[0].install[0].kind == "script"
        assert modules[0].install[0].script.user == "target"

    def test_explicit_manifest_wins(self, tmp_path: Path):
        path = tmp_path / "m.yml"
        path.write_text("modules:\n  - id: demo.one\n")
        assert [m.id for m in load_modules(Settings(manifest_file="/nope.yml"), path)] == ["demo.one"]

    def test_missing_modules_list(self, tmp_path: Path):
        path = tmp_path / "m.yml"
        path.write_text("other: 1\n")
        with pytest.raises(ConfigError, match="'modules' list"):
            load_manifest(path)

    def test_invalid_step(self, tmp_path: Path):
        path = tmp_path / "m.yml"
        path.write_text(textwrap.dedent("""\
            modules:
              - id: demo.bad
                install:
                  - description: nothing to do
        """))
        with pytest.raises(ConfigError, match="invalid module demo.bad"):
            load_manifest(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Manifest not found"):
            load_manifest(tmp_path / "none.yml")
