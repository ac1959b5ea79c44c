"""
Built-in module registry.

Declared in install order; ``depends_on`` makes the order explicit and
is checked once at startup.  Every install step carries a guard (or is a
FileSpec) so re-running a module performs no work.

Vendor script URLs must have an entry in ``checksums.yaml``, and the
installer refuses them until that entry carries a reviewed digest.  Only
optional modules use vendor scripts; required modules install through
apt, pipx and npm, which verify their own downloads.
"""

from __future__ import annotations

from vpsforge.core.models.module import (
    Command,
    FileSpec,
    Guard,
    InstallStep,
    Module,
    VendorScript,
)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

BASE_PACKAGES = [
    "curl", "git", "ca-certificates", "unzip", "tar", "xz-utils", "jq", "build-essential",
]
CLI_PACKAGES = ["ripgrep", "fd-find", "fzf", "tmux", "htop"]


def _apt_install(packages: list[str], description: str) -> InstallStep:
    return InstallStep(
        description=description,
        run=Command(argv=["apt-get", "install", "-y", *packages], user="root", env=_APT_ENV),
        skip_if=Guard(kind="package", targets=packages),
    )


def _bun_global(package: str, binary: str) -> InstallStep:
    return InstallStep(
        description=f"Install {package}",
        run=Command(argv=["{home}/.bun/bin/bun", "install", "-g", package], user="target"),
        skip_if=Guard(kind="binary", targets=[binary]),
    )


def _npm_global(package: str, binary: str) -> InstallStep:
    return InstallStep(
        description=f"Install {package}",
        run=Command(argv=["npm", "install", "-g", "--prefix", "{home}/.local", package], user="target"),
        skip_if=Guard(kind="binary", targets=[binary]),
    )


def _verify(*argv: str, user: str = "target") -> Command:
    return Command(argv=list(argv), user=user, timeout=60)


MODULES: list[Module] = [
    # ── base ──
    Module(
        id="base.system",
        description="Base packages + sane defaults",
        category="base",
        install=[
            InstallStep(
                description="Refresh package lists",
                run=Command(argv=["apt-get", "update", "-y"], user="root", env=_APT_ENV),
                skip_if=Guard(kind="package", targets=BASE_PACKAGES),
            ),
            _apt_install(BASE_PACKAGES, "Install base packages"),
        ],
        verify=[
            _verify("curl", "--version", user="self"),
            _verify("git", "--version", user="self"),
            _verify("jq", "--version", user="self"),
        ],
    ),
    Module(
        id="base.filesystem",
        description="Create workspace and vpsforge directories",
        category="base",
        depends_on=["base.system"],
        install=[
            InstallStep(
                description="Create /data workspace",
                run=Command(argv=["mkdir", "-p", "/data/projects", "/data/cache"], user="root"),
                skip_if=Guard(kind="path", targets=["/data/projects", "/data/cache"]),
            ),
            InstallStep(
                description="Hand /data to the target user",
                run=Command(argv=["chown", "-R", "{user}:{user}", "/data"], user="root"),
                skip_if=Guard(kind="owner", targets=["/data", "/data/projects"]),
            ),
            InstallStep(
                description="Create ~/.vpsforge",
                run=Command(argv=["mkdir", "-p", "{home}/.vpsforge"], user="target"),
                skip_if=Guard(kind="path", targets=["{home}/.vpsforge"]),
            ),
        ],
        verify=[
            _verify("test", "-d", "/data/projects"),
            _verify("test", "-d", "{home}/.vpsforge"),
        ],
    ),
    # ── users ──
    Module(
        id="users.sudo_nopasswd",
        description="Passwordless sudo for the target user",
        category="users",
        depends_on=["base.system"],
        modes=["vibe"],
        install=[
            InstallStep(
                description="Write sudoers drop-in",
                file=FileSpec(
                    path="/etc/sudoers.d/90-vpsforge-{user}",
                    content="{user} ALL=(ALL) NOPASSWD:ALL\n",
                    mode=0o440,
                    owner="root:root",
                ),
            ),
        ],
        verify=[
            _verify("visudo", "-cf", "/etc/sudoers.d/90-vpsforge-{user}", user="root"),
        ],
    ),
    # ── shell ──
    Module(
        id="shell.zsh",
        description="zsh as the login shell",
        category="shell",
        depends_on=["base.system"],
        install=[
            _apt_install(["zsh"], "Install zsh"),
            InstallStep(
                description="Make zsh the login shell",
                run=Command(argv=["chsh", "-s", "/usr/bin/zsh", "{user}"], user="root"),
                skip_if=Guard(
                    kind="command",
                    argv=["sh", "-c", "getent passwd \"$1\" | grep -q ':/usr/bin/zsh$'", "sh", "{user}"],
                ),
            ),
        ],
        verify=[_verify("zsh", "--version")],
    ),
    Module(
        id="shell.ohmyzsh",
        description="Oh My Zsh framework",
        category="shell",
        required=False,
        depends_on=["shell.zsh"],
        install=[
            InstallStep(
                description="Install Oh My Zsh",
                script=VendorScript(
                    url="https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh",
                    args=["--unattended", "--keep-zshrc"],
                ),
                skip_if=Guard(kind="path", targets=["{home}/.oh-my-zsh"]),
            ),
        ],
        verify=[_verify("test", "-d", "{home}/.oh-my-zsh")],
    ),
    # ── cli ──
    Module(
        id="cli.modern",
        description="Modern CLI tools (ripgrep, fd, fzf, tmux, htop)",
        category="cli",
        depends_on=["base.system"],
        install=[_apt_install(CLI_PACKAGES, "Install modern CLI tools")],
        verify=[
            _verify("rg", "--version"),
            _verify("fzf", "--version"),
            _verify("tmux", "-V"),
        ],
    ),
    Module(
        id="cli.gh",
        description="GitHub CLI",
        category="cli",
        depends_on=["base.system"],
        install=[_apt_install(["gh"], "Install GitHub CLI")],
        verify=[_verify("gh", "--version")],
    ),
    # ── lang ──
    Module(
        id="lang.node",
        description="Node.js and npm from the distribution archive",
        category="lang",
        depends_on=["base.system"],
        install=[_apt_install(["nodejs", "npm"], "Install Node.js and npm")],
        verify=[_verify("node", "--version"), _verify("npm", "--version")],
    ),
    Module(
        id="lang.bun",
        description="Bun JavaScript runtime",
        category="lang",
        required=False,
        depends_on=["base.system"],
        install=[
            InstallStep(
                description="Install bun",
                script=VendorScript(url="https://bun.sh/install"),
                skip_if=Guard(kind="binary", targets=["bun"]),
            ),
        ],
        verify=[_verify("bun", "--version")],
        update=[Command(argv=["{home}/.bun/bin/bun", "upgrade"], user="target")],
    ),
    Module(
        id="lang.uv",
        description="uv Python package manager",
        category="lang",
        depends_on=["base.system"],
        install=[
            _apt_install(["pipx"], "Install pipx"),
            InstallStep(
                description="Install uv from PyPI",
                run=Command(argv=["pipx", "install", "uv"], user="target"),
                skip_if=Guard(kind="binary", targets=["uv"]),
            ),
        ],
        verify=[_verify("uv", "--version")],
        update=[Command(argv=["pipx", "upgrade", "uv"], user="target")],
    ),
    Module(
        id="lang.rust",
        description="Rust toolchain via rustup",
        category="lang",
        required=False,
        depends_on=["base.system"],
        install=[
            InstallStep(
                description="Install rustup",
                script=VendorScript(url="https://sh.rustup.rs", args=["-y", "--no-modify-path"]),
                skip_if=Guard(kind="binary", targets=["cargo"]),
            ),
        ],
        verify=[_verify("cargo", "--version")],
        update=[Command(argv=["{home}/.cargo/bin/rustup", "update"], user="target")],
    ),
    # ── agents ──
    Module(
        id="agents.claude",
        description="Claude Code",
        category="agents",
        depends_on=["lang.node"],
        install=[_npm_global("@anthropic-ai/claude-code", "claude")],
        verify=[_verify("claude", "--version")],
        update=[Command(argv=["npm", "update", "-g", "--prefix", "{home}/.local", "@anthropic-ai/claude-code"], user="target")],
    ),
    Module(
        id="agents.codex",
        description="OpenAI Codex CLI",
        category="agents",
        required=False,
        depends_on=["lang.bun"],
        install=[_bun_global("@openai/codex", "codex")],
        verify=[_verify("codex", "--version")],
        update=[Command(argv=["{home}/.bun/bin/bun", "update", "-g", "@openai/codex"], user="target")],
    ),
    Module(
        id="agents.gemini",
        description="Google Gemini CLI",
        category="agents",
        required=False,
        depends_on=["lang.bun"],
        install=[_bun_global("@google/gemini-cli", "gemini")],
        verify=[_verify("gemini", "--version")],
        update=[Command(argv=["{home}/.bun/bin/bun", "update", "-g", "@google/gemini-cli"], user="target")],
    ),
    # ── cloud ──
    Module(
        id="cloud.wrangler",
        description="Cloudflare Wrangler",
        category="cloud",
        required=False,
        depends_on=["lang.bun"],
        install=[_bun_global("wrangler", "wrangler")],
        verify=[_verify("wrangler", "--version")],
        update=[Command(argv=["{home}/.bun/bin/bun", "update", "-g", "wrangler"], user="target")],
    ),
    Module(
        id="cloud.vercel",
        description="Vercel CLI",
        category="cloud",
        required=False,
        depends_on=["lang.bun"],
        install=[_bun_global("vercel", "vercel")],
        verify=[_verify("vercel", "--version")],
        update=[Command(argv=["{home}/.bun/bin/bun", "update", "-g", "vercel"], user="target")],
    ),
    # ── stack ──
    Module(
        id="stack.zoxide",
        description="zoxide smarter cd",
        category="stack",
        required=False,
        depends_on=["base.system"],
        install=[
            InstallStep(
                description="Install zoxide",
                script=VendorScript(
                    url="https://raw.githubusercontent.com/ajeetdsouza/zoxide/main/install.sh",
                ),
                skip_if=Guard(kind="binary", targets=["zoxide"]),
            ),
        ],
        verify=[_verify("zoxide", "--version")],
    ),
    Module(
        id="stack.atuin",
        description="Atuin shell history",
        category="stack",
        required=False,
        depends_on=["base.system"],
        install=[
            InstallStep(
                description="Install atuin",
                script=VendorScript(url="https://setup.atuin.sh"),
                skip_if=Guard(kind="binary", targets=["atuin"]),
            ),
        ],
        verify=[_verify("atuin", "--version")],
    ),
]
