"""
Security gate — checksum verification for vendor install scripts.

Replaces the ``curl | bash`` pattern.  A script is fetched into memory,
hashed, and compared with the trusted digest recorded in
``checksums.yaml``; only verified bytes are ever handed to a shell.

    verify_and_fetch(url)
        not https            → InsecureTransportError  (nothing fetched)
        no trusted digest    → UntrustedScriptError    (nothing fetched)
        digest mismatch      → ChecksumMismatchError   (nothing written)
        match                → bytes

The table file format::

    installers:
      bun:
        url: "https://bun.sh/install"
        sha256: "<64 hex chars>"
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from urllib.parse import urlparse

import yaml

from vpsforge.core.errors import (
    ChecksumMismatchError,
    ConfigError,
    InsecureTransportError,
    UntrustedScriptError,
    VpsforgeError,
)

logger = logging.getLogger(__name__)

Fetch = Callable[[str], bytes]

_TABLE_HEADER = (
    "# Trusted SHA256 digests for vendor install scripts.\n"
    "# Regenerate with 'vpsforge checksums update --write' and review the diff.\n"
)


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def require_https(url: str) -> None:
    """Raise InsecureTransportError unless ``url`` is ``https://``."""
    if urlparse(url).scheme.lower() != "https":
        raise InsecureTransportError(url)


def _normalize(digest: str) -> str:
    return digest.strip().removeprefix("sha256:").lower()


# ── Checksum table ──────────────────────────────────────────────


@dataclass
class ChecksumEntry:
    name: str
    url: str
    sha256: str = ""

    @property
    def trusted(self) -> bool:
        return len(_normalize(self.sha256)) == 64


@dataclass
class ChecksumTable:
    """Mapping of installer name → (url, sha256)."""

    entries: dict[str, ChecksumEntry] = field(default_factory=dict)
    source: Path | None = None

    @classmethod
    def load(cls, path: Path) -> ChecksumTable:
        """Load a table from YAML.

        Raises:
            ConfigError: unreadable file or malformed entries.
        """
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read checksum table {path}: {e}") from e

        installers = raw.get("installers") if isinstance(raw, dict) else None
        if installers is None:
            installers = {}
        if not isinstance(installers, dict):
            raise ConfigError(f"{path}: 'installers' must be a mapping")

        entries: dict[str, ChecksumEntry] = {}
        for name, item in installers.items():
            if not isinstance(item, dict) or not item.get("url"):
                raise ConfigError(f"{path}: installer '{name}' needs a url")
            entries[str(name)] = ChecksumEntry(
                name=str(name),
                url=str(item["url"]),
                sha256=str(item.get("sha256") or ""),
            )
        return cls(entries=entries, source=path)

    @classmethod
    def load_default(cls, path: str | Path | None = None) -> ChecksumTable:
        """Load ``path`` if given, else the table bundled with the package."""
        if path:
            return cls.load(Path(path))
        bundled = resources.files("vpsforge.core.data").joinpath("checksums.yaml")
        with resources.as_file(bundled) as p:
            return cls.load(Path(p))

    def for_url(self, url: str) -> ChecksumEntry | None:
        for entry in self.entries.values():
            if entry.url == url:
                return entry
        return None

    def expected(self, url: str) -> str | None:
        """Trusted digest for ``url``, or None when absent or empty."""
        entry = self.for_url(url)
        if entry is None or not entry.trusted:
            return None
        return _normalize(entry.sha256)

    def to_yaml(self) -> str:
        data = {
            "installers": {
                name: {"url": e.url, "sha256": e.sha256}
                for name, e in sorted(self.entries.items())
            }
        }
        return _TABLE_HEADER + yaml.safe_dump(data, sort_keys=False, default_flow_style=False)

    def save(self, path: Path) -> None:
        """Atomic write; a failed write leaves ``path`` and its directory untouched."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".checksums_", suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            tmp.write_text(self.to_yaml(), encoding="utf-8")
            os.replace(tmp, path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Checksum table saved to %s", path)


# ── Gate ────────────────────────────────────────────────────────


def verify_and_fetch(
    url: str,
    expected_sha256: str | None = None,
    *,
    table: ChecksumTable | None = None,
    fetch: Fetch,
) -> bytes:
    """Fetch ``url`` and return its bytes only if they match the trusted digest.

    The digest is ``expected_sha256`` when given, else the table entry
    for ``url``.

    Raises:
        InsecureTransportError: ``url`` is not HTTPS.
        UntrustedScriptError: no digest is recorded for ``url``.
        ChecksumMismatchError: the content hash differs.
        FetchError: the download itself failed.
    """
    require_https(url)

    if expected_sha256:
        expected: str | None = _normalize(expected_sha256)
    else:
        expected = table.expected(url) if table is not None else None
    if not expected:
        raise UntrustedScriptError(url)

    content = fetch(url)
    actual = sha256_hex(content)
    if actual != expected:
        logger.error("Checksum mismatch for %s", url)
        raise ChecksumMismatchError(url, expected, actual)

    logger.debug("Verified %s (%d bytes, sha256 %s)", url, len(content), actual[:12])
    return content


def verify_url(url: str, table: ChecksumTable, fetch: Fetch) -> dict:
    """Check one URL against the table without raising.  For the CLI."""
    entry = table.for_url(url)
    result = {
        "url": url,
        "name": entry.name if entry else None,
        "expected": table.expected(url),
        "actual": None,
        "ok": False,
        "error": None,
    }
    try:
        require_https(url)
        content = fetch(url)
    except VpsforgeError as e:
        result["error"] = str(e)
        return result
    result["actual"] = sha256_hex(content)
    result["ok"] = result["expected"] is not None and result["actual"] == result["expected"]
    if not result["ok"] and result["expected"] is None:
        result["error"] = "no trusted checksum recorded"
    elif not result["ok"]:
        result["error"] = "checksum mismatch"
    return result


def update_checksums(table: ChecksumTable, fetch: Fetch) -> tuple[ChecksumTable, list[dict]]:
    """Re-fetch every installer and compute fresh digests.

    Returns the new table plus a change list (``name, url, old, new``)
    so the operator can review before writing.  Failed fetches keep the
    old digest and are reported with ``error``.
    """
    entries: dict[str, ChecksumEntry] = {}
    changes: list[dict] = []
    for name, entry in table.entries.items():
        try:
            require_https(entry.url)
            new = sha256_hex(fetch(entry.url))
        except VpsforgeError as e:
            logger.warning("Could not refresh %s: %s", name, e)
            entries[name] = ChecksumEntry(name=name, url=entry.url, sha256=entry.sha256)
            changes.append({"name": name, "url": entry.url, "old": entry.sha256, "new": None, "error": str(e)})
            continue
        entries[name] = ChecksumEntry(name=name, url=entry.url, sha256=new)
        if _normalize(entry.sha256) != new:
            changes.append({"name": name, "url": entry.url, "old": entry.sha256, "new": new})
    return ChecksumTable(entries=entries, source=table.source), changes


# ── Temp script files ───────────────────────────────────────────


def write_temp_script(content: bytes, owner: str | None = None) -> Path:
    """Write verified bytes to a private 0700 temp file.

    ``owner`` changes the file owner (requires root); the caller is
    responsible for removing the file with ``cleanup_script``.
    """
    fd, name = tempfile.mkstemp(suffix=".sh", prefix="vpsforge_script_")
    try:
        os.write(fd, content)
    finally:
        os.close(fd)
    path = Path(name)
    os.chmod(path, 0o700)
    if owner:
        shutil.chown(path, user=owner)
    return path


def cleanup_script(path: Path) -> None:
    """Remove a temporary script file."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass
