"""
Error taxonomy for vpsforge.

Adapters never raise (they return Receipts).  Everything above the
adapter layer raises one of these, and the CLI turns them into a
``❌`` line and exit code 1.

    VpsforgeError
    ├── ConfigError
    ├── InstallStepFailure      an install step exited non-zero
    ├── VerifyFailure           a verify command failed
    ├── SecurityError
    │   ├── InsecureTransportError
    │   ├── ChecksumMismatchError
    │   └── UntrustedScriptError
    └── FetchError
        ├── RateLimitExhaustedError
        └── NetworkError
"""

from __future__ import annotations


class VpsforgeError(Exception):
    """Base class for every error raised by vpsforge."""


class ConfigError(VpsforgeError):
    """Raised when settings or the module manifest are invalid or missing."""


class InstallStepFailure(VpsforgeError):
    """A specific install command failed.  Fatal to its module only."""

    def __init__(
        self,
        module_id: str,
        command: str,
        error: str = "",
        return_code: int | None = None,
    ):
        self.module_id = module_id
        self.command = command
        self.error = error
        self.return_code = return_code
        super().__init__(f"{module_id}: install command failed: {command}")


class VerifyFailure(VpsforgeError):
    """A module's verify command failed after its install steps ran."""

    def __init__(self, module_id: str, command: str, error: str = ""):
        self.module_id = module_id
        self.command = command
        self.error = error
        super().__init__(f"{module_id}: verify failed: {command}")


# ── Supply chain ────────────────────────────────────────────────


class SecurityError(VpsforgeError):
    """Base for checksum-gate failures.  Content is never executed."""


class InsecureTransportError(SecurityError):
    """The URL does not use HTTPS."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Refusing non-HTTPS URL: {url}")


class ChecksumMismatchError(SecurityError):
    """Downloaded content does not hash to the trusted digest."""

    def __init__(self, url: str, expected: str, actual: str):
        self.url = url
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA256 mismatch for {url}\n"
            f"Expected: {expected}\n"
            f"Got:      {actual}\n"
            f"The script may have been tampered with."
        )


class UntrustedScriptError(SecurityError):
    """No trusted digest is recorded for the URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(
            f"No trusted checksum for {url}. "
            "Run 'vpsforge checksums update', review the diff, then retry."
        )


# ── Network ─────────────────────────────────────────────────────


class FetchError(VpsforgeError):
    """Base for HTTP fetch failures."""


class RateLimitExhaustedError(FetchError):
    """Still rate limited after the maximum number of retries."""

    def __init__(self, url: str, retries: int):
        self.url = url
        self.retries = retries
        super().__init__(f"Rate limit: max retries ({retries}) exhausted for {url}")


class NetworkError(FetchError):
    """Non-rate-limit HTTP or connection failure.  Never retried."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)
