"""
Backoff fetcher — HTTP GET with GitHub rate-limit detection.

State machine::

    IDLE ─▶ FETCHING ─┬─▶ SUCCESS          HTTP 200
                      ├─▶ RATE_LIMITED ─▶ FETCHING   (sleep, retry)
                      │        └────────▶ EXHAUSTED  (max retries)
                      └─▶ EXHAUSTED        any other status / network error

A 403 is only a rate limit with evidence (``X-RateLimit-Remaining: 0``
or a rate-limit phrase in the body); otherwise it is an auth error and
is not retried.  The wait before each retry is the reset header's
countdown when it is valid, else the current exponential delay.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse

from vpsforge import __version__
from vpsforge.core.errors import NetworkError, RateLimitExhaustedError

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"

RATE_LIMIT_PATTERNS: tuple[str, ...] = (
    "rate limit",
    "API rate limit exceeded",
    "You have exceeded a secondary rate limit",
    "abuse detection",
)

# Hosts that receive the GitHub token.  Never send it anywhere else.
_GITHUB_HOSTS = frozenset({
    "api.github.com",
    "github.com",
    "raw.githubusercontent.com",
    "objects.githubusercontent.com",
})

_AUTH_HINT = "Run 'gh auth login' or set GITHUB_TOKEN for higher rate limits (5000/hr vs 60/hr)"


class FetchState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    RATE_LIMITED = "rate_limited"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class BackoffPolicy:
    """Exponential backoff parameters."""

    initial: float = 1
    multiplier: float = 2
    max_backoff: float = 60
    max_retries: int = 5

    def next_delay(self, delay: float) -> float:
        return min(delay * self.multiplier, self.max_backoff)


@dataclass
class HttpResponse:
    """Transport-neutral response.  Header names are lower-cased."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def header(self, name: str) -> str:
        return self.headers.get(name.lower(), "").strip()


Transport = Callable[[str, dict[str, str], int], HttpResponse]


# ── Classification (pure) ───────────────────────────────────────


def is_rate_limited(status: int | str, body: str = "", remaining: str = "") -> bool:
    """Whether a response is a rate limit rather than a hard error.

    Only 403 and 429 qualify, and only with evidence: a remaining quota
    of exactly ``0`` or a known rate-limit phrase in the body.
    """
    if str(status).strip() not in ("403", "429"):
        return False

    if str(remaining).strip() == "0":
        return True

    body_lower = (body or "").lower()
    return any(pattern.lower() in body_lower for pattern in RATE_LIMIT_PATTERNS)


def _reset_wait(reset: str | int | None, now: float, max_backoff: float) -> int | None:
    """Seconds until ``reset`` (+1), or None if invalid or out of range."""
    value = str(reset).strip() if reset is not None else ""
    if not value.isdigit():
        return None
    wait = int(value) - int(now) + 1
    if 1 <= wait <= max_backoff:
        return wait
    return None


def reset_wait_time(
    reset: str | int | None,
    now: float | None = None,
    max_backoff: float = 60,
) -> float:
    """Wait derived from an ``X-RateLimit-Reset`` timestamp.

    Returns ``reset - now + 1`` when the header is numeric and the wait
    falls within ``[1, max_backoff]``; otherwise ``max_backoff``.
    """
    wait = _reset_wait(reset, time.time() if now is None else now, max_backoff)
    return max_backoff if wait is None else wait


def token_from_env() -> str | None:
    """``GITHUB_TOKEN`` or ``GH_TOKEN`` (gh CLI compatible)."""
    return os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN") or None


def token_from_gh_cli(run: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> str | None:
    """Token of a logged-in ``gh`` CLI (``gh auth token``), if there is one."""
    if shutil.which("gh") is None:
        return None
    try:
        proc = run(["gh", "auth", "token"], capture_output=True, text=True, timeout=10, check=False)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("gh auth token failed: %s", e)
        return None
    token = (proc.stdout or "").strip()
    return token if proc.returncode == 0 and token else None


def discover_token() -> str | None:
    """Environment token first, then the gh CLI login."""
    return token_from_env() or token_from_gh_cli()


# ── Transport ───────────────────────────────────────────────────


def urllib_transport(url: str, headers: dict[str, str], timeout: int) -> HttpResponse:
    """Default transport.  HTTP errors become responses; socket errors raise."""
    req = urllib.request.Request(url, headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return HttpResponse(
                status=resp.status,
                headers={k.lower(): v for k, v in resp.headers.items()},
                body=resp.read(),
            )
    except urllib.error.HTTPError as e:
        return HttpResponse(
            status=e.code,
            headers={k.lower(): v for k, v in (e.headers or {}).items()},
            body=e.read() or b"",
        )
    except (urllib.error.URLError, OSError) as e:
        raise NetworkError(f"Connection failed for {url}: {e}") from e


# ── Fetcher ─────────────────────────────────────────────────────


class BackoffFetcher:
    """Fetch URLs, retrying only on evidence of rate limiting.

    ``transport``, ``sleep`` and ``clock`` are injectable so the state
    machine can be exercised without network or real waiting.
    """

    def __init__(
        self,
        token: str | None = None,
        policy: BackoffPolicy | None = None,
        transport: Transport | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        timeout: int = 30,
    ):
        self._token = token
        self._policy = policy or BackoffPolicy()
        self._transport = transport or urllib_transport
        self._sleep = sleep
        self._clock = clock
        self._timeout = timeout
        self._hint_shown = False

        self.state = FetchState.IDLE
        self.attempts = 0
        self.waits: list[float] = []

    @classmethod
    def from_env(cls, **kwargs) -> BackoffFetcher:
        """Fetcher authenticated from the environment or a ``gh auth login`` session."""
        return cls(token=discover_token(), **kwargs)

    @classmethod
    def from_settings(cls, backoff) -> BackoffFetcher:
        """Fetcher configured from ``Settings.backoff``; token as in ``from_env``."""
        return cls.from_env(
            policy=BackoffPolicy(
                initial=backoff.initial,
                multiplier=backoff.multiplier,
                max_backoff=backoff.max_backoff,
                max_retries=backoff.max_retries,
            ),
            timeout=backoff.timeout,
        )

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    def _headers_for(self, url: str) -> dict[str, str]:
        headers = {
            "User-Agent": f"vpsforge/{__version__}",
            "Accept": "*/*",
        }
        host = urlparse(url).hostname or ""
        if host == "api.github.com":
            headers["Accept"] = "application/vnd.github+json"
        if self._token and host in _GITHUB_HOSTS:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _show_wait(self, wait: float, retry: int) -> None:
        logger.warning(
            "Rate limit reached. Waiting %ss before retry (%d/%d)...",
            f"{wait:g}", retry, self._policy.max_retries,
        )
        if not self._token and not self._hint_shown:
            logger.warning("  Tip: %s", _AUTH_HINT)
            self._hint_shown = True

    def fetch(self, url: str) -> bytes:
        """GET ``url`` and return the body.

        Raises:
            RateLimitExhaustedError: still rate limited after max retries.
            NetworkError: any other non-200 status or connection failure.
        """
        policy = self._policy
        delay = policy.initial
        retries = 0
        self.attempts = 0
        self.waits = []

        while True:
            self.state = FetchState.FETCHING
            self.attempts += 1
            try:
                resp = self._transport(url, self._headers_for(url), self._timeout)
            except NetworkError:
                self.state = FetchState.EXHAUSTED
                raise

            if resp.status == 200:
                self.state = FetchState.SUCCESS
                logger.debug("Fetched %s (%d bytes, attempt %d)", url, len(resp.body), self.attempts)
                return resp.body

            body = resp.body.decode("utf-8", errors="replace")
            if not is_rate_limited(resp.status, body, resp.header("x-ratelimit-remaining")):
                self.state = FetchState.EXHAUSTED
                raise NetworkError(f"Fetch failed: HTTP {resp.status} for {url}", status=resp.status)

            self.state = FetchState.RATE_LIMITED
            if retries >= policy.max_retries:
                self.state = FetchState.EXHAUSTED
                raise RateLimitExhaustedError(url, policy.max_retries)

            wait = _reset_wait(resp.header("x-ratelimit-reset"), self._clock(), policy.max_backoff)
            if wait is None:
                wait = delay

            retries += 1
            self._show_wait(wait, retries)
            self._sleep(wait)
            self.waits.append(wait)
            delay = policy.next_delay(delay)

    # ── GitHub conveniences ──

    def api_fetch(self, path: str) -> bytes:
        """Fetch a GitHub API path such as ``/repos/owner/repo/releases/latest``."""
        if not path.startswith("/"):
            path = "/" + path
        return self.fetch(f"{GITHUB_API}{path}")

    def latest_release(self, repo: str) -> str:
        """Tag name of the latest release of ``owner/repo``.

        Raises:
            NetworkError: the response has no ``tag_name``.
        """
        raw = self.api_fetch(f"/repos/{repo}/releases/latest")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise NetworkError(f"Invalid JSON from GitHub for {repo}: {e}") from e
        tag = data.get("tag_name") if isinstance(data, dict) else None
        if not tag:
            raise NetworkError(f"No tag_name in latest release of {repo}")
        return str(tag)
