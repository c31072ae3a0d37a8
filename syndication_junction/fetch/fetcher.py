"""
HTTP fetching for feeds and media files.

Both helpers use a synchronous httpx client that follows redirects, retries
with a linear backoff, and respects system proxy settings when trust_env is
enabled. A custom transport can be passed in (tests use httpx.MockTransport).
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
import tempfile
import time

import httpx

from ..core.errors import MediaDownloadError


@dataclass
class FetchResult:
    """Result of an HTTP fetch operation.

    Either content will be populated (success) or error will be populated (failure),
    but never both. status_code may be None for network-level failures.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code, or None if request failed before getting response
        content: The raw response body, or None on error
        error: Error message if fetch failed, None on success
    """
    url: str
    status_code: int | None
    content: bytes | None
    error: str | None

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


def fetch_url(
    url: str,
    timeout: float,
    retries: int,
    user_agent: str,
    trust_env: bool,
    transport: httpx.BaseTransport | None = None,
) -> FetchResult:
    """Fetch a URL using httpx with retry logic.

    Transport errors are retried; an HTTP response is final, and a non-2xx
    status is reported as an error without retrying.

    Args:
        url: The URL to fetch
        timeout: Request timeout in seconds
        retries: Number of retry attempts after initial failure
        user_agent: User-Agent header string
        trust_env: Whether to respect system proxy settings from environment
        transport: Optional httpx transport override

    Returns:
        FetchResult with content on success or error message on failure
    """
    headers = {"User-Agent": user_agent}
    last_error: str | None = None

    for attempt in range(retries + 1):
        try:
            with _client(timeout, headers, trust_env, transport) as client:
                resp = client.get(url)
        except httpx.HTTPError as exc:
            last_error = f"{type(exc).__name__}: {exc}"
            if attempt < retries:
                # Backoff: 0.5s, 1.0s, 1.5s...
                time.sleep(0.5 * (attempt + 1))
            continue

        if not resp.is_success:
            return FetchResult(
                url=url,
                status_code=resp.status_code,
                content=None,
                error=f"Request returned non-successful status code: {resp.status_code}",
            )
        return FetchResult(url=url, status_code=resp.status_code, content=resp.content, error=None)

    return FetchResult(url=url, status_code=None, content=None, error=last_error)


def download_file(
    url: str,
    dest: Path,
    timeout: float,
    retries: int,
    user_agent: str,
    trust_env: bool,
    transport: httpx.BaseTransport | None = None,
) -> Path:
    """Stream a remote file to ``dest``.

    The body is written to a temporary file in the destination directory and
    renamed into place only once complete, so a failed download never leaves
    a truncated file that a later run would mistake for a finished one.

    Raises:
        MediaDownloadError: If the request fails, returns a non-2xx status,
            or the file cannot be written
    """
    headers = {"User-Agent": user_agent}
    last_error = "no attempt made"

    for attempt in range(retries + 1):
        tmp_name: str | None = None
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with _client(timeout, headers, trust_env, transport) as client:
                with client.stream("GET", url) as resp:
                    if not resp.is_success:
                        raise MediaDownloadError(
                            url, f"non-successful status code {resp.status_code}"
                        )
                    fd, tmp_name = tempfile.mkstemp(
                        prefix=f".{dest.name}.", suffix=".part", dir=dest.parent
                    )
                    with os.fdopen(fd, "wb") as handle:
                        for chunk in resp.iter_bytes():
                            handle.write(chunk)
            os.replace(tmp_name, dest)
            return dest
        except MediaDownloadError:
            _discard(tmp_name)
            raise
        except (httpx.HTTPError, OSError) as exc:
            _discard(tmp_name)
            last_error = f"{type(exc).__name__}: {exc}"
            if attempt < retries:
                time.sleep(0.5 * (attempt + 1))

    raise MediaDownloadError(url, last_error)


def _client(
    timeout: float,
    headers: dict[str, str],
    trust_env: bool,
    transport: httpx.BaseTransport | None,
) -> httpx.Client:
    return httpx.Client(
        timeout=timeout,
        headers=headers,
        follow_redirects=True,
        trust_env=trust_env,
        transport=transport,
    )


def _discard(tmp_name: str | None) -> None:
    if tmp_name and os.path.exists(tmp_name):
        os.unlink(tmp_name)
