"""Downloading artifacts with progress reporting."""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from http.client import HTTPResponse

    from ._distribution import DistributionPackage

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "routegraph-user-agent"
CHUNK_SIZE = 64 * 1024

# Called with (bytes_copied, content_length); content_length is -1 if unknown.
DownloadListener = Callable[[int, int], None]


class TimeoutConfig(BaseModel):
    """Network timeouts in seconds."""

    model_config = ConfigDict(frozen=True)

    connection_timeout: float = Field(default=10.0, gt=0)
    read_timeout: float = Field(default=10.0, gt=0)

    @classmethod
    def defaults(cls) -> TimeoutConfig:
        return cls()


def download_url(base: str, package: DistributionPackage) -> str:
    """Join the download base path and a package's archive path.

    The base is used as a plain prefix, so it should end with ``/``.

    Raises:
        ValueError: If the result is not an absolute http, https or file URL.

    """
    url = base + package.archive_path
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https", "file") or (parts.scheme != "file" and not parts.netloc):
        msg = f"Could not create a download URL from {base!r} and {package.archive_path!r}"
        raise ValueError(msg)
    return url


class ThrottledProgress:
    """Forward progress at most once per interval, and always on completion.

    Args:
        target: Listener receiving the throttled updates.
        interval: Minimum number of seconds between two updates.
        clock: Monotonic time source.

    """

    def __init__(
        self,
        target: DownloadListener,
        interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._target = target
        self._interval = interval
        self._clock = clock
        self._last = clock()

    def __call__(self, bytes_copied: int, content_length: int) -> None:
        now = self._clock()
        if now - self._last >= self._interval or bytes_copied == content_length:
            self._last = now
            self._target(bytes_copied, content_length)


def log_progress(bytes_copied: int, content_length: int) -> None:
    """Log download progress as a percentage."""
    if content_length > 0:
        logger.info("Downloaded %d%% (%d of %d bytes)", bytes_copied * 100 // content_length, bytes_copied, content_length)
    else:
        logger.info("Downloaded %d bytes", bytes_copied)


def url_connection_of(url: str, user_agent: str, timeout_config: TimeoutConfig) -> HTTPResponse:
    """Open ``url`` with the given user agent.

    urllib applies a single socket timeout to connecting and reading; the
    larger of the two configured timeouts is used.
    """
    request = Request(url, headers={"User-Agent": user_agent})  # noqa: S310
    timeout = max(timeout_config.connection_timeout, timeout_config.read_timeout)
    logger.debug("Opening %s (timeout %.1fs)", url, timeout)
    return urlopen(request, timeout=timeout)  # noqa: S310


def _content_length(response: HTTPResponse) -> int:
    header = response.headers.get("Content-Length")
    try:
        return int(header) if header is not None else -1
    except ValueError:
        return -1


def download_to(response: HTTPResponse, destination: Path, listener: DownloadListener | None = None) -> Path:
    """Stream a response body into ``destination``.

    The body is written to a ``.part`` file next to ``destination`` and moved
    into place once complete, so ``destination`` never holds a partial
    download.

    Args:
        response: An open response; it is closed afterwards.
        destination: The file to create.
        listener: Called after every chunk with (bytes_copied, content_length).
            A final (bytes_copied, bytes_copied) update follows when the length
            was unknown or the body was empty.

    Returns:
        ``destination``.

    """
    content_length = _content_length(response)
    partial = destination.with_name(destination.name + ".part")
    destination.parent.mkdir(parents=True, exist_ok=True)
    copied = 0
    try:
        with response, partial.open("wb") as out:
            while chunk := response.read(CHUNK_SIZE):
                out.write(chunk)
                copied += len(chunk)
                if listener is not None:
                    listener(copied, content_length)
        if listener is not None and (content_length < 0 or copied == 0):
            listener(copied, copied)
        shutil.move(partial, destination)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    logger.debug("Downloaded %d bytes to %s", copied, destination)
    return destination


def use_or_download(
    artifact_path: Path,
    url: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout_config: TimeoutConfig | None = None,
    listener: DownloadListener | None = None,
) -> Path:
    """Return ``artifact_path``, downloading it from ``url`` if it does not exist.

    An existing file is returned as-is without touching the network.
    """
    if artifact_path.exists():
        logger.debug("Using existing %s", artifact_path)
        return artifact_path

    logger.info("Downloading %s", url)
    response = url_connection_of(url, user_agent, timeout_config or TimeoutConfig.defaults())
    return download_to(response, artifact_path, listener)
