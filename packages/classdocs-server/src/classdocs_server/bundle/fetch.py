"""Bundle archive download with an overall deadline."""
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import requests
from requests.exceptions import (
    InvalidSchema,
    InvalidURL,
    MissingSchema,
    RequestException,
    Timeout,
)
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from .errors import FetchTimeout, SourceRejected, SourceUnreachable

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 256 * 1024


def _read_local(file_path: str) -> bytes:
    """Read an archive from a file:// locator."""
    path = Path(unquote(file_path))
    try:
        return path.read_bytes()
    except OSError as e:
        raise SourceUnreachable(f"Local file not readable: {path}: {e}") from e


def fetch_archive(
    source: str,
    timeout: float,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    clock: Callable[[], float] = time.monotonic,
    session: Optional[requests.Session] = None,
    show_progress: bool = False,
) -> bytes:
    """Download a whole bundle archive into memory.

    Supports http(s):// and file:// locators. ``timeout`` is an overall
    deadline: it bounds connecting, every read, and the total transfer.
    When it expires a watchdog shuts down the socket, which interrupts a
    read in progress, and everything received so far is dropped.

    Args:
        source: Archive locator
        timeout: Deadline in seconds
        chunk_size: Size of chunks to read
        clock: Monotonic clock, injectable for tests
        session: Optional requests session
        show_progress: Render a rich progress bar while downloading

    Returns:
        Raw archive bytes

    Raises:
        ValueError: If timeout is not positive
        SourceUnreachable: On connection, DNS or locator failure
        SourceRejected: On a non-success HTTP status
        FetchTimeout: If the deadline expires
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")

    parsed = urlparse(source)
    if parsed.scheme == "file":
        return _read_local(parsed.path)

    deadline = clock() + timeout
    http = session or requests

    logger.info(f"Starting download of {source} (timeout {timeout:g}s)")
    try:
        response = http.get(source, stream=True, timeout=(timeout, timeout))
    except Timeout as e:
        raise FetchTimeout(f"No response from {source} within {timeout:g}s") from e
    except (MissingSchema, InvalidSchema, InvalidURL) as e:
        raise SourceUnreachable(f"Invalid bundle locator {source!r}: {e}") from e
    except RequestException as e:
        raise SourceUnreachable(f"Cannot reach {source}: {e}") from e

    with response:
        if not response.ok:
            raise SourceRejected(response.status_code, response.reason or "")

        remaining = deadline - clock()
        if remaining <= 0:
            raise FetchTimeout(f"Download of {source} exceeded {timeout:g}s")

        expired = threading.Event()
        watchdog = threading.Timer(remaining, _abort, args=(response, expired))
        watchdog.daemon = True
        watchdog.start()
        try:
            buffer = _read_body(response, chunk_size, show_progress)
        except RequestException as e:
            if expired.is_set():
                raise FetchTimeout(f"Download of {source} exceeded {timeout:g}s") from e
            if isinstance(e, Timeout):
                raise FetchTimeout(f"Download of {source} stalled: {e}") from e
            raise SourceUnreachable(f"Transfer from {source} failed: {e}") from e
        finally:
            watchdog.cancel()

    # A body without Content-Length ends quietly when the socket is shut down
    if expired.is_set() or clock() > deadline:
        raise FetchTimeout(f"Download of {source} exceeded {timeout:g}s")

    logger.info(f"Downloaded {len(buffer) / 1024 / 1024:.2f} MB from {source}")
    return bytes(buffer)


def _abort(response: requests.Response, expired: threading.Event) -> None:
    """Deadline watchdog: interrupt a read blocked on the socket."""
    expired.set()
    logger.warning(f"Download deadline reached, aborting transfer from {response.url}")
    try:
        response.raw.shutdown()
    except (OSError, ValueError) as e:
        logger.debug(f"Socket already gone while aborting download: {e}")


def _read_body(response: requests.Response, chunk_size: int, show_progress: bool) -> bytearray:
    total = int(response.headers.get("Content-Length") or 0) or None
    buffer = bytearray()

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TimeElapsedColumn(),
        disable=not show_progress,
    ) as progress:
        task = progress.add_task("Downloading documentation...", total=total)
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                buffer.extend(chunk)
                progress.advance(task, len(chunk))
    return buffer
