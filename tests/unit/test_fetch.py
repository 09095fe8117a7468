"""Tests for classdocs_server.bundle.fetch."""
import itertools
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest
import responses
from requests.exceptions import ConnectionError, Timeout

from classdocs_server.bundle.errors import (
    FetchError,
    FetchTimeout,
    SourceRejected,
    SourceUnreachable,
)
from classdocs_server.bundle.fetch import fetch_archive

URL = "http://example.com/docs.zip"


class TestFetchArchive:
    """Tests for fetch_archive function."""

    @responses.activate
    def test_basic_download(self) -> None:
        """Whole body is returned as bytes."""
        responses.add(responses.GET, URL, body=b"PK\x03\x04archive", status=200)

        data = fetch_archive(URL, timeout=5)

        assert data == b"PK\x03\x04archive"
        assert len(responses.calls) == 1

    @responses.activate
    def test_download_in_chunks(self) -> None:
        payload = bytes(range(256)) * 64
        responses.add(responses.GET, URL, body=payload, status=200)

        assert fetch_archive(URL, timeout=5, chunk_size=100) == payload

    @responses.activate
    def test_http_404_is_rejected(self) -> None:
        responses.add(responses.GET, URL, status=404)

        with pytest.raises(SourceRejected) as exc_info:
            fetch_archive(URL, timeout=5)

        assert exc_info.value.status_code == 404
        assert "404" in str(exc_info.value)

    @responses.activate
    def test_http_500_is_not_retried(self) -> None:
        """Retry policy belongs to the supervisor, not the fetcher."""
        responses.add(responses.GET, URL, status=500)
        responses.add(responses.GET, URL, body=b"ok", status=200)

        with pytest.raises(SourceRejected):
            fetch_archive(URL, timeout=5)

        assert len(responses.calls) == 1

    @responses.activate
    def test_connection_error(self) -> None:
        responses.add(responses.GET, URL, body=ConnectionError("DNS failure"))

        with pytest.raises(SourceUnreachable):
            fetch_archive(URL, timeout=5)

    @responses.activate
    def test_timeout_before_response(self) -> None:
        responses.add(responses.GET, URL, body=Timeout("Request timeout"))

        with pytest.raises(FetchTimeout):
            fetch_archive(URL, timeout=5)

    @responses.activate
    def test_deadline_exceeded_mid_transfer(self) -> None:
        """Deadline already spent when the headers arrive."""
        responses.add(responses.GET, URL, body=b"x" * 10_000, status=200)
        clock = itertools.chain([0.0], itertools.repeat(1_000.0))

        with pytest.raises(FetchTimeout):
            fetch_archive(URL, timeout=5, chunk_size=100, clock=lambda: next(clock))

    def test_invalid_timeout(self) -> None:
        with pytest.raises(ValueError):
            fetch_archive(URL, timeout=0)

    def test_malformed_locator(self) -> None:
        with pytest.raises(SourceUnreachable):
            fetch_archive("not a url", timeout=5)

    def test_errors_share_base(self) -> None:
        assert issubclass(FetchTimeout, FetchError)
        assert issubclass(SourceRejected, FetchError)
        assert issubclass(SourceUnreachable, FetchError)


class TestFileLocator:
    """Tests for file:// locators."""

    def test_reads_local_file(self, tmp_path: Path) -> None:
        archive = tmp_path / "docs.zip"
        archive.write_bytes(b"local archive")

        assert fetch_archive(archive.as_uri(), timeout=5) == b"local archive"

    def test_missing_local_file(self, tmp_path: Path) -> None:
        with pytest.raises(SourceUnreachable):
            fetch_archive((tmp_path / "missing.zip").as_uri(), timeout=5)


class _TrickleHandler(BaseHTTPRequestHandler):
    """Send a 40 byte body one byte every 0.1s."""

    def do_GET(self) -> None:
        self.send_response(200)
        self.send_header("Content-Length", "40")
        self.end_headers()
        try:
            for _ in range(40):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.1)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args) -> None:
        pass


@pytest.fixture
def trickle_url():
    """Serve a slowly trickling body on a local port."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _TrickleHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}/docs.zip"
    server.shutdown()
    server.server_close()


class TestDeadlineOnRealSocket:
    """The deadline interrupts reads that keep receiving data."""

    def test_slow_body_aborted_at_deadline(self, trickle_url: str) -> None:
        started = time.monotonic()

        with pytest.raises(FetchTimeout):
            fetch_archive(trickle_url, timeout=1.0)

        assert time.monotonic() - started < 2.5

    def test_fast_enough_body_completes(self, trickle_url: str) -> None:
        assert fetch_archive(trickle_url, timeout=10) == b"x" * 40
