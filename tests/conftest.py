"""
Pytest configuration and fixtures for the proxy tests
"""
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from flask import Request
from requests.structures import CaseInsensitiveDict
from werkzeug.test import EnvironBuilder

from src.config_handler import LENIENT, ProxyConfig

GAS_URL = "https://example.com/exec"


class FakeUpstreamResponse:
    """Stands in for a streamed requests.Response."""

    def __init__(self, status_code=200, body=b"", content_type=None, chunks=None, location=None, url=GAS_URL):
        self.status_code = status_code
        self.url = url
        self.headers = CaseInsensitiveDict()
        if content_type is not None:
            self.headers["Content-Type"] = content_type
        if location is not None:
            self.headers["Location"] = location
        self.is_redirect = location is not None
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._chunks = chunks if chunks is not None else [body]
        self.closed = False

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            yield chunk

    def close(self):
        self.closed = True


class UpstreamRecorder:
    """Replaces requests.request, remembering every call."""

    def __init__(self):
        self.calls = []
        self.response = FakeUpstreamResponse(200, b'{"success":true}', "application/json")
        self.responses = []
        self.error = None

    def __call__(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return self.response

    @property
    def last(self):
        return self.calls[-1]


@pytest.fixture
def upstream(monkeypatch):
    """Intercepts outbound calls made by the upstream handler."""
    recorder = UpstreamRecorder()
    monkeypatch.setattr("src.upstream_handler.requests.request", recorder)
    return recorder


@pytest.fixture
def strict_config():
    return ProxyConfig(gas_url=GAS_URL)


@pytest.fixture
def lenient_config():
    return ProxyConfig(gas_url=GAS_URL, mode=LENIENT)


@pytest.fixture
def make_request():
    """Builds an inbound flask.Request without a running app."""
    def _make(method="POST", path="/", query_string=None, data=None, content_type=None, headers=None):
        builder = EnvironBuilder(
            method=method,
            path=path,
            query_string=query_string,
            data=data,
            content_type=content_type,
            headers=headers,
        )
        return Request(builder.get_environ())
    return _make


@pytest.fixture
def stalling_upstream(monkeypatch):
    """Local HTTP server that sends headers and the start of a JSON body, then stalls."""
    for name in ("HTTP_PROXY", "http_proxy", "HTTPS_PROXY", "https_proxy", "ALL_PROXY", "all_proxy"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_PROXY", "127.0.0.1,localhost")
    release = threading.Event()

    class StallingHandler(BaseHTTPRequestHandler):
        def do_POST(self):
            self.rfile.read(int(self.headers.get("Content-Length") or 0))
            self.send_response(200)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", "100")
            self.end_headers()
            self.wfile.write(b'{"a"')
            self.wfile.flush()
            release.wait(10)

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), StallingHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{server.server_address[1]}/exec"

    release.set()
    server.shutdown()
    server.server_close()
