"""Pytest configuration and fixtures."""

import asyncio
import ctypes
import json
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

from facsimile.builder import RequestBuilder
from facsimile.engines.availability import EngineAvailability
from facsimile.engines import native
from facsimile.engines.native import LIBRARY_ENV
from facsimile.impersonation.profiles import BrowserProfile
from facsimile.models import Response
from facsimile.options import ClientOptions


@pytest.fixture
def sample_response():
    """Create a sample Response object."""
    return Response(
        status_code=200,
        reason="OK",
        http_version="1.1",
        headers=[
            ("Content-Type", "application/json"),
            ("Content-Length", "13"),
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
        ],
        body=b'{"key":"val"}',
    )


@pytest.fixture
def chrome_options():
    """Chrome 133 options with a fixed extension order."""
    return ClientOptions(profile=BrowserProfile.CHROME_133, randomize_tls_extension_order=False)


@pytest.fixture
def builder():
    """RequestBuilder with a seeded RNG."""
    return RequestBuilder(rng=random.Random(1234))


@pytest.fixture
def availability():
    """A fresh availability state, isolated from the process-wide one."""
    return EngineAvailability()


@pytest.fixture(autouse=True)
def no_library_env(monkeypatch):
    """Keep a developer's FACSIMILE_TLS_LIBRARY out of the tests."""
    monkeypatch.delenv(LIBRARY_ENV, raising=False)


@pytest.fixture(autouse=True)
def no_bundled_library(monkeypatch):
    """Keep the tls_client package's own build out of the tests."""

    def missing():
        raise OSError("tls_client bundled library: cannot open shared object file: No such file or directory")

    monkeypatch.setattr(native, "load_bundled_library", missing)


class FakeCFunction:
    """Stands in for a ctypes foreign function returning a C string pointer."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.argtypes = None
        self.restype = None
        self._buffers = []

    def __call__(self, arg):
        self.calls.append(arg)
        result = self.handler(arg)
        if result is None:
            return None
        buf = ctypes.create_string_buffer(result.encode("utf-8") if isinstance(result, str) else result)
        self._buffers.append(buf)
        return ctypes.addressof(buf)


class FakeTlsLibrary:
    """In-memory tls-client: ``responder`` maps a decoded request payload to a response dict/str."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda payload: {"id": "r1", "status": 200, "body": "ok", "headers": {}})
        self.requests = []
        self.destroyed = []
        self.freed = []
        self.request = FakeCFunction(self._request)
        self.destroySession = FakeCFunction(self._destroy)
        self.getCookiesFromSession = FakeCFunction(self._cookies)
        self.freeMemory = FakeCFunction(self._free)
        self.cookies = []

    def _request(self, payload):
        data = json.loads(payload)
        self.requests.append(data)
        result = self.responder(data)
        return result if isinstance(result, (str, bytes)) or result is None else json.dumps(result)

    def _destroy(self, payload):
        self.destroyed.append(json.loads(payload)["sessionId"])
        return json.dumps({"id": "d1", "success": True})

    def _cookies(self, payload):
        return json.dumps({"id": "c1", "cookies": self.cookies})

    def _free(self, response_id):
        self.freed.append(response_id.decode("utf-8"))
        return None

    def __getitem__(self, name):
        return getattr(self, name)

    @property
    def probe_count(self):
        return sum(1 for r in self.requests if r["requestMethod"] == "HEAD" and r["sessionId"].startswith("probe-"))


@pytest.fixture
def fake_library():
    """A FakeTlsLibrary answering 200 to everything."""
    return FakeTlsLibrary()


@pytest.fixture
def library_file(tmp_path):
    """An existing file to point native_library_path at."""
    path = tmp_path / "tls-client-test.so"
    path.write_bytes(b"")
    return str(path)


@pytest.fixture
def mock_writer(mocker):
    """A StreamWriter stand-in."""
    writer = mocker.MagicMock()
    writer.drain = AsyncMock()
    writer.wait_closed = AsyncMock()
    writer.is_closing = MagicMock(return_value=False)
    return writer


def feed_reader(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    """StreamReader pre-loaded with ``data``; must be called inside a running loop."""
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader
