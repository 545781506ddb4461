"""Tests for the native engine JSON payloads."""

import base64
import dataclasses
import json

import pytest

from facsimile.engines.payload import (
    PROBE_IDENTIFIER,
    decode_body,
    decode_response,
    dumps,
    encode_probe,
    encode_request,
    header_order,
    http_version,
    to_response,
)
from facsimile.errors import EngineFault
from facsimile.models import HIGH_FIDELITY

URL = "https://api.example.com/v1/items"


@pytest.fixture
def descriptor(builder, chrome_options):
    return builder.build(chrome_options, URL, headers={"X-Trace": "1"}, cookies={"sid": "abc"})


class TestEncodeRequest:
    """Tests for encode_request."""

    def test_core_fields(self, descriptor):
        """Test identifier, target and flags."""
        payload = encode_request(descriptor, "s-1")
        assert payload["tlsClientIdentifier"] == "chrome_133"
        assert payload["requestUrl"] == URL
        assert payload["requestMethod"] == "GET"
        assert payload["sessionId"] == "s-1"
        assert payload["timeoutMilliseconds"] == 30000
        assert payload["isByteResponse"] is True
        assert payload["isByteRequest"] is False
        assert payload["forceHttp1"] is False
        assert payload["catchPanics"] is True
        assert "requestBody" not in payload
        assert "proxyUrl" not in payload
        assert "customTlsClient" not in payload

    def test_headers_and_order(self, descriptor):
        """Test headers are a map and the order starts with the profile's."""
        payload = encode_request(descriptor, "s-1")
        assert payload["headers"]["X-Trace"] == "1"
        assert payload["headerOrder"][: len(descriptor.header_order)] == list(descriptor.header_order)
        assert payload["headerOrder"][-1] == "x-trace"

    def test_cookies(self, descriptor):
        """Test cookies are scoped to the request host."""
        cookies = encode_request(descriptor, "s-1")["requestCookies"]
        assert cookies == [{"name": "sid", "value": "abc", "path": "/", "domain": "api.example.com"}]

    def test_body_is_base64(self, builder, chrome_options):
        """Test request bodies travel base64 encoded."""
        descriptor = builder.build(chrome_options, URL, method="POST", body=b"\x00\xff")
        payload = encode_request(descriptor, "s-1")
        assert payload["isByteRequest"] is True
        assert base64.b64decode(payload["requestBody"]) == b"\x00\xff"

    def test_proxy_url(self, builder, chrome_options):
        """Test the proxy URL is passed through."""
        descriptor = builder.build(chrome_options, URL, proxy="http://proxy:3128")
        assert encode_request(descriptor, "s-1")["proxyUrl"] == "http://proxy:3128"

    def test_custom_tls_client(self, builder, chrome_options):
        """Test custom configurations carry the full TLS and HTTP/2 shape."""
        options = dataclasses.replace(chrome_options, http2_settings={"HEADER_TABLE_SIZE": 4096})
        custom = encode_request(builder.build(options, URL), "s-1")["customTlsClient"]
        assert custom["ja3String"].startswith("771,")
        assert custom["h2Settings"] == {"HEADER_TABLE_SIZE": 4096}
        assert custom["h2SettingsOrder"] == ["HEADER_TABLE_SIZE"]
        assert custom["pseudoHeaderOrder"] == [":method", ":authority", ":scheme", ":path"]
        assert custom["connectionFlow"] == 15663105
        assert custom["keyShareCurves"] == ["GREASE", "X25519"]
        assert custom["certCompressionAlgo"] == "brotli"
        assert custom["alpsProtocols"] == ["h2"]

    def test_header_order_deduplicated(self, descriptor):
        """Test header names appear once."""
        order = header_order(descriptor)
        assert len(order) == len(set(order))


class TestEncodeProbe:
    """Tests for encode_probe."""

    def test_probe_payload(self):
        """Test the probe is a cookie-less HEAD."""
        payload = encode_probe("https://example.com", "probe-1")
        assert payload["tlsClientIdentifier"] == PROBE_IDENTIFIER
        assert payload["requestMethod"] == "HEAD"
        assert payload["withoutCookieJar"] is True
        assert payload["sessionId"] == "probe-1"

    def test_dumps_compact(self):
        """Test payloads serialize without spaces."""
        assert dumps({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'


class TestDecodeResponse:
    """Tests for decode_response."""

    @pytest.mark.parametrize("raw", [None, b"", ""])
    def test_empty(self, raw):
        """Test an empty answer is a fault."""
        with pytest.raises(EngineFault, match="empty response"):
            decode_response(raw)

    def test_malformed(self):
        """Test non-JSON is a fault."""
        with pytest.raises(EngineFault, match="malformed"):
            decode_response(b"{nope")

    def test_not_an_object(self):
        """Test a JSON list is a fault."""
        with pytest.raises(EngineFault, match="unexpected"):
            decode_response(b"[1]")

    def test_missing_status(self):
        """Test a payload without a status is a fault."""
        with pytest.raises(EngineFault, match="no status"):
            decode_response(b'{"id": "x"}')

    def test_status_zero_reports_engine_error(self):
        """Test status 0 surfaces the engine's message."""
        raw = json.dumps({"id": "x", "status": 0, "body": "failed to do request: dial tcp"})
        with pytest.raises(EngineFault, match="dial tcp") as exc_info:
            decode_response(raw)
        assert exc_info.value.engine == "native"

    def test_valid(self):
        """Test a valid payload is returned as a dict."""
        assert decode_response('{"status": 204}') == {"status": 204}


class TestResponseConversion:
    """Tests for body decoding and Response conversion."""

    def test_base64_data_url(self):
        """Test byte responses are decoded from data URLs."""
        encoded = base64.b64encode(b"\x89PNG").decode()
        assert decode_body(f"data:image/png;base64,{encoded}", True) == b"\x89PNG"

    def test_plain_body(self):
        """Test text bodies are encoded as UTF-8."""
        assert decode_body("héllo", True) == "héllo".encode("utf-8")
        assert decode_body("data:text/plain;base64,aGk=", False) == b"data:text/plain;base64,aGk="
        assert decode_body(None, True) == b""

    def test_bad_base64(self):
        """Test undecodable base64 is a fault."""
        with pytest.raises(EngineFault):
            decode_body("data:application/octet-stream;base64,abc", True)

    @pytest.mark.parametrize(
        "used, expected",
        [("HTTP/2.0", "2"), ("HTTP/1.1", "1.1"), (None, "1.1")],
    )
    def test_http_version(self, used, expected):
        """Test protocol labels are normalized."""
        assert http_version(used) == expected

    def test_to_response(self, descriptor):
        """Test multi-valued headers are flattened and fidelity is high."""
        data = {
            "status": 200,
            "usedProtocol": "HTTP/2.0",
            "headers": {"Set-Cookie": ["a=1", "b=2"], "Content-Type": ["text/plain"]},
            "body": "ok",
            "cookies": {"a": "1"},
            "target": "https://api.example.com/v1/final",
        }
        response = to_response(data, descriptor, "s-1")
        assert response.status_code == 200
        assert response.http_version == "2"
        assert response.get_all("set-cookie") == ["a=1", "b=2"]
        assert response.content == b"ok"
        assert response.url.endswith("/final")
        assert response.engine == "native"
        assert response.fidelity == HIGH_FIDELITY
        assert response.session_id == "s-1"
