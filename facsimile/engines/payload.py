"""
JSON message boundary of the native ``tls-client`` engine.

``encode_request`` turns a descriptor into the engine's request payload and
``decode_response`` validates what comes back. Bodies travel base64 in both
directions when the byte-mode flags are set so binary data is never pushed
through a text codec.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from ..descriptor import RequestDescriptor
from ..errors import EngineFault
from ..models import HIGH_FIDELITY, Response
from .base import NATIVE

PROBE_IDENTIFIER = "chrome_120"
PROBE_TIMEOUT_MS = 5000

COMPRESS_CERTIFICATE = 27
APPLICATION_SETTINGS = 17513

# Engine names for the supported groups.
KEY_SHARE_NAMES = {29: "X25519", 23: "P256", 24: "P384", 25: "P521"}

SIGNATURE_ALGORITHMS = [
    "ECDSAWithP256AndSHA256",
    "PSSWithSHA256",
    "PKCS1WithSHA256",
    "ECDSAWithP384AndSHA384",
    "PSSWithSHA384",
    "PKCS1WithSHA384",
    "PSSWithSHA512",
    "PKCS1WithSHA512",
]


def header_order(descriptor: RequestDescriptor) -> list[str]:
    """Profile order first, then any caller header it does not mention."""
    names = [*descriptor.header_order, *(name.lower() for name, _ in descriptor.headers)]
    return list(dict.fromkeys(names))


def custom_tls_client(descriptor: RequestDescriptor) -> dict[str, Any]:
    tls, http2 = descriptor.tls, descriptor.http2
    key_shares = [KEY_SHARE_NAMES[c] for c in tls.curves if c in KEY_SHARE_NAMES][:1]
    custom: dict[str, Any] = {
        "ja3String": tls.ja3,
        "h2Settings": http2.settings_map(),
        "h2SettingsOrder": list(http2.settings_order),
        "pseudoHeaderOrder": list(http2.pseudo_header_order),
        "connectionFlow": http2.connection_flow,
        "alpnProtocols": list(tls.alpn),
        "supportedVersions": ["1.3", "1.2"],
        "supportedSignatureAlgorithms": SIGNATURE_ALGORITHMS,
        "keyShareCurves": ["GREASE", *key_shares],
        "priorityFrames": [],
    }
    if COMPRESS_CERTIFICATE in tls.extension_order:
        custom["certCompressionAlgo"] = "brotli"
    if APPLICATION_SETTINGS in tls.extension_order and not tls.http1_only:
        custom["alpsProtocols"] = ["h2"]
    return custom


def encode_request(descriptor: RequestDescriptor, session_id: str) -> dict[str, Any]:
    tls = descriptor.tls
    payload: dict[str, Any] = {
        "tlsClientIdentifier": tls.engine_identifier,
        "followRedirects": descriptor.follow_redirects,
        "insecureSkipVerify": tls.insecure_skip_verify,
        "withoutCookieJar": False,
        "withDefaultCookieJar": True,
        "isByteRequest": descriptor.byte_request,
        "isByteResponse": descriptor.byte_response,
        "forceHttp1": tls.http1_only,
        "catchPanics": True,
        "withRandomTLSExtensionOrder": tls.randomize_extension_order,
        "timeoutMilliseconds": int(descriptor.timeout * 1000),
        "sessionId": session_id,
        "headers": {name: value for name, value in descriptor.headers},
        "headerOrder": header_order(descriptor),
        "requestUrl": descriptor.url,
        "requestMethod": descriptor.method,
        "requestCookies": [
            {"name": c.name, "value": c.value, "path": c.path, "domain": c.domain}
            for c in descriptor.cookies
        ],
    }
    if descriptor.body is not None:
        payload["requestBody"] = base64.b64encode(descriptor.body).decode("ascii")
    if descriptor.proxy_url:
        payload["proxyUrl"] = descriptor.proxy_url
    if tls.custom:
        payload["customTlsClient"] = custom_tls_client(descriptor)
    return payload


def encode_probe(probe_url: str, session_id: str) -> dict[str, Any]:
    return {
        "tlsClientIdentifier": PROBE_IDENTIFIER,
        "followRedirects": False,
        "insecureSkipVerify": False,
        "withoutCookieJar": True,
        "isByteResponse": False,
        "catchPanics": True,
        "timeoutMilliseconds": PROBE_TIMEOUT_MS,
        "sessionId": session_id,
        "headers": {},
        "headerOrder": [],
        "requestUrl": probe_url,
        "requestMethod": "HEAD",
    }


def dumps(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode_response(raw: bytes | str | None) -> dict[str, Any]:
    """
    Parse and validate an engine response. A zero status with a body is the
    engine reporting its own error, not an HTTP response.
    """
    if not raw:
        raise EngineFault(NATIVE, "empty response from engine")
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise EngineFault(NATIVE, f"malformed response payload: {exc}") from exc
    if not isinstance(data, dict):
        raise EngineFault(NATIVE, f"unexpected response payload type {type(data).__name__}")
    status = data.get("status")
    if not isinstance(status, int):
        raise EngineFault(NATIVE, f"response payload has no status: {str(raw)[:200]}")
    if status == 0:
        raise EngineFault(NATIVE, str(data.get("body") or "engine returned status 0"))
    return data


def decode_body(body: str | None, byte_response: bool) -> bytes:
    if not body:
        return b""
    if byte_response and body.startswith("data:"):
        prefix, _, encoded = body.partition(",")
        if prefix.endswith(";base64"):
            try:
                return base64.b64decode(encoded)
            except (binascii.Error, ValueError) as exc:
                raise EngineFault(NATIVE, f"undecodable byte response: {exc}") from exc
    return body.encode("utf-8")


def http_version(used_protocol: str | None) -> str:
    if not used_protocol:
        return "1.1"
    version = used_protocol.upper().removeprefix("HTTP/")
    return "2" if version.startswith("2") else version


def to_response(data: dict[str, Any], descriptor: RequestDescriptor, session_id: str | None) -> Response:
    headers = [
        (name, value)
        for name, values in (data.get("headers") or {}).items()
        for value in (values if isinstance(values, list) else [values])
    ]
    return Response(
        status_code=data["status"],
        reason="",
        http_version=http_version(data.get("usedProtocol")),
        headers=headers,
        body=decode_body(data.get("body"), descriptor.byte_response),
        cookies=data.get("cookies") or {},
        url=data.get("target") or descriptor.url,
        session_id=session_id,
        engine=NATIVE,
        fidelity=HIGH_FIDELITY,
    )
