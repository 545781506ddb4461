"""
Fallback engine: in-process HTTP client over the standard ``ssl`` module and
the ``h2`` library.

It honours what the local stack lets it control (TLS 1.2 cipher order,
ALPN, preferred group, verification bypass, client certificates, header
and pseudo-header order) and reports the rest as fidelity losses on every
response. It never claims high-fidelity emulation.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from urllib.parse import urldefrag, urljoin

from ..compression import decode_body
from ..connection import AsyncConnection, RawResponse
from ..cookies import CookieJar, merge_cookie_header
from ..descriptor import RequestDescriptor
from ..errors import EngineTimeout, ProtocolError, TLSNegotiationError, TransportError
from ..headers import canonicalize_headers
from ..http2 import AsyncHTTP2Connection
from ..models import REDUCED_FIDELITY, Response
from ..utils import authority, parse_url
from .base import FALLBACK, Engine

logger = logging.getLogger(__name__)

TLS_FIDELITY_NOTES = (
    "ClientHello extension order is chosen by the local OpenSSL",
    "TLS 1.3 cipher suite order is fixed by the local OpenSSL",
)
H2_FIDELITY_NOTE = "HTTP/2 SETTINGS are sent in the h2 library's order, including its defaults"

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class FallbackEngine(Engine):
    """
    Always-available engine. Cookie jars are kept per session id so a shared
    session behaves like the native engine's jar; connections are opened per
    request hop and closed when the hop completes or on ``close()``.
    """

    name = FALLBACK
    fidelity = REDUCED_FIDELITY

    def __init__(self) -> None:
        self._jars: dict[str, CookieJar] = {}
        self._connections: set[AsyncConnection] = set()

    def is_available(self) -> bool:
        return True

    async def send(self, descriptor: RequestDescriptor) -> Response:
        try:
            return await asyncio.wait_for(self._send(descriptor), timeout=descriptor.timeout)
        except EngineTimeout:
            raise
        except asyncio.TimeoutError:
            raise EngineTimeout(FALLBACK, f"no answer within {descriptor.timeout:.1f}s") from None

    def _jar_for(self, session_id: str | None) -> CookieJar:
        if session_id is None:
            return CookieJar()
        return self._jars.setdefault(session_id, CookieJar())

    async def _send(self, descriptor: RequestDescriptor) -> Response:
        jar = self._jar_for(descriptor.session_id)
        jar.add(descriptor.cookies)

        url, method, body = descriptor.url, descriptor.method, descriptor.body
        received: dict[str, str] = {}
        notes: list[str] = list(TLS_FIDELITY_NOTES)
        redirects = 0
        while True:
            raw, refused, used_h2 = await self._exchange(descriptor, url, method, body, jar)
            received.update(jar.set_from_headers(raw.headers, parse_url(url)[1]))
            for note in refused:
                if note not in notes:
                    notes.append(note)
            if used_h2 and H2_FIDELITY_NOTE not in notes:
                notes.append(H2_FIDELITY_NOTE)

            location = _header(raw.headers, "location")
            if not (descriptor.follow_redirects and raw.status_code in REDIRECT_STATUSES and location):
                break
            if redirects >= descriptor.max_redirects:
                raise ProtocolError(f"Exceeded {descriptor.max_redirects} redirects")
            redirects += 1
            url = urldefrag(urljoin(url, location))[0]
            if raw.status_code == 303 or (raw.status_code in (301, 302) and method not in ("GET", "HEAD")):
                method = "GET" if method != "HEAD" else method
                body = None
            logger.debug("Following %s redirect to %s", raw.status_code, url)

        content = raw.body
        if descriptor.auto_decompress:
            content = decode_body(content, _header(raw.headers, "content-encoding"))
        return Response(
            status_code=raw.status_code,
            reason=raw.reason,
            http_version=raw.http_version,
            headers=raw.headers,
            body=content,
            cookies=received,
            url=url,
            session_id=descriptor.session_id,
            engine=FALLBACK,
            fidelity=REDUCED_FIDELITY,
            fidelity_notes=notes,
        )

    async def _exchange(
        self,
        descriptor: RequestDescriptor,
        url: str,
        method: str,
        body: bytes | None,
        jar: CookieJar,
    ) -> tuple[RawResponse, list[str], bool]:
        parsed, host, port, path = parse_url(url)
        conn = AsyncConnection(
            host, port, parsed.scheme, descriptor.tls, descriptor.proxy_url, descriptor.connect_timeout
        )
        self._connections.add(conn)
        try:
            try:
                await conn.connect()
            except asyncio.TimeoutError:
                raise EngineTimeout(FALLBACK, f"connect to {host}:{port} timed out") from None

            headers = [(k, v) for k, v in descriptor.headers if k.lower() not in ("host", "cookie")]
            explicit = "; ".join(v for k, v in descriptor.headers if k.lower() == "cookie") or None
            cookie = merge_cookie_header(explicit, jar.cookie_header(host))
            if cookie:
                headers.append(("Cookie", cookie))
            if body is not None:
                headers.append(("Content-Length", str(len(body))))
            headers = canonicalize_headers(headers, descriptor.header_order)
            target_authority = authority(host, port, parsed.scheme)

            if conn.negotiated_protocol == "h2":
                h2conn = AsyncHTTP2Connection(conn.reader, conn.writer, descriptor.http2)
                await h2conn.start()
                raw = await h2conn.request(method, target_authority, path, headers, body, parsed.scheme)
                h2conn.close()
                return raw, conn.refused_tls_options, True

            target = path
            if conn.uses_http_proxy_forwarding:
                target = urldefrag(url)[0]
                proxy_auth = conn.proxy_authorization()
                if proxy_auth:
                    headers.append(("Proxy-Authorization", proxy_auth))
            raw = await conn.send_http1(method, target, [("Host", target_authority), *headers], body)
            return raw, conn.refused_tls_options, False
        except EngineTimeout:
            raise
        except ssl.SSLError as exc:
            raise TLSNegotiationError(f"TLS error talking to {host}: {exc}") from exc
        except asyncio.IncompleteReadError as exc:
            raise ProtocolError(f"Connection to {host} closed mid-response") from exc
        except OSError as exc:
            raise TransportError(f"I/O error talking to {host}: {exc}") from exc
        finally:
            self._connections.discard(conn)
            await conn.close()

    async def destroy_session(self, session_id: str) -> None:
        self._jars.pop(session_id, None)

    async def close(self) -> None:
        connections, self._connections = list(self._connections), set()
        for conn in connections:
            await conn.close()
        self._jars.clear()


def _header(headers: list[tuple[str, str]], name: str) -> str | None:
    value = None
    for key, val in headers:
        if key.lower() == name:
            value = val
    return value
