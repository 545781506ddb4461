from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Iterable
from dataclasses import dataclass

from .descriptor import TlsConfig
from .errors import ConfigurationError, ProtocolError, ProxyError, TLSNegotiationError, TransportError
from .impersonation.ja3 import CURVES, openssl_cipher_string
from .proxy import Proxy, ProxyType, parse_proxy_url, redact_proxy_url
from .socks import socks_handshake_async
from .utils import authority, basic_auth

logger = logging.getLogger(__name__)


@dataclass
class RawResponse:
    status_code: int
    reason: str
    http_version: str
    headers: list[tuple[str, str]]
    body: bytes


def build_ssl_context(tls: TlsConfig) -> tuple[ssl.SSLContext, list[str]]:
    """
    Configure an SSLContext as close to ``tls`` as the local OpenSSL allows.
    Returns the context and the knobs that could not be honoured.
    """
    refused: list[str] = []
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    if tls.insecure_skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    ciphers = openssl_cipher_string(tls.ciphers)
    if ciphers:
        try:
            context.set_ciphers(ciphers)
        except ssl.SSLError:
            # Local build rejects the whole list; keep platform defaults.
            logger.debug("OpenSSL rejected cipher list %s", ciphers)
            refused.append("TLS 1.2 cipher order not applied (rejected by local OpenSSL)")

    try:
        context.set_alpn_protocols(list(tls.alpn))
    except NotImplementedError:
        refused.append("ALPN not supported by local OpenSSL")

    for curve in (CURVES[c] for c in tls.curves if c in CURVES):
        try:
            # Only a single group can be preferred through the stdlib.
            context.set_ecdh_curve(curve)
            break
        except (ValueError, ssl.SSLError):
            logger.debug("OpenSSL does not know curve %s", curve)
    else:
        if tls.curves:
            refused.append("no supported group from the JA3 curve list")

    if tls.disable_session_resumption:
        context.options |= ssl.OP_NO_TICKET

    for cert in tls.client_certificates:
        try:
            context.load_cert_chain(cert.cert_file, cert.key_file, cert.password)
        except (OSError, ssl.SSLError) as exc:
            raise ConfigurationError(f"Cannot load client certificate {cert.cert_file}: {exc}") from exc

    return context, refused


class AsyncConnection:
    """
    One TCP (+TLS) connection to an origin, optionally tunnelled through an
    HTTP CONNECT or SOCKS proxy. Owned by the fallback engine for a single
    request hop.
    """

    def __init__(
        self,
        host: str,
        port: int,
        scheme: str,
        tls: TlsConfig,
        proxy_url: str | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.scheme = scheme
        self.tls = tls
        self.connect_timeout = connect_timeout
        try:
            self.proxy: Proxy | None = parse_proxy_url(proxy_url) if proxy_url else None
        except ValueError as exc:
            raise ConfigurationError(f"Invalid proxy URL {redact_proxy_url(proxy_url)}: {exc}") from exc
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self.negotiated_protocol: str | None = None
        self.refused_tls_options: list[str] = []

    @property
    def uses_http_proxy_forwarding(self) -> bool:
        """Plain HTTP through an HTTP proxy: absolute-form target, no tunnel."""
        return self.proxy is not None and self.proxy.type is ProxyType.HTTP and self.scheme == "http"

    def proxy_authorization(self) -> str | None:
        if self.proxy is None or not self.proxy.needs_authentication:
            return None
        return basic_auth(self.proxy.username, self.proxy.password)

    async def connect(self) -> None:
        context = None
        if self.scheme == "https":
            context, self.refused_tls_options = build_ssl_context(self.tls)
        try:
            await asyncio.wait_for(self._connect(context), timeout=self.connect_timeout)
        except ssl.SSLError as exc:
            await self.close()
            raise TLSNegotiationError(f"TLS handshake with {self.host} failed: {exc}") from exc
        except asyncio.IncompleteReadError as exc:
            await self.close()
            raise ProxyError(f"Proxy closed the connection during setup: {exc}") from exc
        except (TransportError, asyncio.TimeoutError):
            await self.close()
            raise
        except OSError as exc:
            await self.close()
            target = f"proxy {self.proxy.host}:{self.proxy.port}" if self.proxy else f"{self.host}:{self.port}"
            raise TransportError(f"Connection to {target} failed: {exc}") from exc

    async def _connect(self, context: ssl.SSLContext | None) -> None:
        if self.proxy is None:
            self.reader, self.writer = await asyncio.open_connection(
                self.host, self.port, ssl=context, server_hostname=self.host if context else None
            )
        else:
            self.reader, self.writer = await asyncio.open_connection(self.proxy.host, self.proxy.port)
            if self.proxy.type is ProxyType.HTTP:
                if self.scheme == "https":
                    await self._http_connect_tunnel()
            else:
                await socks_handshake_async(self.writer, self.reader, self.proxy, self.host, self.port)
            if context is not None:
                # start_tls swaps the transport under the existing reader/writer pair.
                await self.writer.start_tls(context, server_hostname=self.host)

        if context is not None:
            ssl_obj = self.writer.get_extra_info("ssl_object")
            self.negotiated_protocol = ssl_obj.selected_alpn_protocol() if ssl_obj else None

    async def _http_connect_tunnel(self) -> None:
        # Always host:port, including the default port.
        target = authority(self.host, self.port, "")
        lines = [f"CONNECT {target} HTTP/1.1", f"Host: {target}"]
        auth = self.proxy_authorization()
        if auth:
            lines.append(f"Proxy-Authorization: {auth}")
        self.writer.write(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))
        await self.writer.drain()

        status_line = await self.reader.readline()
        try:
            status = int(status_line.split(b" ", 2)[1])
        except (IndexError, ValueError) as exc:
            raise ProxyError(f"Malformed CONNECT response: {status_line!r}") from exc
        while True:
            line = await self.reader.readline()
            if line in (b"\r\n", b"\n", b""):
                break
        if status == 407:
            raise ProxyError("Proxy authentication failed (407)")
        if status != 200:
            raise ProxyError(f"Proxy refused CONNECT to {target} with status {status}")

    async def close(self) -> None:
        writer, self.writer, self.reader = self.writer, None, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError) as exc:
            logger.debug("Error while closing connection to %s: %s", self.host, exc)

    async def send_http1(
        self,
        method: str,
        target: str,
        headers: Iterable[tuple[str, str]],
        body: bytes | None,
    ) -> RawResponse:
        assert self.reader is not None and self.writer is not None
        req_lines = [f"{method} {target} HTTP/1.1\r\n".encode("ascii")]
        for name, value in headers:
            req_lines.append(f"{name}: {value}\r\n".encode("latin-1"))
        req_lines.append(b"\r\n")
        if body:
            req_lines.append(body)
        self.writer.writelines(req_lines)
        await self.writer.drain()
        return await self._read_response(head_only=method == "HEAD")

    async def _read_response(self, head_only: bool = False) -> RawResponse:
        status_line = await self.reader.readline()
        if not status_line:
            raise ProtocolError("Empty response")
        try:
            # e.g., HTTP/1.1 200 OK
            parts = status_line.decode("latin-1").strip().split(" ", 2)
            version = parts[0].split("/", 1)[1]
            status_code = int(parts[1])
            reason = parts[2] if len(parts) > 2 else ""
        except (IndexError, ValueError) as exc:
            raise ProtocolError(f"Malformed status line: {status_line!r}") from exc

        headers: list[tuple[str, str]] = []
        while True:
            line = await self.reader.readline()
            if line in (b"\r\n", b"\n", b""):
                break
            try:
                name, value = line.split(b":", 1)
            except ValueError as exc:
                raise ProtocolError(f"Malformed header line: {line!r}") from exc
            headers.append((name.decode("latin-1").strip(), value.decode("latin-1").strip()))

        header_map = {k.lower(): v for k, v in headers}
        if head_only or status_code in (204, 304) or 100 <= status_code < 200:
            body = b""
        elif "chunked" in header_map.get("transfer-encoding", "").lower():
            body = await self._read_chunked_body()
        elif "content-length" in header_map:
            try:
                length = int(header_map["content-length"])
            except ValueError as exc:
                raise ProtocolError("Invalid Content-Length") from exc
            body = await self._read_exact(length)
        else:
            body = await self.reader.read(-1)
        return RawResponse(status_code, reason, version, headers, body)

    async def _read_exact(self, n: int) -> bytes:
        try:
            return await self.reader.readexactly(n)
        except asyncio.IncompleteReadError as exc:
            raise ProtocolError("Unexpected EOF while reading body") from exc

    async def _read_chunked_body(self) -> bytes:
        chunks: list[bytes] = []
        while True:
            line = await self.reader.readline()
            if not line:
                break
            try:
                size = int(line.split(b";", 1)[0].strip(), 16)
            except ValueError as exc:
                raise ProtocolError(f"Invalid chunk size line: {line!r}") from exc
            if size == 0:
                # Optional trailers up to the terminating blank line
                while (await self.reader.readline()) not in (b"\r\n", b"\n", b""):
                    pass
                break
            chunks.append(await self._read_exact(size))
            await self._read_exact(2)
        return b"".join(chunks)
