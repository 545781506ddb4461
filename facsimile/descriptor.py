"""
The per-request protocol descriptor.

A ``RequestDescriptor`` is a self-contained, engine-agnostic snapshot of
everything needed to put one request on the wire: the TLS ClientHello
shape, the HTTP/2 preface and the reconciled headers. Engines read it and
never go back to ``ClientOptions`` or the profile catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from functools import cached_property
from urllib.parse import urlparse

from .cookies import RequestCookie
from .impersonation.ja3 import Ja3, parse_ja3
from .impersonation.profiles import BrowserProfile
from .options import ClientCertificate


@dataclass(frozen=True)
class TlsConfig:
    engine_identifier: str
    ja3: str
    ciphers: tuple[int, ...]
    extension_order: tuple[int, ...]
    curves: tuple[int, ...]
    point_formats: tuple[int, ...]
    alpn: tuple[str, ...]
    custom: bool = False
    randomize_extension_order: bool = False
    insecure_skip_verify: bool = False
    client_certificates: tuple[ClientCertificate, ...] = ()
    disable_session_resumption: bool = False

    @property
    def http1_only(self) -> bool:
        return "h2" not in self.alpn


@dataclass(frozen=True)
class Http2Config:
    settings: tuple[tuple[str, int], ...]
    pseudo_header_order: tuple[str, ...]
    connection_flow: int

    @property
    def settings_order(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.settings)

    def settings_map(self) -> dict[str, int]:
        return dict(self.settings)


@dataclass(frozen=True)
class RequestDescriptor:
    url: str
    method: str
    body: bytes | None
    headers: tuple[tuple[str, str], ...]
    header_order: tuple[str, ...]
    cookies: tuple[RequestCookie, ...]
    tls: TlsConfig
    http2: Http2Config
    profile: BrowserProfile
    proxy_url: str | None = None
    session_id: str | None = None
    timeout: float = 30.0
    connect_timeout: float = 10.0
    follow_redirects: bool = True
    max_redirects: int = 8
    byte_response: bool = True
    auto_decompress: bool = True

    @property
    def host(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def byte_request(self) -> bool:
        return self.body is not None

    @cached_property
    def _ja3(self) -> Ja3:
        return parse_ja3(self.tls.ja3)

    @property
    def effective_ja3(self) -> str:
        """The JA3 string with this request's extension order applied."""
        return str(replace(self._ja3, extensions=self.tls.extension_order))

    @property
    def fingerprint(self) -> str:
        """Short identity used in diagnostics: engine identifier plus JA3 hash."""
        return f"{self.tls.engine_identifier}/{self._ja3.digest[:12]}"

    def header(self, name: str) -> str | None:
        key = name.lower()
        for header, value in self.headers:
            if header.lower() == key:
                return value
        return None
