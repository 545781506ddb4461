from __future__ import annotations

import urllib.parse
from dataclasses import dataclass
from enum import Enum


class ProxyType(str, Enum):
    HTTP = "http"
    SOCKS4 = "socks4"
    SOCKS4A = "socks4a"
    SOCKS5 = "socks5"


@dataclass(frozen=True)
class Proxy:
    """
    Resolved proxy handed over by the proxy-resolution layer. Credentials are
    optional; a proxy needs authentication only when a username is set.
    """

    type: ProxyType
    host: str
    port: int
    username: str | None = None
    password: str | None = None

    @property
    def needs_authentication(self) -> bool:
        return bool(self.username)

    def to_url(self) -> str:
        return build_proxy_url(self)


def build_proxy_url(proxy: Proxy | None) -> str | None:
    """
    Translate a proxy descriptor into a single proxy URL.

    >>> build_proxy_url(Proxy(ProxyType.SOCKS5, "10.0.0.1", 1080, "u", "p"))
    'socks5://u:p@10.0.0.1:1080'
    """
    if proxy is None:
        return None
    scheme = ProxyType(proxy.type).value
    host = f"[{proxy.host}]" if ":" in proxy.host else proxy.host
    if proxy.needs_authentication:
        user = urllib.parse.quote(proxy.username or "", safe="")
        password = urllib.parse.quote(proxy.password or "", safe="")
        return f"{scheme}://{user}:{password}@{host}:{proxy.port}"
    return f"{scheme}://{host}:{proxy.port}"


def parse_proxy_url(url: str) -> Proxy:
    """Inverse of build_proxy_url, used by the fallback engine to dial the proxy."""
    parsed = urllib.parse.urlparse(url)
    try:
        proxy_type = ProxyType(parsed.scheme.lower())
    except ValueError as exc:
        raise ValueError(f"Unsupported proxy scheme: {parsed.scheme}") from exc
    if not parsed.hostname:
        raise ValueError("Proxy URL missing hostname")
    default_port = 8080 if proxy_type is ProxyType.HTTP else 1080
    username = urllib.parse.unquote(parsed.username) if parsed.username else None
    password = urllib.parse.unquote(parsed.password) if parsed.password else None
    return Proxy(proxy_type, parsed.hostname, parsed.port or default_port, username, password)


def redact_proxy_url(url: str | None) -> str | None:
    """Mask credentials so proxy URLs can be logged."""
    if not url or "@" not in url:
        return url
    scheme, sep, rest = url.partition("://")
    if not sep:
        return url
    _, _, host = rest.rpartition("@")
    return f"{scheme}://***:***@{host}"
