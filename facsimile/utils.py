from __future__ import annotations

import base64
from urllib.parse import ParseResult, urlparse

from .errors import ConfigurationError


def parse_url(url: str) -> tuple[ParseResult, str, int, str]:
    try:
        parsed = urlparse(url)
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Malformed URL {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https"):
        raise ConfigurationError(f"Only http and https schemes are supported: {url!r}")
    host = parsed.hostname or ""
    if not host:
        raise ConfigurationError(f"Cannot derive a host from URL {url!r}")
    port = port or (443 if parsed.scheme == "https" else 80)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return parsed, host, port, path


def authority(host: str, port: int, scheme: str) -> str:
    """Host header / :authority value, omitting the scheme's default port."""
    name = f"[{host}]" if ":" in host else host
    if (scheme == "https" and port == 443) or (scheme == "http" and port == 80):
        return name
    return f"{name}:{port}"


def basic_auth(username: str, password: str | None = None) -> str:
    """``Authorization`` value for HTTP Basic credentials."""
    token = f"{username}:{password or ''}".encode("utf-8")
    return "Basic " + base64.b64encode(token).decode("ascii")
