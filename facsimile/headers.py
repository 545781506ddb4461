from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from .impersonation.client_hints import is_client_hint
from .impersonation.profiles import ProfileDefaults

logger = logging.getLogger(__name__)

# Headers that identify the browser; the profile always wins over the caller.
FINGERPRINT_HEADERS = frozenset({"user-agent", "accept", "accept-language", "accept-encoding"})

# Connection-specific headers that are illegal on an HTTP/2 stream.
HTTP1_ONLY_HEADERS = frozenset(
    {"connection", "keep-alive", "transfer-encoding", "te", "trailer", "upgrade", "pragma"}
)


def is_fingerprint_header(name: str) -> bool:
    key = name.lower()
    return key in FINGERPRINT_HEADERS or is_client_hint(key)


def _sanitize_header(name: str, value: str) -> tuple[str, str]:
    """
    Sanitize header name and value to prevent HTTP header injection (CRLF injection).
    Strips CR, LF, and null bytes from both name and value.
    """
    clean_name = name.replace("\r", "").replace("\n", "").replace("\x00", "").strip()
    clean_value = str(value).replace("\r", "").replace("\n", "").replace("\x00", "")
    return clean_name, clean_value


def canonicalize_headers(
    headers: Iterable[tuple[str, str]],
    order: Iterable[str],
) -> list[tuple[str, str]]:
    """
    Arrange headers following ``order`` (case-insensitive). Headers the order
    does not mention are appended in their original insertion order.
    """
    merged: dict[str, tuple[str, str]] = {}
    for name, value in headers:
        merged[name.lower()] = (name, value)

    ordered: list[tuple[str, str]] = []
    for name in order:
        key = name.lower()
        if key in merged:
            ordered.append(merged.pop(key))
    ordered.extend(merged.values())
    return ordered


def reconcile_headers(
    profile: ProfileDefaults,
    user_headers: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    include_client_hints: bool = True,
    http2: bool = True,
) -> list[tuple[str, str]]:
    """
    Merge caller headers into the profile's defaults.

    Fingerprint headers (User-Agent, Accept, Accept-Language,
    Accept-Encoding and every Sec-CH-UA*) only ever carry the profile's
    value; a caller value for them is ignored, and so is one the profile
    does not define. HTTP/1.1 connection headers are dropped when the
    request may go out over HTTP/2. The result follows the profile's header
    order regardless of how the caller inserted its headers.
    """
    merged: dict[str, tuple[str, str]] = {}
    for name, value in profile.default_headers:
        merged[name.lower()] = (name, value)
    if include_client_hints:
        for name, value in profile.client_hints:
            merged[name.lower()] = (name, value)

    if user_headers:
        items = user_headers.items() if isinstance(user_headers, Mapping) else user_headers
        for name, value in items:
            name, value = _sanitize_header(name, value)
            if not name:
                continue
            key = name.lower()
            if is_fingerprint_header(key):
                if key in merged and merged[key][1] != value:
                    logger.debug("Ignoring caller value for fingerprint header %s", name)
                continue
            merged[key] = (name, value)

    if http2:
        for key in HTTP1_ONLY_HEADERS:
            merged.pop(key, None)

    return canonicalize_headers(merged.values(), profile.header_order)
