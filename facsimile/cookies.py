from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from http.cookies import CookieError, SimpleCookie

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestCookie:
    name: str
    value: str
    domain: str
    path: str = "/"


def cookies_for_request(
    cookies: Mapping[str, str] | Iterable[tuple[str, str]] | None,
    host: str,
) -> tuple[RequestCookie, ...]:
    """
    Reduce caller cookies to request cookies scoped to ``host`` and path ``/``.
    A later entry for the same name replaces the earlier one.
    """
    if not cookies:
        return ()
    items = cookies.items() if isinstance(cookies, Mapping) else cookies
    reduced: dict[str, str] = {}
    for name, value in items:
        reduced.pop(name, None)
        reduced[name] = value
    return tuple(RequestCookie(name, value, host) for name, value in reduced.items())


class CookieJar:
    """
    Minimal host-scoped cookie jar. Stores cookies per host and returns the
    cookies a request to that host should carry.
    """

    def __init__(self) -> None:
        self.store: dict[str, dict[str, str]] = {}

    def set_from_headers(self, headers: Iterable[tuple[str, str]], host: str) -> dict[str, str]:
        """Record Set-Cookie headers; returns the cookies that were set."""
        received: dict[str, str] = {}
        for name, value in headers:
            if name.lower() != "set-cookie":
                continue
            cookie = SimpleCookie()
            try:
                cookie.load(value)
            except CookieError as exc:
                logger.debug("Skipping malformed Set-Cookie from %s: %s", host, exc)
                continue
            for morsel in cookie.values():
                self.store.setdefault(host, {})[morsel.key] = morsel.value
                received[morsel.key] = morsel.value
        return received

    def add(self, cookies: Iterable[RequestCookie]) -> None:
        for cookie in cookies:
            self.store.setdefault(cookie.domain, {})[cookie.name] = cookie.value

    def cookie_header(self, host: str) -> str | None:
        jar = self.store.get(host)
        if not jar:
            return None
        return "; ".join(f"{k}={v}" for k, v in jar.items())

    def __repr__(self) -> str:
        return f"<Cookies {self.store}>"


def merge_cookie_header(explicit: str | None, stored: str | None) -> str | None:
    """
    Join a caller-supplied Cookie header with the jar's. The caller's pairs
    come first; a jar cookie whose name the caller already set is left out.
    """
    if not explicit or not stored:
        return explicit or stored
    names = {pair.split("=", 1)[0].strip() for pair in explicit.split(";") if pair.strip()}
    extra = [pair.strip() for pair in stored.split(";") if pair.strip() and pair.split("=", 1)[0].strip() not in names]
    return "; ".join([explicit.strip().rstrip(";"), *extra])
