"""
Browser profile catalog.

Each profile is the single source of truth for the three fingerprint layers:
the TLS ClientHello (JA3), the HTTP/2 preface and the application headers.
The catalog is built once at import time and never mutated.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from ..errors import ConfigurationError
from .client_hints import build_client_hints_for_platform
from .ja3 import parse_ja3

logger = logging.getLogger(__name__)


class BrowserProfile(str, Enum):
    CHROME_133 = "chrome_133"
    CHROME_120 = "chrome_120"
    FIREFOX = "firefox"
    SAFARI = "safari"
    EDGE = "edge"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str | BrowserProfile) -> BrowserProfile:
        """Accept the value, the member name or the ``Chrome133`` spelling."""
        if isinstance(value, cls):
            return value
        key = _normalize(str(value))
        for member in cls:
            if key in (_normalize(member.value), _normalize(member.name)):
                return member
        raise ConfigurationError(f"Unknown browser profile '{value}'")


def _normalize(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


@dataclass(frozen=True)
class ProfileDefaults:
    profile: BrowserProfile
    engine_identifier: str
    ja3: str
    ciphers: tuple[int, ...]
    alpn: tuple[str, ...]
    h2_settings: Mapping[str, int]
    h2_settings_order: tuple[str, ...]
    pseudo_header_order: tuple[str, ...]
    header_order: tuple[str, ...]
    default_headers: tuple[tuple[str, str], ...]
    client_hints: tuple[tuple[str, str], ...]
    connection_flow: int

    @property
    def supports_http2(self) -> bool:
        return "h2" in self.alpn

    @property
    def user_agent(self) -> str:
        return dict(self.default_headers)["User-Agent"]


CHROME_JA3 = (
    "771,4865-4866-4867-49195-49199-49196-49200-52393-52392-49171-49172-156-157-47-53,"
    "0-23-65281-10-11-35-16-5-13-18-51-45-43-27-17513-21,29-23-24,0"
)
FIREFOX_JA3 = (
    "771,4865-4867-49195-49199-49196-49200-52393-52392-49171-49172-156-157-47-53,"
    "0-23-65281-10-11-35-16-5-51-43-13-45-28-65037,29-23-24-25-256-257,0"
)
SAFARI_JA3 = (
    "771,4865-4866-4867-49196-49195-52393-49200-49199-52392-49162-49161-49172-49171-157-156-53-47-49160-49170-10,"
    "0-23-65281-10-11-35-16-5-13-18-51-45-43-27-17513,29-23-24-256-257,0"
)

H2_ALPN = ("h2", "http/1.1")

CHROME_H2_SETTINGS = {
    "HEADER_TABLE_SIZE": 65536,
    "ENABLE_PUSH": 0,
    "MAX_CONCURRENT_STREAMS": 1000,
    "INITIAL_WINDOW_SIZE": 6291456,
    "MAX_FRAME_SIZE": 16384,
    "MAX_HEADER_LIST_SIZE": 262144,
}
CHROME_H2_ORDER = tuple(CHROME_H2_SETTINGS)

# Firefox only announces three parameters in its SETTINGS frame.
FIREFOX_H2_SETTINGS = {
    "HEADER_TABLE_SIZE": 65536,
    "INITIAL_WINDOW_SIZE": 131072,
    "MAX_FRAME_SIZE": 16384,
}
FIREFOX_H2_ORDER = tuple(FIREFOX_H2_SETTINGS)

CHROME_PSEUDO_ORDER = (":method", ":authority", ":scheme", ":path")
FIREFOX_PSEUDO_ORDER = (":method", ":path", ":authority", ":scheme")

CHROME_CONNECTION_FLOW = 15663105
FIREFOX_CONNECTION_FLOW = 12517377
SAFARI_CONNECTION_FLOW = 10485760

CHROME_HEADER_ORDER = (
    "sec-ch-ua",
    "sec-ch-ua-mobile",
    "sec-ch-ua-platform",
    "upgrade-insecure-requests",
    "user-agent",
    "accept",
    "sec-fetch-site",
    "sec-fetch-mode",
    "sec-fetch-user",
    "sec-fetch-dest",
    "accept-encoding",
    "accept-language",
    "priority",
    "cookie",
)
FIREFOX_HEADER_ORDER = (
    "user-agent",
    "accept",
    "accept-language",
    "accept-encoding",
    "upgrade-insecure-requests",
    "sec-fetch-dest",
    "sec-fetch-mode",
    "sec-fetch-site",
    "sec-fetch-user",
    "te",
    "cookie",
)
SAFARI_HEADER_ORDER = (
    "accept",
    "accept-language",
    "accept-encoding",
    "user-agent",
    "sec-fetch-dest",
    "sec-fetch-mode",
    "sec-fetch-site",
    "sec-fetch-user",
    "cookie",
)

CHROMIUM_ACCEPT = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,"
    "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7"
)
NAVIGATION_FETCH_HEADERS = (
    ("Sec-Fetch-Dest", "document"),
    ("Sec-Fetch-Mode", "navigate"),
    ("Sec-Fetch-Site", "none"),
    ("Sec-Fetch-User", "?1"),
)


def _chromium_headers(user_agent: str, accept_encoding: str) -> tuple[tuple[str, str], ...]:
    return (
        ("Accept", CHROMIUM_ACCEPT),
        ("Accept-Language", "en-US,en;q=0.9"),
        ("Accept-Encoding", accept_encoding),
        ("Cache-Control", "max-age=0"),
        *NAVIGATION_FETCH_HEADERS,
        ("Upgrade-Insecure-Requests", "1"),
        ("User-Agent", user_agent),
        ("Priority", "u=0, i"),
    )


def _chromium_profile(
    profile: BrowserProfile,
    engine_identifier: str,
    brand: str,
    full_version: str,
    user_agent: str,
    accept_encoding: str = "gzip, deflate, br, zstd",
    chromium_full_version: str | None = None,
    grease_brand: str = "Not A(Brand",
) -> ProfileDefaults:
    hints = build_client_hints_for_platform(
        brand,
        full_version,
        "Windows",
        platform_version="15.0.0",
        arch="x86",
        bitness="64",
        chromium_full_version=chromium_full_version,
        grease_brand=grease_brand,
    )
    return _make(
        profile,
        engine_identifier,
        CHROME_JA3,
        CHROME_H2_SETTINGS,
        CHROME_PSEUDO_ORDER,
        CHROME_HEADER_ORDER,
        _chromium_headers(user_agent, accept_encoding),
        tuple(hints.items()),
        CHROME_CONNECTION_FLOW,
    )


def _make(
    profile: BrowserProfile,
    engine_identifier: str,
    ja3: str,
    h2_settings: dict[str, int],
    pseudo_header_order: tuple[str, ...],
    header_order: tuple[str, ...],
    default_headers: tuple[tuple[str, str], ...],
    client_hints: tuple[tuple[str, str], ...],
    connection_flow: int,
) -> ProfileDefaults:
    return ProfileDefaults(
        profile=profile,
        engine_identifier=engine_identifier,
        ja3=ja3,
        # Derived so the cipher list and the JA3 string cannot drift apart.
        ciphers=parse_ja3(ja3).ciphers,
        alpn=H2_ALPN,
        h2_settings=MappingProxyType(dict(h2_settings)),
        h2_settings_order=tuple(h2_settings),
        pseudo_header_order=pseudo_header_order,
        header_order=header_order,
        default_headers=default_headers,
        client_hints=client_hints,
        connection_flow=connection_flow,
    )


CATALOG: Mapping[BrowserProfile, ProfileDefaults] = MappingProxyType(
    {
        BrowserProfile.CHROME_133: _chromium_profile(
            BrowserProfile.CHROME_133,
            "chrome_133",
            "Google Chrome",
            "133.0.6943.127",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36",
        ),
        BrowserProfile.CHROME_120: _chromium_profile(
            BrowserProfile.CHROME_120,
            "chrome_120",
            "Google Chrome",
            "120.0.6099.130",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            accept_encoding="gzip, deflate, br",
            grease_brand="Not_A Brand",
        ),
        BrowserProfile.EDGE: _chromium_profile(
            BrowserProfile.EDGE,
            "chrome_133",
            "Microsoft Edge",
            "133.0.3065.92",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36 Edg/133.0.0.0",
            chromium_full_version="133.0.6943.127",
        ),
        BrowserProfile.FIREFOX: _make(
            BrowserProfile.FIREFOX,
            "firefox_120",
            FIREFOX_JA3,
            FIREFOX_H2_SETTINGS,
            FIREFOX_PSEUDO_ORDER,
            FIREFOX_HEADER_ORDER,
            (
                ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"),
                ("Accept-Language", "en-US,en;q=0.5"),
                ("Accept-Encoding", "gzip, deflate, br"),
                *NAVIGATION_FETCH_HEADERS,
                ("Upgrade-Insecure-Requests", "1"),
                ("User-Agent", "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:120.0) Gecko/20100101 Firefox/120.0"),
                ("Te", "trailers"),
            ),
            (),
            FIREFOX_CONNECTION_FLOW,
        ),
        BrowserProfile.SAFARI: _make(
            BrowserProfile.SAFARI,
            "safari_ios_17_0",
            SAFARI_JA3,
            CHROME_H2_SETTINGS,
            CHROME_PSEUDO_ORDER,
            SAFARI_HEADER_ORDER,
            (
                ("Accept", "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"),
                ("Accept-Language", "en-US,en;q=0.9"),
                ("Accept-Encoding", "gzip, deflate, br"),
                ("Sec-Fetch-Dest", "document"),
                ("Sec-Fetch-Mode", "navigate"),
                ("Sec-Fetch-Site", "none"),
                (
                    "User-Agent",
                    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
                    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
                ),
            ),
            (("Sec-CH-UA-Mobile", "?0"), ("Sec-CH-UA-Platform", '"macOS"')),
            SAFARI_CONNECTION_FLOW,
        ),
    }
)

DEFAULT_PROFILE = BrowserProfile.CHROME_133


def available_profiles() -> list[BrowserProfile]:
    """Profiles offered to the block-configuration layer, ``CUSTOM`` last."""
    return [*CATALOG, BrowserProfile.CUSTOM]


def lookup(profile: BrowserProfile | str | None) -> ProfileDefaults:
    """
    Return the defaults bound to ``profile``. Never fails: ``CUSTOM`` and
    unrecognised values resolve to the most recent Chrome profile.
    """
    if profile is None:
        return CATALOG[DEFAULT_PROFILE]
    try:
        key = BrowserProfile.parse(profile)
    except ConfigurationError:
        logger.debug("Unknown profile %r, using %s", profile, DEFAULT_PROFILE.value)
        return CATALOG[DEFAULT_PROFILE]
    return CATALOG.get(key, CATALOG[DEFAULT_PROFILE])
