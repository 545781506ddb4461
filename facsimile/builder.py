"""
Fingerprint request builder.

Turns (options, url, headers, cookies, body, proxy, session, timeout, auth)
into a ``RequestDescriptor``. The profile is resolved once and propagated to
the TLS, HTTP/2 and header layers so they cannot contradict each other. The
only input that makes ``build`` fail is a URL without a host; everything
else falls back to the profile's defaults.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping

from .cookies import cookies_for_request
from .descriptor import Http2Config, RequestDescriptor, TlsConfig
from .errors import ConfigurationError
from .headers import reconcile_headers
from .impersonation.ja3 import (
    Ja3,
    cipher_id,
    parse_ja3,
    shuffle_extensions,
    with_ciphers,
    with_extra_extensions,
)
from .impersonation.profiles import ProfileDefaults, lookup
from .options import ClientOptions
from .proxy import Proxy, build_proxy_url
from .utils import basic_auth, parse_url

logger = logging.getLogger(__name__)

HTTP1_ALPN = ("http/1.1",)
H2_ALPN = ("h2", "http/1.1")

# Inclusive bounds RFC 9113 puts on SETTINGS values; anything else must fit 32 bits.
H2_SETTING_BOUNDS = {
    "ENABLE_PUSH": (0, 1),
    "INITIAL_WINDOW_SIZE": (0, 2**31 - 1),
    "MAX_FRAME_SIZE": (2**14, 2**24 - 1),
    "ENABLE_CONNECT_PROTOCOL": (0, 1),
}


class RequestBuilder:
    """
    Builds descriptors. Deterministic for equal inputs, except for the
    extension order when ``randomize_tls_extension_order`` is enabled.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng

    def build(
        self,
        options: ClientOptions,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        cookies: Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: bytes | str | None = None,
        proxy: Proxy | str | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
        auth: tuple[str, str] | None = None,
    ) -> RequestDescriptor:
        _, host, _, _ = parse_url(url)
        if auth is not None:
            headers = _with_basic_auth(headers, auth)
        defaults = lookup(options.profile)

        tls = self._tls_config(options, defaults)
        http2 = Http2Config(
            settings=_resolve_http2_settings(options.http2_settings, defaults),
            pseudo_header_order=defaults.pseudo_header_order,
            connection_flow=defaults.connection_flow,
        )
        reconciled = reconcile_headers(
            defaults,
            headers,
            include_client_hints=options.include_client_hints,
            http2=not options.force_http1,
        )

        if isinstance(body, str):
            body = body.encode("utf-8")

        return RequestDescriptor(
            url=url,
            method=method.upper(),
            body=body,
            headers=tuple(reconciled),
            header_order=defaults.header_order,
            cookies=cookies_for_request(cookies, host),
            tls=tls,
            http2=http2,
            profile=defaults.profile,
            proxy_url=proxy if isinstance(proxy, str) else build_proxy_url(proxy),
            session_id=session_id or options.session_id or None,
            timeout=options.timeout if timeout is None else timeout,
            connect_timeout=options.connect_timeout,
            follow_redirects=options.follow_redirects,
            max_redirects=options.max_redirects,
            byte_response=options.byte_response,
            auto_decompress=options.auto_decompress,
        )

    def _tls_config(self, options: ClientOptions, defaults: ProfileDefaults) -> TlsConfig:
        ja3 = self._resolve_ja3(options, defaults)
        custom = bool(options.ja3.strip()) and str(ja3) != defaults.ja3

        if options.custom_cipher_suites and not options.ja3.strip():
            ciphers = _resolve_ciphers(options.custom_cipher_suites)
            if ciphers:
                ja3 = with_ciphers(ja3, ciphers)
                custom = True
        if options.custom_extensions:
            ja3 = with_extra_extensions(ja3, tuple(options.custom_extensions))
            custom = True
        if options.http2_settings:
            custom = True

        if options.randomize_tls_extension_order:
            extension_order = shuffle_extensions(ja3.extensions, self._rng)
        else:
            extension_order = ja3.extensions

        return TlsConfig(
            engine_identifier=defaults.engine_identifier,
            ja3=str(ja3),
            ciphers=ja3.ciphers,
            extension_order=extension_order,
            curves=ja3.curves,
            point_formats=ja3.point_formats,
            alpn=HTTP1_ALPN if options.force_http1 else H2_ALPN,
            custom=custom,
            randomize_extension_order=options.randomize_tls_extension_order,
            insecure_skip_verify=options.insecure_skip_verify,
            client_certificates=tuple(options.client_certificates),
            disable_session_resumption=options.disable_session_resumption,
        )

    @staticmethod
    def _resolve_ja3(options: ClientOptions, defaults: ProfileDefaults) -> Ja3:
        override = options.ja3.strip()
        if override:
            try:
                return parse_ja3(override)
            except ConfigurationError as exc:
                logger.warning("%s; using the %s profile JA3", exc, defaults.profile.value)
        return parse_ja3(defaults.ja3)


def _with_basic_auth(
    headers: Mapping[str, str] | Iterable[tuple[str, str]] | None, auth: tuple[str, str]
) -> list[tuple[str, str]]:
    items = list(headers.items() if isinstance(headers, Mapping) else headers or ())
    items.append(("Authorization", basic_auth(*auth)))
    return items


def _resolve_http2_settings(overrides: Mapping[str, int], defaults: ProfileDefaults) -> tuple[tuple[str, int], ...]:
    """
    SETTINGS in wire order. An out-of-range override is replaced by the
    profile's value for that setting, or dropped when the profile has none.
    """
    if not overrides:
        return tuple(defaults.h2_settings.items())
    resolved: list[tuple[str, int]] = []
    for name, value in overrides.items():
        low, high = H2_SETTING_BOUNDS.get(name.upper(), (0, 2**32 - 1))
        if isinstance(value, int) and low <= value <= high:
            resolved.append((name, value))
            continue
        fallback = defaults.h2_settings.get(name.upper())
        logger.warning(
            "HTTP/2 setting %s=%r is out of range; using the %s profile value %s",
            name,
            value,
            defaults.profile.value,
            fallback,
        )
        if fallback is not None:
            resolved.append((name, fallback))
    return tuple(resolved)


def _resolve_ciphers(values: Iterable[int | str]) -> tuple[int, ...]:
    resolved: list[int] = []
    for value in values:
        cid = value if isinstance(value, int) else cipher_id(value)
        if cid is None:
            logger.warning("Unknown cipher suite %r ignored", value)
            continue
        resolved.append(cid)
    return tuple(resolved)


_default_builder = RequestBuilder()


def build(options: ClientOptions, url: str, **kwargs) -> RequestDescriptor:
    """Module-level shortcut for ``RequestBuilder().build``."""
    return _default_builder.build(options, url, **kwargs)
