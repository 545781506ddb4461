from .profiles import CATALOG, BrowserProfile, ProfileDefaults, available_profiles, lookup
from .ja3 import Ja3, parse_ja3, openssl_cipher_string, shuffle_extensions
from .client_hints import (
    generate_sec_ch_ua,
    generate_sec_ch_ua_full_version_list,
    build_client_hints_for_platform,
    is_client_hint,
)

__all__ = [
    "CATALOG",
    "BrowserProfile",
    "ProfileDefaults",
    "available_profiles",
    "lookup",
    "Ja3",
    "parse_ja3",
    "openssl_cipher_string",
    "shuffle_extensions",
    "generate_sec_ch_ua",
    "generate_sec_ch_ua_full_version_list",
    "build_client_hints_for_platform",
    "is_client_hint",
]
