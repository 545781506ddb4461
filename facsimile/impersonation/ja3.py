"""
JA3 parsing and the cipher/extension/curve tables used to keep a profile's
JA3 string, its cipher list and the fallback engine's OpenSSL cipher string
in agreement.

A JA3 string is ``version,ciphers,extensions,curves,point_formats`` with
dash-separated decimal IDs inside each field.
"""

from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, replace
from typing import Final

from ..errors import ConfigurationError

# IANA id -> (IANA name, OpenSSL name). TLS 1.3 suites have no OpenSSL
# cipher-string name: they cannot be reordered through ssl.SSLContext.
CIPHER_SUITES: Final[dict[int, tuple[str, str | None]]] = {
    4865: ("TLS_AES_128_GCM_SHA256", None),
    4866: ("TLS_AES_256_GCM_SHA384", None),
    4867: ("TLS_CHACHA20_POLY1305_SHA256", None),
    49195: ("TLS_ECDHE_ECDSA_WITH_AES_128_GCM_SHA256", "ECDHE-ECDSA-AES128-GCM-SHA256"),
    49199: ("TLS_ECDHE_RSA_WITH_AES_128_GCM_SHA256", "ECDHE-RSA-AES128-GCM-SHA256"),
    49196: ("TLS_ECDHE_ECDSA_WITH_AES_256_GCM_SHA384", "ECDHE-ECDSA-AES256-GCM-SHA384"),
    49200: ("TLS_ECDHE_RSA_WITH_AES_256_GCM_SHA384", "ECDHE-RSA-AES256-GCM-SHA384"),
    52393: ("TLS_ECDHE_ECDSA_WITH_CHACHA20_POLY1305_SHA256", "ECDHE-ECDSA-CHACHA20-POLY1305"),
    52392: ("TLS_ECDHE_RSA_WITH_CHACHA20_POLY1305_SHA256", "ECDHE-RSA-CHACHA20-POLY1305"),
    49161: ("TLS_ECDHE_ECDSA_WITH_AES_128_CBC_SHA", "ECDHE-ECDSA-AES128-SHA"),
    49162: ("TLS_ECDHE_ECDSA_WITH_AES_256_CBC_SHA", "ECDHE-ECDSA-AES256-SHA"),
    49171: ("TLS_ECDHE_RSA_WITH_AES_128_CBC_SHA", "ECDHE-RSA-AES128-SHA"),
    49172: ("TLS_ECDHE_RSA_WITH_AES_256_CBC_SHA", "ECDHE-RSA-AES256-SHA"),
    49160: ("TLS_ECDHE_ECDSA_WITH_3DES_EDE_CBC_SHA", "ECDHE-ECDSA-DES-CBC3-SHA"),
    49170: ("TLS_ECDHE_RSA_WITH_3DES_EDE_CBC_SHA", "ECDHE-RSA-DES-CBC3-SHA"),
    156: ("TLS_RSA_WITH_AES_128_GCM_SHA256", "AES128-GCM-SHA256"),
    157: ("TLS_RSA_WITH_AES_256_GCM_SHA384", "AES256-GCM-SHA384"),
    47: ("TLS_RSA_WITH_AES_128_CBC_SHA", "AES128-SHA"),
    53: ("TLS_RSA_WITH_AES_256_CBC_SHA", "AES256-SHA"),
    10: ("TLS_RSA_WITH_3DES_EDE_CBC_SHA", "DES-CBC3-SHA"),
}

EXTENSIONS: Final[dict[int, str]] = {
    0: "server_name",
    5: "status_request",
    10: "supported_groups",
    11: "ec_point_formats",
    13: "signature_algorithms",
    16: "application_layer_protocol_negotiation",
    18: "signed_certificate_timestamp",
    21: "padding",
    23: "extended_master_secret",
    27: "compress_certificate",
    28: "record_size_limit",
    34: "delegated_credentials",
    35: "session_ticket",
    41: "pre_shared_key",
    43: "supported_versions",
    45: "psk_key_exchange_modes",
    51: "key_share",
    17513: "application_settings",
    65037: "encrypted_client_hello",
    65281: "renegotiation_info",
}

# Named groups -> OpenSSL curve names accepted by SSLContext.set_ecdh_curve.
CURVES: Final[dict[int, str]] = {
    29: "X25519",
    23: "prime256v1",
    24: "secp384r1",
    25: "secp521r1",
    256: "ffdhe2048",
    257: "ffdhe3072",
}

# Extensions that stay at the tail when the order is shuffled, as browsers do.
PINNED_TAIL: Final[tuple[int, ...]] = (21, 41)

_IANA_TO_ID = {name: cid for cid, (name, _) in CIPHER_SUITES.items()}
_OPENSSL_TO_ID = {name: cid for cid, (_, name) in CIPHER_SUITES.items() if name}


@dataclass(frozen=True)
class Ja3:
    version: int
    ciphers: tuple[int, ...]
    extensions: tuple[int, ...]
    curves: tuple[int, ...]
    point_formats: tuple[int, ...]

    def __str__(self) -> str:
        return ",".join(
            [
                str(self.version),
                _join(self.ciphers),
                _join(self.extensions),
                _join(self.curves),
                _join(self.point_formats),
            ]
        )

    @property
    def digest(self) -> str:
        """The MD5 JA3 hash, as fingerprinting services report it."""
        return hashlib.md5(str(self).encode("ascii"), usedforsecurity=False).hexdigest()

    def cipher_names(self) -> tuple[str, ...]:
        return tuple(CIPHER_SUITES[c][0] if c in CIPHER_SUITES else f"0x{c:04X}" for c in self.ciphers)

    def curve_names(self) -> tuple[str, ...]:
        return tuple(CURVES[c] for c in self.curves if c in CURVES)


def _join(values: tuple[int, ...]) -> str:
    return "-".join(str(v) for v in values)


def _split(field: str) -> tuple[int, ...]:
    return tuple(int(part) for part in field.split("-") if part)


def parse_ja3(value: str) -> Ja3:
    fields = value.strip().split(",")
    if len(fields) != 5:
        raise ConfigurationError(f"JA3 string must have 5 fields, got {len(fields)}: {value!r}")
    try:
        return Ja3(
            version=int(fields[0]),
            ciphers=_split(fields[1]),
            extensions=_split(fields[2]),
            curves=_split(fields[3]),
            point_formats=_split(fields[4]),
        )
    except ValueError as exc:
        raise ConfigurationError(f"Invalid JA3 string {value!r}: {exc}") from exc


def cipher_id(name: str) -> int | None:
    """Resolve an IANA name, OpenSSL name or decimal/hex id to a cipher id."""
    name = name.strip()
    if name in _IANA_TO_ID:
        return _IANA_TO_ID[name]
    if name in _OPENSSL_TO_ID:
        return _OPENSSL_TO_ID[name]
    try:
        return int(name, 0)
    except ValueError:
        return None


def openssl_cipher_string(ciphers: tuple[int, ...]) -> str:
    """Colon-joined OpenSSL names of the TLS <= 1.2 suites, in order."""
    names = [CIPHER_SUITES[c][1] for c in ciphers if c in CIPHER_SUITES]
    return ":".join(name for name in names if name)


def with_ciphers(ja3: Ja3, ciphers: tuple[int, ...]) -> Ja3:
    return replace(ja3, ciphers=ciphers) if ciphers else ja3


def with_extra_extensions(ja3: Ja3, extensions: tuple[int, ...]) -> Ja3:
    extra = tuple(e for e in extensions if e not in ja3.extensions)
    if not extra:
        return ja3
    head = tuple(e for e in ja3.extensions if e not in PINNED_TAIL)
    tail = tuple(e for e in ja3.extensions if e in PINNED_TAIL)
    return replace(ja3, extensions=head + extra + tail)


def shuffle_extensions(extensions: tuple[int, ...], rng: random.Random | None = None) -> tuple[int, ...]:
    """Permute the extension order, keeping padding and pre_shared_key last."""
    rng = rng or random.SystemRandom()
    movable = [e for e in extensions if e not in PINNED_TAIL]
    rng.shuffle(movable)
    tail = [e for e in extensions if e in PINNED_TAIL]
    return tuple(movable + tail)
