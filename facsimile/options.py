from __future__ import annotations

from dataclasses import dataclass, field

from .impersonation.profiles import BrowserProfile

DEFAULT_PROBE_URL = "https://example.com"


@dataclass(frozen=True)
class ClientCertificate:
    """PEM client certificate; ``key_file`` may be omitted when bundled in ``cert_file``."""

    cert_file: str
    key_file: str | None = None
    password: str | None = None


@dataclass
class ClientOptions:
    """
    Caller-owned configuration for one logical client.

    Args:
        profile: Browser profile to impersonate (default: Chrome 120)
        ja3: Explicit JA3 string overriding the profile's
        force_http1: Negotiate HTTP/1.1 only
        insecure_skip_verify: Skip certificate verification
        custom_extensions: Extension ids appended to the JA3 extension list
        custom_cipher_suites: Cipher ids or names replacing the profile's cipher list
        http2_settings: SETTINGS overrides; their insertion order becomes the wire order
        client_certificates: Client certificates offered during the handshake
        disable_session_resumption: Do not offer session tickets
        session_id: Native engine session (connection reuse and cookie jar scope)
        timeout: Request timeout in seconds
        connect_timeout: TCP/TLS connect timeout in seconds
        follow_redirects: Follow 3xx responses
        max_redirects: Redirect hops allowed before giving up
        include_client_hints: Send the profile's Sec-CH-UA* headers
        randomize_tls_extension_order: Shuffle ClientHello extensions per request, as Chrome does
        use_native_engine: Try the native engine before the fallback
        native_library_path: Explicit path to the native engine library
        byte_response: Ask the native engine for base64 bodies so binary data survives
        auto_decompress: Decode gzip/deflate/br/zstd bodies in the fallback engine
        probe_url: URL used by the native engine availability probe
    """

    profile: BrowserProfile | str = BrowserProfile.CHROME_120
    ja3: str = ""
    force_http1: bool = False
    insecure_skip_verify: bool = False
    custom_extensions: list[int] = field(default_factory=list)
    custom_cipher_suites: list[int | str] = field(default_factory=list)
    http2_settings: dict[str, int] = field(default_factory=dict)
    client_certificates: list[ClientCertificate] = field(default_factory=list)
    disable_session_resumption: bool = False
    session_id: str = ""
    timeout: float = 30.0
    connect_timeout: float = 10.0
    follow_redirects: bool = True
    max_redirects: int = 8
    include_client_hints: bool = True
    randomize_tls_extension_order: bool = True
    use_native_engine: bool = True
    native_library_path: str | None = None
    byte_response: bool = True
    auto_decompress: bool = True
    probe_url: str = DEFAULT_PROBE_URL
