import logging

from facsimile.client import AsyncClient
from facsimile.builder import RequestBuilder
from facsimile.descriptor import Http2Config, RequestDescriptor, TlsConfig
from facsimile.dispatcher import Dispatcher
from facsimile.engines import (
    AvailabilityState,
    FallbackEngine,
    NativeEngine,
    UnavailableReason,
    reset_availability,
)
from facsimile.errors import (
    ConfigurationError,
    EngineError,
    EngineFault,
    EngineTimeout,
    EngineUnavailable,
    FacsimileError,
    ProtocolError,
    ProxyError,
    RequestCancelled,
    TLSNegotiationError,
    TransportError,
)
from facsimile.impersonation import BrowserProfile, ProfileDefaults, available_profiles, lookup
from facsimile.models import Response
from facsimile.options import ClientCertificate, ClientOptions
from facsimile.proxy import Proxy, ProxyType, build_proxy_url

# Module loggers are children of this one; the application owns handler setup.
logging.getLogger("facsimile").addHandler(logging.NullHandler())

__all__ = [
    "AsyncClient",
    "RequestBuilder",
    "Http2Config",
    "RequestDescriptor",
    "TlsConfig",
    "Dispatcher",
    "AvailabilityState",
    "FallbackEngine",
    "NativeEngine",
    "UnavailableReason",
    "reset_availability",
    "ConfigurationError",
    "EngineError",
    "EngineFault",
    "EngineTimeout",
    "EngineUnavailable",
    "FacsimileError",
    "ProtocolError",
    "ProxyError",
    "RequestCancelled",
    "TLSNegotiationError",
    "TransportError",
    "BrowserProfile",
    "ProfileDefaults",
    "available_profiles",
    "lookup",
    "Response",
    "ClientCertificate",
    "ClientOptions",
    "Proxy",
    "ProxyType",
    "build_proxy_url",
]
