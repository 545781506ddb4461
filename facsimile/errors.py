class FacsimileError(Exception):
    """Base error for facsimile."""

    engine: str | None = None


class ConfigurationError(FacsimileError, ValueError):
    """Raised for inputs that cannot produce a request (e.g. a URL without a host)."""


class EngineError(FacsimileError):
    """Base for failures attributed to a specific engine."""

    def __init__(self, engine: str, reason: str) -> None:
        self.engine = engine
        self.reason = reason
        super().__init__(f"[{engine}] {reason}")


class EngineUnavailable(EngineError):
    """Raised when the native engine cannot be used for this request."""


class EngineFault(EngineError):
    """Raised when an engine returned an error payload or a malformed response."""


class EngineTimeout(EngineError, TimeoutError):
    """Raised when an engine did not answer within the request timeout."""


class RequestCancelled(EngineError):
    """Raised when the caller's cancellation signal fired mid-request."""


class TransportError(FacsimileError):
    """Raised when a TCP/TLS/proxy connection fails in the fallback engine."""


class ProxyError(TransportError):
    """Raised when a proxy refuses the tunnel or the credentials."""


class TLSNegotiationError(TransportError):
    """Raised when TLS handshake does not meet expectations."""


class ProtocolError(TransportError):
    """Raised when an HTTP protocol error occurs."""
