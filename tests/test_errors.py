"""Tests for facsimile.errors module."""

import pytest

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


class TestErrorHierarchy:
    """Tests for error class hierarchy."""

    def test_configuration_error_is_value_error(self):
        """Test ConfigurationError is both a FacsimileError and a ValueError."""
        assert issubclass(ConfigurationError, FacsimileError)
        assert issubclass(ConfigurationError, ValueError)

    @pytest.mark.parametrize("cls", [EngineUnavailable, EngineFault, EngineTimeout, RequestCancelled])
    def test_engine_errors(self, cls):
        """Test engine errors share EngineError."""
        assert issubclass(cls, EngineError)
        assert issubclass(cls, FacsimileError)

    def test_timeout_is_distinct_from_fault(self):
        """Test callers can tell timeouts and faults apart."""
        assert not issubclass(EngineTimeout, EngineFault)
        assert issubclass(EngineTimeout, TimeoutError)

    @pytest.mark.parametrize("cls", [ProxyError, TLSNegotiationError, ProtocolError])
    def test_transport_errors(self, cls):
        """Test transport errors share TransportError."""
        assert issubclass(cls, TransportError)


class TestEngineError:
    """Tests for engine error attributes."""

    def test_carries_engine_and_reason(self):
        """Test engine and reason are attributes and part of the message."""
        exc = EngineFault("native", "bad payload")
        assert exc.engine == "native"
        assert exc.reason == "bad payload"
        assert str(exc) == "[native] bad payload"

    def test_plain_errors_start_without_engine(self):
        """Test non-engine errors have no engine until annotated."""
        exc = TransportError("refused")
        assert exc.engine is None
        exc.engine = "fallback"
        assert exc.engine == "fallback"
