"""
Content decoding for the fallback engine.

Supports gzip, deflate, brotli (br) and zstd encodings. The native engine
decodes bodies itself.
"""

from __future__ import annotations

import gzip
import io
import logging
import zlib

logger = logging.getLogger(__name__)

# Brotli and zstandard are declared dependencies; decoding degrades if they are missing
try:
    import brotli

    BROTLI_AVAILABLE = True
except ImportError:
    BROTLI_AVAILABLE = False

try:
    import zstandard

    ZSTD_AVAILABLE = True
except ImportError:
    ZSTD_AVAILABLE = False


def supported_encodings() -> tuple[str, ...]:
    encodings = ["gzip", "deflate"]
    if BROTLI_AVAILABLE:
        encodings.append("br")
    if ZSTD_AVAILABLE:
        encodings.append("zstd")
    return tuple(encodings)


def decode_body(body: bytes, content_encoding: str | None) -> bytes:
    """
    Decode response body based on Content-Encoding header.

    Args:
        body: Raw response body bytes
        content_encoding: Value of Content-Encoding header

    Returns:
        Decoded body bytes; undecodable layers are left as they are
    """
    if not content_encoding or not body:
        return body

    # Multiple encodings are undone in reverse order of application
    encodings = [e.strip() for e in content_encoding.lower().split(",") if e.strip()]

    result = body
    for enc in reversed(encodings):
        result = _decode_single(result, enc)
    return result


def _decode_single(body: bytes, encoding: str) -> bytes:
    """Decode body with a single encoding."""
    try:
        if encoding in ("gzip", "x-gzip"):
            with gzip.GzipFile(fileobj=io.BytesIO(body)) as f:
                return f.read()
        if encoding == "deflate":
            try:
                # Raw deflate first (no header)
                return zlib.decompress(body, -zlib.MAX_WBITS)
            except zlib.error:
                return zlib.decompress(body)
        if encoding == "br" and BROTLI_AVAILABLE:
            return brotli.decompress(body)
        if encoding == "zstd" and ZSTD_AVAILABLE:
            reader = zstandard.ZstdDecompressor().stream_reader(io.BytesIO(body))
            with reader:
                return reader.read()
    except (OSError, EOFError, zlib.error) as exc:
        logger.debug("Could not decode %s body: %s", encoding, exc)
        return body
    except Exception as exc:  # brotli.error / zstandard.ZstdError
        if not _is_codec_error(exc):
            raise
        logger.debug("Could not decode %s body: %s", encoding, exc)
        return body

    # Identity or unsupported encoding
    return body


def _is_codec_error(exc: Exception) -> bool:
    if BROTLI_AVAILABLE and isinstance(exc, brotli.error):
        return True
    return ZSTD_AVAILABLE and isinstance(exc, zstandard.ZstdError)
