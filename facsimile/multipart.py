from __future__ import annotations

import uuid
from collections.abc import Mapping

FileValue = bytes | str | tuple[str, bytes | str] | tuple[str, bytes | str, str | None]


def generate_boundary() -> str:
    return f"----WebKitFormBoundary{uuid.uuid4().hex[:16]}"


def _as_bytes(value: bytes | str) -> bytes:
    return value if isinstance(value, bytes) else str(value).encode("utf-8")


def _encode_field(name: str, value: object) -> bytes:
    return f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode("utf-8") + _as_bytes(str(value)) + b"\r\n"


def _encode_file(name: str, filename: str, content: bytes, content_type: str | None) -> bytes:
    ct = content_type or "application/octet-stream"
    headers = (
        f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
        f"Content-Type: {ct}\r\n\r\n"
    ).encode("utf-8")
    return headers + content + b"\r\n"


def build_multipart(
    data: Mapping[str, object] | None,
    files: Mapping[str, FileValue],
    boundary: str | None = None,
) -> tuple[str, bytes]:
    """
    Build a multipart/form-data body; returns ``(content_type, body)``.

    ``files`` values are the content itself (the field name doubles as the
    file name), ``(filename, content)`` or ``(filename, content,
    content_type)``. Plain ``data`` fields come before the files.
    """
    boundary = boundary or generate_boundary()
    delimiter = f"--{boundary}\r\n".encode("ascii")
    chunks: list[bytes] = []
    for name, value in (data or {}).items():
        chunks.append(delimiter)
        chunks.append(_encode_field(name, value))
    for name, value in files.items():
        chunks.append(delimiter)
        if isinstance(value, (bytes, str)):
            chunks.append(_encode_file(name, name, _as_bytes(value), None))
            continue
        filename, content, *rest = value
        chunks.append(_encode_file(name, filename, _as_bytes(content), rest[0] if rest else None))
    chunks.append(f"--{boundary}--\r\n".encode("ascii"))
    return f"multipart/form-data; boundary={boundary}", b"".join(chunks)
