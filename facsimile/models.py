from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from http import HTTPStatus

HIGH_FIDELITY = "high"
REDUCED_FIDELITY = "reduced"


class Response:
    """
    Normalized HTTP response shared by both engines. Header order and
    repeated headers are preserved in ``raw_headers``; ``engine`` and
    ``fidelity`` tell the caller which path produced it.
    """

    def __init__(
        self,
        status_code: int,
        reason: str,
        http_version: str,
        headers: Iterable[tuple[str, str]],
        body: bytes,
        cookies: Mapping[str, str] | None = None,
        url: str = "",
        session_id: str | None = None,
        engine: str = "",
        fidelity: str = HIGH_FIDELITY,
        fidelity_notes: Iterable[str] = (),
    ) -> None:
        self.status_code = status_code
        self.reason = reason or _default_reason(status_code)
        self.http_version = http_version
        self.raw_headers: list[tuple[str, str]] = list(headers)
        self._body = body
        self.cookies: dict[str, str] = dict(cookies or {})
        self.url = url
        self.session_id = session_id
        self.engine = engine
        self.fidelity = fidelity
        self.fidelity_notes: tuple[str, ...] = tuple(fidelity_notes)

    @property
    def headers(self) -> dict[str, str]:
        # Last-write wins while keeping access case-insensitive for callers.
        out: dict[str, str] = {}
        for name, value in self.raw_headers:
            out[name.lower()] = value
        return out

    def get_all(self, name: str) -> list[str]:
        key = name.lower()
        return [value for header, value in self.raw_headers if header.lower() == key]

    @property
    def content(self) -> bytes:
        return self._body

    @property
    def text(self) -> str:
        encoding = "utf-8"
        ctype = self.headers.get("content-type")
        if ctype and "charset=" in ctype:
            encoding = ctype.split("charset=")[-1].split(";")[0].strip() or encoding
        try:
            return self._body.decode(encoding, errors="replace")
        except LookupError:
            return self._body.decode("utf-8", errors="replace")

    def json(self) -> object:
        return json.loads(self.text)

    @property
    def is_reduced_fidelity(self) -> bool:
        return self.fidelity != HIGH_FIDELITY

    def __repr__(self) -> str:
        return (
            f"<Response [{self.status_code}] {len(self._body)} bytes "
            f"via {self.engine or '?'} ({self.fidelity})>"
        )


def _default_reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""
