from __future__ import annotations

import asyncio
import dataclasses
import json as json_lib
import urllib.parse
from collections.abc import Iterable, Mapping

from .builder import RequestBuilder
from .descriptor import RequestDescriptor
from .dispatcher import Dispatcher
from .engines.native import NativeEngine
from .models import Response
from .multipart import FileValue, build_multipart
from .options import ClientOptions
from .proxy import Proxy

HeadersType = Mapping[str, str] | Iterable[tuple[str, str]]


class AsyncClient:
    """
    Async HTTP client that impersonates a browser profile at the TLS,
    HTTP/2 and header layers.

    Args:
        options: Client configuration; keyword overrides are applied on top
        proxy: Default proxy for every request (a ``Proxy`` or proxy URL)
        dispatcher: Engine dispatcher, built from ``options`` when omitted
        builder: Request builder, mainly for injecting a seeded RNG
        **overrides: Any ``ClientOptions`` field, e.g. ``profile="firefox"``
    """

    def __init__(
        self,
        options: ClientOptions | None = None,
        proxy: Proxy | str | None = None,
        dispatcher: Dispatcher | None = None,
        builder: RequestBuilder | None = None,
        **overrides,
    ) -> None:
        options = options or ClientOptions()
        self.options = dataclasses.replace(options, **overrides) if overrides else options
        self.proxy = proxy
        self.builder = builder or RequestBuilder()
        self.dispatcher = dispatcher or Dispatcher(
            NativeEngine(self.options.native_library_path, self.options.probe_url)
        )

    def build(
        self,
        method: str,
        url: str,
        headers: HeadersType | None = None,
        cookies: Mapping[str, str] | None = None,
        data: bytes | str | dict[str, str] | None = None,
        json: object | None = None,
        files: Mapping[str, FileValue] | None = None,
        auth: tuple[str, str] | None = None,
        proxy: Proxy | str | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> RequestDescriptor:
        """Build the descriptor ``request`` would send, without sending it."""
        body, extra_headers = _encode_body(data, json, files)
        merged: list[tuple[str, str]] = list(extra_headers)
        if headers:
            merged.extend(headers.items() if isinstance(headers, Mapping) else headers)
        return self.builder.build(
            self.options,
            url,
            method=method,
            headers=merged,
            cookies=cookies,
            body=body,
            proxy=proxy if proxy is not None else self.proxy,
            session_id=session_id,
            timeout=timeout,
            auth=auth,
        )

    async def request(
        self,
        method: str,
        url: str,
        headers: HeadersType | None = None,
        cookies: Mapping[str, str] | None = None,
        data: bytes | str | dict[str, str] | None = None,
        json: object | None = None,
        files: Mapping[str, FileValue] | None = None,
        auth: tuple[str, str] | None = None,
        proxy: Proxy | str | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Response:
        """
        Send a request.

        Args:
            method: HTTP method
            url: Request URL
            headers: Caller headers; fingerprint headers are always the profile's
            cookies: Cookies scoped to the request host
            data: Raw body, or a dict sent as a form
            json: JSON-serializable object to send as request body
            files: Multipart file fields; ``data`` then supplies the plain fields
            auth: ``(username, password)`` sent as HTTP Basic credentials
            proxy: Proxy for this request, overriding the client default
            session_id: Session scope, overriding ``options.session_id``
            timeout: Timeout in seconds, overriding ``options.timeout``
            cancel_event: Setting this event aborts the request with ``RequestCancelled``

        Returns:
            Response object
        """
        descriptor = self.build(method, url, headers, cookies, data, json, files, auth, proxy, session_id, timeout)
        return await self.dispatcher.execute(self.options, descriptor, cancel_event)

    async def get(self, url: str, **kwargs) -> Response:
        return await self.request("GET", url, **kwargs)

    async def head(self, url: str, **kwargs) -> Response:
        return await self.request("HEAD", url, **kwargs)

    async def post(self, url: str, **kwargs) -> Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs) -> Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs) -> Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs) -> Response:
        return await self.request("DELETE", url, **kwargs)

    async def session_cookies(self, url: str, session_id: str | None = None) -> dict[str, str]:
        """Cookies the native engine's session jar holds for ``url``."""
        return await self.dispatcher.native.session_cookies(session_id or self.options.session_id, url)

    async def destroy_session(self, session_id: str | None = None) -> None:
        """Drop a session in both engines. Best effort, never raises."""
        session_id = session_id or self.options.session_id
        if not session_id:
            return
        await self.dispatcher.native.destroy_session(session_id)
        await self.dispatcher.fallback.destroy_session(session_id)

    def reset_availability(self) -> None:
        self.dispatcher.reset_availability()

    async def close(self) -> None:
        await self.dispatcher.fallback.close()
        await self.dispatcher.native.close()

    async def __aenter__(self) -> AsyncClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _encode_body(
    data: bytes | str | dict[str, str] | None,
    json: object | None,
    files: Mapping[str, FileValue] | None = None,
) -> tuple[bytes | None, list[tuple[str, str]]]:
    if files:
        if data is not None and not isinstance(data, dict):
            raise TypeError("Multipart requests take form fields as a dict")
        content_type, body = build_multipart(data, files)
        return body, [("Content-Type", content_type)]
    if json is not None:
        return json_lib.dumps(json).encode("utf-8"), [("Content-Type", "application/json")]
    if data is None:
        return None, []
    if isinstance(data, bytes):
        return data, []
    if isinstance(data, str):
        return data.encode("utf-8"), []
    if isinstance(data, dict):
        form = urllib.parse.urlencode(data).encode("utf-8")
        return form, [("Content-Type", "application/x-www-form-urlencoded; charset=utf-8")]
    raise TypeError("Unsupported data type for request body")
