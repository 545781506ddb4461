"""
High-fidelity engine: the ``tls-client`` shared library driven through ctypes.

By default the build shipped with the ``tls_client`` package is used; an
explicit path or ``FACSIMILE_TLS_LIBRARY`` takes precedence. The library
owns the raw ClientHello and HTTP/2 framing, so every field of the
descriptor reaches the wire as declared. Calls are blocking and run in a
worker thread; the thread frees the library's response buffer itself, so a
caller that times out or is cancelled never leaks it.
"""

from __future__ import annotations

import asyncio
import ctypes
import json
import logging
import os
import platform
import sys
import threading
import uuid
from collections.abc import Callable
from typing import Any

from ..descriptor import RequestDescriptor
from ..errors import EngineFault, EngineTimeout, EngineUnavailable
from ..models import Response
from ..options import DEFAULT_PROBE_URL
from ..proxy import redact_proxy_url
from .availability import (
    ENGINE_AVAILABILITY,
    AvailabilitySnapshot,
    AvailabilityState,
    EngineAvailability,
    UnavailableReason,
)
from .base import NATIVE, Engine
from .payload import decode_response, dumps, encode_probe, encode_request, to_response

logger = logging.getLogger(__name__)

LIBRARY_ENV = "FACSIMILE_TLS_LIBRARY"
BUNDLED_LIBRARY = "tls_client (bundled)"

# Extra time granted on top of the engine's own timeout before giving up on the thread.
TIMEOUT_GRACE = 1.0

# Platforms the tls_client package ships a build for.
SUPPORTED_PLATFORMS = frozenset({"linux", "darwin", "win32", "cygwin"})

_ARCH_MISMATCH_MARKERS = (
    "wrong elf class",
    "wrong architecture",
    "incompatible architecture",
    "not a valid win32 application",
    "cannot open shared object file: exec format error",
)


def platform_supported(system: str | None = None) -> bool:
    system = system or sys.platform
    if system.startswith("linux"):
        system = "linux"
    return system in SUPPORTED_PLATFORMS


def candidate_paths(explicit: str | None = None) -> list[str]:
    """Caller-supplied locations: the explicit path, then the environment."""
    paths: list[str] = []
    if explicit:
        paths.append(explicit)
    env = os.environ.get(LIBRARY_ENV)
    if env:
        paths.append(env)
    return paths


def load_bundled_library() -> tuple[Any, str]:
    """
    Handle and path of the library the ``tls_client`` package ships for this
    platform. Importing ``tls_client.cffi`` loads it, so a missing or foreign
    build surfaces here as ``OSError``.
    """
    from tls_client import cffi

    return cffi.library, cffi.library._name


def is_architecture_mismatch(exc: OSError) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _ARCH_MISMATCH_MARKERS) or getattr(exc, "winerror", None) == 193


class NativeLibrary:
    """
    ctypes binding over the exported C functions of a loaded library handle.

    Function objects are taken by subscription, which gives this binding its
    own copies; other users of the same handle keep their ``restype``.
    """

    def __init__(self, handle: Any, path: str = "") -> None:
        self.path = path
        self._lib = handle
        self._request = self._bind("request", ctypes.c_void_p)
        self._get_cookies = self._bind("getCookiesFromSession", ctypes.c_void_p)
        self._destroy_session = self._bind("destroySession", ctypes.c_void_p)
        self._free_memory = self._bind("freeMemory", None)

    def _bind(self, name: str, restype: Any) -> Any:
        func = self._lib[name]
        func.argtypes = [ctypes.c_char_p]
        func.restype = restype
        return func

    def _call(self, func: Any, payload: bytes) -> str:
        ptr = func(payload)
        if not ptr:
            return ""
        raw = ctypes.string_at(ptr).decode("utf-8", errors="replace")
        self._free(raw)
        return raw

    def _free(self, raw: str) -> None:
        # Buffers are released by response id; a payload without one cannot be freed.
        try:
            response_id = json.loads(raw).get("id")
        except (ValueError, AttributeError):
            return
        if response_id:
            self._free_memory(str(response_id).encode("utf-8"))

    def request(self, payload: bytes) -> str:
        return self._call(self._request, payload)

    def get_cookies(self, session_id: str, url: str) -> str:
        return self._call(self._get_cookies, dumps({"sessionId": session_id, "url": url}))

    def destroy_session(self, session_id: str) -> str:
        return self._call(self._destroy_session, dumps({"sessionId": session_id}))


class NativeEngine(Engine):
    """
    Engine adapter for the ``tls-client`` library.

    Args:
        library_path: Explicit library location, tried before the bundled build
        probe_url: URL of the availability probe (HEAD, 5 s)
        availability: Shared availability state, process-wide by default
        loader: Callable that loads a library from a path (``ctypes.CDLL``)
    """

    name = NATIVE

    def __init__(
        self,
        library_path: str | None = None,
        probe_url: str = DEFAULT_PROBE_URL,
        availability: EngineAvailability = ENGINE_AVAILABILITY,
        loader: Callable[[str], Any] = ctypes.CDLL,
    ) -> None:
        self.library_path = library_path
        self.probe_url = probe_url
        self.availability = availability
        self._loader = loader
        self._library: NativeLibrary | None = None
        self._load_lock = threading.Lock()

    @staticmethod
    def platform_supported() -> bool:
        return platform_supported()

    def search_order(self) -> tuple[str, ...]:
        paths = candidate_paths(self.library_path)
        if platform_supported():
            paths.append(BUNDLED_LIBRARY)
        return tuple(paths)

    def is_available(self) -> bool:
        return self.availability.snapshot().is_available

    async def ensure_probed(self) -> AvailabilitySnapshot:
        """Probe once if the cached state is ``UNKNOWN``; otherwise return it."""
        snapshot = self.availability.snapshot()
        if not snapshot.is_unknown:
            return snapshot
        return await asyncio.to_thread(self._probe_blocking, snapshot.generation)

    def _probe_blocking(self, generation: int) -> AvailabilitySnapshot:
        with self.availability.probe_lock:
            snapshot = self.availability.snapshot()
            if not snapshot.is_unknown or snapshot.generation != generation:
                return snapshot
            state, reason, error, searched = self._run_probe()
            self.availability.compare_and_set(generation, state, reason, error, searched)
            snapshot = self.availability.snapshot()
        logger.debug("Native engine probe: %s (searched %s)", snapshot.describe(), ", ".join(searched) or "-")
        return snapshot

    def _run_probe(
        self,
    ) -> tuple[AvailabilityState, UnavailableReason | None, str, tuple[str, ...]]:
        unavailable = AvailabilityState.UNAVAILABLE
        searched = self.search_order()
        if not searched:
            return unavailable, UnavailableReason.PLATFORM_NOT_SUPPORTED, f"{sys.platform}/{platform.machine()}", ()

        try:
            library = self._load(searched)
        except FileNotFoundError as exc:
            return unavailable, UnavailableReason.BINDING_NOT_FOUND, str(exc), searched
        except OSError as exc:
            if is_architecture_mismatch(exc):
                return unavailable, UnavailableReason.ARCHITECTURE_MISMATCH, str(exc), searched
            return unavailable, UnavailableReason.BINDING_NOT_FOUND, str(exc), searched
        except AttributeError as exc:
            return unavailable, UnavailableReason.BINDING_NOT_FOUND, f"missing export: {exc}", searched

        session_id = f"probe-{uuid.uuid4().hex}"
        try:
            raw = library.request(dumps(encode_probe(self.probe_url, session_id)))
            if not raw:
                return unavailable, UnavailableReason.LOADED_BUT_EMPTY_RESPONSE, "", searched
            decode_response(raw)
        except EngineFault as exc:
            return unavailable, UnavailableReason.LOADED_BUT_ERROR, exc.reason, searched
        except OSError as exc:
            return unavailable, UnavailableReason.LOADED_BUT_ERROR, str(exc), searched
        finally:
            self._destroy_quietly(library, session_id)
        return AvailabilityState.AVAILABLE, None, "", searched

    def _load(self, paths: tuple[str, ...]) -> NativeLibrary:
        with self._load_lock:
            if self._library is not None:
                return self._library
            for path in paths:
                if path == BUNDLED_LIBRARY:
                    handle, path = load_bundled_library()
                elif os.path.isfile(path):
                    handle = self._loader(path)
                else:
                    continue
                self._library = NativeLibrary(handle, path)
                logger.debug("Loaded native engine from %s", path)
                return self._library
        raise FileNotFoundError(f"tls-client library not found in: {', '.join(paths) or '(no candidates)'}")

    def _library_for_send(self) -> NativeLibrary:
        if self._library is not None:
            return self._library
        try:
            return self._load(self.search_order())
        except (OSError, AttributeError) as exc:
            raise EngineUnavailable(NATIVE, f"{UnavailableReason.BINDING_NOT_FOUND.value}: {exc}") from exc

    async def send(self, descriptor: RequestDescriptor) -> Response:
        snapshot = self.availability.snapshot()
        if not snapshot.is_available:
            raise EngineUnavailable(NATIVE, snapshot.describe())
        library = self._library_for_send()

        if descriptor.tls.client_certificates:
            logger.warning("Client certificates are not supported by the native engine and were not sent")

        ephemeral = descriptor.session_id is None
        session_id = descriptor.session_id or f"facsimile-{uuid.uuid4().hex}"
        payload = dumps(encode_request(descriptor, session_id))
        logger.debug(
            "Native request %s %s session=%s proxy=%s",
            descriptor.method,
            descriptor.url,
            "ephemeral" if ephemeral else session_id,
            redact_proxy_url(descriptor.proxy_url),
        )

        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._request_blocking, library, payload, session_id if ephemeral else None),
                timeout=descriptor.timeout + TIMEOUT_GRACE,
            )
        except asyncio.TimeoutError:
            raise EngineTimeout(NATIVE, f"no answer within {descriptor.timeout:.1f}s") from None
        except OSError as exc:
            raise EngineFault(NATIVE, f"library call failed: {exc}") from exc

        try:
            data = decode_response(raw)
        except EngineFault as exc:
            lowered = exc.reason.lower()
            if "timeout" in lowered or "deadline exceeded" in lowered:
                raise EngineTimeout(NATIVE, exc.reason) from exc
            logger.warning("Native engine fault for %s: %s", descriptor.url, exc.reason)
            raise
        return to_response(data, descriptor, None if ephemeral else session_id)

    def _request_blocking(self, library: NativeLibrary, payload: bytes, ephemeral_session: str | None) -> str:
        try:
            return library.request(payload)
        finally:
            if ephemeral_session is not None:
                self._destroy_quietly(library, ephemeral_session)

    @staticmethod
    def _destroy_quietly(library: NativeLibrary, session_id: str) -> None:
        try:
            library.destroy_session(session_id)
        except Exception as exc:  # teardown is best effort
            logger.debug("Destroying native session %s failed: %s", session_id, exc)

    async def destroy_session(self, session_id: str) -> None:
        """
        Tear down a native session. Never raises. Tearing down a session
        while a request on it is still in flight has unspecified results.
        """
        library = self._library
        if library is None or not session_id:
            return
        await asyncio.to_thread(self._destroy_quietly, library, session_id)

    async def session_cookies(self, session_id: str, url: str) -> dict[str, str]:
        """Cookies the native session's jar holds for ``url``."""
        library = self._library_for_send()
        raw = await asyncio.to_thread(library.get_cookies, session_id, url)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise EngineFault(NATIVE, f"malformed cookie payload: {exc}") from exc
        return {c["name"]: c.get("value", "") for c in data.get("cookies") or [] if "name" in c}
