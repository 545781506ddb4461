"""
Per-request engine selection.

The native engine is used iff the caller enabled it, the platform has a
build and the cached availability is ``AVAILABLE`` (probing once while it is
``UNKNOWN``). Everything else goes to the fallback engine with a diagnostic
naming the reason. A request never switches engines once it has started,
and engine faults are surfaced, never retried on the other engine.
"""

from __future__ import annotations

import asyncio
import logging
import platform
import sys
from collections.abc import Awaitable

from .descriptor import RequestDescriptor
from .engines.availability import AvailabilitySnapshot
from .engines.base import Engine
from .engines.fallback import FallbackEngine
from .engines.native import NativeEngine
from .errors import EngineUnavailable, FacsimileError, RequestCancelled
from .models import Response
from .options import ClientOptions

logger = logging.getLogger(__name__)

DISABLED_BY_CONFIGURATION = "disabled by configuration"


class Dispatcher:
    def __init__(self, native: NativeEngine | None = None, fallback: FallbackEngine | None = None) -> None:
        self.native = native or NativeEngine()
        self.fallback = fallback or FallbackEngine()

    def availability(self) -> AvailabilitySnapshot:
        return self.native.availability.snapshot()

    def reset_availability(self) -> None:
        self.native.availability.reset()

    async def select(
        self,
        options: ClientOptions,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> tuple[Engine, str | None]:
        """Pick the engine for one request; the second item is the fallback reason, if any."""
        if not options.use_native_engine:
            return self.fallback, DISABLED_BY_CONFIGURATION
        if not (options.native_library_path or self.native.search_order()):
            return self.fallback, f"platform-not-supported ({sys.platform}/{platform.machine()})"

        try:
            snapshot = await self._cancellable(
                asyncio.wait_for(self.native.ensure_probed(), timeout), cancel_event, self.native.name
            )
        except asyncio.TimeoutError:
            return self.fallback, "availability probe did not finish in time"
        if snapshot.is_available:
            return self.native, None
        return self.fallback, snapshot.describe()

    async def execute(
        self,
        options: ClientOptions,
        descriptor: RequestDescriptor,
        cancel_event: asyncio.Event | None = None,
    ) -> Response:
        engine, reason = await self.select(options, descriptor.timeout, cancel_event)
        if engine is self.native:
            try:
                return await self._run(engine, descriptor, None, cancel_event)
            except EngineUnavailable as exc:
                # Raised before any I/O, so the request has not started on the native engine.
                engine, reason = self.fallback, exc.reason
        return await self._run(engine, descriptor, reason, cancel_event)

    async def _run(
        self,
        engine: Engine,
        descriptor: RequestDescriptor,
        fallback_reason: str | None,
        cancel_event: asyncio.Event | None,
    ) -> Response:
        extra = {
            "engine": engine.name,
            "fingerprint": descriptor.fingerprint,
            "fidelity": engine.fidelity,
            "fallback_reason": fallback_reason,
        }
        if fallback_reason is None:
            logger.info(
                "%s %s via %s engine (fingerprint %s)",
                descriptor.method,
                descriptor.url,
                engine.name,
                descriptor.fingerprint,
                extra=extra,
            )
        elif fallback_reason == DISABLED_BY_CONFIGURATION:
            logger.info(
                "%s %s via %s engine, native engine %s; %s fidelity",
                descriptor.method,
                descriptor.url,
                engine.name,
                fallback_reason,
                engine.fidelity,
                extra=extra,
            )
        else:
            logger.warning(
                "%s %s via %s engine, native engine unavailable (%s); %s fidelity",
                descriptor.method,
                descriptor.url,
                engine.name,
                fallback_reason,
                engine.fidelity,
                extra=extra,
            )

        try:
            return await self._cancellable(engine.send(descriptor), cancel_event, engine.name)
        except FacsimileError as exc:
            if exc.engine is None:
                exc.engine = engine.name
            raise

    @staticmethod
    async def _cancellable(awaitable: Awaitable, cancel_event: asyncio.Event | None, engine_name: str):
        """Await ``awaitable`` unless ``cancel_event`` fires first."""
        task = asyncio.ensure_future(awaitable)
        if cancel_event is None:
            return await task
        if cancel_event.is_set():
            task.cancel()
            await asyncio.wait({task})
            raise RequestCancelled(engine_name, "cancelled before start")

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        if not task.cancelled():
            task.exception()
        raise RequestCancelled(engine_name, "cancelled by caller")
