"""
Process-wide availability state of the native engine.

``UNKNOWN`` moves to ``AVAILABLE`` or ``UNAVAILABLE`` exactly once per
generation through ``compare_and_set``; ``reset()`` starts a new generation
so the next request probes again. Probes that race converge: the loser's
``compare_and_set`` fails and it reads the winner's result.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum


class AvailabilityState(str, Enum):
    UNKNOWN = "unknown"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class UnavailableReason(str, Enum):
    BINDING_NOT_FOUND = "binding-not-found"
    PLATFORM_NOT_SUPPORTED = "platform-not-supported"
    ARCHITECTURE_MISMATCH = "architecture-mismatch"
    LOADED_BUT_EMPTY_RESPONSE = "loaded-but-empty-response"
    LOADED_BUT_ERROR = "loaded-but-error"


@dataclass(frozen=True)
class AvailabilitySnapshot:
    state: AvailabilityState
    reason: UnavailableReason | None = None
    last_error: str = ""
    searched_paths: tuple[str, ...] = ()
    generation: int = 0

    @property
    def is_available(self) -> bool:
        return self.state is AvailabilityState.AVAILABLE

    @property
    def is_unknown(self) -> bool:
        return self.state is AvailabilityState.UNKNOWN

    def describe(self) -> str:
        if self.reason is None:
            return self.state.value
        detail = f": {self.last_error}" if self.last_error else ""
        return f"{self.reason.value}{detail}"


class EngineAvailability:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Held by whoever runs the probe so concurrent callers wait instead of probing again.
        self.probe_lock = threading.Lock()
        self._snapshot = AvailabilitySnapshot(AvailabilityState.UNKNOWN)

    def snapshot(self) -> AvailabilitySnapshot:
        with self._lock:
            return self._snapshot

    @property
    def state(self) -> AvailabilityState:
        return self.snapshot().state

    def compare_and_set(
        self,
        generation: int,
        state: AvailabilityState,
        reason: UnavailableReason | None = None,
        last_error: str = "",
        searched_paths: tuple[str, ...] = (),
    ) -> bool:
        """Leave ``UNKNOWN`` for ``state``; fails if already decided or reset meanwhile."""
        if state is AvailabilityState.UNKNOWN:
            raise ValueError("compare_and_set cannot move back to UNKNOWN, use reset()")
        with self._lock:
            current = self._snapshot
            if current.state is not AvailabilityState.UNKNOWN or current.generation != generation:
                return False
            self._snapshot = AvailabilitySnapshot(state, reason, last_error, tuple(searched_paths), generation)
            return True

    def reset(self) -> None:
        with self._lock:
            self._snapshot = AvailabilitySnapshot(
                AvailabilityState.UNKNOWN, generation=self._snapshot.generation + 1
            )


ENGINE_AVAILABILITY = EngineAvailability()


def reset_availability() -> None:
    """Forget the cached probe result; the next native request probes again."""
    ENGINE_AVAILABILITY.reset()
