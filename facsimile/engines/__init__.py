from .availability import (
    ENGINE_AVAILABILITY,
    AvailabilitySnapshot,
    AvailabilityState,
    EngineAvailability,
    UnavailableReason,
    reset_availability,
)
from .base import FALLBACK, NATIVE, Engine
from .fallback import FallbackEngine
from .native import NativeEngine, NativeLibrary, candidate_paths, load_bundled_library, platform_supported

__all__ = [
    "ENGINE_AVAILABILITY",
    "AvailabilitySnapshot",
    "AvailabilityState",
    "EngineAvailability",
    "UnavailableReason",
    "reset_availability",
    "FALLBACK",
    "NATIVE",
    "Engine",
    "FallbackEngine",
    "NativeEngine",
    "NativeLibrary",
    "candidate_paths",
    "load_bundled_library",
    "platform_supported",
]
