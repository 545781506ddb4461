"""Tests for the native engine availability state."""

import threading

import pytest

from facsimile.engines.availability import (
    AvailabilitySnapshot,
    AvailabilityState,
    EngineAvailability,
    UnavailableReason,
)


class TestEngineAvailability:
    """Tests for EngineAvailability."""

    def test_starts_unknown(self, availability):
        """Test a fresh state is unknown at generation 0."""
        snapshot = availability.snapshot()
        assert snapshot.is_unknown
        assert snapshot.generation == 0
        assert snapshot.describe() == "unknown"

    def test_compare_and_set_once(self, availability):
        """Test only the first decision of a generation sticks."""
        assert availability.compare_and_set(0, AvailabilityState.AVAILABLE)
        assert not availability.compare_and_set(
            0, AvailabilityState.UNAVAILABLE, UnavailableReason.LOADED_BUT_ERROR
        )
        assert availability.state is AvailabilityState.AVAILABLE

    def test_stale_generation_rejected(self, availability):
        """Test a probe started before reset cannot overwrite the new generation."""
        availability.reset()
        assert not availability.compare_and_set(0, AvailabilityState.AVAILABLE)
        assert availability.snapshot().is_unknown
        assert availability.compare_and_set(1, AvailabilityState.AVAILABLE)

    def test_reset_returns_to_unknown(self, availability):
        """Test reset forgets the decision and bumps the generation."""
        availability.compare_and_set(
            0,
            AvailabilityState.UNAVAILABLE,
            UnavailableReason.BINDING_NOT_FOUND,
            searched_paths=("/a", "/b"),
        )
        availability.reset()
        snapshot = availability.snapshot()
        assert snapshot.is_unknown
        assert snapshot.generation == 1
        assert snapshot.searched_paths == ()

    def test_unknown_is_not_a_target(self, availability):
        """Test compare_and_set refuses to move back to unknown."""
        with pytest.raises(ValueError):
            availability.compare_and_set(0, AvailabilityState.UNKNOWN)

    def test_unavailable_details(self, availability):
        """Test reason, error and searched paths are kept."""
        availability.compare_and_set(
            0,
            AvailabilityState.UNAVAILABLE,
            UnavailableReason.LOADED_BUT_ERROR,
            last_error="dial tcp: timeout",
            searched_paths=["/opt/lib.so"],
        )
        snapshot = availability.snapshot()
        assert not snapshot.is_available
        assert snapshot.reason is UnavailableReason.LOADED_BUT_ERROR
        assert snapshot.searched_paths == ("/opt/lib.so",)
        assert snapshot.describe() == "loaded-but-error: dial tcp: timeout"

    def test_concurrent_decisions_converge(self, availability):
        """Test racing threads agree on a single outcome."""
        results = []
        barrier = threading.Barrier(8)

        def decide(index):
            barrier.wait()
            state = AvailabilityState.AVAILABLE if index % 2 else AvailabilityState.UNAVAILABLE
            results.append(availability.compare_and_set(0, state, None if index % 2 else UnavailableReason.LOADED_BUT_ERROR))

        threads = [threading.Thread(target=decide, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert results.count(True) == 1
        assert not availability.snapshot().is_unknown


class TestReasons:
    """Tests for the reason vocabulary."""

    def test_reason_values(self):
        """Test reasons render in their hyphenated form."""
        assert {r.value for r in UnavailableReason} == {
            "binding-not-found",
            "platform-not-supported",
            "architecture-mismatch",
            "loaded-but-empty-response",
            "loaded-but-error",
        }

    def test_snapshot_is_immutable(self):
        """Test snapshots cannot be modified."""
        snapshot = AvailabilitySnapshot(AvailabilityState.AVAILABLE)
        with pytest.raises(AttributeError):
            snapshot.state = AvailabilityState.UNKNOWN
