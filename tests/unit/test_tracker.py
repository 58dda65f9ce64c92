"""Tests for the dependency tracker."""

from __future__ import annotations

import pytest

from pingsource_operator.tracker import ObjectKey, Reference, Tracker
from pingsource_operator.utils.errors import TrackingError

from .fakes import make_source

SHARED = Reference("apps/v1", "Deployment", "knative-eventing", "pingsource-mt-adapter")


class TestTracker:
    """Test cases for Tracker."""

    def test_track_and_lookup(self):
        """Test that dependents are returned for a tracked reference."""
        tracker = Tracker()
        tracker.track(SHARED, make_source(name="b"))
        tracker.track(SHARED, make_source(name="a"))

        assert tracker.dependents_of(SHARED) == [ObjectKey("ns", "a"), ObjectKey("ns", "b")]

    def test_track_is_idempotent(self):
        """Test that tracking twice yields one subscription."""
        tracker = Tracker()
        tracker.track(SHARED, make_source())
        tracker.track(SHARED, make_source())

        assert tracker.dependents_of(SHARED) == [ObjectKey("ns", "p1")]

    def test_unknown_reference(self):
        """Test an untracked reference has no dependents."""
        assert Tracker().dependents_of(SHARED) == []

    def test_untrack(self):
        """Test that a dependent can be forgotten."""
        tracker = Tracker()
        tracker.track(SHARED, make_source(name="a"))
        tracker.track(SHARED, make_source(name="b"))

        tracker.untrack("ns", "a")

        assert tracker.dependents_of(SHARED) == [ObjectKey("ns", "b")]

    def test_incomplete_reference(self):
        """Test that a reference without a name is rejected."""
        with pytest.raises(TrackingError, match="name"):
            Tracker().track(Reference("apps/v1", "Deployment", "ns", ""), make_source())

    def test_incomplete_dependent(self):
        """Test that a dependent without a namespace is rejected."""
        source = make_source()
        del source["metadata"]["namespace"]

        with pytest.raises(TrackingError):
            Tracker().track(SHARED, source)

    def test_reference_from_object(self):
        """Test building a reference from an object."""
        deployment = {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"namespace": "knative-eventing", "name": "pingsource-mt-adapter"},
        }
        assert Reference.from_object(deployment) == SHARED
