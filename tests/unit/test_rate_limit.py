"""Tests for rate limiting utilities."""

from __future__ import annotations

import time
from unittest.mock import patch

from pingsource_operator.utils.rate_limit import rate_limit_k8s


class TestRateLimitK8s:
    """Test cases for Kubernetes API rate limiting."""

    def test_passes_arguments_through(self):
        """Test that the wrapped call sees its arguments and returns its result."""
        @rate_limit_k8s
        def join(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert join("x", "y", c="z") == "x-y-z"
        assert join.__name__ == "join"

    @patch("pingsource_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 100.0)
    def test_enforces_minimum_interval(self):
        """Test that consecutive calls are spaced out."""
        call_times = []

        @rate_limit_k8s
        def record():
            call_times.append(time.time())

        for _ in range(3):
            record()

        # 100 calls/sec means at least 0.01s between calls
        assert call_times[1] - call_times[0] >= 0.009
        assert call_times[2] - call_times[1] >= 0.009
