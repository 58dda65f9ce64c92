"""Tests for base handler functionality."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from pingsource_operator.handlers.base import BaseHandler
from pingsource_operator.handlers.outcome import Outcome
from pingsource_operator.utils.errors import SinkNotFoundError

from .fakes import make_source


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="TestKind")
        assert handler.kind == "TestKind"
        assert handler.logger is not None

    def test_resource_context_defaults(self):
        """Test context extraction from sparse metadata."""
        handler = BaseHandler(kind="TestKind")

        assert handler._get_resource_context({}) == {"name": "unknown", "namespace": "default", "uid": "unknown"}

    @patch("pingsource_operator.handlers.base.log_resource_event")
    def test_log_error_includes_exception(self, mock_log):
        """Test that error logs carry the exception type and message."""
        handler = BaseHandler(kind="TestKind")

        handler.log_error({"name": "p1", "namespace": "ns"}, "failed", error=ValueError("bad"))

        kwargs = mock_log.call_args.kwargs
        assert kwargs["error"] == "bad"
        assert kwargs["error_type"] == "ValueError"
        assert kwargs["resource_name"] == "p1"

    @patch("pingsource_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_success(self, mock_metrics):
        """Test successful reconciliation with metrics."""
        handler = BaseHandler(kind="TestKind")
        reconcile_fn = Mock(return_value=Outcome.success())

        outcome = handler.reconcile_with_metrics({"name": "p1"}, reconcile_fn)

        assert outcome.ok
        reconcile_fn.assert_called_once()
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="started")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="success")
        assert mock_metrics.reconcile_duration_seconds.labels.called

    @patch("pingsource_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_outcome_label(self, mock_metrics):
        """Test that failed outcomes are counted by their result."""
        handler = BaseHandler(kind="TestKind")

        handler.reconcile_with_metrics({"name": "p1"}, lambda: Outcome.retryable("later"))

        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="retryable")

    @patch("pingsource_operator.handlers.base.metrics")
    def test_reconcile_with_metrics_failure(self, mock_metrics):
        """Test unexpected exceptions are counted and re-raised."""
        handler = BaseHandler(kind="TestKind")

        def failing_fn():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            handler.reconcile_with_metrics({"name": "p1"}, failing_fn)

        mock_metrics.error_total.labels.assert_called_with(kind="TestKind", error_type="ValueError")
        mock_metrics.reconcile_total.labels.assert_any_call(kind="TestKind", result="error")

    @patch("pingsource_operator.handlers.base.emit_reconcile_failed")
    @patch("pingsource_operator.handlers.base.metrics")
    def test_report_failure(self, mock_metrics, mock_emit_failed):
        """Test that a reconcile error is published with its reason."""
        handler = BaseHandler(kind="PingSource")
        body = make_source()
        error = SinkNotFoundError({"uri": ""})

        handler.report_failure(body, error)

        mock_emit_failed.assert_called_once_with(body, str(error), reason="SinkNotFound")
        mock_metrics.error_total.labels.assert_called_with(kind="PingSource", error_type="SinkNotFoundError")

    @patch("pingsource_operator.handlers.base.metrics")
    def test_record_resource_status(self, mock_metrics):
        """Test readiness is counted."""
        handler = BaseHandler(kind="TestKind")

        handler.record_resource_status(True)
        mock_metrics.resource_status_total.labels.assert_called_with(kind="TestKind", status="ready")

        handler.record_resource_status(False)
        mock_metrics.resource_status_total.labels.assert_called_with(kind="TestKind", status="not_ready")
