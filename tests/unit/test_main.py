"""Tests for operator startup."""

from __future__ import annotations

from unittest.mock import patch

import kopf
import pytest

from pingsource_operator import main
from pingsource_operator.handlers import pingsource


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("PING_IMAGE", "ping:1")
    monkeypatch.setenv("MT_PING_IMAGE", "mtping:1")
    monkeypatch.setenv("METRICS_PORT", "9091")
    yield
    pingsource.install_handler(None)


class TestConfigure:
    """Test cases for the startup hook."""

    @patch("pingsource_operator.main.health")
    @patch("pingsource_operator.main.PingSourceHandler")
    @patch("pingsource_operator.main.load_kube_config")
    @patch("pingsource_operator.main.initialize_tracing")
    def test_configure(self, mock_tracing, mock_load, mock_handler_cls, mock_health, env):
        """Test startup wires the handler and starts serving health checks."""
        settings = kopf.OperatorSettings()

        main.configure(settings=settings)

        mock_load.assert_called_once()
        mock_tracing.assert_called_once()
        assert pingsource.installed_handler() is mock_handler_cls.from_config.return_value
        assert mock_handler_cls.from_config.call_args.args[0].adapter_image == "ping:1"
        mock_health.start_health_server.assert_called_once_with(9091)
        mock_health.set_ready.assert_called_once_with()
        assert isinstance(settings.persistence.progress_storage, kopf.AnnotationsProgressStorage)
        assert settings.execution.max_workers == 4

    @patch("pingsource_operator.main.health")
    @patch("pingsource_operator.main.load_kube_config")
    @patch("pingsource_operator.main.initialize_tracing")
    def test_configure_requires_images(self, mock_tracing, mock_load, mock_health, monkeypatch):
        """Test startup fails without adapter images."""
        monkeypatch.delenv("PING_IMAGE", raising=False)
        monkeypatch.delenv("MT_PING_IMAGE", raising=False)

        with pytest.raises(ValueError):
            main.configure(settings=kopf.OperatorSettings())

        mock_health.set_ready.assert_not_called()

    @patch("pingsource_operator.main.health")
    def test_shutdown(self, mock_health):
        """Test shutdown withdraws readiness."""
        main.shutdown()

        mock_health.set_ready.assert_called_once_with(False)
