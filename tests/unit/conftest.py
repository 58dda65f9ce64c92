"""Shared fixtures for the unit tests."""

from __future__ import annotations

import kopf
import pytest

from pingsource_operator.config import ConfigStore, OperatorConfig
from pingsource_operator.handlers.pingsource import PingSourceHandler
from pingsource_operator.services.kube.lister import CachedLister
from pingsource_operator.tracker import Tracker
from pingsource_operator.utils.cache import invalidate_cache

from .fakes import FakeClusterClient, FakeResolver


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty lister cache."""
    invalidate_cache()
    yield
    invalidate_cache()


@pytest.fixture(autouse=True)
def no_events(monkeypatch):
    """Record events instead of posting them through kopf."""
    posted: list[tuple[str, str, str]] = []

    def fake_event(body, reason, message, type):  # noqa: A002
        posted.append((type, reason, message))

    monkeypatch.setattr(kopf, "event", fake_event)
    return posted


@pytest.fixture
def operator_config() -> OperatorConfig:
    return OperatorConfig(
        adapter_image="registry.example/ping:1",
        mt_adapter_image="registry.example/mtping:1",
    )


@pytest.fixture
def cluster() -> FakeClusterClient:
    return FakeClusterClient()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def handler(operator_config, cluster, resolver) -> PingSourceHandler:
    return PingSourceHandler(
        operator_config=operator_config,
        config_store=ConfigStore(operator_config.leader_election_config),
        cluster_client=cluster,
        lister=CachedLister(cluster),
        resolver=resolver,
        tracker=Tracker(),
    )
