"""Tests for the gateway Prometheus collector."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from raxcloud import errors, metrics
from raxcloud.identity.credentials import Credential
from raxcloud.identity.gateway import AuthGateway, GatewayStats

LABELS = {"gateway": "default"}


@pytest.fixture
def mock_gateway() -> MagicMock:
    gw = MagicMock(spec=AuthGateway)
    gw.identity_url = "https://identity.api.rackspacecloud.com/v2.0"
    return gw


def _sample(registry, name, labels=LABELS):
    return registry.get_sample_value(name, labels)


def test_metrics_before_first_login(mock_gateway):
    """Duration and expiry report -1 until a login succeeds."""
    mock_gateway.stats.return_value = GatewayStats(
        authentications=0, failures=0, last_duration=None, expires=None
    )
    registry = metrics.create_registry(mock_gateway)

    assert _sample(registry, "raxcloud_identity_authentications_total") == 0
    assert _sample(registry, "raxcloud_identity_authentication_failures_total") == 0
    assert _sample(registry, "raxcloud_identity_authentication_duration") == -1.0
    assert _sample(registry, "raxcloud_identity_token_expiry_timestamp") == -1.0


def test_metrics_reflect_stats(mock_gateway):
    """Collected values come from the gateway stats at scrape time."""
    expires = datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc)
    mock_gateway.stats.return_value = GatewayStats(
        authentications=3, failures=1, last_duration=0.42, expires=expires
    )
    registry = metrics.create_registry(mock_gateway)

    assert _sample(registry, "raxcloud_identity_authentications_total") == 3
    assert _sample(registry, "raxcloud_identity_authentication_failures_total") == 1
    assert _sample(registry, "raxcloud_identity_authentication_duration") == 0.42
    assert (
        _sample(registry, "raxcloud_identity_token_expiry_timestamp")
        == expires.timestamp()
    )


def test_gateway_label(mock_gateway):
    """The collector name becomes the gateway label."""
    mock_gateway.stats.return_value = GatewayStats(
        authentications=1, failures=0, last_duration=0.1, expires=None
    )
    registry = metrics.create_registry(mock_gateway, name="monitoring")

    assert (
        _sample(
            registry,
            "raxcloud_identity_authentications_total",
            {"gateway": "monitoring"},
        )
        == 1
    )


def test_registry_is_not_global(mock_gateway):
    """Each call builds an independent registry."""
    mock_gateway.stats.return_value = GatewayStats(0, 0, None, None)

    assert metrics.create_registry(mock_gateway) is not metrics.create_registry(
        mock_gateway
    )


def test_metrics_with_real_gateway(identity_server, clock):
    """A real gateway's login shows up on the next scrape."""
    gw = AuthGateway(
        Credential.password("alice", "pw"),
        "https://identity.api.rackspacecloud.com/v2.0",
        clock=clock,
        transport=identity_server.transport,
    )
    registry = metrics.create_registry(gw)
    assert _sample(registry, "raxcloud_identity_authentications_total") == 0

    gw.authenticate()
    identity_server.reply(500)
    with pytest.raises(errors.UnexpectedStatusError):
        gw.authenticate()

    assert _sample(registry, "raxcloud_identity_authentications_total") == 1
    assert _sample(registry, "raxcloud_identity_authentication_failures_total") == 1
    assert _sample(registry, "raxcloud_identity_authentication_duration") >= 0.0
    assert (
        _sample(registry, "raxcloud_identity_token_expiry_timestamp")
        == datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc).timestamp()
    )


def test_collect_yields_four_families(mock_gateway):
    """collect() yields the counter and gauge families in order."""
    mock_gateway.stats.return_value = GatewayStats(0, 0, None, None)

    names = [family.name for family in metrics.GatewayCollector(mock_gateway).collect()]

    assert names == [
        "raxcloud_identity_authentications",
        "raxcloud_identity_authentication_failures",
        "raxcloud_identity_authentication_duration",
        "raxcloud_identity_token_expiry_timestamp",
    ]