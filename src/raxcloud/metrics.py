"""Prometheus collector for identity gateway activity.

Reports login counts, the duration of the last login and the expiry of the
current token. Values are read from ``AuthGateway.stats`` at scrape time.
"""

from collections.abc import Iterator

import prometheus_client.core
import structlog
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .identity.gateway import AuthGateway

logger = structlog.get_logger(__name__)


class GatewayCollector(Collector):
    """Prometheus collector exposing the stats of one ``AuthGateway``."""

    def __init__(self, gateway: AuthGateway, name: str = "default"):
        """Initialize the collector.

        Args:
            gateway: Gateway whose stats are reported.
            name: Value of the ``gateway`` label, distinguishing gateways
                registered in the same registry.
        """
        self._gateway = gateway
        self._name = name

    def collect(self) -> Iterator[Metric]:
        """Collect gateway metrics for a Prometheus scrape.

        Yields:
            Prometheus Metric objects. Duration and expiry are -1 until the
            first successful login.
        """
        stats = self._gateway.stats()
        labels = [self._name]

        authentications = CounterMetricFamily(
            "raxcloud_identity_authentications",
            f"successful logins against {self._gateway.identity_url}",
            labels=["gateway"],
        )
        authentications.add_metric(labels, stats.authentications)
        yield authentications

        failures = CounterMetricFamily(
            "raxcloud_identity_authentication_failures",
            f"failed logins against {self._gateway.identity_url}",
            labels=["gateway"],
        )
        failures.add_metric(labels, stats.failures)
        yield failures

        duration = GaugeMetricFamily(
            "raxcloud_identity_authentication_duration",
            "duration of the last login in seconds, -1 before the first login",
            labels=["gateway"],
        )
        duration.add_metric(
            labels,
            stats.last_duration if stats.last_duration is not None else -1.0,
        )
        yield duration

        expiry = GaugeMetricFamily(
            "raxcloud_identity_token_expiry_timestamp",
            "unix time at which the current token expires, -1 before the first login",
            labels=["gateway"],
        )
        expiry.add_metric(
            labels,
            stats.expires.timestamp() if stats.expires is not None else -1.0,
        )
        yield expiry


def create_registry(
    gateway: AuthGateway,
    name: str = "default",
) -> prometheus_client.core.CollectorRegistry:
    """Create a Prometheus registry reporting on a gateway.

    Creates a custom registry (not the global one) so that several clients
    can be instrumented independently.

    Args:
        gateway: Gateway to report on.
        name: Gateway label value.

    Returns:
        Registry with a ``GatewayCollector`` registered.
    """
    registry = prometheus_client.core.CollectorRegistry()
    registry.register(GatewayCollector(gateway, name))
    logger.info("Registered collector", collector="identity_gateway", gateway=name)
    return registry
