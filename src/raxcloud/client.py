"""Factories wiring configuration into authenticated REST clients."""

import os
from collections.abc import Callable
from datetime import datetime

import httpx
import structlog

from .cache import utc_now
from .config import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATH,
    ClientConfig,
    configure_logging,
    load_config,
)
from .identity.gateway import AuthGateway
from .rest import RestClient

logger = structlog.get_logger(__name__)


def create_gateway(
    config: ClientConfig,
    transport: httpx.BaseTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AuthGateway:
    """Construct an identity gateway from validated config.

    Args:
        config: Client configuration.
        transport: Optional httpx transport for identity traffic.
        clock: Optional time source (default: current UTC time).

    Returns:
        Gateway that has not logged in yet.

    Raises:
        CredentialError: If the config does not hold exactly one secret.
    """
    gateway = AuthGateway(
        credential=config.credential(),
        identity_url=config.resolved_identity_url(),
        skew=config.token_skew,
        clock=clock or utc_now,
        timeout=config.timeout,
        transport=transport,
        debug=config.debug,
    )
    logger.info(
        "Created identity gateway",
        identity_url=gateway.identity_url,
        username=config.username,
    )
    return gateway


def create_client(
    config: ClientConfig,
    service_url: str,
    transport: httpx.BaseTransport | None = None,
    gateway: AuthGateway | None = None,
) -> RestClient:
    """Construct a REST client authenticated through an identity gateway.

    Several clients may share one gateway, and with it one token session.

    Args:
        config: Client configuration.
        service_url: Base URL of the service, without the tenant segment.
        transport: Optional httpx transport, used for identity traffic too
            when no gateway is given.
        gateway: Existing gateway to install instead of building one.

    Returns:
        REST client with the gateway as its first middleware.
    """
    gateway = gateway or create_gateway(config, transport=transport)
    client = RestClient(
        base_url=service_url,
        middlewares=[gateway],
        timeout=config.timeout,
        transport=transport,
        debug=config.debug,
    )
    logger.info("Created service client", base_url=client.base_url)
    return client


def create_client_from_env(service_url: str) -> RestClient:
    """Create a service client using the config path from the environment."""
    resolved_path = os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    config = load_config(resolved_path)
    configure_logging(config.log_level, config.log_format)
    return create_client(config, service_url)
