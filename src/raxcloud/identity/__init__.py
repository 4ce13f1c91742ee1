"""Identity service package.

Provides credentials, the identity service client and the authenticating
gateway that keeps a token session fresh for other REST clients.

Exports:
    AuthGateway: Request middleware injecting the token and tenant prefix.
    Credential: Username with a password or API key.
    IdentityClient: Client for the token endpoint.
    types: Module containing Pydantic models for identity responses.
    US_IDENTITY_URL, UK_IDENTITY_URL: Regional identity endpoints.
"""

from . import types
from .client import (
    UK_IDENTITY_URL,
    US_IDENTITY_URL,
    IdentityClient,
    identity_url_for_region,
)
from .credentials import Credential, CredentialKind
from .gateway import (
    DEFAULT_EXPIRY_FORMATS,
    DEFAULT_SKEW,
    AuthGateway,
    GatewayStats,
    Session,
    parse_expiry,
)

__all__ = [
    "DEFAULT_EXPIRY_FORMATS",
    "DEFAULT_SKEW",
    "UK_IDENTITY_URL",
    "US_IDENTITY_URL",
    "AuthGateway",
    "Credential",
    "CredentialKind",
    "GatewayStats",
    "IdentityClient",
    "Session",
    "identity_url_for_region",
    "parse_expiry",
    "types",
]
