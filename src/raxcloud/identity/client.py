"""Identity service client.

Exchanges a credential for a token, tenant and service catalog through
``POST /tokens``. Caching and refresh live in the gateway; this client
performs exactly one login per ``authenticate()`` call.
"""

import httpx
import structlog

from ..rest import DEFAULT_TIMEOUT, RestClient, RestRequest
from .credentials import Credential
from .types import AuthResponse

logger = structlog.get_logger(__name__)

US_IDENTITY_URL = "https://identity.api.rackspacecloud.com/v2.0"
UK_IDENTITY_URL = "https://lon.identity.api.rackspacecloud.com/v2.0"


def identity_url_for_region(region: str | None) -> str:
    """Return the identity endpoint serving accounts homed in a region.

    Accounts in "LON" authenticate against the UK endpoint; every other
    region, including none, uses the US endpoint.
    """
    if region and region.upper() == "LON":
        return UK_IDENTITY_URL
    return US_IDENTITY_URL


class IdentityClient:
    """Client for the identity service token endpoint."""

    def __init__(
        self,
        identity_url: str,
        credential: Credential,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        debug: bool = False,
    ):
        """Initialize the identity client.

        Args:
            identity_url: Identity service base URL (e.g., US_IDENTITY_URL).
            credential: Credential presented on each login.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport replacing the network.
            debug: Dump identity traffic at debug level.
        """
        self.credential = credential
        self._rest = RestClient(
            base_url=identity_url,
            timeout=timeout,
            transport=transport,
            debug=debug,
        )

    @property
    def identity_url(self) -> str:
        return self._rest.base_url

    def set_debug(self, debug: bool) -> None:
        self._rest.set_debug(debug)

    def close(self) -> None:
        self._rest.close()

    def authenticate(self) -> AuthResponse:
        """Log in with the held credential.

        Returns:
            The validated identity response.

        Raises:
            httpx.HTTPError: If the HTTP exchange fails.
            UnexpectedStatusError: If the service does not answer 200.
            ResponseParseError: If the body is not a valid identity response.
        """
        logger.debug(
            "Authenticating",
            identity_url=self.identity_url,
            username=self.credential.username,
            kind=self.credential.kind.value,
        )
        response = self._rest.perform_request(
            RestRequest(
                method="POST",
                path="/tokens",
                body=self.credential.auth_body(),
                expected_status_codes=(httpx.codes.OK,),
            ),
        )
        return response.deserialize(AuthResponse)
