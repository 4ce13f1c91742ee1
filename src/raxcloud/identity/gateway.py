"""Authenticating request gateway.

``AuthGateway`` is a ``RestClient`` middleware. Before each request leaves
the client it makes sure a valid identity session is cached, logging in again
when the token is within the skew window of its expiry, then stamps the
request with the token header and the tenant path prefix.

Concurrent requests finding a stale session trigger a single login; the
others wait for it and reuse the new session.
"""

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx
import structlog

from ..cache import AtomicExpiringCache, utc_now
from ..errors import CredentialError, NotAuthenticatedError, TokenExpirationParseError
from ..rest import DEFAULT_TIMEOUT, RestRequest
from .client import IdentityClient
from .credentials import Credential
from .types import Access, AuthResponse, CatalogEntry, Role

logger = structlog.get_logger(__name__)

AUTH_TOKEN_HEADER = "X-Auth-Token"

DEFAULT_SKEW = timedelta(minutes=5)

DEFAULT_EXPIRY_FORMATS: tuple[str, ...] = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S.%fZ",
)


def parse_expiry(
    value: str,
    formats: Sequence[str] = DEFAULT_EXPIRY_FORMATS,
) -> datetime:
    """Parse a token expiry timestamp.

    Formats are tried in order and the first match wins. Timestamps carrying
    no offset are taken to be UTC.

    Args:
        value: Expiry string as returned by the identity service.
        formats: ``strptime`` formats to try.

    Returns:
        Timezone-aware expiry time.

    Raises:
        TokenExpirationParseError: If no format matches.
    """
    for fmt in formats:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    raise TokenExpirationParseError(value)


@dataclass(frozen=True)
class Session:
    """Snapshot of one successful login.

    Replaced as a whole on every refresh, never modified in place.
    """

    token: str
    tenant_id: str
    tenant_name: str
    expires: datetime
    access: Access


@dataclass(frozen=True)
class GatewayStats:
    """Login counters reported by ``AuthGateway.stats``."""

    authentications: int
    failures: int
    last_duration: float | None
    expires: datetime | None


class AuthGateway:
    """Request middleware that keeps an identity session fresh.

    Can be used as a context manager to close the identity transport.
    """

    def __init__(
        self,
        credential: Credential,
        identity_url: str,
        skew: timedelta = DEFAULT_SKEW,
        expiry_formats: Sequence[str] = DEFAULT_EXPIRY_FORMATS,
        clock: Callable[[], datetime] = utc_now,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        debug: bool = False,
        identity_client: IdentityClient | None = None,
    ):
        """Initialize the gateway.

        No login happens here; the first intercepted request performs it.

        Args:
            credential: Credential used for every login.
            identity_url: Identity service base URL.
            skew: Margin before token expiry at which the gateway logs in
                again (default: 5 minutes).
            expiry_formats: Formats accepted for the token expiry.
            clock: Returns the current timezone-aware time.
            timeout: Identity request timeout in seconds.
            transport: Optional httpx transport for identity traffic.
            debug: Dump identity traffic at debug level.
            identity_client: Prebuilt identity client; overrides
                identity_url, timeout, transport and debug.
        """
        self._credential = credential
        self._expiry_formats = tuple(expiry_formats)
        self._identity = identity_client or IdentityClient(
            identity_url,
            credential,
            timeout=timeout,
            transport=transport,
            debug=debug,
        )
        self._cache: AtomicExpiringCache[Session] = AtomicExpiringCache(
            expires_at=lambda session: session.expires,
            skew=skew,
            clock=clock,
        )

        self._stats_lock = threading.Lock()
        self._authentications = 0
        self._failures = 0
        self._last_duration: float | None = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self._identity.close()

    @property
    def identity_url(self) -> str:
        return self._identity.identity_url

    @property
    def credential(self) -> Credential:
        return self._credential

    def set_credential(self, credential: Credential) -> None:
        """Replace the credential used for logging in.

        A login in progress completes first; if it succeeds the credential
        is no longer replaceable.

        Raises:
            CredentialError: If a login has already succeeded.
        """

        def replace() -> None:
            self._credential = credential
            self._identity.credential = credential

        if not self._cache.update_if_empty(replace):
            msg = "credential cannot be changed after authentication"
            raise CredentialError(msg)

    def set_debug(self, debug: bool) -> None:
        self._identity.set_debug(debug)

    def intercept(self, request: RestRequest) -> RestRequest:
        """Authenticate a request, logging in first if the session is stale.

        Args:
            request: Outgoing request; left unmodified.

        Returns:
            A copy carrying the token header, with the path prefixed by
            ``/<tenant_id>`` when the session has a tenant.

        Raises:
            httpx.HTTPError: If the identity exchange fails.
            UnexpectedStatusError: If the identity service rejects the login.
            ResponseParseError: If the identity response cannot be parsed.
        """
        session, duration = self._cache.fetch_or_reuse(self._login)
        if duration is not None:
            self._record_duration(duration)

        authenticated = request.with_header(AUTH_TOKEN_HEADER, session.token)
        if session.tenant_id:
            authenticated.path = f"/{session.tenant_id}{request.path}"
        return authenticated

    def authenticate(self) -> None:
        """Log in now, replacing any cached session.

        Raises:
            httpx.HTTPError: If the identity exchange fails.
            UnexpectedStatusError: If the identity service rejects the login.
            ResponseParseError: If the identity response cannot be parsed.
        """
        _, duration = self._cache.refresh(self._login)
        self._record_duration(duration)

    @property
    def is_authenticated(self) -> bool:
        return self._cache.peek() is not None

    def token(self) -> str:
        return self._session().token

    def tenant_id(self) -> str:
        return self._session().tenant_id

    def tenant_name(self) -> str:
        return self._session().tenant_name

    def expires(self) -> datetime:
        return self._session().expires

    def service_catalog(self) -> list[CatalogEntry]:
        """Return a copy of the service catalog from the current session."""
        return [
            entry.model_copy(deep=True)
            for entry in self._session().access.service_catalog
        ]

    def roles(self) -> list[Role]:
        return [role.model_copy(deep=True) for role in self._session().access.user.roles]

    def default_region(self) -> str:
        return self._session().access.user.default_region

    def access(self) -> Access:
        """Return a copy of the full identity response of the current session."""
        return self._session().access.model_copy(deep=True)

    def stats(self) -> GatewayStats:
        session = self._cache.peek()
        with self._stats_lock:
            return GatewayStats(
                authentications=self._authentications,
                failures=self._failures,
                last_duration=self._last_duration,
                expires=session.expires if session is not None else None,
            )

    def _session(self) -> Session:
        session = self._cache.peek()
        if session is None:
            raise NotAuthenticatedError
        return session

    def _login(self) -> Session:
        logger.info(
            "Refreshing identity session",
            identity_url=self.identity_url,
            username=self._credential.username,
        )
        try:
            response = self._identity.authenticate()
            session = self._build_session(response)
        except Exception as e:
            with self._stats_lock:
                self._failures += 1
            logger.warning(
                "Identity session refresh failed",
                identity_url=self.identity_url,
                error=str(e),
            )
            raise

        with self._stats_lock:
            self._authentications += 1

        logger.info(
            "Identity session refreshed",
            tenant_id=session.tenant_id,
            expires=session.expires.isoformat(),
        )
        return session

    def _record_duration(self, duration: float) -> None:
        with self._stats_lock:
            self._last_duration = duration

    def _build_session(self, response: AuthResponse) -> Session:
        access = response.access
        tenant = access.token.tenant
        return Session(
            token=access.token.id,
            tenant_id=tenant.id if tenant is not None else "",
            tenant_name=tenant.name if tenant is not None else "",
            expires=parse_expiry(access.token.expires, self._expiry_formats),
            access=access,
        )
