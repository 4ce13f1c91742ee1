"""Exception hierarchy for the raxcloud client library.

Connection failures and timeouts are not wrapped: they surface as the
original ``httpx.HTTPError`` raised by the transport.
"""


class RaxCloudError(Exception):
    """Base error for all raxcloud errors."""


class CredentialError(RaxCloudError):
    """Raised when no usable credential is available.

    Covers a missing password and API key, both being supplied at once, and
    attempts to replace a credential after authentication has succeeded.
    """


class TransportError(RaxCloudError):
    """Base error for failed exchanges with a REST service."""


class UnexpectedStatusError(TransportError):
    """Raised when a response status is not one the request expected."""

    def __init__(self, status_code: int, body: str = ""):
        """Initialize the error.

        Args:
            status_code: HTTP status code returned by the service.
            body: Response body text, kept for diagnostics.
        """
        super().__init__(f"unexpected HTTP status code: {status_code}")
        self.status_code = status_code
        self.body = body


class ResponseParseError(RaxCloudError):
    """Raised when a response body cannot be decoded into the expected model."""


class TokenExpirationParseError(ResponseParseError):
    """Raised when a token expiry timestamp matches no known format."""

    def __init__(self, value: str):
        super().__init__(f"unable to parse token expiration time: {value}")
        self.value = value


class NotAuthenticatedError(RaxCloudError):
    """Raised when session data is requested before authentication succeeded."""

    def __init__(self, message: str = "not authenticated"):
        super().__init__(message)


class EndpointNotFoundError(RaxCloudError):
    """Raised when the service catalog has no endpoint for a type and region."""
