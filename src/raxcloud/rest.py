"""REST transport for raxcloud services.

Wraps httpx with a request middleware chain, expected-status checking and
JSON (de)serialization. Middlewares may rewrite each request before it goes
on the wire; the identity gateway attaches credentials this way.
"""

import json
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any, Protocol, TypeVar

import httpx
import pydantic
import structlog

from .errors import ResponseParseError, UnexpectedStatusError

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

JSON_MEDIA_TYPE = "application/json"

_REDACTED_HEADERS = frozenset({"x-auth-token"})

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


@dataclass
class RestRequest:
    """A single request against a REST service.

    ``path`` is relative to the base URL of the client performing it. A body
    of ``None`` sends no content; anything else is encoded as JSON (pydantic
    models through their aliases). ``expected_status_codes`` of ``None``
    accepts any response status.
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: dict[str, Any] = field(default_factory=dict)
    expected_status_codes: tuple[int, ...] | None = None

    def with_header(self, name: str, value: str) -> "RestRequest":
        """Return a copy of this request with one header set.

        Header names are case-insensitive: any existing header of the same
        name, in whatever case, is replaced.
        """
        headers = {
            key: existing
            for key, existing in self.headers.items()
            if key.lower() != name.lower()
        }
        headers[name] = value
        return replace(self, headers=headers)


class RequestMiddleware(Protocol):
    """Filter applied to every request a ``RestClient`` performs.

    Returning a request lets it continue down the chain; raising aborts the
    whole request before anything is sent.
    """

    def intercept(self, request: RestRequest) -> RestRequest: ...


class RestResponse:
    """Response to a ``RestRequest``."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def text(self) -> str:
        return self._response.text

    def json(self) -> Any:
        """Decode the response body as JSON.

        Returns:
            The decoded JSON document.

        Raises:
            ResponseParseError: If the content type is not JSON or the body
                does not parse.
        """
        content_type = self.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        if media_type != JSON_MEDIA_TYPE:
            msg = f"unsupported Content-Type: {content_type}"
            raise ResponseParseError(msg)

        try:
            return self._response.json()
        except ValueError as e:
            msg = f"response body is not valid JSON: {e}"
            raise ResponseParseError(msg) from e

    def deserialize(self, model: type[ModelT]) -> ModelT:
        """Decode the response body into a pydantic model.

        Args:
            model: Model class to validate the JSON document against.

        Returns:
            Validated model instance.

        Raises:
            ResponseParseError: If the body is not JSON or fails validation.
        """
        data = self.json()
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            msg = f"response body does not match {model.__name__}: {e}"
            raise ResponseParseError(msg) from e


def _encode_body(body: Any) -> bytes:
    if isinstance(body, pydantic.BaseModel):
        return body.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    return json.dumps(body).encode("utf-8")


def _redact(headers: httpx.Headers) -> dict[str, str]:
    return {
        key: "***" if key.lower() in _REDACTED_HEADERS else value
        for key, value in headers.items()
    }


class RestClient:
    """HTTP client for a REST service rooted at a single base URL.

    Every request passes through the configured middlewares in order before
    it is sent. If any middleware raises, the request fails and nothing goes
    on the wire.

    Thread-safe through thread-local storage of httpx.Client instances. An
    explicit ``transport`` is shared by all of them, which is how tests
    substitute ``httpx.MockTransport`` for the network.
    Can be used as a context manager for automatic cleanup.
    """

    def __init__(
        self,
        base_url: str,
        middlewares: Iterable[RequestMiddleware] = (),
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        debug: bool = False,
    ):
        """Initialize the REST client.

        Args:
            base_url: Base URL scoping every request path
                (e.g., "https://monitoring.api.rackspacecloud.com/v1.0").
            middlewares: Request filters applied in order.
            timeout: Request timeout in seconds (default: 30.0).
            transport: Optional httpx transport replacing the network.
            debug: Log full request and response dumps at debug level.

        Raises:
            ValueError: If base_url is empty or timeout is not positive.
        """
        if not base_url:
            msg = "base_url cannot be empty"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)

        self.base_url = base_url.rstrip("/")
        self.middlewares: list[RequestMiddleware] = list(middlewares)
        self.debug = debug
        self._timeout = timeout
        self._transport = transport

        # Use thread-local storage for httpx.Client (thread safety)
        self._local = threading.local()
        self._clients_lock = threading.Lock()
        self._clients: list[httpx.Client] = []

    @property
    def client(self) -> httpx.Client:
        """Get or create the thread-local httpx client.

        Returns:
            Thread-local httpx.Client instance.
        """
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            client = httpx.Client(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
            with self._clients_lock:
                self._clients = [c for c in self._clients if not c.is_closed]
                self._clients.append(client)
            self._local.client = client
        return self._local.client

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and cleanup resources."""
        self.close()

    def close(self):
        """Close the HTTP clients opened by every thread."""
        with self._clients_lock:
            clients, self._clients = self._clients, []
        for client in clients:
            if not client.is_closed:
                client.close()

    def add_middleware(self, middleware: RequestMiddleware) -> None:
        """Append a middleware to the end of the chain."""
        self.middlewares.append(middleware)

    def set_debug(self, debug: bool) -> None:
        """Enable or disable request and response dumps."""
        self.debug = debug

    def perform_request(self, request: RestRequest) -> RestResponse:
        """Send a request through the middleware chain to the service.

        Defaults the ``Accept`` header to JSON and encodes any body as JSON.

        Args:
            request: The request to perform.

        Returns:
            The service response.

        Raises:
            httpx.HTTPError: If the HTTP exchange itself fails.
            UnexpectedStatusError: If the status is not one the request
                expects.
            Exception: Whatever a middleware raises, unchanged.
        """
        for middleware in self.middlewares:
            request = middleware.intercept(request)

        headers = httpx.Headers(request.headers)
        if "accept" not in headers:
            headers["Accept"] = JSON_MEDIA_TYPE

        content = None
        if request.body is not None:
            content = _encode_body(request.body)
            headers["Content-Type"] = JSON_MEDIA_TYPE

        if self.debug:
            logger.debug(
                "Request dump",
                method=request.method,
                url=f"{self.base_url}{request.path}",
                headers=_redact(headers),
                body=content.decode("utf-8") if content else "",
            )

        start_time = time.time()
        try:
            logger.debug(
                "Making API request",
                method=request.method,
                path=request.path,
                params=request.params,
            )
            response = self.client.request(
                request.method,
                request.path,
                headers=headers,
                content=content,
                params=request.params or None,
            )
            duration = time.time() - start_time
            logger.debug(
                "API request completed",
                status_code=response.status_code,
                duration_seconds=round(duration, 3),
            )
        except httpx.HTTPError:
            duration = time.time() - start_time
            logger.exception(
                "API request failed",
                method=request.method,
                path=request.path,
                duration_seconds=round(duration, 3),
            )
            raise

        if self.debug:
            logger.debug(
                "Response dump",
                status_code=response.status_code,
                headers=dict(response.headers),
                body=response.text,
            )

        expected = request.expected_status_codes
        if expected is not None and response.status_code not in expected:
            raise UnexpectedStatusError(response.status_code, response.text)

        return RestResponse(response)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        expected_status_codes: tuple[int, ...] | None = None,
        params: dict[str, Any] | None = None,
    ) -> RestResponse:
        """Build a ``RestRequest`` and perform it."""
        return self.perform_request(
            RestRequest(
                method=method,
                path=path,
                body=body,
                params=params or {},
                expected_status_codes=expected_status_codes,
            ),
        )
