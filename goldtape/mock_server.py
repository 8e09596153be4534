"""Mock server collaborators for serving golden fixtures.

The controller never serves HTTP itself: it programs a mock server through
:class:`MockServerInterface`. Two implementations are provided:

- :class:`TransportMockServer`: an in-process httpx transport which answers
  requests for its base URI from registered bodies and forwards all other
  requests to a real transport. Can patch ``httpx.AsyncClient`` globally.
- :class:`RespxMockServer`: an adapter over a ``respx`` router.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import httpx
import respx

from .errors import MockConfigurationError
from .types import RequestMatcher

logger = logging.getLogger(__name__)

DEFAULT_MOCK_BASE_URI = "http://goldtape.mock"


class MockServerInterface(ABC):
    """Capability interface of a mock HTTP server used by the controller."""

    @abstractmethod
    def baseUri(self) -> str:
        """Get base URI the code under test should send requests to."""
        raise NotImplementedError

    @abstractmethod
    async def registerResponse(self, matcher: Optional[RequestMatcher], body: bytes) -> None:
        """Serve body for requests matching matcher.

        Args:
            matcher: Requests to answer, None to make it the default response
            body: Response body

        Raises:
            MockConfigurationError: If the registration is rejected
        """
        raise NotImplementedError


@dataclass
class MockResponse:
    """Canned response served by TransportMockServer."""

    statusCode: int
    headers: Dict[str, str]
    body: bytes


class MockServerTransport(httpx.AsyncBaseTransport):
    """httpx transport answering mock host requests from registered responses.

    Requests to other hosts are forwarded to the wrapped transport, so the
    same client can reach the real API while a fixture is being recorded.
    """

    def __init__(self, baseUrl: httpx.URL, wrapped: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the transport.

        Args:
            baseUrl: Base URL of the mock server
            wrapped: Transport for non-mock requests. If None, creates a default AsyncHTTPTransport.
        """
        self.baseUrl = baseUrl
        self.wrapped = wrapped or httpx.AsyncHTTPTransport()
        self.responses: List[Tuple[RequestMatcher, MockResponse]] = []
        self.defaultResponse: Optional[MockResponse] = None
        self.requests: List[httpx.Request] = []

    def isMockRequest(self, request: httpx.Request) -> bool:
        url = request.url
        return (
            url.scheme == self.baseUrl.scheme and url.host == self.baseUrl.host and url.port == self.baseUrl.port
        )

    def findResponse(self, method: str, path: str) -> Optional[MockResponse]:
        """Find the response for a request, latest registration wins."""
        for matcher, response in reversed(self.responses):
            if matcher.matches(method, path):
                return response
        return self.defaultResponse

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Serve mock host requests, forward everything else.

        Args:
            request: The httpx Request to process.

        Returns:
            Registered response, 404 if nothing matches, or the wrapped transport's response.
        """
        if not self.isMockRequest(request):
            logger.debug(f"Forwarding {request.method} {request.url} to real transport")
            return await self.wrapped.handle_async_request(request)

        self.requests.append(request)
        path = self._relativePath(request.url.path)
        mockResponse = self.findResponse(request.method, path)
        if mockResponse is None:
            logger.warning(f"No golden response registered for {request.method} {request.url}")
            return httpx.Response(
                status_code=404,
                content=f"No golden response registered for {request.method} {path}".encode(),
                request=request,
            )

        logger.debug(f"Serving golden response for {request.method} {request.url} ({len(mockResponse.body)} bytes)")
        return httpx.Response(
            status_code=mockResponse.statusCode,
            headers=mockResponse.headers,
            content=mockResponse.body,
            request=request,
        )

    async def aclose(self) -> None:
        await self.wrapped.aclose()

    def _relativePath(self, path: str) -> str:
        prefix = self.baseUrl.path.rstrip("/")
        if prefix and path.startswith(prefix):
            path = path[len(prefix) :]
        return path or "/"


class TransportMockServer(MockServerInterface):
    """In-process mock server built on an httpx transport.

    Clients created with :meth:`createClient`, or any ``httpx.AsyncClient``
    created while the server is entered as an async context manager, send
    requests for :meth:`baseUri` to the registered responses.

    Example:
        >>> async with TransportMockServer() as mockServer:
        ...     await mockServer.registerResponse(RequestMatcher("GET", "/users"), b"[]")
        ...     async with httpx.AsyncClient() as client:
        ...         response = await client.get(f"{mockServer.baseUri()}/users")
    """

    def __init__(
        self,
        baseUri: str = DEFAULT_MOCK_BASE_URI,
        statusCode: int = 200,
        headers: Optional[Dict[str, str]] = None,
        wrapped: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the mock server.

        Args:
            baseUri: Base URI the server answers on
            statusCode: Status code of served responses
            headers: Headers of served responses (defaults to JSON content type)
            wrapped: Transport for requests to other hosts
        """
        self._baseUri = baseUri.rstrip("/")
        self.statusCode = statusCode
        self.headers = headers if headers is not None else {"content-type": "application/json"}
        self.transport = MockServerTransport(httpx.URL(self._baseUri), wrapped=wrapped)
        self.originalClientClass: Optional[type] = None

    def baseUri(self) -> str:
        return self._baseUri

    async def registerResponse(self, matcher: Optional[RequestMatcher], body: bytes) -> None:
        if not isinstance(body, (bytes, bytearray)):
            raise MockConfigurationError(f"Response body must be bytes, got {type(body).__name__}")
        if matcher is not None and matcher.path is not None and not matcher.path.startswith("/"):
            raise MockConfigurationError(f"Matcher path must start with '/': {matcher.path}")

        response = MockResponse(statusCode=self.statusCode, headers=dict(self.headers), body=bytes(body))
        if matcher is None:
            self.transport.defaultResponse = response
        else:
            self.transport.responses.append((matcher, response))
        logger.debug(f"Registered golden response for {matcher or 'default'} ({len(body)} bytes)")

    @property
    def requests(self) -> List[httpx.Request]:
        """Requests served by the mock so far."""
        return self.transport.requests

    def createClient(self, **kwargs) -> httpx.AsyncClient:
        """Create an httpx client sending requests through the mock transport.

        Returns:
            An httpx.AsyncClient configured with the mock transport
        """
        kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def __aenter__(self) -> "TransportMockServer":
        """Enter the async context manager and patch httpx globally.

        Returns:
            The mock server instance
        """
        mockServer = self
        self.originalClientClass = httpx.AsyncClient

        class PatchedAsyncClient(httpx.AsyncClient):
            def __init__(self, *args, **kwargs):
                # Force our transport to be used
                kwargs["transport"] = mockServer.transport
                super().__init__(*args, **kwargs)

        httpx.AsyncClient = PatchedAsyncClient  # type: ignore[misc]
        logger.debug("TransportMockServer: Patched httpx.AsyncClient")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit the async context manager and restore httpx."""
        if self.originalClientClass is not None:
            httpx.AsyncClient = self.originalClientClass  # type: ignore[misc]
            self.originalClientClass = None
            logger.debug("TransportMockServer: Restored original httpx.AsyncClient")
        await self.transport.aclose()


class RespxMockServer(MockServerInterface):
    """Mock server adapter over a respx router.

    The router must be active (``respx.mock(...)`` entered) for requests to
    be intercepted; routes are added relative to ``baseUri``.

    Example:
        >>> with respx.mock(assert_all_called=False) as router:
        ...     mockServer = RespxMockServer(router)
    """

    def __init__(
        self,
        router: respx.MockRouter,
        baseUri: str = DEFAULT_MOCK_BASE_URI,
        statusCode: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.router = router
        self._baseUri = baseUri.rstrip("/")
        self.statusCode = statusCode
        self.headers = headers if headers is not None else {"content-type": "application/json"}

    def baseUri(self) -> str:
        return self._baseUri

    async def registerResponse(self, matcher: Optional[RequestMatcher], body: bytes) -> None:
        if not isinstance(body, (bytes, bytearray)):
            raise MockConfigurationError(f"Response body must be bytes, got {type(body).__name__}")

        baseUrl = httpx.URL(self._baseUri)
        lookups: Dict[str, str] = {"scheme": baseUrl.scheme, "host": baseUrl.host}
        if matcher is not None and matcher.method is not None:
            lookups["method"] = matcher.method.upper()
        if matcher is not None and matcher.path is not None:
            lookups["path"] = baseUrl.path.rstrip("/") + matcher.path

        try:
            route = self.router.route(**lookups)
            route.mock(return_value=httpx.Response(self.statusCode, headers=self.headers, content=bytes(body)))
        except (TypeError, ValueError) as e:
            raise MockConfigurationError(f"respx rejected route {lookups}: {e}") from e
        logger.debug(f"Registered respx route {lookups} ({len(body)} bytes)")
