"""Tests for mock server implementations.

Covers TransportMockServer request matching, forwarding of non-mock
requests, httpx patching, and the respx adapter.
"""

import httpx
import pytest
import respx

from .errors import MockConfigurationError
from .mock_server import RespxMockServer, TransportMockServer
from .types import RequestMatcher


def externalApi(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"source": "external", "path": request.url.path})


@pytest.fixture
def mockServer() -> TransportMockServer:
    return TransportMockServer(baseUri="http://mock.local/", wrapped=httpx.MockTransport(externalApi))


class TestRequestMatcher:
    """Test request matching rules."""

    def testMatchAll(self):
        assert RequestMatcher().matches("GET", "/anything")

    def testMethodCaseInsensitive(self):
        matcher = RequestMatcher(method="get")
        assert matcher.matches("GET", "/users")
        assert not matcher.matches("POST", "/users")

    def testPath(self):
        matcher = RequestMatcher(method="GET", path="/users")
        assert matcher.matches("GET", "/users")
        assert not matcher.matches("GET", "/users/1")


class TestTransportMockServer:
    """Test the transport based mock server."""

    def testBaseUri(self, mockServer: TransportMockServer):
        assert mockServer.baseUri() == "http://mock.local"

    @pytest.mark.asyncio
    async def testServesRegisteredBody(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(RequestMatcher("GET", "/users"), b'[{"id":1}]')

        async with mockServer.createClient() as client:
            response = await client.get(f"{mockServer.baseUri()}/users")

        assert response.status_code == 200
        assert response.content == b'[{"id":1}]'
        assert response.headers["content-type"] == "application/json"
        assert len(mockServer.requests) == 1

    @pytest.mark.asyncio
    async def testDefaultResponse(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(None, b"default")
        await mockServer.registerResponse(RequestMatcher(path="/special"), b"special")

        async with mockServer.createClient(base_url=mockServer.baseUri()) as client:
            assert (await client.get("/special")).content == b"special"
            assert (await client.post("/other", json={})).content == b"default"

    @pytest.mark.asyncio
    async def testLatestRegistrationWins(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(RequestMatcher("GET", "/users"), b"old")
        await mockServer.registerResponse(RequestMatcher("GET", "/users"), b"new")

        async with mockServer.createClient() as client:
            response = await client.get("http://mock.local/users")

        assert response.content == b"new"

    @pytest.mark.asyncio
    async def testUnmatchedRequest(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(RequestMatcher("GET", "/users"), b"[]")

        async with mockServer.createClient() as client:
            response = await client.post("http://mock.local/users")

        assert response.status_code == 404
        assert b"POST /users" in response.content

    @pytest.mark.asyncio
    async def testEmptyBody(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(None, b"")

        async with mockServer.createClient() as client:
            response = await client.get("http://mock.local/")

        assert response.status_code == 200
        assert response.content == b""

    @pytest.mark.asyncio
    async def testForwardsOtherHosts(self, mockServer: TransportMockServer):
        await mockServer.registerResponse(None, b"mock")

        async with mockServer.createClient() as client:
            response = await client.get("https://api.example.com/users")

        assert response.json() == {"source": "external", "path": "/users"}
        assert mockServer.requests == []

    @pytest.mark.asyncio
    async def testBaseUriWithPath(self):
        mockServer = TransportMockServer(baseUri="http://mock.local/api/v1")
        await mockServer.registerResponse(RequestMatcher("GET", "/users"), b"[]")

        async with mockServer.createClient() as client:
            response = await client.get("http://mock.local/api/v1/users")

        assert response.content == b"[]"

    @pytest.mark.asyncio
    async def testRejectsInvalidRegistration(self, mockServer: TransportMockServer):
        with pytest.raises(MockConfigurationError):
            await mockServer.registerResponse(None, "not bytes")  # type: ignore[arg-type]
        with pytest.raises(MockConfigurationError) as excInfo:
            await mockServer.registerResponse(RequestMatcher(path="users"), b"[]")
        assert excInfo.value.operation == "mock-register"

    @pytest.mark.asyncio
    async def testPatchesAsyncClient(self, mockServer: TransportMockServer):
        originalClient = httpx.AsyncClient
        await mockServer.registerResponse(None, b"patched")

        async with mockServer:
            assert httpx.AsyncClient is not originalClient
            async with httpx.AsyncClient() as client:
                response = await client.get("http://mock.local/whatever")
            assert response.content == b"patched"

        assert httpx.AsyncClient is originalClient


class TestRespxMockServer:
    """Test the respx adapter."""

    @pytest.mark.asyncio
    async def testServesRegisteredBody(self):
        with respx.mock(assert_all_called=False) as router:
            mockServer = RespxMockServer(router)
            await mockServer.registerResponse(RequestMatcher("GET", "/users"), b'[{"id":1}]')

            async with httpx.AsyncClient() as client:
                response = await client.get(f"{mockServer.baseUri()}/users")

        assert response.status_code == 200
        assert response.content == b'[{"id":1}]'

    @pytest.mark.asyncio
    async def testDefaultResponse(self):
        with respx.mock(assert_all_called=False) as router:
            mockServer = RespxMockServer(router, baseUri="http://mock.local")
            await mockServer.registerResponse(None, b"default")

            async with httpx.AsyncClient() as client:
                response = await client.post("http://mock.local/anything")

        assert response.content == b"default"

    @pytest.mark.asyncio
    async def testRejectsInvalidBody(self):
        with respx.mock(assert_all_called=False) as router:
            mockServer = RespxMockServer(router)
            with pytest.raises(MockConfigurationError):
                await mockServer.registerResponse(None, None)  # type: ignore[arg-type]
