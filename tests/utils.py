"""
Test utilities for goldtape end-to-end tests.
"""

from typing import Dict, List

import httpx

EXTERNAL_API_URI = "https://api.example.com"


class FakeExternalApi:
    """Stand-in for a third-party API reachable at EXTERNAL_API_URI.

    Used as the handler of an httpx.MockTransport; records every call so
    tests can assert the real API was (not) contacted.
    """

    def __init__(self):
        self.responses: Dict[str, bytes] = {"/users": b'[{"id":1}]'}
        self.calls: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(f"{request.method} {request.url.path}")
        body = self.responses.get(request.url.path)
        if body is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(200, content=body, headers={"content-type": "application/json"})


class UsersApiClient:
    """Minimal third-party API client accepting its base URI."""

    def __init__(self, baseUri: str):
        self.baseUri = baseUri

    async def listUsersRaw(self) -> bytes:
        async with httpx.AsyncClient(base_url=self.baseUri) as client:
            response = await client.get("/users")
            response.raise_for_status()
            return response.content
