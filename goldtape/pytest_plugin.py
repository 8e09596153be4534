"""Pytest fixtures and helpers for golden fixture testing.

Enable in a conftest.py with::

    pytest_plugins = ["goldtape.pytest_plugin"]

Usage:
    @pytest.mark.golden("users_list")
    async def testUsers(goldenController, goldenDecision):
        baseUri = goldenController.endpoint(goldenDecision, "https://api.example.com")
        body = await fetchUsers(baseUri)
        if goldenDecision.isRecord:
            await goldenDecision.complete(body)
"""

import hashlib
from typing import AsyncGenerator

import pytest

from .config import GoldenConfig
from .controller import GoldenController
from .mock_server import TransportMockServer
from .store import FixtureStore
from .types import ControllerState, GoldenDecision

GOLDEN_MARKER = "golden"
MAX_NAME_LENGTH = 100
DIGEST_LENGTH = 8


def pytest_configure(config):
    config.addinivalue_line("markers", f"{GOLDEN_MARKER}(identifier): golden fixture identifier used by the test")


def sanitizeName(text: str) -> str:
    """Convert text to a safe fixture name."""
    safe = "".join(c if c.isalnum() or c in "_-" else "_" for c in text)
    # Remove multiple underscores
    while "__" in safe:
        safe = safe.replace("__", "_")
    return safe[:MAX_NAME_LENGTH].strip("_")


def sanitizeParams(params: str) -> str:
    """Convert parametrize ids to a safe name that stays unique.

    If sanitizing alters the ids, a short digest of the raw ids is appended,
    so ``a.b`` and ``a_b`` map to different names.
    """
    safe = sanitizeName(params)
    if safe == params:
        return safe
    digest = hashlib.sha1(params.encode("utf-8")).hexdigest()[:DIGEST_LENGTH]
    return f"{safe}-{digest}" if safe else digest


def fixtureIdFromNodeId(nodeId: str) -> str:
    """Derive a fixture identifier from a pytest node id.

    The test module path becomes a directory, class and test names are
    joined with ``-``: ``tests/api/test_users.py::TestUsers::test_list[a]``
    maps to ``tests/api/test_users/TestUsers-test_list-a``.

    Args:
        nodeId: pytest node id

    Returns:
        Fixture identifier
    """
    parts = nodeId.split("::")
    modulePath = parts[0]
    if modulePath.endswith(".py"):
        modulePath = modulePath[:-3]
    moduleDir = "/".join(filter(None, (sanitizeName(part) for part in modulePath.split("/"))))

    names = []
    for part in parts[1:]:
        if "[" in part and part.endswith("]"):
            name, params = part[:-1].split("[", 1)
            names.extend([sanitizeName(name), sanitizeParams(params)])
        else:
            names.append(sanitizeName(part))

    testName = "-".join(name for name in names if name)
    return f"{moduleDir}/{testName}" if testName else moduleDir


@pytest.fixture(scope="session")
def goldenConfig() -> GoldenConfig:
    """Golden settings, read from the environment once per test session."""
    return GoldenConfig.fromEnv()


@pytest.fixture
def goldenStore(goldenConfig: GoldenConfig) -> FixtureStore:
    """Fixture store rooted at the configured fixtures directory."""
    return FixtureStore(goldenConfig.fixturesDir, extension=goldenConfig.extension)


@pytest.fixture
async def goldenMockServer() -> AsyncGenerator[TransportMockServer, None]:
    """In-process mock server; httpx.AsyncClient is patched while the test runs."""
    async with TransportMockServer() as mockServer:
        yield mockServer


@pytest.fixture
def goldenController(goldenConfig, goldenMockServer, goldenStore) -> GoldenController:
    """Golden controller wired to the mock server and store fixtures."""
    return GoldenController(goldenConfig, goldenMockServer, store=goldenStore)


@pytest.fixture
def goldenFixtureId(request) -> str:
    """Fixture identifier from @pytest.mark.golden, or derived from the test node id."""
    marker = request.node.get_closest_marker(GOLDEN_MARKER)
    if marker is not None and marker.args:
        return marker.args[0]
    return fixtureIdFromNodeId(request.node.nodeid)


@pytest.fixture
async def goldenDecision(goldenController, goldenFixtureId) -> AsyncGenerator[GoldenDecision, None]:
    """Decision for the test's fixture.

    Fails the test at teardown if a RECORD decision was never completed.
    """
    decision = await goldenController.decide(goldenFixtureId)
    yield decision

    if goldenController.state(goldenFixtureId) == ControllerState.AWAITING_RECORD:
        pytest.fail(
            f"Golden fixture {goldenFixtureId} was not saved: call goldenDecision.complete() with the response body"
        )


def useGoldenFixture(identifier: str):
    """Decorator marking a test function to use a specific golden fixture.

    Args:
        identifier: Fixture identifier

    Usage:
        @useGoldenFixture("weather/London")
        async def testWeatherLondon(goldenDecision):
            pass
    """

    def decorator(func):
        marker = getattr(pytest.mark, GOLDEN_MARKER)(identifier)
        return marker(func)

    return decorator
