"""
Pytest configuration and shared fixtures for goldtape end-to-end tests.

The golden plugin fixtures are overridden so every test gets its own
fixtures directory and a fake external API instead of the network.
"""

from pathlib import Path
from typing import AsyncGenerator

import httpx
import pytest

from goldtape import GoldenConfig, TransportMockServer
from tests.utils import FakeExternalApi


@pytest.fixture
def fixturesDir(tmp_path: Path) -> Path:
    return tmp_path / "golden"


@pytest.fixture
def goldenConfig(fixturesDir: Path) -> GoldenConfig:
    """Golden settings with an isolated fixtures directory."""
    return GoldenConfig(fixturesDir=fixturesDir)


@pytest.fixture
def externalApi() -> FakeExternalApi:
    return FakeExternalApi()


@pytest.fixture
async def goldenMockServer(externalApi: FakeExternalApi) -> AsyncGenerator[TransportMockServer, None]:
    """Mock server forwarding non-mock requests to the fake external API."""
    async with TransportMockServer(wrapped=httpx.MockTransport(externalApi)) as mockServer:
        yield mockServer
