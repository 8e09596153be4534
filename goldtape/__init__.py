"""goldtape: golden fixtures for tests calling external HTTP APIs.

When a golden fixture is missing (or an update is requested through
``GOLDTAPE_UPDATE_GOLDEN_FILES``), the test performs the real request and the
response body is saved as the fixture. Otherwise the real request is skipped
and a mock server serves the stored body.
"""

from .config import GoldenConfig, loadDotenv
from .controller import GoldenController
from .errors import (
    ConfigurationError,
    ExternalCallNotAllowedError,
    FixtureIOError,
    FixtureNotFoundError,
    GoldenError,
    InvalidIdentifierError,
    InvalidStateError,
    MockConfigurationError,
    RecordingNotCompletedError,
)
from .mock_server import MockServerInterface, RespxMockServer, TransportMockServer
from .store import FixtureStore
from .types import ControllerState, GoldenDecision, GoldenMode, RequestMatcher

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "GoldenConfig",
    "loadDotenv",
    # Core
    "FixtureStore",
    "GoldenController",
    # Mock servers
    "MockServerInterface",
    "TransportMockServer",
    "RespxMockServer",
    # Data models
    "ControllerState",
    "GoldenDecision",
    "GoldenMode",
    "RequestMatcher",
    # Errors
    "GoldenError",
    "FixtureNotFoundError",
    "FixtureIOError",
    "InvalidIdentifierError",
    "MockConfigurationError",
    "InvalidStateError",
    "RecordingNotCompletedError",
    "ExternalCallNotAllowedError",
    "ConfigurationError",
]
