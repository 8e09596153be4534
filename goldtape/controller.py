"""Golden controller: decides between recording and replaying fixtures.

This module implements the controller that drives the fixture lifecycle for
tests calling external APIs:

1. :meth:`GoldenController.decide` picks RECORD when the fixture is missing
   (or an update is requested) and REPLAY otherwise. On REPLAY the stored
   body is registered on the mock server and returned.
2. After a RECORD decision the test performs the real request itself and
   passes the response body to :meth:`GoldenController.completeRecording`,
   which persists it and registers it on the mock server.

The controller never issues network requests.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional

from .config import GoldenConfig
from .errors import (
    ExternalCallNotAllowedError,
    FixtureNotFoundError,
    GoldenError,
    InvalidStateError,
    MockConfigurationError,
    RecordingNotCompletedError,
)
from .mock_server import MockServerInterface
from .store import FixtureStore
from .types import ControllerState, GoldenDecision, GoldenMode, RequestMatcher

logger = logging.getLogger(__name__)


class GoldenController:
    """Coordinates fixture store and mock server for golden tests.

    One controller is meant to serve one test (or one test module); state is
    tracked per fixture identifier and is owned by the controller only.

    Example:
        >>> controller = GoldenController(GoldenConfig.fromEnv(), mockServer)
        >>> decision = await controller.decide("users_list")
        >>> baseUri = controller.endpoint(decision, "https://api.example.com")
        >>> body = await fetchUsers(baseUri)
        >>> if decision.isRecord:
        ...     await decision.complete(body)
    """

    def __init__(
        self,
        config: GoldenConfig,
        mockServer: MockServerInterface,
        store: Optional[FixtureStore] = None,
    ):
        """Initialize the controller.

        Args:
            config: Golden settings, read once and never re-read
            mockServer: Mock server to program with fixture bodies
            store: Fixture store. If None, created from config.
        """
        self.config = config.checkModes()
        self.mockServer = mockServer
        self.store = store or FixtureStore(config.fixturesDir, extension=config.extension)
        self._states: Dict[str, ControllerState] = {}
        self._bodies: Dict[str, bytes] = {}
        self._matchers: Dict[str, Optional[RequestMatcher]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def updateGoldenFiles(self) -> bool:
        return self.config.updateGoldenFiles

    def state(self, identifier: str) -> ControllerState:
        """Get current state of a fixture."""
        return self._states.get(identifier, ControllerState.UNINITIALIZED)

    def readyBody(self, identifier: str) -> Optional[bytes]:
        """Get the body being served for a READY fixture, None otherwise."""
        if self.state(identifier) != ControllerState.READY:
            return None
        return self._bodies.get(identifier)

    async def decide(self, identifier: str, matcher: Optional[RequestMatcher] = None) -> GoldenDecision:
        """Decide whether a fixture has to be recorded or can be replayed.

        Args:
            identifier: Fixture identifier
            matcher: Requests the fixture body should answer on the mock server,
                None to make it the default response

        Returns:
            RECORD decision awaiting :meth:`GoldenDecision.complete`, or
            REPLAY decision holding the stored body

        Raises:
            ExternalCallNotAllowedError: If recording is needed but external calls are disabled
            FixtureIOError: If the fixture store fails
            MockConfigurationError: If the mock server rejects the body
        """
        path = self.store.resolvePath(identifier)
        self._states[identifier] = ControllerState.UNINITIALIZED
        self._bodies.pop(identifier, None)
        self._matchers[identifier] = matcher

        if self.config.updateGoldenFiles:
            logger.info(f"Golden fixture {identifier}: update requested, recording")
            return self._startRecording(identifier, path, matcher)

        if not await self.store.exists(identifier):
            logger.info(f"Golden fixture {identifier}: not found at {path}, recording")
            return self._startRecording(identifier, path, matcher)

        try:
            body = await self.store.read(identifier)
        except FixtureNotFoundError:
            logger.warning(f"Golden fixture {identifier} disappeared before it was read, recording")
            return self._startRecording(identifier, path, matcher)

        await self._registerOnMock(identifier, matcher, body)
        self._markReady(identifier, body)
        logger.info(f"Golden fixture {identifier}: replaying {len(body)} bytes from {path}")
        return GoldenDecision(identifier=identifier, mode=GoldenMode.REPLAY, path=path, body=body, matcher=matcher)

    async def completeRecording(self, identifier: str, body: bytes) -> None:
        """Persist the body of a real response and serve it from the mock server.

        Args:
            identifier: Fixture identifier of a RECORD decision
            body: Raw response body

        Raises:
            InvalidStateError: If the fixture is not awaiting a recording
            TypeError: If body is not bytes-like
            FixtureIOError: If the fixture can't be written
            MockConfigurationError: If the mock server rejects the body
        """
        state = self.state(identifier)
        if state != ControllerState.AWAITING_RECORD:
            raise InvalidStateError(
                f"Cannot complete recording in state {state.value}",
                identifier,
                "complete",
            )

        if not isinstance(body, (bytes, bytearray, memoryview)):
            raise TypeError(f"Response body must be bytes, got {type(body).__name__}")
        body = bytes(body)
        await self.store.write(identifier, body)
        await self._registerOnMock(identifier, self._matchers.get(identifier), body)
        self._markReady(identifier, body)
        logger.info(f"Golden fixture {identifier}: recorded {len(body)} bytes")

    def endpoint(self, decision: GoldenDecision, externalBaseUri: str) -> str:
        """Get the base URI the caller's request code should use.

        Args:
            decision: Decision returned by :meth:`decide`
            externalBaseUri: Base URI of the real external API

        Returns:
            The external URI while a recording is pending, the mock server URI otherwise
        """
        if decision.isRecord and self.state(decision.identifier) == ControllerState.AWAITING_RECORD:
            return externalBaseUri
        return self.mockServer.baseUri()

    @asynccontextmanager
    async def session(self, identifier: str, matcher: Optional[RequestMatcher] = None) -> AsyncIterator[GoldenDecision]:
        """Run a Decide -> Complete window under a per-fixture lock.

        Concurrent sessions for the same identifier wait for each other,
        so two recordings never race to write the same fixture.

        Args:
            identifier: Fixture identifier
            matcher: See :meth:`decide`

        Yields:
            The decision for the fixture

        Raises:
            RecordingNotCompletedError: If a RECORD decision was not completed
        """
        lock = self._locks.setdefault(identifier, asyncio.Lock())
        async with lock:
            decision = await self.decide(identifier, matcher)
            try:
                yield decision
            except BaseException:
                if self.state(identifier) == ControllerState.AWAITING_RECORD:
                    self._states[identifier] = ControllerState.UNINITIALIZED
                raise

            if self.state(identifier) == ControllerState.AWAITING_RECORD:
                self._states[identifier] = ControllerState.UNINITIALIZED
                raise RecordingNotCompletedError(identifier)

    async def invalidate(self, identifier: str) -> bool:
        """Delete a fixture and forget its state.

        Returns:
            True if a fixture file was deleted
        """
        deleted = await self.store.delete(identifier)
        lock = self._locks.get(identifier)
        if lock is not None and not lock.locked():
            del self._locks[identifier]
        self._states.pop(identifier, None)
        self._bodies.pop(identifier, None)
        self._matchers.pop(identifier, None)
        return deleted

    def _startRecording(self, identifier: str, path: Path, matcher: Optional[RequestMatcher]) -> GoldenDecision:
        if not self.config.allowExternalApiCall:
            raise ExternalCallNotAllowedError(identifier)

        self._states[identifier] = ControllerState.AWAITING_RECORD
        return GoldenDecision(
            identifier=identifier,
            mode=GoldenMode.RECORD,
            path=path,
            matcher=matcher,
            _completer=self.completeRecording,
        )

    def _markReady(self, identifier: str, body: bytes) -> None:
        self._states[identifier] = ControllerState.READY
        self._bodies[identifier] = body

    async def _registerOnMock(self, identifier: str, matcher: Optional[RequestMatcher], body: bytes) -> None:
        try:
            await self.mockServer.registerResponse(matcher, body)
        except MockConfigurationError as e:
            if e.identifier is None:
                e.identifier = identifier
            raise
        except GoldenError:
            raise
        except Exception as e:
            raise MockConfigurationError(f"Mock server rejected response: {e}", identifier) from e
