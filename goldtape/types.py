"""Core types for golden fixture recording and replay.

This module defines the mode and state enums used by the controller,
the request matcher handed to mock servers, and the decision object
returned to tests.
"""

from dataclasses import dataclass, field
from enum import Enum, StrEnum
from pathlib import Path
from typing import Awaitable, Callable, Optional

from .errors import InvalidStateError


class GoldenMode(StrEnum):
    """Where the response for a fixture comes from."""

    RECORD = "record"
    """Perform the real request and persist its body"""
    REPLAY = "replay"
    """Serve the previously persisted body"""


class ControllerState(Enum):
    """Per-fixture state tracked by the controller."""

    UNINITIALIZED = "uninitialized"
    AWAITING_RECORD = "awaiting-record"
    READY = "ready"


@dataclass(frozen=True)
class RequestMatcher:
    """Which requests a registered mock response answers.

    Attributes:
        method: HTTP method to match (case-insensitive), None matches any
        path: URL path to match exactly, None matches any
    """

    method: Optional[str] = None
    path: Optional[str] = None

    def matches(self, method: str, path: str) -> bool:
        """Check if a request with given method and path is matched."""
        if self.method is not None and self.method.upper() != method.upper():
            return False
        if self.path is not None and self.path != path:
            return False
        return True


@dataclass
class GoldenDecision:
    """Outcome of a controller decision for one fixture.

    In REPLAY mode ``body`` holds the stored bytes (already registered on
    the mock server). In RECORD mode ``body`` is None until the caller
    performs the real request and passes its body to :meth:`complete`.

    Attributes:
        identifier: Fixture identifier
        mode: RECORD or REPLAY
        path: Resolved fixture file path
        body: Response body bytes, if known
    """

    identifier: str
    mode: GoldenMode
    path: Path
    body: Optional[bytes] = None
    matcher: Optional[RequestMatcher] = None
    _completer: Optional[Callable[[str, bytes], Awaitable[None]]] = field(default=None, repr=False, compare=False)

    @property
    def isRecord(self) -> bool:
        return self.mode == GoldenMode.RECORD

    @property
    def isReplay(self) -> bool:
        return self.mode == GoldenMode.REPLAY

    async def complete(self, body: bytes) -> None:
        """Persist the real response body of a RECORD decision.

        Args:
            body: Raw response body bytes from the real request
        """
        if self._completer is None:
            raise InvalidStateError(
                f"Cannot complete a {self.mode.value} decision",
                self.identifier,
                "complete",
            )
        await self._completer(self.identifier, body)
        self.body = bytes(body)
