"""
Golden fixture exceptions

This module contains exception classes raised by the fixture store and the
golden controller. Every error carries the fixture identifier and the
operation that failed, so a failing test points at the exact fixture.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class GoldenError(Exception):
    """Base exception class for all golden fixture errors.

    Attributes:
        message: Human-readable error message
        identifier: Fixture identifier the error relates to (if any)
        operation: Operation that failed (read, write, mock-register, ...)
    """

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.identifier = identifier
        self.operation = operation
        logger.debug(f"{type(self).__name__}: {message} (identifier: {identifier}, operation: {operation})")

    def __str__(self) -> str:
        context = []
        if self.identifier is not None:
            context.append(f"fixture: {self.identifier}")
        if self.operation is not None:
            context.append(f"operation: {self.operation}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class FixtureNotFoundError(GoldenError):
    """Raised when a fixture file does not exist.

    Recoverable: the controller turns it into a RECORD decision.
    """

    def __init__(self, message: str = "Golden fixture not found", identifier: Optional[str] = None) -> None:
        super().__init__(message, identifier, "read")


class FixtureIOError(GoldenError):
    """Raised when the filesystem fails while reading or writing a fixture.

    This is a setup failure and is never retried.
    """

    pass


class InvalidIdentifierError(GoldenError):
    """Raised when an identifier cannot be mapped to a path under the fixtures root."""

    def __init__(self, message: str, identifier: Optional[str] = None) -> None:
        super().__init__(message, identifier, "resolve")


class MockConfigurationError(GoldenError):
    """Raised when the mock server rejects a response registration."""

    def __init__(self, message: str, identifier: Optional[str] = None) -> None:
        super().__init__(message, identifier, "mock-register")


class InvalidStateError(GoldenError):
    """Raised when a controller operation is called in the wrong state.

    For example, completing a recording that was never decided as RECORD.
    """

    pass


class RecordingNotCompletedError(GoldenError):
    """Raised when a RECORD session ends without the response body being saved."""

    def __init__(self, identifier: Optional[str] = None) -> None:
        super().__init__(
            "Recording was not completed: call complete() with the response body",
            identifier,
            "complete",
        )


class ExternalCallNotAllowedError(GoldenError):
    """Raised when a fixture must be recorded but external API calls are disabled."""

    def __init__(self, identifier: Optional[str] = None) -> None:
        super().__init__(
            "Cannot record golden fixture without allowing external API calls",
            identifier,
            "decide",
        )


class ConfigurationError(GoldenError):
    """Raised when the golden configuration is invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, None, "config")
