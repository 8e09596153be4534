"""Filesystem storage for golden fixtures.

This module implements the fixture store: a stateless I/O surface that maps
fixture identifiers to files under a fixtures root and reads, writes,
deletes and lists them. File content is the raw response body, without any
framing or metadata.
"""

import asyncio
import logging
import os
import stat
import uuid
from pathlib import Path, PurePosixPath
from typing import List, Union

import aiofiles
import aiofiles.os

from .errors import FixtureIOError, FixtureNotFoundError, InvalidIdentifierError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "json"
TEMP_SUFFIX = ".tmp"


class FixtureStore:
    """Reads and writes golden fixture files under a root directory.

    Each identifier maps to exactly one file, ``<root>/<identifier>.<extension>``.
    Identifiers may contain ``/`` to group fixtures into sub-directories.

    Writes are atomic: the body is written to a temporary file in the target
    directory and then moved over the fixture with ``os.replace``, so a
    concurrent reader sees either the old or the new content, never a
    partial file.
    """

    def __init__(self, root: Union[str, Path], extension: str = DEFAULT_EXTENSION):
        """Initialize the store.

        Args:
            root: Fixtures root directory (created on first write if missing)
            extension: File extension for fixtures, without leading dot. Empty for none.
        """
        self.root = Path(root)
        self.extension = extension.lstrip(".")

    def resolvePath(self, identifier: str) -> Path:
        """Get the fixture path for identifier. Does no I/O.

        Args:
            identifier: Fixture identifier

        Returns:
            Path of the fixture file

        Raises:
            InvalidIdentifierError: If identifier is empty, absolute or escapes the root
        """
        if not identifier or not identifier.strip():
            raise InvalidIdentifierError("Fixture identifier must not be empty", identifier)
        if "\\" in identifier or "\x00" in identifier:
            raise InvalidIdentifierError("Fixture identifier contains forbidden characters", identifier)

        relPath = PurePosixPath(identifier)
        if relPath.is_absolute():
            raise InvalidIdentifierError("Fixture identifier must be relative", identifier)
        parts = identifier.split("/")
        if any(part in ("", ".", "..") for part in parts):
            raise InvalidIdentifierError("Fixture identifier has empty or relative path segments", identifier)
        if parts[-1].startswith("."):
            # Hidden names are reserved for temporary files
            raise InvalidIdentifierError("Fixture name must not start with a dot", identifier)

        fileName = parts[-1]
        if self.extension:
            fileName = f"{fileName}.{self.extension}"
        return self.root.joinpath(*parts[:-1], fileName)

    async def exists(self, identifier: str) -> bool:
        """Check whether a fixture file exists.

        Returns:
            True if a regular file exists at the fixture path

        Raises:
            FixtureIOError: On filesystem errors other than absence
        """
        path = self.resolvePath(identifier)
        try:
            fileStat = await aiofiles.os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise FixtureIOError(f"Cannot check fixture {path}: {e}", identifier, "exists") from e
        return stat.S_ISREG(fileStat.st_mode)

    async def read(self, identifier: str) -> bytes:
        """Read fixture body.

        Returns:
            Fixture content, possibly empty

        Raises:
            FixtureNotFoundError: If the fixture does not exist
            FixtureIOError: If the fixture cannot be read
        """
        path = self.resolvePath(identifier)
        try:
            async with aiofiles.open(path, "rb") as f:
                body = await f.read()
        except FileNotFoundError as e:
            raise FixtureNotFoundError(f"Golden fixture not found: {path}", identifier) from e
        except OSError as e:
            raise FixtureIOError(f"Cannot read fixture {path}: {e}", identifier, "read") from e

        logger.debug(f"Read {len(body)} bytes from {path}")
        return body

    async def write(self, identifier: str, body: bytes) -> Path:
        """Atomically write fixture body, replacing any existing content.

        Args:
            identifier: Fixture identifier
            body: Raw response body

        Returns:
            Path of the written fixture

        Raises:
            FixtureIOError: If the fixture cannot be written
        """
        path = self.resolvePath(identifier)
        tmpPath = path.with_name(f".{path.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")

        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(tmpPath, "wb") as f:
                await f.write(body)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
            await aiofiles.os.replace(tmpPath, path)
        except OSError as e:
            await self._removeQuietly(tmpPath)
            raise FixtureIOError(f"Cannot write fixture {path}: {e}", identifier, "write") from e

        logger.info(f"Saved golden fixture {path} ({len(body)} bytes)")
        return path

    async def delete(self, identifier: str) -> bool:
        """Delete (invalidate) a fixture.

        Returns:
            True if a fixture was deleted, False if it did not exist

        Raises:
            FixtureIOError: If the fixture exists but cannot be deleted
        """
        path = self.resolvePath(identifier)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FixtureIOError(f"Cannot delete fixture {path}: {e}", identifier, "delete") from e

        logger.info(f"Deleted golden fixture {path}")
        return True

    def listIdentifiers(self) -> List[str]:
        """Recursively find all stored fixtures.

        Returns:
            Sorted identifiers of all fixtures under the root
        """
        if not self.root.exists():
            return []

        pattern = f"*.{self.extension}" if self.extension else "*"
        suffixLen = len(self.extension) + 1 if self.extension else 0
        identifiers = []
        try:
            for filePath in self.root.rglob(pattern):
                if filePath.name.startswith(".") or not filePath.is_file():
                    continue
                relPath = filePath.relative_to(self.root).as_posix()
                identifiers.append(relPath[:-suffixLen] if suffixLen else relPath)
        except OSError as e:
            raise FixtureIOError(f"Cannot list fixtures in {self.root}: {e}", None, "list") from e

        return sorted(identifiers)

    async def _removeQuietly(self, path: Path) -> None:
        """Remove a leftover temporary file, logging failures."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove temporary file {path}: {e}")
