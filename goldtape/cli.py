"""Command line interface for managing golden fixtures.

Lists stored fixtures, prints their paths or content, and invalidates
(deletes) fixtures so they are recorded again on the next test run.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .config import GoldenConfig, loadDotenv
from .errors import GoldenError
from .logging_utils import initLogging
from .store import FixtureStore


def buildParser() -> argparse.ArgumentParser:
    """Create argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="goldtape",
        description="Manage golden fixtures recorded from external API responses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list
  %(prog)s --dir tests/golden show users_list
  %(prog)s invalidate users_list weather/London
        """,
    )
    parser.add_argument("--config", "-c", help="TOML file with a [goldtape] or [tool.goldtape] table")
    parser.add_argument("--dotenv", default=".env", help="Dotenv file to load before reading environment")
    parser.add_argument("--dir", "-d", help="Fixtures root directory (overrides configuration)")
    parser.add_argument("--extension", "-e", help="Fixture file extension (overrides configuration)")
    parser.add_argument("--log-level", "-l", default="WARNING", help="Log level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("list", help="List stored fixture identifiers")

    pathParser = subparsers.add_parser("path", help="Print fixture file path")
    pathParser.add_argument("identifier")

    showParser = subparsers.add_parser("show", help="Print fixture content")
    showParser.add_argument("identifier")

    invalidateParser = subparsers.add_parser("invalidate", help="Delete fixtures so they get recorded again")
    invalidateParser.add_argument("identifiers", nargs="+")

    return parser


def loadConfig(args: argparse.Namespace) -> GoldenConfig:
    """Build configuration from config file, environment and arguments."""
    loadDotenv(args.dotenv)
    if args.config:
        config = GoldenConfig.fromToml(args.config)
    else:
        config = GoldenConfig.fromEnv()

    overrides = {}
    if args.dir:
        overrides["fixturesDir"] = Path(args.dir)
    if args.extension is not None:
        overrides["extension"] = args.extension.lstrip(".")
    if overrides:
        config = config.model_copy(update=overrides)
    return config


async def runCommand(args: argparse.Namespace, store: FixtureStore) -> int:
    """Execute parsed command against the store.

    Returns:
        Process exit code
    """
    if args.command == "list":
        for identifier in store.listIdentifiers():
            print(identifier)
        return 0

    if args.command == "path":
        print(store.resolvePath(args.identifier))
        return 0

    if args.command == "show":
        body = await store.read(args.identifier)
        sys.stdout.buffer.write(body)
        sys.stdout.flush()
        return 0

    if args.command == "invalidate":
        exitCode = 0
        for identifier in args.identifiers:
            if await store.delete(identifier):
                print(f"✓ Invalidated {identifier}")
            else:
                print(f"⚠ No fixture for {identifier}", file=sys.stderr)
                exitCode = 1
        return exitCode

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = buildParser().parse_args(argv)

    try:
        config = loadConfig(args)
        loggingConfig = {"level": args.log_level, "console": True}
        loggingConfig.update(config.loggingConfig)
        initLogging(loggingConfig)

        store = FixtureStore(config.fixturesDir, extension=config.extension)
        return asyncio.run(runCommand(args, store))
    except GoldenError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
