"""
Configuration for golden fixture recording.

Settings are read once, either from environment variables or from a TOML
file with environment overrides, and are immutable afterwards.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import tomli
from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError
from .store import DEFAULT_EXTENSION

logger = logging.getLogger(__name__)

ENV_DIR = "GOLDTAPE_DIR"
ENV_UPDATE_GOLDEN_FILES = "GOLDTAPE_UPDATE_GOLDEN_FILES"
ENV_ALLOW_EXTERNAL_API_CALL = "GOLDTAPE_ALLOW_EXTERNAL_API_CALL"
ENV_EXTENSION = "GOLDTAPE_EXTENSION"

DEFAULT_FIXTURES_DIR = "tests/golden"

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


def parseBool(value: Any, name: str) -> bool:
    """Parse boolean setting value.

    Args:
        value: bool or string (1/0, true/false, yes/no, on/off, case-insensitive)
        name: Setting name, used in error message

    Returns:
        Parsed boolean

    Raises:
        ConfigurationError: If value can't be parsed as boolean
    """
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got '{value}'")


def replaceMatchToEnv(match: re.Match[str]) -> str:
    """Replace ${VAR_NAME} placeholder with environment value, keeping it if unset."""
    key = match.group(1)
    return os.getenv(key, match.group(0))


def substituteEnvVars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} placeholders in configuration values.

    Args:
        value: The configuration value to process. Can be a string, dict, list, or other type.

    Returns:
        The processed value with environment variables substituted
    """
    if isinstance(value, str):
        return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_-]*)\}", replaceMatchToEnv, value)
    elif isinstance(value, dict):
        return {k: substituteEnvVars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substituteEnvVars(item) for item in value]
    return value


def loadDotenv(path: Union[str, Path] = ".env", override: bool = False) -> Dict[str, str]:
    """
    Simple dotenv file loader.
    Read file line by line and put key-value pairs into os.environ.

    Args:
        path: Path to .env file (default ".env"). Missing file is not an error.
        override: Whether to override variables already set in environment

    Returns:
        Dictionary of key-value pairs from .env file
    """
    ret: Dict[str, str] = {}
    dotenvPath = Path(path)
    if not dotenvPath.is_file():
        return ret

    with open(dotenvPath, "rt", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            ret[key.strip()] = value.strip().strip('"').strip("'")

    for k, v in ret.items():
        if override or k not in os.environ:
            os.environ[k] = v
    logger.debug(f"Loaded {len(ret)} variables from {dotenvPath}")
    return ret


class GoldenConfig(BaseModel):
    """Golden fixture settings.

    Attributes:
        fixturesDir: Root directory of golden fixtures
        updateGoldenFiles: Force RECORD for every fixture
        allowExternalApiCall: Whether fixtures may be recorded at all
        extension: Fixture file extension, without leading dot
        loggingConfig: Logging settings for the command line tool
    """

    model_config = ConfigDict(frozen=True)

    fixturesDir: Path = Path(DEFAULT_FIXTURES_DIR)
    updateGoldenFiles: bool = False
    allowExternalApiCall: bool = True
    extension: str = DEFAULT_EXTENSION
    loggingConfig: Dict[str, Any] = Field(default_factory=dict)

    def checkModes(self) -> "GoldenConfig":
        """Validate mode combination.

        Raises:
            ConfigurationError: If updating is requested while external calls are disallowed
        """
        if self.updateGoldenFiles and not self.allowExternalApiCall:
            raise ConfigurationError("Cannot update golden files without allowing external API calls")
        return self

    @classmethod
    def fromEnv(
        cls, environ: Optional[Mapping[str, str]] = None, base: Optional["GoldenConfig"] = None
    ) -> "GoldenConfig":
        """Read configuration from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            base: Configuration providing values for unset variables

        Returns:
            Validated configuration
        """
        if environ is None:
            environ = os.environ
        if base is None:
            base = cls()

        values: Dict[str, Any] = base.model_dump()
        if ENV_DIR in environ:
            values["fixturesDir"] = Path(environ[ENV_DIR])
        if ENV_UPDATE_GOLDEN_FILES in environ:
            values["updateGoldenFiles"] = parseBool(environ[ENV_UPDATE_GOLDEN_FILES], ENV_UPDATE_GOLDEN_FILES)
        if ENV_ALLOW_EXTERNAL_API_CALL in environ:
            values["allowExternalApiCall"] = parseBool(
                environ[ENV_ALLOW_EXTERNAL_API_CALL], ENV_ALLOW_EXTERNAL_API_CALL
            )
        if ENV_EXTENSION in environ:
            values["extension"] = environ[ENV_EXTENSION].lstrip(".")

        config = cls(**values).checkModes()
        logger.debug(
            f"Golden config: dir={config.fixturesDir}, update={config.updateGoldenFiles}, "
            f"allowExternal={config.allowExternalApiCall}"
        )
        return config

    @classmethod
    def fromToml(cls, path: Union[str, Path], environ: Optional[Mapping[str, str]] = None) -> "GoldenConfig":
        """Read configuration from TOML file, then apply environment overrides.

        Settings are taken from the ``[goldtape]`` table, or ``[tool.goldtape]``
        in a pyproject.toml. Relative ``dir`` is resolved against the file's directory.

        Args:
            path: Path to TOML file
            environ: Environment mapping for overrides (defaults to os.environ)

        Raises:
            ConfigurationError: If the file can't be read or has invalid values
        """
        configPath = Path(path)
        try:
            with open(configPath, "rb") as f:
                data = tomli.load(f)
        except (OSError, tomli.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration from {configPath}: {e}") from e

        section = data.get("goldtape")
        if section is None:
            tool = data.get("tool", {})
            section = tool.get("goldtape", {}) if isinstance(tool, dict) else tool
        if not isinstance(section, dict):
            raise ConfigurationError(f"Section goldtape in {configPath} must be a table")
        section = substituteEnvVars(section)
        logger.info(f"Loaded golden config from {configPath}")

        values: Dict[str, Any] = {}
        if "dir" in section:
            fixturesDir = Path(section["dir"])
            if not fixturesDir.is_absolute():
                fixturesDir = configPath.parent / fixturesDir
            values["fixturesDir"] = fixturesDir
        if "update" in section:
            values["updateGoldenFiles"] = parseBool(section["update"], "update")
        if "allow-external-api-call" in section:
            values["allowExternalApiCall"] = parseBool(section["allow-external-api-call"], "allow-external-api-call")
        if "extension" in section:
            values["extension"] = str(section["extension"]).lstrip(".")
        if "logging" in section:
            values["loggingConfig"] = dict(section["logging"])

        return cls.fromEnv(environ=environ, base=cls(**values))
