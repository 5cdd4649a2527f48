"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from routegraph._distribution import BitSize, Platform
from routegraph._download import TimeoutConfig


class ConfigError(Exception):
    """Error in routegraph configuration."""


@dataclass(slots=True, frozen=True)
class RouteGraphConfig:
    """Settings from the ``[tool.routegraph]`` table.

    Unset values are None so that command line options and built-in defaults
    can fill them in.
    """

    version: str | None = None
    download_url: str | None = None
    user_agent: str | None = None
    timeout_config: TimeoutConfig | None = None
    platform: Platform | None = None
    bit_size: BitSize | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find the closest pyproject.toml in ``start_dir`` or its parents.

    Args:
        start_dir: Starting directory. Defaults to the working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    current = (start_dir or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def _optional_str(section: dict[str, object], key: str) -> str | None:
    value = section.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        msg = f"Invalid [tool.routegraph].{key}: expected a non-empty string"
        raise ConfigError(msg)
    return value


def _parse_timeouts(section: dict[str, object]) -> TimeoutConfig | None:
    raw = {
        field: section[key]
        for key, field in (("connection-timeout", "connection_timeout"), ("read-timeout", "read_timeout"))
        if key in section
    }
    if not raw:
        return None
    try:
        return TimeoutConfig.model_validate(raw)
    except ValidationError as e:
        msg = f"Invalid [tool.routegraph] timeouts: {e}"
        raise ConfigError(msg) from e


def _parse_enum[E: (Platform, BitSize)](section: dict[str, object], key: str, enum: type[E]) -> E | None:
    value = _optional_str(section, key)
    if value is None:
        return None
    try:
        return enum(value.lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum)
        msg = f"Invalid [tool.routegraph].{key}: {value!r} (expected one of: {choices})"
        raise ConfigError(msg) from None


def load_config(pyproject_path: Path) -> RouteGraphConfig:
    """Load and validate ``[tool.routegraph]`` from a pyproject.toml.

    Raises:
        ConfigError: If the file is not valid TOML or a value is invalid.

    """
    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("routegraph", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.routegraph]: expected a table"
        raise ConfigError(msg)

    return RouteGraphConfig(
        version=_optional_str(section, "version"),
        download_url=_optional_str(section, "download-url"),
        user_agent=_optional_str(section, "user-agent"),
        timeout_config=_parse_timeouts(section),
        platform=_parse_enum(section, "platform", Platform),
        bit_size=_parse_enum(section, "bit-size", BitSize),
    )


def get_config(start_dir: Path | None = None) -> RouteGraphConfig:
    """Get config from the nearest pyproject.toml, or an empty config."""
    pyproject_path = find_pyproject_toml(start_dir)
    if pyproject_path is None:
        return RouteGraphConfig()
    return load_config(pyproject_path)
