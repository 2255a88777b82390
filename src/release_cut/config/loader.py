"""Configuration loading.

Configuration is read from the first of these found while walking up from
the project directory:

1. ``release-cut.toml`` (whole file is the configuration)
2. ``.release-cut.toml``
3. ``pyproject.toml`` with a ``[tool.release-cut]`` table

No configuration file at all means defaults.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from release_cut.config.models import ReleaseCutConfig
from release_cut.exceptions import ConfigNotFoundError, ConfigValidationError
from release_cut.logging import get_logger

log = get_logger(__name__)

CONFIG_FILENAMES = ("release-cut.toml", ".release-cut.toml")
PYPROJECT_TABLE = "release-cut"


def load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigValidationError: If the file is not valid TOML
    """
    if not path.is_file():
        raise ConfigNotFoundError(f"Configuration file not found: {path}")
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML in {path}: {e}") from e


def extract_release_cut_config(pyproject: dict[str, Any]) -> dict[str, Any]:
    """Return the ``[tool.release-cut]`` table, or an empty dict."""
    return pyproject.get("tool", {}).get(PYPROJECT_TABLE, {})


def find_config_file(start: Path | None = None) -> Path | None:
    """Find the configuration file for the project containing ``start``.

    Returns:
        The dedicated config file or a ``pyproject.toml`` that has a
        ``[tool.release-cut]`` table; None when neither exists
    """
    current = (start or Path.cwd()).resolve()
    if current.is_file():
        current = current.parent

    for directory in (current, *current.parents):
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate
        pyproject = directory / "pyproject.toml"
        if pyproject.is_file() and extract_release_cut_config(load_toml(pyproject)):
            return pyproject
        if (directory / ".git").exists():
            break
    return None


def parse_config(data: dict[str, Any], source: Path | str = "<config>") -> ReleaseCutConfig:
    """Validate raw configuration data.

    Raises:
        ConfigValidationError: With one line per invalid field
    """
    try:
        return ReleaseCutConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigValidationError(f"Invalid configuration in {source}: {problems}") from e


def load_config(path: Path | None = None) -> ReleaseCutConfig:
    """Load configuration for the project at ``path``.

    Args:
        path: Project directory or explicit configuration file

    Returns:
        The validated configuration, defaults when no file is found
    """
    if path is not None and path.is_file():
        config_file: Path | None = path
    else:
        config_file = find_config_file(path)

    if config_file is None:
        log.debug("config_defaults", path=str(path or Path.cwd()))
        return ReleaseCutConfig()

    data = load_toml(config_file)
    if config_file.name == "pyproject.toml":
        data = extract_release_cut_config(data)

    log.debug("config_loaded", path=str(config_file))
    return parse_config(data, config_file)
