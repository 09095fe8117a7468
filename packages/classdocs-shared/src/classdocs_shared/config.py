"""Configuration utilities."""
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import tomllib

from .schemas import ServerSettings

# Environment variable -> settings field
ENV_VARS = {
    "DOCS_DIR": "docs_dir",
    "DOCS_URL": "docs_url",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
}
# Milliseconds, converted to ServerSettings.fetch_timeout seconds
TIMEOUT_ENV_VAR = "DOCS_DOWNLOAD_TIMEOUT"


def load_config(config_file: Path) -> Dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_file: Path to config file

    Returns:
        Configuration dictionary
    """
    with open(config_file, "rb") as f:
        return tomllib.load(f)


def get_nested_config(config: Dict[str, Any], *keys: str) -> Any:
    """Get nested configuration value.

    Args:
        config: Configuration dictionary
        *keys: Keys to traverse

    Returns:
        Configuration value or None
    """
    current = config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def _from_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for var, field in ENV_VARS.items():
        if var in environ:
            values[field] = environ[var]

    raw_timeout = environ.get(TIMEOUT_ENV_VAR)
    if raw_timeout:
        try:
            values["fetch_timeout"] = int(raw_timeout) / 1000
        except ValueError as e:
            raise ValueError(
                f"{TIMEOUT_ENV_VAR} must be an integer number of milliseconds, "
                f"got {raw_timeout!r}"
            ) from e
    return values


def load_settings(
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ServerSettings:
    """Build server settings from defaults, a TOML file, env and overrides.

    Later sources win: the ``[server]`` table of ``config_file``, then
    environment variables, then keyword overrides whose value is not None.

    Args:
        config_file: Optional TOML file with a ``[server]`` table
        environ: Environment mapping (defaults to ``os.environ``)
        **overrides: Explicit values, e.g. from CLI flags

    Returns:
        Validated settings

    Raises:
        pydantic.ValidationError: If a value is invalid
    """
    values: Dict[str, Any] = {}

    if config_file is not None:
        table = get_nested_config(load_config(Path(config_file)), "server")
        if table:
            values.update(table)

    values.update(_from_environ(os.environ if environ is None else environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    return ServerSettings.model_validate(values)
