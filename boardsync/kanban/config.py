"""
Board configuration loading.

Loads service configuration and board limits from YAML with environment
variable expansion. A ``.env`` file is honoured via python-dotenv.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


DEFAULT_STATUSES = ("Backlog", "In Progress", "Done")

# boardsync/kanban/config.py -> project root is ../../..
PROJECT_ROOT = Path(__file__).parent.parent.parent


@dataclass(frozen=True)
class BoardLimits:
    """
    Validation limits applied before any remote call.

    Attributes:
        status_name_max: Maximum status name length (minimum is always 1)
        max_custom_statuses: Custom statuses allowed besides the defaults
        wip_limit_max: Largest accepted WIP limit (smallest is 1)
        default_statuses: Built-in status names, not counted as custom
    """
    status_name_max: int = 30
    max_custom_statuses: int = 5
    wip_limit_max: int = 50
    default_statuses: tuple[str, ...] = field(default=DEFAULT_STATUSES)


def expand_env_vars(value: Any) -> Any:
    """
    Recursively expand ${VAR} environment variables in config values.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with env vars expanded
    """
    if isinstance(value, str):
        # Match ${VAR} or $VAR patterns
        pattern = r'\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, "")

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]

    return value


def default_config() -> dict:
    """Minimal config built from environment variables."""
    return {
        "default_service": os.environ.get("BOARDSYNC_SERVICE", "http"),
        "services": {
            "http": {
                "base_url": os.environ.get("BOARDSYNC_API_URL", "http://localhost:3001/api"),
                "token": os.environ.get("BOARDSYNC_API_TOKEN", ""),
                "timeout_s": 30,
            },
            "kanboard": {
                "url": os.environ.get("KANBOARD_URL", "http://localhost:188/jsonrpc.php"),
                "user": os.environ.get("KANBOARD_USER", "jsonrpc"),
                "token": os.environ.get("KANBOARD_TOKEN", ""),
            },
            "memory": {},
        },
        "limits": {},
        "logging": {"level": os.environ.get("BOARDSYNC_LOG_LEVEL", "INFO")},
    }


def load_board_config(config_path: str | Path | None = None) -> dict:
    """
    Load board configuration from YAML file.

    Looks for config in this order:
    1. Explicitly provided path
    2. config/board.yaml relative to project root
    3. Returns default config from environment

    Environment variables in the format ${VAR} are expanded after
    ``.env`` has been loaded.

    Args:
        config_path: Optional path to config file

    Returns:
        Dict with service configuration
    """
    load_dotenv()

    if config_path is None:
        config_path = PROJECT_ROOT / "config" / "board.yaml"

    config_path = Path(config_path)

    if not config_path.exists():
        return default_config()

    with open(config_path) as f:
        config = yaml.safe_load(f) or {}

    return expand_env_vars(config)


def get_service_config(service_name: str, config: dict | None = None) -> dict:
    """
    Get configuration for a specific service.

    Args:
        service_name: Name of the service (e.g., "http", "kanboard")
        config: Optional pre-loaded config dict

    Returns:
        Service-specific configuration dict

    Raises:
        ValueError: If service not found in config
    """
    if config is None:
        config = load_board_config()

    services = config.get("services", {})

    if service_name not in services:
        raise ValueError(f"Service '{service_name}' not found in config")

    return services[service_name] or {}


def load_limits(config: dict | None = None) -> BoardLimits:
    """
    Build BoardLimits from the ``limits`` section.

    Raises:
        ValueError: If a limit is not a positive integer
    """
    if config is None:
        config = load_board_config()

    section = config.get("limits") or {}
    defaults = BoardLimits()
    values = {}
    for key in ("status_name_max", "max_custom_statuses", "wip_limit_max"):
        raw = section.get(key, getattr(defaults, key))
        try:
            number = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"limits.{key} must be an integer, got {raw!r}")
        if number < 0 or (number == 0 and key != "max_custom_statuses"):
            raise ValueError(f"limits.{key} must be positive, got {number}")
        values[key] = number

    default_statuses = section.get("default_statuses", list(defaults.default_statuses))
    return BoardLimits(default_statuses=tuple(default_statuses), **values)
