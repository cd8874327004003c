"""Configuration loader and validator."""

from pathlib import Path
from typing import Any, Optional

import yaml

DEFAULTS = {
    "classified_per_group": 2,
    "draw_seed": 42,
    "database": ".pairbracket/pairbracket.sqlite",
    "log_level": "INFO",
    "log_file": None,
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigError(Exception):
    """Configuration validation error."""

    pass


def load_config(path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        Dictionary with configuration values

    Raises:
        ConfigError: If file not found or invalid YAML
    """
    config_file = Path(path)

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}") from e

    if config is None:
        raise ConfigError("Config file is empty")

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping")

    return config


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration values and fill in defaults.

    Args:
        config: Configuration dictionary

    Returns:
        Validated and normalized configuration

    Raises:
        ConfigError: If validation fails
    """
    validated = dict(DEFAULTS)

    # Qualifiers per group (optional, default 2)
    per_group = config.get("classified_per_group", DEFAULTS["classified_per_group"])
    if not isinstance(per_group, int) or isinstance(per_group, bool) or not 1 <= per_group <= 4:
        raise ConfigError(f"classified_per_group must be an integer between 1 and 4, got {per_group!r}")
    validated["classified_per_group"] = per_group

    # Seed of the draw for pairs tied on every criterion (optional, default 42)
    seed = config.get("draw_seed", DEFAULTS["draw_seed"])
    if not isinstance(seed, int) or isinstance(seed, bool):
        raise ConfigError("draw_seed must be an integer")
    validated["draw_seed"] = seed

    database = config.get("database", DEFAULTS["database"])
    if not isinstance(database, str) or not database.strip():
        raise ConfigError("database must be a non-empty path")
    validated["database"] = database

    level = str(config.get("log_level", DEFAULTS["log_level"])).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{level}'")
    validated["log_level"] = level

    log_file = config.get("log_file")
    if log_file is not None and not isinstance(log_file, str):
        raise ConfigError("log_file must be a path")
    validated["log_file"] = log_file

    unknown = sorted(set(config) - set(DEFAULTS))
    if unknown:
        raise ConfigError(f"Unknown config field(s): {', '.join(unknown)}")

    return validated


def load_and_validate_config(path: Optional[str] = None) -> dict[str, Any]:
    """Load and validate configuration in one step.

    Args:
        path: Path to YAML config file; None returns the defaults

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If loading or validation fails
    """
    if path is None:
        return dict(DEFAULTS)
    config = load_config(path)
    return validate_config(config)
