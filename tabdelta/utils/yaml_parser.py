"""Configuration file parsing for tabdelta.

This module loads run configuration files (YAML, or JSON which PyYAML
reads as a YAML subset) and validates them into ExtractionConfig.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from tabdelta.exceptions import ValidationError
from tabdelta.models.settings import ExtractionConfig


def substitute_env_vars(data: Any) -> Any:
    """Recursively substitute environment variables in data structure.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.

    Args:
        data: Data structure (dict, list, str, etc.)

    Returns:
        Data with environment variables substituted

    Examples:
        >>> os.environ['DB_HOST'] = 'db01'
        >>> substitute_env_vars('${DB_HOST}')
        'db01'
        >>> substitute_env_vars('${MISSING:-fallback}')
        'fallback'
    """
    if isinstance(data, dict):
        return {k: substitute_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace_var(match: re.Match) -> str:
            var_name = match.group(1)
            has_default = match.group(2) is not None
            value = os.environ.get(var_name)

            if value is None:
                if not has_default:
                    raise ValidationError(
                        f"Environment variable '{var_name}' not found and no default provided"
                    )
                return match.group(2)

            return value

        return re.sub(pattern, replace_var, data)
    else:
        return data


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON file into a dictionary with environment substitution.

    Args:
        path: Path to the file

    Returns:
        Dictionary with file contents and environment variables substituted

    Raises:
        ValidationError: If file cannot be read or parsed, or required env vars are missing
    """
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid configuration syntax in {path}: {e}") from e
    except FileNotFoundError:
        raise ValidationError(f"File not found: {path}")
    except OSError as e:
        raise ValidationError(f"Failed to read {path}: {e}") from e

    if data is None:
        raise ValidationError(f"Empty configuration file: {path}")
    if not isinstance(data, dict):
        raise ValidationError(f"Configuration in {path} must be a mapping")

    return substitute_env_vars(data)


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Lower-case top-level keys so 'Server' and 'server' are equivalent."""
    return {str(key).lower(): value for key, value in data.items()}


def load_extraction_config(path: Path) -> ExtractionConfig:
    """Load and validate an extraction configuration file.

    Args:
        path: Path to the configuration file

    Returns:
        Validated ExtractionConfig

    Raises:
        ValidationError: If the configuration is missing, malformed or invalid
    """
    data = _normalize_keys(load_yaml(path))
    try:
        return ExtractionConfig(**data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid configuration in {path}: {e}") from e


def save_yaml(data: dict[str, Any], path: Path) -> None:
    """Save dictionary to a YAML file.

    Args:
        data: Dictionary to save
        path: Path to save to

    Raises:
        ValidationError: If save fails
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.safe_dump(
                data,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
    except OSError as e:
        raise ValidationError(f"Failed to save YAML to {path}: {e}") from e
