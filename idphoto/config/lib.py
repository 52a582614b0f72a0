"""Centralized environment configuration management for idphoto.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from idphoto.config import EnvVar, get_environment
    >>>
    >>> limit = get_environment(EnvVar.RATE_LIMIT_MAX)  # Returns int
    >>> api_key = get_environment(EnvVar.GOOGLE_API_KEY)  # Returns str | None
    >>>
    >>> # Override at runtime
    >>> limit = get_environment(EnvVar.RATE_LIMIT_MAX, override=10)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "IDPHOTO_MAX_ATTEMPTS").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by idphoto.

    Categories:
        - provider: Image model provider keys and selection
        - quota: Sliding-window quota settings
        - generation: Retry loop settings
        - storage: Persisted state location
        - logging: Log output
    """

    # -------------------------------------------------------------------------
    # Provider API Keys and Selection
    # -------------------------------------------------------------------------
    GOOGLE_API_KEY = EnvConfig(
        name="GOOGLE_API_KEY",
        default=None,
        var_type=str,
        description="Google API key for Gemini image models",
        category="provider",
    )
    OPENAI_API_KEY = EnvConfig(
        name="OPENAI_API_KEY",
        default=None,
        var_type=str,
        description="OpenAI API key for gpt-image models",
        category="provider",
    )
    PROVIDER = EnvConfig(
        name="IDPHOTO_PROVIDER",
        default="google",
        var_type=str,
        description="Image provider (google, openai)",
        category="provider",
    )
    IMAGE_MODEL = EnvConfig(
        name="IDPHOTO_IMAGE_MODEL",
        default=None,
        var_type=str,
        description="Override the image generation model name",
        category="provider",
    )
    VERIFY_MODEL = EnvConfig(
        name="IDPHOTO_VERIFY_MODEL",
        default=None,
        var_type=str,
        description="Override the face verification model name",
        category="provider",
    )

    # -------------------------------------------------------------------------
    # Quota
    # -------------------------------------------------------------------------
    RATE_LIMIT_MAX = EnvConfig(
        name="IDPHOTO_RATE_LIMIT_MAX",
        default=5,
        var_type=int,
        description="Generations admitted per rolling window",
        category="quota",
    )
    RATE_LIMIT_WINDOW_SECONDS = EnvConfig(
        name="IDPHOTO_RATE_LIMIT_WINDOW_SECONDS",
        default=600.0,
        var_type=float,
        description="Length of the rolling quota window in seconds",
        category="quota",
    )

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------
    MAX_ATTEMPTS = EnvConfig(
        name="IDPHOTO_MAX_ATTEMPTS",
        default=5,
        var_type=int,
        description="Model calls allowed per generation session",
        category="generation",
    )

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    STATE_PATH = EnvConfig(
        name="IDPHOTO_STATE_PATH",
        default=None,  # Computed from home directory
        var_type=Path,
        description="SQLite file holding persisted quota state",
        category="storage",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    LOG_LEVEL = EnvConfig(
        name="IDPHOTO_LOG_LEVEL",
        default="INFO",
        var_type=str,
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
        category="logging",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None:
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value).expanduser()

    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.

    Example:
        >>> get_environment(EnvVar.MAX_ATTEMPTS)
        5
        >>> get_environment(EnvVar.MAX_ATTEMPTS, override=3)
        3
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable."""
    return env_var.value


# =============================================================================
# Convenience Functions
# =============================================================================


def get_state_path(override: Path | str | None = None) -> Path:
    """Get the SQLite state file path.

    Resolution: override > IDPHOTO_STATE_PATH > ~/.idphoto/state.db
    """
    if override is not None:
        return Path(override)

    env_path = get_environment(EnvVar.STATE_PATH)
    if env_path:
        return env_path

    return Path.home() / ".idphoto" / "state.db"


def get_window_ms(override: float | None = None) -> int:
    """Get the quota window length in milliseconds."""
    seconds = get_environment(EnvVar.RATE_LIMIT_WINDOW_SECONDS, override=override)
    return int(seconds * 1000)


def get_available_providers() -> list[str]:
    """Get providers that have an API key configured.

    Returns:
        List of provider names (e.g., ["google", "openai"]).
    """
    providers = []
    if get_environment(EnvVar.GOOGLE_API_KEY):
        providers.append("google")
    if get_environment(EnvVar.OPENAI_API_KEY):
        providers.append("openai")
    return providers


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (provider, quota, generation, storage,
            logging). None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


__all__ = [
    "EnvConfig",
    "EnvVar",
    "get_environment",
    "get_environment_info",
    "get_state_path",
    "get_window_ms",
    "get_available_providers",
    "list_environment_variables",
]
