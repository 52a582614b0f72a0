"""Centralized configuration management for idphoto.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from idphoto.config import EnvVar, get_environment
    >>>
    >>> limit = get_environment(EnvVar.RATE_LIMIT_MAX)  # Returns int: 5
    >>> api_key = get_environment(EnvVar.GOOGLE_API_KEY)  # Returns str | None
    >>>
    >>> for var in list_environment_variables("quota"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    provider: API keys and model selection (Google Gemini, OpenAI)
    quota: Sliding-window limit and window length
    generation: Attempt budget per session
    storage: Persisted state location
    logging: Log level
"""

from .lib import (
    # Core types
    EnvConfig,
    EnvVar,
    # Main interface
    get_available_providers,
    get_environment,
    get_environment_info,
    get_state_path,
    get_window_ms,
    # Introspection
    list_environment_variables,
)

__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_state_path",
    "get_window_ms",
    "get_available_providers",
    # Introspection
    "list_environment_variables",
]
