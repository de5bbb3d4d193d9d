"""Configuration for win-artifact-viewer.

Defaults can be overridden via environment variables.
"""

import os


def _get_setting(env_var: str, default: str) -> str:
    """Get a setting from an environment variable or default.

    Args:
        env_var: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        The configured value
    """
    return os.environ.get(env_var) or default


# Zone used when -z/--timezone is not given
DEFAULT_TIMEZONE = _get_setting("WIN_ARTIFACT_VIEWER_TIMEZONE", "GMT")

# Level for diagnostics written to stderr
LOG_LEVEL = _get_setting("WIN_ARTIFACT_VIEWER_LOG_LEVEL", "WARNING")


def get_config() -> dict:
    """Get current configuration as dictionary."""
    return {
        "default_timezone": DEFAULT_TIMEZONE,
        "log_level": LOG_LEVEL,
    }
