"""
Environment Configuration Management Module

This module provides centralized configuration for quicksub through the
Environment class. Values are resolved from, in order of precedence:

- Environment variables (including variables loaded from .env files)
- Settings file (settings.yaml in the per-OS config directory)
- Default values

The resource file location, AWS region/profile and log level are read here so
that the CLI, the provider client and the logging setup agree on them.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from quicksub.config.settings import get_value, load_settings

DEFAULT_ENV = {
    "AWS_REGION": None,
    "AWS_PROFILE": None,
    "QUICKSUB_CONFIG_PATH": None,
    "LOG_LEVEL": None,
    "DEBUG": None,
}


def load_dotenv_files():
    """Load environment variables from .env files in the working directory."""
    from dotenv import load_dotenv

    env_name = os.environ.get("ENV", "development")

    # Later files only fill in variables the earlier ones did not set
    env_files = [
        Path.cwd() / f".env.{env_name}.local",
        Path.cwd() / f".env.{env_name}",
        Path.cwd() / ".env",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    Manages environment variables and settings with defaults.

    All accessors are classmethods; settings are loaded lazily on first access
    and can be reset with ``Environment.reset()`` (used by tests).
    """

    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def load_settings(cls):
        load_dotenv_files()
        cls.settings = load_settings()

    @classmethod
    def reset(cls):
        cls.settings = None

    @classmethod
    def get(cls, key: str, default: Any = None):
        if cls.settings is None:
            cls.load_settings()
        assert cls.settings is not None
        return get_value(key, cls.settings, DEFAULT_ENV, default)

    @classmethod
    def get_aws_region(cls):
        """
        The AWS region used for the QuickSight control plane.

        None leaves region resolution to boto3 (AWS config file, profile).
        """
        return cls.get("AWS_REGION")

    @classmethod
    def get_aws_profile(cls):
        """
        The named AWS credentials profile, or None for the default chain.
        """
        return cls.get("AWS_PROFILE")

    @classmethod
    def get_config_path(cls) -> Optional[Path]:
        """
        Explicit path of the resource file, if one was configured.
        """
        path = cls.get("QUICKSUB_CONFIG_PATH")
        return Path(path).expanduser() if path else None

    @classmethod
    def get_log_level(cls):
        """Return desired log level string.

        Priority:
        1) Explicit LOG_LEVEL from env
        2) If DEBUG env is truthy, return "DEBUG"
        3) QUICKSUB_LOG_LEVEL env (default "INFO")
        """
        level = os.getenv("LOG_LEVEL")
        if level:
            return str(level).upper()
        debug_env = os.getenv("DEBUG")
        if debug_env and debug_env.lower() not in ("0", "false", "no", "off", ""):
            return "DEBUG"
        return os.getenv("QUICKSUB_LOG_LEVEL", "INFO").upper()
