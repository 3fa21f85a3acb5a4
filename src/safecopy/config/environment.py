"""
Environment Configuration Module

Central access to safecopy's runtime settings. Values are resolved from:

- Environment variables
- `.env` files next to the project root (loaded with python-dotenv)
- Default values

Real environment variables always take precedence over `.env` files.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_BUFFER_SIZE = 1024 * 10

DEFAULT_ENV = {
    "ENV": "development",
    "LOG_LEVEL": None,
    "DEBUG": None,
    "SAFECOPY_BUFFER_SIZE": str(DEFAULT_BUFFER_SIZE),
}

_TRUTHY_OFF = ("0", "false", "no", "off", "")


def load_dotenv_files(project_root: Optional[Path] = None) -> None:
    """Load environment variables from .env files based on current environment."""
    from dotenv import load_dotenv

    if project_root is None:
        project_root = Path(__file__).parent.parent.parent.parent

    env_name = os.environ.get("ENV", "development")

    # Later files never override earlier ones or the real environment
    env_files = [
        project_root / ".env",
        project_root / f".env.{env_name}",
        project_root / f".env.{env_name}.local",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    Class-level accessors for safecopy configuration.

    Settings are loaded lazily on first access. Call `reset()` to force a
    reload, for example after changing environment variables in tests.
    """

    _loaded: bool = False

    @classmethod
    def load(cls) -> None:
        load_dotenv_files()
        cls._loaded = True

    @classmethod
    def reset(cls) -> None:
        cls._loaded = False

    @classmethod
    def get_environment(cls) -> Dict[str, Any]:
        if not cls._loaded:
            cls.load()
        env: Dict[str, Any] = DEFAULT_ENV.copy()
        env.update(os.environ)
        return env

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        value = cls.get_environment().get(key)
        if value is None:
            return default
        return value

    @classmethod
    def get_env(cls) -> str:
        return cls.get("ENV", "development")

    @classmethod
    def is_test(cls) -> bool:
        return cls.get_env() == "test"

    @classmethod
    def is_debug(cls) -> bool:
        debug = cls.get("DEBUG")
        return bool(debug) and str(debug).lower() not in _TRUTHY_OFF

    @classmethod
    def get_log_level(cls) -> str:
        """Return desired log level string.

        Priority:
        1) LOG_LEVEL
        2) If DEBUG is truthy, return "DEBUG"
        3) SAFECOPY_LOG_LEVEL (default "INFO")
        """
        level = os.getenv("LOG_LEVEL")
        if level:
            return str(level).upper()
        if cls.is_debug():
            return "DEBUG"
        return os.getenv("SAFECOPY_LOG_LEVEL", "INFO").upper()

    @classmethod
    def get_buffer_size(cls) -> int:
        """Return the transfer buffer size in bytes.

        Raises:
            ValueError: If SAFECOPY_BUFFER_SIZE is not a positive integer.
        """
        raw = cls.get("SAFECOPY_BUFFER_SIZE", str(DEFAULT_BUFFER_SIZE))
        try:
            size = int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"SAFECOPY_BUFFER_SIZE must be an integer, got {raw!r}") from None
        if size <= 0:
            raise ValueError(f"SAFECOPY_BUFFER_SIZE must be positive, got {size}")
        return size
