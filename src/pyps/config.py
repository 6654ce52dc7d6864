"""Runtime settings for pyps."""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from pyps.errors import ConfigurationError

ENV_PREFIX = "PYPS_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseModel):
    """
    Where to find procfs and how much to buffer when reading it.

    Buffer sizes are initial chunk sizes; readers keep reading until EOF,
    except the symlink resolver which doubles up to ``readlink_max_size``.
    """

    model_config = ConfigDict(frozen=True)

    procfs_root: Path = Path("/proc")
    stat_buffer_size: int = 2048
    cmdline_buffer_size: int = 1024
    environ_buffer_size: int = 32 * 1024
    readlink_buffer_size: int = 1024
    readlink_max_size: int = 64 * 1024
    clock_ticks: int | None = None
    log_level: str = "WARNING"

    @field_validator(
        "stat_buffer_size",
        "cmdline_buffer_size",
        "environ_buffer_size",
        "readlink_buffer_size",
        "readlink_max_size",
    )
    @classmethod
    def validate_size(cls, v: int) -> int:
        """Buffer sizes must be positive."""
        if v <= 0:
            raise ValueError("buffer size must be positive")
        return v

    @field_validator("clock_ticks")
    @classmethod
    def validate_clock_ticks(cls, v: int | None) -> int | None:
        """A clock tick override must be positive."""
        if v is not None and v <= 0:
            raise ValueError("clock_ticks must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept any case, store upper case."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_readlink_bounds(self) -> "Settings":
        """The readlink growth bound cannot be below the initial size."""
        if self.readlink_max_size < self.readlink_buffer_size:
            raise ValueError("readlink_max_size must be >= readlink_buffer_size")
        return self


def load_settings(env: Mapping[str, str] | None = None, **overrides) -> Settings:
    """
    Build Settings from ``PYPS_*`` environment variables.

    Args:
        env: Mapping to read variables from. Defaults to ``os.environ``.
        **overrides: Field values that take precedence over the environment.

    Returns:
        A validated, frozen Settings instance.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    if env is None:
        env = os.environ

    values: dict[str, object] = {}
    for name in Settings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in env:
            values[name] = env[key]
    values.update(overrides)

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
