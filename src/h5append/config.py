"""config.py - Configuration and constants for h5append"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 256
DEFAULT_COMPRESSION_LEVEL = 7
MAX_COMPRESSION_LEVEL = 9
DEFAULT_OUTPUT = "test.h5"
TRACKS_DATASET = "tracks"

ENV_BATCH_SIZE = "H5APPEND_BATCH_SIZE"
ENV_COMPRESSION_LEVEL = "H5APPEND_COMPRESSION_LEVEL"


def check_batch_size(batch_size: int) -> None:
    if batch_size < 1:
        raise ConfigurationError("batch_size", batch_size, "batch size must be > 0")


def check_max_length(max_length: int) -> None:
    if max_length < 1:
        raise ConfigurationError("max_length", max_length, "max length must be > 0")


def check_compression_level(level: int) -> None:
    if not 0 <= level <= MAX_COMPRESSION_LEVEL:
        raise ConfigurationError(
            "compression_level",
            level,
            f"gzip level must be in 0..{MAX_COMPRESSION_LEVEL}",
        )


@dataclass(frozen=True)
class WriterConfig:
    """Settings shared by the rank-1 and rank-2 writers.

    ``max_length`` only applies to the rank-2 writer and is None otherwise.
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    compression_level: int = DEFAULT_COMPRESSION_LEVEL
    max_length: Optional[int] = None

    def validate(self) -> "WriterConfig":
        check_batch_size(self.batch_size)
        check_compression_level(self.compression_level)
        if self.max_length is not None:
            check_max_length(self.max_length)
        return self

    def with_max_length(self, max_length: int) -> "WriterConfig":
        return replace(self, max_length=max_length)

    @classmethod
    def from_env(cls, environ=None) -> "WriterConfig":
        """Build a config from H5APPEND_* environment variables."""
        env = os.environ if environ is None else environ
        batch_size = _int_from_env(env, ENV_BATCH_SIZE, DEFAULT_BATCH_SIZE)
        level = _int_from_env(env, ENV_COMPRESSION_LEVEL, DEFAULT_COMPRESSION_LEVEL)
        return cls(batch_size=batch_size, compression_level=level).validate()


def _int_from_env(env, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(key, raw, "expected an integer") from e
