"""
Configuration module for watchlog-rum.

Provides dataclass-based configuration with:
- YAML file loading
- Environment variable interpolation
- Type coercion
- Fixed defaults merged under caller overrides
"""

from watchlog_rum.config.base_config import (
    BaseConfig,
    RumConfig,
    resolve_config,
    DEFAULT_ENDPOINT,
    DEFAULT_SAMPLE_RATE,
    DEFAULT_BATCH_MAX,
    DEFAULT_FLUSH_INTERVAL,
    DEFAULT_MAX_QUEUE_BYTES,
    DEFAULT_SESSION_TTL,
)

__all__ = [
    "BaseConfig",
    "RumConfig",
    "resolve_config",
    "DEFAULT_ENDPOINT",
    "DEFAULT_SAMPLE_RATE",
    "DEFAULT_BATCH_MAX",
    "DEFAULT_FLUSH_INTERVAL",
    "DEFAULT_MAX_QUEUE_BYTES",
    "DEFAULT_SESSION_TTL",
]
