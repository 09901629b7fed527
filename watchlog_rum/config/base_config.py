"""
Configuration system for watchlog-rum.

Features:
- Dataclass-based configuration with type hints
- YAML file loading with environment variable interpolation
- Environment-only configuration for containerised hosts
- Defaults merged under caller overrides, resolved once at startup
"""

from __future__ import annotations

import logging
import os
import re
import typing
from dataclasses import dataclass, fields
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

if TYPE_CHECKING:
    from watchlog_rum.routing import RouteBinding

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseConfig")

DEFAULT_ENDPOINT = "https://api.watchlog.io/rum"
DEFAULT_SAMPLE_RATE = 0.1
DEFAULT_BATCH_MAX = 50
DEFAULT_FLUSH_INTERVAL = 5.0
DEFAULT_MAX_QUEUE_BYTES = 250 * 1024
DEFAULT_SESSION_TTL = 30 * 60.0
DEFAULT_INITIAL_VIEW_TIMEOUT = 0.8
ENV_PREFIX = "WATCHLOG_RUM_"


def _interpolate_env_vars(value: Any) -> Any:
    """
    Recursively interpolate environment variables in config values.

    Supports formats:
    - ${VAR_NAME} - Required, raises if not set
    - ${VAR_NAME:-default} - Optional with default
    - ${VAR_NAME:?error message} - Required with custom error
    """
    if isinstance(value, str):
        pattern = r"\$\{([A-Z_][A-Z0-9_]*)(?:(:-)([^}]*))?(?:(:\?)([^}]*))?\}"

        def replace_var(match: re.Match) -> str:
            var_name = match.group(1)
            has_default = match.group(2) is not None
            default_value = match.group(3) or ""
            has_error = match.group(4) is not None
            error_msg = match.group(5) or f"Required environment variable {var_name} is not set"

            env_value = os.environ.get(var_name)

            if env_value is not None:
                return env_value
            elif has_default:
                return default_value
            elif has_error:
                raise ValueError(error_msg)
            else:
                if match.group(0) == value:
                    raise ValueError(f"Environment variable {var_name} is not set")
                return match.group(0)

        return re.sub(pattern, replace_var, value)

    elif isinstance(value, dict):
        return {k: _interpolate_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_interpolate_env_vars(item) for item in value]

    return value


def _coerce_type(value: Any, target_type: Any) -> Any:
    """Coerce a value to the target type."""
    if value is None:
        return None

    origin = typing.get_origin(target_type)

    # Optional[X] -> X
    if origin is Union:
        non_none_types = [t for t in typing.get_args(target_type) if t is not type(None)]
        if len(non_none_types) == 1:
            return _coerce_type(value, non_none_types[0])
        return value

    if target_type is Path:
        return Path(value).expanduser() if value else None

    if origin is list:
        args = typing.get_args(target_type)
        item_type = args[0] if args else str
        if isinstance(value, (list, tuple)):
            return [_coerce_type(item, item_type) for item in value]
        return [_coerce_type(value, item_type)]

    # bool("false") is True
    if target_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes", "on")
        return bool(value)

    if target_type is int:
        return int(float(value)) if value != "" else 0
    if target_type is float:
        return float(value) if value != "" else 0.0
    if target_type is str:
        return str(value)

    # Callables and anything else pass through untouched
    return value


@dataclass
class BaseConfig:
    """
    Base configuration class with YAML loading and env var interpolation.
    """

    @classmethod
    def _field_types(cls) -> Dict[str, Any]:
        try:
            return typing.get_type_hints(cls)
        except Exception:
            return {f.name: f.type for f in fields(cls)}

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Create config from dictionary with env var interpolation."""
        interpolated = _interpolate_env_vars(data)
        field_types = cls._field_types()
        known = {f.name for f in fields(cls) if f.init}

        filtered = {}
        for key, value in interpolated.items():
            if key in known:
                filtered[key] = _coerce_type(value, field_types.get(key, Any))
            else:
                logger.debug(f"[Config] Ignoring unknown option: {key}")

        return cls(**filtered)

    @classmethod
    def from_yaml(cls: Type[T], path: Union[str, Path]) -> T:
        """Load config from YAML file with env var interpolation."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_env(cls: Type[T], prefix: str = ENV_PREFIX) -> T:
        """Create config entirely from environment variables."""
        data = {}

        for field_info in fields(cls):
            env_key = f"{prefix}{field_info.name}".upper()
            env_value = os.environ.get(env_key)

            if env_value is not None:
                data[field_info.name] = env_value

        return cls.from_dict(data) if data else cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to a shallow dictionary (callables kept as-is)."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, list):
                value = list(value)
            result[f.name] = value
        return result

    def merge(self: T, other: Dict[str, Any]) -> T:
        """Create new config with overrides merged in."""
        current = self.to_dict()
        current.update(other)
        return self.__class__.from_dict(current)


@dataclass
class RumConfig(BaseConfig):
    """
    Fully-resolved agent configuration.

    Read-only after startup except ``route_manifest`` and
    ``path_normalizer``, which the late-binding setters may replace.
    """

    # Collector endpoint and identity tags
    endpoint: str = DEFAULT_ENDPOINT
    api_key: Optional[str] = None
    app: Optional[str] = None
    environment: Optional[str] = None
    release: Optional[str] = None
    user_id: Optional[str] = None

    # Sampling
    sample_rate: float = DEFAULT_SAMPLE_RATE
    network_sample_rate: float = 1.0

    # Queue and flush
    batch_max: int = DEFAULT_BATCH_MAX
    flush_interval: float = DEFAULT_FLUSH_INTERVAL
    max_queue_bytes: int = DEFAULT_MAX_QUEUE_BYTES
    use_beacon: bool = True

    # Collectors
    capture_errors: bool = True
    capture_network: bool = False
    capture_long_tasks: bool = False
    long_task_threshold: float = 0.05
    ignore_self_requests: bool = True

    # Session
    session_ttl: float = DEFAULT_SESSION_TTL
    storage_path: Optional[Path] = None

    # Initial page view
    auto_track_initial_view: bool = True
    initial_view_timeout: float = DEFAULT_INITIAL_VIEW_TIMEOUT

    # Hooks and routing
    before_send: Optional[Callable[[Any], Any]] = None
    route_manifest: Optional[List[str]] = None
    path_normalizer: Optional[Callable[[str], str]] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.sample_rate <= 1.0:
            clamped = min(max(self.sample_rate, 0.0), 1.0)
            logger.warning(f"[Config] sample_rate {self.sample_rate} out of range, using {clamped}")
            self.sample_rate = clamped
        if not 0.0 <= self.network_sample_rate <= 1.0:
            self.network_sample_rate = min(max(self.network_sample_rate, 0.0), 1.0)
        if self.batch_max < 1:
            logger.warning(f"[Config] batch_max {self.batch_max} invalid, using {DEFAULT_BATCH_MAX}")
            self.batch_max = DEFAULT_BATCH_MAX
        if self.max_queue_bytes < 1:
            logger.warning(
                f"[Config] max_queue_bytes {self.max_queue_bytes} invalid, "
                f"using {DEFAULT_MAX_QUEUE_BYTES}"
            )
            self.max_queue_bytes = DEFAULT_MAX_QUEUE_BYTES
        if self.flush_interval <= 0:
            self.flush_interval = DEFAULT_FLUSH_INTERVAL
        if self.session_ttl <= 0:
            self.session_ttl = DEFAULT_SESSION_TTL

    def describe(self) -> Dict[str, Any]:
        """Loggable view of the config: secrets masked, callables named."""
        result = {}
        for key, value in self.to_dict().items():
            if key == "api_key":
                value = bool(value)
            elif callable(value):
                value = getattr(value, "__name__", type(value).__name__)
            result[key] = value
        return result


def resolve_config(
    config: Optional[Union[RumConfig, Dict[str, Any]]] = None,
    *,
    routes: Optional["RouteBinding"] = None,
    **overrides: Any,
) -> RumConfig:
    """
    Merge caller options over defaults.

    Route values cached by the late-binding setters before startup are
    consumed here when the caller does not supply their own.

    Args:
        config: A RumConfig or a plain mapping of options.
        routes: Late-binding route state to consume pending values from.
        **overrides: Individual options, applied last.

    Returns:
        A new RumConfig.
    """
    if isinstance(config, RumConfig):
        data = config.to_dict()
    else:
        data = dict(config or {})
    data.update(overrides)

    if routes is not None:
        if data.get("route_manifest") is None and routes.pending_manifest is not None:
            data["route_manifest"] = routes.pending_manifest
        if data.get("path_normalizer") is None and routes.pending_normalizer is not None:
            data["path_normalizer"] = routes.pending_normalizer

    return RumConfig.from_dict(data)
