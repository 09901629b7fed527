"""Tests for watchlog_rum.config: defaults, coercion, YAML and env loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from watchlog_rum.config.base_config import (
    DEFAULT_BATCH_MAX,
    DEFAULT_ENDPOINT,
    DEFAULT_MAX_QUEUE_BYTES,
    RumConfig,
    resolve_config,
)
from watchlog_rum.routing import RouteBinding


class TestDefaults:
    """Fixed defaults under caller overrides."""

    def test_defaults(self) -> None:
        config = resolve_config()
        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.sample_rate == 0.1
        assert config.batch_max == 50
        assert config.flush_interval == 5.0
        assert config.max_queue_bytes == 250 * 1024
        assert config.session_ttl == 1800.0
        assert config.auto_track_initial_view is True
        assert config.capture_errors is True
        assert config.capture_network is False

    def test_overrides_win(self) -> None:
        config = resolve_config({"sample_rate": 0.5}, batch_max=10)
        assert config.sample_rate == 0.5
        assert config.batch_max == 10

    def test_resolve_from_config_returns_copy(self) -> None:
        base = RumConfig(app="shop")
        resolved = resolve_config(base, environment="prod")
        assert resolved is not base
        assert resolved.app == "shop"
        assert resolved.environment == "prod"
        assert base.environment is None

    def test_unknown_keys_are_ignored(self) -> None:
        config = resolve_config({"captureFetch": True, "app": "shop"})
        assert config.app == "shop"


class TestValidation:
    """Out-of-range values are clamped."""

    @pytest.mark.parametrize("rate, expected", [(-1.0, 0.0), (2.5, 1.0), (0.3, 0.3)])
    def test_sample_rate_clamped(self, rate: float, expected: float) -> None:
        assert RumConfig(sample_rate=rate).sample_rate == expected

    def test_invalid_sizes_fall_back(self) -> None:
        config = RumConfig(batch_max=0, max_queue_bytes=-5)
        assert config.batch_max == DEFAULT_BATCH_MAX
        assert config.max_queue_bytes == DEFAULT_MAX_QUEUE_BYTES

    def test_describe_masks_api_key(self) -> None:
        def scrub(ev):
            return ev

        described = RumConfig(api_key="secret", before_send=scrub).describe()
        assert described["api_key"] is True
        assert described["before_send"] == "scrub"


class TestCoercion:
    """String values from files and env vars."""

    def test_string_values_are_coerced(self) -> None:
        config = RumConfig.from_dict(
            {
                "sample_rate": "0.25",
                "batch_max": "20",
                "use_beacon": "false",
                "storage_path": "~/rum-state.json",
                "route_manifest": ["/", "/users/:id"],
            }
        )
        assert config.sample_rate == 0.25
        assert config.batch_max == 20
        assert config.use_beacon is False
        assert config.storage_path == Path("~/rum-state.json").expanduser()
        assert config.route_manifest == ["/", "/users/:id"]

    def test_callables_pass_through(self) -> None:
        hook = lambda ev: ev  # noqa: E731
        assert RumConfig.from_dict({"before_send": hook}).before_send is hook


class TestYamlAndEnv:
    """File and environment loading."""

    def test_from_yaml_with_interpolation(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("RUM_KEY", "k-env")
        path = tmp_path / "rum.yaml"
        path.write_text(
            "endpoint: https://collector.test/rum\n"
            "api_key: ${RUM_KEY}\n"
            "environment: ${RUM_ENV:-staging}\n"
            "sample_rate: 1\n"
        )
        config = RumConfig.from_yaml(path)
        assert config.api_key == "k-env"
        assert config.environment == "staging"
        assert config.sample_rate == 1.0

    def test_from_yaml_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            RumConfig.from_yaml(tmp_path / "missing.yaml")

    def test_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("WATCHLOG_RUM_APP", "shop")
        monkeypatch.setenv("WATCHLOG_RUM_BATCH_MAX", "5")
        monkeypatch.setenv("WATCHLOG_RUM_CAPTURE_ERRORS", "0")
        config = RumConfig.from_env()
        assert config.app == "shop"
        assert config.batch_max == 5
        assert config.capture_errors is False

    def test_merge(self) -> None:
        merged = RumConfig(app="shop").merge({"release": "2.0"})
        assert merged.app == "shop"
        assert merged.release == "2.0"


class TestPendingRoutes:
    """Values set before startup are consumed at resolution."""

    def test_pending_values_are_used(self) -> None:
        routes = RouteBinding()
        normalizer = lambda p: "/x"  # noqa: E731
        routes.set_route_manifest(["/x"])
        routes.set_path_normalizer(normalizer)

        config = resolve_config(routes=routes)
        assert config.route_manifest == ["/x"]
        assert config.path_normalizer is normalizer

    def test_explicit_values_win_over_pending(self) -> None:
        routes = RouteBinding()
        routes.set_route_manifest(["/pending"])
        config = resolve_config({"route_manifest": ["/explicit"]}, routes=routes)
        assert config.route_manifest == ["/explicit"]
