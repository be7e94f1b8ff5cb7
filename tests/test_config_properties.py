"""
Property-based tests for configuration module.

Uses Hypothesis to verify range validation and that configuration files
written by the CLI load back into an equal SystemConfig.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from whois_batch.cli import create_default_config, load_config_from_file, save_config_to_file
from whois_batch.config import (
    CacheConfig,
    HistoryConfig,
    LoggingConfig,
    LookupConfig,
    PersistenceConfig,
    RateLimitConfig,
    SystemConfig,
)
from whois_batch.enums import ChannelId, SourceMode
from whois_batch.exceptions import ConfigError


interval_strategy = st.floats(min_value=0.0, max_value=10.0, allow_nan=False)


@st.composite
def system_config_strategy(draw) -> SystemConfig:
    """Generate valid SystemConfig objects."""
    channels = draw(st.lists(st.sampled_from([c.value for c in ChannelId]), unique=True, max_size=6))
    return SystemConfig(
        rate_limits=RateLimitConfig(
            default_interval_seconds=draw(interval_strategy),
            per_channel={channel: draw(interval_strategy) for channel in channels},
        ),
        lookup=LookupConfig(
            rdap_timeout=draw(st.floats(min_value=0.1, max_value=30.0)),
            whois_timeout=draw(st.floats(min_value=0.1, max_value=30.0)),
        ),
        cache=CacheConfig(ttl_seconds=draw(st.floats(min_value=1.0, max_value=10**6))),
        history=HistoryConfig(max_entries=draw(st.integers(min_value=1, max_value=1000))),
        persistence=PersistenceConfig(
            state_dir=Path("/tmp") / draw(st.text(alphabet="abcdefghij_", min_size=1, max_size=12)),
            hmac_secret=draw(st.text(min_size=1, max_size=40)),
        ),
        logging=LoggingConfig(
            level=draw(st.sampled_from(["debug", "info", "warn", "error"])),
            output_format=draw(st.sampled_from(["json", "text", "both"])),
        ),
        workers=draw(st.integers(min_value=1, max_value=64)),
        source_mode=draw(st.sampled_from(list(SourceMode))),
        simulation_mode=draw(st.booleans()),
    )


class TestDefaults:
    """Default values."""

    def test_defaults_validate(self) -> None:
        config = SystemConfig()
        config.validate()

        assert config.workers == 6
        assert config.source_mode is SourceMode.AUTO
        assert config.cache.ttl_seconds == 24 * 60 * 60
        assert config.history.max_entries == 200

    def test_registrar_channels_are_slower(self) -> None:
        limits = RateLimitConfig()

        assert limits.interval_for(ChannelId.WHOIS_VERISIGN.value) == 0.7
        assert limits.interval_for(ChannelId.RDAP_ORG.value) == 0.3
        assert limits.interval_for("anything-else") == 0.3

    def test_create_default_config(self) -> None:
        config = create_default_config(simulation_mode=True, state_dir=Path("/tmp/wb"), hmac_secret="s")

        assert config.simulation_mode
        assert config.persistence.state_dir == Path("/tmp/wb")
        assert config.persistence.hmac_secret == "s"


class TestValidation:
    """Out-of-range values raise ConfigError."""

    @given(workers=st.integers(max_value=0))
    @settings(max_examples=25)
    def test_workers_below_one(self, workers: int) -> None:
        with pytest.raises(ConfigError) as exc_info:
            SystemConfig(workers=workers).validate()
        assert exc_info.value.code == "invalid_workers"

    @pytest.mark.parametrize("config,code", [
        (SystemConfig(rate_limits=RateLimitConfig(default_interval_seconds=-1.0)), "invalid_interval"),
        (SystemConfig(rate_limits=RateLimitConfig(per_channel={"rdap_org": -0.1})), "invalid_interval"),
        (SystemConfig(cache=CacheConfig(ttl_seconds=0)), "invalid_ttl"),
        (SystemConfig(history=HistoryConfig(max_entries=0)), "invalid_history_size"),
        (SystemConfig(logging=LoggingConfig(output_format="xml")), "invalid_log_format"),
    ])
    def test_invalid_values(self, config: SystemConfig, code: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            config.validate()
        assert exc_info.value.code == code

    @given(config=system_config_strategy())
    @settings(max_examples=50)
    def test_generated_configs_are_valid(self, config: SystemConfig) -> None:
        config.validate()


class TestConfigFiles:
    """Configuration files as written and read by the CLI."""

    @given(config=system_config_strategy())
    @settings(max_examples=50, deadline=None)
    def test_saved_config_loads_back(self, config: SystemConfig) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "config.json"

            assert save_config_to_file(config, path)
            assert load_config_from_file(path) == config

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_config_from_file(tmp_path / "absent.json") is None

    def test_malformed_file(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config_from_file(path) is None
        assert "Error loading config" in capsys.readouterr().err

    def test_unknown_source_mode(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"source_mode": "carrier-pigeon"}), encoding="utf-8")

        assert load_config_from_file(path) is None

    def test_partial_file_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"workers": 3, "source_mode": "multi"}), encoding="utf-8")

        config = load_config_from_file(path)

        assert config.workers == 3
        assert config.source_mode is SourceMode.MULTI
        assert config.rate_limits == RateLimitConfig()
        assert config.history.max_entries == 200
