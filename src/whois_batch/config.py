"""
Configuration dataclasses for the batch lookup system.

This module defines all configuration structures used throughout the system,
including per-channel rate limits, channel client timeouts, cache and history
bounds, persistence, and logging configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path

from .enums import ChannelId, SourceMode
from .exceptions import ConfigError


DEFAULT_WORKERS = 6
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60
DEFAULT_HISTORY_MAX_ENTRIES = 200
DEFAULT_STATE_DIR = Path.home() / ".whois_batch"


def _default_channel_intervals() -> dict[str, float]:
    return {
        ChannelId.WHOIS_VERISIGN.value: 0.7,
        ChannelId.WHOIS_CNDNS.value: 0.7,
        ChannelId.WHOIS_HICHINA.value: 0.7,
    }


@dataclass
class RateLimitConfig:
    """Minimum interval between successive requests, per channel."""

    default_interval_seconds: float = 0.3
    per_channel: dict[str, float] = field(default_factory=_default_channel_intervals)

    def interval_for(self, channel: str) -> float:
        """Return the minimum interval in seconds for a channel name."""
        return self.per_channel.get(channel, self.default_interval_seconds)


@dataclass
class LookupConfig:
    """Channel client settings."""

    rdap_timeout: float = 3.0
    whois_timeout: float = 5.0


@dataclass
class CacheConfig:
    """Result cache settings."""

    ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS


@dataclass
class HistoryConfig:
    """History log settings."""

    max_entries: int = DEFAULT_HISTORY_MAX_ENTRIES


@dataclass
class PersistenceConfig:
    """Persistence and blob storage configuration."""

    state_dir: Path = DEFAULT_STATE_DIR
    hmac_secret: str = "default-secret-change-me"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    rate_limits: RateLimitConfig = field(default_factory=RateLimitConfig)
    lookup: LookupConfig = field(default_factory=LookupConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    workers: int = DEFAULT_WORKERS
    source_mode: SourceMode = SourceMode.AUTO
    simulation_mode: bool = False

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: If any value is out of range
        """
        if self.workers < 1:
            raise ConfigError(
                code="invalid_workers",
                message=f"Worker count must be at least 1, got {self.workers}",
                details={"workers": self.workers},
            )
        if self.rate_limits.default_interval_seconds < 0:
            raise ConfigError(
                code="invalid_interval",
                message="Default rate limit interval cannot be negative",
                details={"interval": self.rate_limits.default_interval_seconds},
            )
        for channel, interval in self.rate_limits.per_channel.items():
            if interval < 0:
                raise ConfigError(
                    code="invalid_interval",
                    message=f"Rate limit interval for {channel} cannot be negative",
                    details={"channel": channel, "interval": interval},
                )
        if self.cache.ttl_seconds <= 0:
            raise ConfigError(
                code="invalid_ttl",
                message="Cache TTL must be positive",
                details={"ttl_seconds": self.cache.ttl_seconds},
            )
        if self.history.max_entries < 1:
            raise ConfigError(
                code="invalid_history_size",
                message="History size must be at least 1",
                details={"max_entries": self.history.max_entries},
            )
        if self.logging.output_format not in ("json", "text", "both"):
            raise ConfigError(
                code="invalid_log_format",
                message=f"Invalid log output format: {self.logging.output_format}",
                details={"output_format": self.logging.output_format},
            )
