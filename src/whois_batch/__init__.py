"""
WHOIS Batch - Concurrent multi-source domain registration lookup.

This package looks up batches of domains across RDAP and WHOIS channels
with a bounded worker pool, per-channel rate limiting, a TTL result cache
and a capped history of successful lookups.
"""

__version__ = "0.1.0"
__author__ = "WHOIS Batch Team"

from whois_batch.exceptions import (
    WhoisBatchError,
    ValidationError,
    ChannelError,
    StoreError,
    TamperingError,
    ConfigError,
)
from whois_batch.enums import (
    ChannelId,
    SourceMode,
    ErrorKind,
    ChannelErrorCode,
    LogLevel,
)
from whois_batch.config import (
    RateLimitConfig,
    LookupConfig,
    CacheConfig,
    HistoryConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
)
from whois_batch.models import (
    ParsedRecord,
    ChannelFailure,
    DomainResult,
    CacheEntry,
    CacheHit,
    ProgressStats,
    now_ms,
)
from whois_batch.domain_set import (
    DomainSet,
    normalize_domain,
)
from whois_batch.rate_limiter import RateLimiter
from whois_batch.storage import (
    BlobStore,
    MemoryBlobStore,
    FileBlobStore,
    SignedEnvelope,
)
from whois_batch.result_cache import (
    ResultCache,
    cache_key,
)
from whois_batch.history_store import HistoryStore
from whois_batch.aggregator import ResultAggregator
from whois_batch.rdap_client import (
    RDAPClient,
    parse_rdap_json,
)
from whois_batch.whois_client import (
    WHOISClient,
    parse_whois_text,
)
from whois_batch.lookup_client import (
    LookupClient,
    ChannelQuery,
)
from whois_batch.orchestrator import (
    QueryOrchestrator,
    ResultTable,
    channel_plan,
)
from whois_batch.exporter import (
    to_csv,
    to_json,
)
from whois_batch.audit_logger import (
    AuditLogger,
    LogEntry,
)
from whois_batch.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "WhoisBatchError",
    "ValidationError",
    "ChannelError",
    "StoreError",
    "TamperingError",
    "ConfigError",
    # Enums
    "ChannelId",
    "SourceMode",
    "ErrorKind",
    "ChannelErrorCode",
    "LogLevel",
    # Configuration
    "RateLimitConfig",
    "LookupConfig",
    "CacheConfig",
    "HistoryConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "ParsedRecord",
    "ChannelFailure",
    "DomainResult",
    "CacheEntry",
    "CacheHit",
    "ProgressStats",
    "now_ms",
    # Domain set
    "DomainSet",
    "normalize_domain",
    # Rate Limiter
    "RateLimiter",
    # Storage
    "BlobStore",
    "MemoryBlobStore",
    "FileBlobStore",
    "SignedEnvelope",
    "ResultCache",
    "cache_key",
    "HistoryStore",
    # Aggregation
    "ResultAggregator",
    # Channel clients
    "RDAPClient",
    "parse_rdap_json",
    "WHOISClient",
    "parse_whois_text",
    "LookupClient",
    "ChannelQuery",
    # Orchestrator
    "QueryOrchestrator",
    "ResultTable",
    "channel_plan",
    # Export
    "to_csv",
    "to_json",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
]
