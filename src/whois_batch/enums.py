"""
Enumeration types for the batch lookup system.

These enums provide type-safe constants for channels, source modes,
error kinds and logging levels throughout the system.
"""

from enum import Enum


class ChannelId(Enum):
    """A single external lookup service queried for one domain."""

    RDAP_ORG = "rdap_org"
    RDAP_VERISIGN = "rdap_verisign"
    WHOIS_REFERRAL = "whois_referral"
    WHOIS_VERISIGN = "whois_verisign"
    WHOIS_CNDNS = "whois_cndns"
    WHOIS_HICHINA = "whois_hichina"

    @property
    def source_label(self) -> str:
        """Label written into ParsedRecord.source for this channel."""
        return CHANNEL_SOURCE_LABELS[self]

    @property
    def is_rdap(self) -> bool:
        return self in (ChannelId.RDAP_ORG, ChannelId.RDAP_VERISIGN)


CHANNEL_SOURCE_LABELS: dict[ChannelId, str] = {
    ChannelId.RDAP_ORG: "rdap.org",
    ChannelId.RDAP_VERISIGN: "rdap.verisign.com",
    # Replaced by the referred server name once resolved
    ChannelId.WHOIS_REFERRAL: "whois-referral",
    ChannelId.WHOIS_VERISIGN: "whois.verisign-grs.com",
    ChannelId.WHOIS_CNDNS: "grs-whois.cndns.com",
    ChannelId.WHOIS_HICHINA: "grs-whois.hichina.com",
}


class SourceMode(Enum):
    """Caller-selected policy for which channel(s) to query."""

    AUTO = "auto"
    MULTI = "multi"
    RDAP_ORG = "rdap_org"
    RDAP_VERISIGN = "rdap_verisign"
    WHOIS_REFERRAL = "whois_referral"
    WHOIS_VERISIGN = "whois_verisign"
    WHOIS_CNDNS = "whois_cndns"
    WHOIS_HICHINA = "whois_hichina"


class ErrorKind(Enum):
    """Closed set of failure categories."""

    VALIDATION = "validation"
    CHANNEL_FAILURE = "channel_failure"
    STORE_FAILURE = "store_failure"


class ChannelErrorCode(Enum):
    """Error codes for channel query failures."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    PARSE_ERROR = "parse_error"
    EMPTY_RESPONSE = "empty_response"
    UNSUPPORTED_TLD = "unsupported_tld"
    SIMULATED_FAILURE = "simulated_failure"
    UNEXPECTED = "unexpected"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]


_LEVEL_RANKS = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}
