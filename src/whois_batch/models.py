"""
Data models for the batch lookup system.

This module defines the records produced by channel queries, the
aggregated per-domain result of a batch run, and the derived progress
statistics. Timestamps are integer epoch milliseconds.
"""

import copy
import time
from dataclasses import dataclass, field
from typing import Optional

from .enums import ChannelId, ErrorKind


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _optional_list(value) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


@dataclass
class ParsedRecord:
    """Structured result of one successful channel query."""

    domain: str
    source: str  # 'rdap.org', 'whois.verisign-grs.com', ...
    registrar: Optional[str] = None
    registrant: Optional[str] = None
    created_date: Optional[str] = None
    expires_date: Optional[str] = None
    updated_date: Optional[str] = None
    status_list: Optional[list[str]] = None
    name_servers: Optional[list[str]] = None
    raw_text: Optional[str] = None

    @property
    def is_registry_grade(self) -> bool:
        """True if the record came from a structured (RDAP) channel."""
        return "rdap" in self.source.lower()

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "source": self.source,
            "registrar": self.registrar,
            "registrant": self.registrant,
            "created": self.created_date,
            "expires": self.expires_date,
            "updated": self.updated_date,
            "status": list(self.status_list) if self.status_list is not None else None,
            "nameServers": list(self.name_servers) if self.name_servers is not None else None,
            "rawText": self.raw_text,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ParsedRecord":
        return cls(
            domain=data["domain"],
            source=data["source"],
            registrar=data.get("registrar"),
            registrant=data.get("registrant"),
            created_date=data.get("created"),
            expires_date=data.get("expires"),
            updated_date=data.get("updated"),
            status_list=_optional_list(data.get("status")),
            name_servers=_optional_list(data.get("nameServers")),
            raw_text=data.get("rawText"),
        )


@dataclass
class ChannelFailure:
    """A single failed channel attempt for one domain."""

    channel: ChannelId
    code: str
    message: str
    kind: ErrorKind = ErrorKind.CHANNEL_FAILURE

    def describe(self) -> str:
        return f"{self.channel.value}: {self.message}"


@dataclass
class DomainResult:
    """
    Aggregated outcome for one domain during or after a batch run.

    Created in flight with empty channels; considered final once
    finished_at is set.
    """

    domain: str
    channels: list[ParsedRecord] = field(default_factory=list)
    best: Optional[ParsedRecord] = None
    error: Optional[str] = None
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @property
    def succeeded(self) -> bool:
        return self.best is not None

    @property
    def latency_ms(self) -> Optional[int]:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def copy(self) -> "DomainResult":
        """Deep copy, so cached or published snapshots never alias."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "channels": [record.to_dict() for record in self.channels],
            "best": self.best.to_dict() if self.best else None,
            "error": self.error,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DomainResult":
        best = data.get("best")
        return cls(
            domain=data["domain"],
            channels=[ParsedRecord.from_dict(item) for item in data.get("channels") or []],
            best=ParsedRecord.from_dict(best) if best else None,
            error=data.get("error"),
            started_at=data.get("startedAt"),
            finished_at=data.get("finishedAt"),
        )


@dataclass
class CacheEntry:
    """A cached successful result and the time it was written."""

    timestamp: int
    result: DomainResult


@dataclass
class CacheHit:
    """Outcome of a cache lookup that found an entry."""

    result: DomainResult
    fresh: bool
    age_ms: int


@dataclass
class ProgressStats:
    """Live statistics derived from the result table."""

    total: int = 0
    completed: int = 0
    success: int = 0
    avg_latency_ms: int = 0

    @property
    def failed(self) -> int:
        return self.completed - self.success

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "success": self.success,
            "avgLatencyMs": self.avg_latency_ms,
        }
