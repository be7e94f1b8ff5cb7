"""
Query Orchestrator for the batch lookup system.

This module runs a batch of domains through a fixed pool of workers. It
coordinates:
- Per-channel rate limiting before every external query
- Cache lookups keyed by (domain, source mode)
- Sequential channel attempts per domain (short-circuiting in auto mode)
- Best-record selection and failure aggregation
- Cache and history writes for successful results only

Results are published into a shared result table as they change; callers
observe them through a callback or by polling the table.
"""

import asyncio
import threading
from typing import Callable, Iterable, Optional

from .aggregator import ResultAggregator
from .audit_logger import AuditLogger
from .config import SystemConfig
from .domain_set import DomainSet
from .enums import ChannelErrorCode, ChannelId, SourceMode
from .exceptions import ChannelError
from .history_store import HistoryStore
from .lookup_client import ChannelQuery, LookupClient
from .models import ChannelFailure, DomainResult, ProgressStats, now_ms
from .rate_limiter import RateLimiter
from .rdap_client import VERISIGN_TLDS, extract_tld
from .result_cache import ResultCache
from .storage import BlobStore, FileBlobStore


# Preference order for auto mode; the first channel returning a record wins
AUTO_CHANNELS: tuple[ChannelId, ...] = (
    ChannelId.WHOIS_REFERRAL,
    ChannelId.WHOIS_VERISIGN,
    ChannelId.WHOIS_CNDNS,
    ChannelId.WHOIS_HICHINA,
)

# Queried in full in multi mode; the aggregator picks the best record
MULTI_CHANNELS: tuple[ChannelId, ...] = (
    ChannelId.RDAP_ORG,
    ChannelId.WHOIS_REFERRAL,
    ChannelId.RDAP_VERISIGN,
)

ResultObserver = Callable[[DomainResult], None]


def channel_plan(mode: SourceMode, domain: str) -> tuple[list[ChannelId], bool]:
    """
    Channels to query for a domain under a source mode.

    Returns:
        Tuple of (channels in query order, short_circuit) where short_circuit
        means stop at the first channel that returns a record
    """
    if mode is SourceMode.AUTO:
        return list(AUTO_CHANNELS), True
    if mode is SourceMode.MULTI:
        channels = [
            channel for channel in MULTI_CHANNELS
            if channel is not ChannelId.RDAP_VERISIGN or extract_tld(domain) in VERISIGN_TLDS
        ]
        return channels, False
    return [ChannelId(mode.value)], True


class ResultTable:
    """
    domain -> DomainResult table shared by workers and readers.

    Published results are stored as copies so readers never see a record
    while a worker is still mutating it.
    """

    def __init__(self) -> None:
        self._results: dict[str, DomainResult] = {}
        self._lock = threading.Lock()
        self._observers: list[ResultObserver] = []

    def subscribe(self, observer: ResultObserver) -> None:
        self._observers.append(observer)

    def reset(self) -> None:
        with self._lock:
            self._results = {}

    def publish(self, result: DomainResult) -> DomainResult:
        """Store a snapshot of the result and return it."""
        snapshot = result.copy()
        with self._lock:
            self._results[snapshot.domain] = snapshot
        for observer in list(self._observers):
            observer(snapshot)
        return snapshot

    def get(self, domain: str) -> Optional[DomainResult]:
        with self._lock:
            return self._results.get(domain)

    def snapshot(self) -> dict[str, DomainResult]:
        with self._lock:
            return dict(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


class QueryOrchestrator:
    """
    Bounded worker pool draining a shared domain queue.

    The worker count bounds simultaneous in-flight queries; the rate
    limiter independently throttles each channel across all workers.
    """

    def __init__(
        self,
        config: SystemConfig,
        query_channel: Optional[ChannelQuery] = None,
        blob_store: Optional[BlobStore] = None,
        cache: Optional[ResultCache] = None,
        history: Optional[HistoryStore] = None,
        logger: Optional[AuditLogger] = None,
        on_update: Optional[ResultObserver] = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            config: System configuration (validated here)
            query_channel: Channel query collaborator; defaults to a
                LookupClient owned and closed by this orchestrator
            blob_store: Store for cache and history; defaults to files in
                config.persistence.state_dir
            cache: Explicit result cache (overrides blob_store for the cache)
            history: Explicit history store (overrides blob_store for history)
            logger: Optional audit logger
            on_update: Optional callback receiving every published result
        """
        config.validate()
        self._config = config
        self._logger = logger

        self._owned_client: Optional[LookupClient] = None
        if query_channel is None:
            self._owned_client = LookupClient(config.lookup, config.simulation_mode)
            query_channel = self._owned_client.query_channel
        self._query_channel = query_channel

        if blob_store is None and (cache is None or history is None):
            blob_store = FileBlobStore(config.persistence.state_dir)
        self._cache = cache if cache is not None else ResultCache(
            blob_store,
            config.persistence.hmac_secret,
            ttl_seconds=config.cache.ttl_seconds,
            logger=logger,
        )
        self._history = history if history is not None else HistoryStore(
            blob_store,
            config.persistence.hmac_secret,
            max_entries=config.history.max_entries,
            logger=logger,
        )

        self._rate_limiter = RateLimiter(config.rate_limits, logger=logger)
        self._aggregator = ResultAggregator()
        self._table = ResultTable()
        if on_update is not None:
            self._table.subscribe(self._guard_observer(on_update))

    async def __aenter__(self) -> "QueryOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def load_stores(self) -> None:
        """Load cache and history from the persisted store at session start."""
        cached = self._cache.load()
        history = self._history.load()
        self._log_info(
            "Loaded persisted stores",
            {"cache_entries": cached, "history_entries": len(history)},
        )

    async def run(self, text: str, source_mode: Optional[SourceMode] = None) -> ProgressStats:
        """
        Parse raw input text and run the resulting batch.

        Returns:
            ProgressStats once every domain has finished
        """
        return await self.run_batch(DomainSet.parse(text), source_mode)

    async def run_batch(
        self,
        domains: Iterable[str],
        source_mode: Optional[SourceMode] = None,
    ) -> ProgressStats:
        """
        Query every domain and wait until all have finished.

        The result table is cleared first. Each domain is claimed by exactly
        one worker; workers exit once the queue is empty.

        Args:
            domains: Normalized domain names (duplicates are ignored)
            source_mode: Channel selection policy; defaults to the configured one

        Returns:
            ProgressStats for the finished batch
        """
        mode = source_mode or self._config.source_mode
        pending = list(dict.fromkeys(domains))

        self._table.reset()
        queue: asyncio.Queue[str] = asyncio.Queue()
        for domain in pending:
            queue.put_nowait(domain)

        self._log_info(
            f"Starting batch of {len(pending)} domain(s)",
            {"source_mode": mode.value, "workers": self._config.workers},
        )

        workers = [
            asyncio.create_task(self._worker(queue, mode), name=f"lookup-worker-{i}")
            for i in range(self._config.workers)
        ]
        await asyncio.gather(*workers)

        stats = self.stats()
        self._log_info("Batch finished", stats.to_dict())
        return stats

    async def _worker(self, queue: "asyncio.Queue[str]", mode: SourceMode) -> None:
        while True:
            try:
                domain = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await self._process_domain(domain, mode)

    async def _process_domain(self, domain: str, mode: SourceMode) -> DomainResult:
        started_at = now_ms()
        result = DomainResult(domain=domain, started_at=started_at)
        self._table.publish(result)

        hit = self._cache.get(domain, mode)
        if hit is not None and hit.fresh:
            cached = hit.result
            cached.started_at = started_at
            cached.finished_at = max(now_ms(), started_at)
            self._log_debug("Cache hit", {"domain": domain, "age_ms": hit.age_ms})
            return self._table.publish(cached)
        if hit is not None:
            self._log_debug("Stale cache entry ignored", {"domain": domain, "age_ms": hit.age_ms})

        channels, short_circuit = channel_plan(mode, domain)
        failures: list[ChannelFailure] = []
        for channel in channels:
            await self._rate_limiter.wait(channel.value)
            try:
                record = await self._query_channel(domain, channel)
            except ChannelError as e:
                failures.append(ChannelFailure(channel=channel, code=e.code, message=e.message))
                self._log_channel_failure(domain, channel, e)
                continue
            except Exception as e:
                error = ChannelError(
                    channel=channel,
                    code=ChannelErrorCode.UNEXPECTED.value,
                    message=str(e) or type(e).__name__,
                )
                failures.append(ChannelFailure(channel=channel, code=error.code, message=error.message))
                self._log_channel_failure(domain, channel, error)
                continue

            result.channels.append(record)
            self._table.publish(result)
            if short_circuit:
                break

        self._aggregator.aggregate(result, failures)
        result.finished_at = max(now_ms(), started_at)
        published = self._table.publish(result)

        if result.best is not None:
            self._cache.put(domain, mode, result)
            self._history.append(result)
        return published

    def results(self) -> dict[str, DomainResult]:
        """Snapshot of the result table."""
        return self._table.snapshot()

    def stats(self) -> ProgressStats:
        return self._aggregator.compute_stats(self._table.snapshot())

    def subscribe(self, observer: ResultObserver) -> None:
        self._table.subscribe(self._guard_observer(observer))

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def aggregator(self) -> ResultAggregator:
        return self._aggregator

    @property
    def config(self) -> SystemConfig:
        return self._config

    async def close(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.close()

    def _guard_observer(self, observer: ResultObserver) -> ResultObserver:
        def _notify(result: DomainResult) -> None:
            try:
                observer(result)
            except Exception as e:
                if self._logger:
                    self._logger.log_error(
                        "QueryOrchestrator",
                        "Result observer raised",
                        error=e,
                        additional_data={"domain": result.domain},
                    )
        return _notify

    def _log_channel_failure(self, domain: str, channel: ChannelId, error: ChannelError) -> None:
        if self._logger:
            self._logger.log_error(
                "QueryOrchestrator",
                f"Channel {channel.value} failed for {domain}",
                error=error,
                additional_data={"domain": domain, "channel": channel.value},
            )

    def _log_info(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.info("QueryOrchestrator", message, data)

    def _log_debug(self, message: str, data: dict) -> None:
        if self._logger:
            self._logger.debug("QueryOrchestrator", message, data)
