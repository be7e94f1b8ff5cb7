"""
Result aggregation for per-domain channel responses.

Chooses the authoritative record among the channel responses of one
domain, folds channel failures into one error message, and derives
progress statistics from the result table.
"""

from typing import Iterable, Mapping, Optional, Sequence

from .models import ChannelFailure, DomainResult, ParsedRecord, ProgressStats


ERROR_SEPARATOR = "; "


class ResultAggregator:
    """
    Deterministic selection of the best record.

    Structured (RDAP) records are preferred over plain WHOIS text; among
    equals, scan order decides.
    """

    def pick_best(self, channels: Sequence[ParsedRecord]) -> Optional[ParsedRecord]:
        """
        Select the authoritative record.

        Args:
            channels: Records gathered for one domain, in arrival order

        Returns:
            The first registry-grade record if there is one, otherwise the
            first record, or None for an empty sequence
        """
        for record in channels:
            if record.is_registry_grade:
                return record
        return channels[0] if channels else None

    def join_errors(self, failures: Iterable[ChannelFailure]) -> Optional[str]:
        """Join failure descriptions into one message, or None if there are none."""
        messages = [failure.describe() for failure in failures]
        return ERROR_SEPARATOR.join(messages) if messages else None

    def aggregate(
        self,
        result: DomainResult,
        failures: Sequence[ChannelFailure],
    ) -> DomainResult:
        """
        Fill in best and error on a domain result in place.

        The error message is only set when no channel produced a record.

        Returns:
            The same result object
        """
        result.best = self.pick_best(result.channels)
        if result.best is None:
            result.error = self.join_errors(failures) or "no channel returned a record"
        else:
            result.error = None
        return result

    def compute_stats(self, table: Mapping[str, DomainResult]) -> ProgressStats:
        """
        Project progress statistics from a result table snapshot.

        Args:
            table: domain -> DomainResult

        Returns:
            ProgressStats with the mean latency rounded to whole milliseconds
        """
        results = list(table.values())
        completed = 0
        success = 0
        latencies: list[int] = []
        for result in results:
            if result.finished_at is not None:
                completed += 1
            if result.best is not None:
                success += 1
            latency = result.latency_ms
            if latency is not None:
                latencies.append(latency)

        avg = round(sum(latencies) / len(latencies)) if latencies else 0
        return ProgressStats(
            total=len(results),
            completed=completed,
            success=success,
            avg_latency_ms=avg,
        )
