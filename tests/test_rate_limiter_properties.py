"""
Property-based tests for the Rate Limiter module.

Uses Hypothesis to check minimum spacing between requests on a channel,
serialization of concurrent callers and independence of channels. Intervals
are kept small so the suite stays fast.
"""

import asyncio
import time
from io import StringIO

from hypothesis import given, settings
from hypothesis import strategies as st

from whois_batch.audit_logger import AuditLogger
from whois_batch.config import RateLimitConfig
from whois_batch.enums import ChannelId, LogLevel
from whois_batch.rate_limiter import RateLimiter


CHANNELS = [channel.value for channel in ChannelId]

# Float comparisons on monotonic stamps
EPSILON = 1e-9


@st.composite
def rate_limit_config_strategy(draw) -> RateLimitConfig:
    """Generate configs with small per-channel intervals."""
    per_channel = draw(st.dictionaries(
        keys=st.sampled_from(CHANNELS),
        values=st.floats(min_value=0.0, max_value=0.03),
        max_size=3,
    ))
    return RateLimitConfig(
        default_interval_seconds=draw(st.floats(min_value=0.0, max_value=0.03)),
        per_channel=per_channel,
    )


async def _issue(limiter: RateLimiter, channel: str, stamps: list[float]) -> None:
    await limiter.wait(channel)
    stamps.append(limiter.last_issue_time(channel))


class TestMinimumIntervalProperty:
    """Successive releases on one channel are at least min_interval apart."""

    @given(
        config=rate_limit_config_strategy(),
        channel=st.sampled_from(CHANNELS),
        num_requests=st.integers(min_value=2, max_value=4),
    )
    @settings(max_examples=25, deadline=None)
    def test_back_to_back_calls_are_spaced(
        self,
        config: RateLimitConfig,
        channel: str,
        num_requests: int,
    ) -> None:
        limiter = RateLimiter(config)
        interval = limiter.min_interval(channel)
        stamps: list[float] = []

        async def run() -> None:
            for _ in range(num_requests):
                await _issue(limiter, channel, stamps)

        asyncio.run(run())

        assert len(stamps) == num_requests
        for earlier, later in zip(stamps, stamps[1:]):
            assert later - earlier >= interval - EPSILON

    @given(
        config=rate_limit_config_strategy(),
        channel=st.sampled_from(CHANNELS),
        num_requests=st.integers(min_value=2, max_value=5),
    )
    @settings(max_examples=25, deadline=None)
    def test_concurrent_callers_are_spaced(
        self,
        config: RateLimitConfig,
        channel: str,
        num_requests: int,
    ) -> None:
        limiter = RateLimiter(config)
        interval = limiter.min_interval(channel)
        stamps: list[float] = []

        async def run() -> None:
            await asyncio.gather(*(
                _issue(limiter, channel, stamps) for _ in range(num_requests)
            ))

        asyncio.run(run())

        ordered = sorted(stamps)
        assert len(ordered) == num_requests
        for earlier, later in zip(ordered, ordered[1:]):
            assert later - earlier >= interval - EPSILON

    def test_first_call_does_not_wait(self) -> None:
        limiter = RateLimiter(RateLimitConfig(default_interval_seconds=5.0, per_channel={}))

        slept = asyncio.run(limiter.wait("whois_verisign"))

        assert slept == 0.0
        assert limiter.delays_applied("whois_verisign") == 0


class TestChannelIndependence:
    """Waiting on one channel never delays another channel."""

    def test_other_channel_is_not_delayed(self) -> None:
        config = RateLimitConfig(
            default_interval_seconds=0.0,
            per_channel={"whois_verisign": 0.2},
        )
        limiter = RateLimiter(config)

        async def run() -> float:
            await limiter.wait("whois_verisign")
            verisign_blocked = asyncio.create_task(limiter.wait("whois_verisign"))
            start = time.monotonic()
            await limiter.wait("rdap_org")
            elapsed = time.monotonic() - start
            await verisign_blocked
            return elapsed

        elapsed = asyncio.run(run())

        assert elapsed < 0.2
        assert limiter.delays_applied("whois_verisign") == 1
        assert limiter.delays_applied("rdap_org") == 0

    def test_default_and_per_channel_intervals(self) -> None:
        limiter = RateLimiter()

        assert limiter.min_interval("whois_verisign") == 0.7
        assert limiter.min_interval("whois_cndns") == 0.7
        assert limiter.min_interval("whois_hichina") == 0.7
        assert limiter.min_interval("rdap_org") == 0.3
        assert limiter.min_interval("whois_referral") == 0.3

    def test_reset_forgets_issue_time(self) -> None:
        limiter = RateLimiter(RateLimitConfig(default_interval_seconds=5.0, per_channel={}))

        async def run() -> float:
            await limiter.wait("rdap_org")
            limiter.reset("rdap_org")
            return await limiter.wait("rdap_org")

        assert asyncio.run(run()) == 0.0

    def test_enforced_delay_is_logged(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO(), level=LogLevel.DEBUG)
        limiter = RateLimiter(
            RateLimitConfig(default_interval_seconds=0.02, per_channel={}),
            logger=logger,
        )

        async def run() -> None:
            await limiter.wait("rdap_org")
            await limiter.wait("rdap_org")

        asyncio.run(run())

        delays = [e for e in logger.entries if e.component == "RateLimiter"]
        assert len(delays) == 1
        assert delays[0].data["channel"] == "rdap_org"


    def test_limiter_survives_a_new_event_loop(self) -> None:
        limiter = RateLimiter(RateLimitConfig(default_interval_seconds=0.02, per_channel={}))

        async def burst() -> list[float]:
            async def one() -> float:
                await limiter.wait("whois_verisign")
                return time.monotonic()

            return sorted(await asyncio.gather(one(), one(), one()))

        first = asyncio.run(burst())
        second = asyncio.run(burst())

        released = first + second
        gaps = [b - a for a, b in zip(released, released[1:])]
        assert all(gap >= 0.015 for gap in gaps)
        assert limiter.delays_applied("whois_verisign") >= 4
