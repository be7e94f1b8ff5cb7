"""
Property-based tests for simulation mode.

Uses Hypothesis to verify that a LookupClient in simulation mode never
touches the network, produces marked records for every channel, and fails
deterministically for 'unregistered-' domains.
"""

import asyncio
import string
from unittest.mock import AsyncMock, patch

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from whois_batch.config import RateLimitConfig, SystemConfig
from whois_batch.enums import ChannelErrorCode, ChannelId, SourceMode
from whois_batch.exceptions import ChannelError
from whois_batch.lookup_client import SIMULATED_FAILURE_PREFIX, LookupClient
from whois_batch.orchestrator import QueryOrchestrator
from whois_batch.storage import MemoryBlobStore


@st.composite
def valid_domain_strategy(draw) -> str:
    """Generate registrable-looking domain names."""
    label = draw(st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=20))
    tld = draw(st.sampled_from(["com", "net", "org", "io", "cn", "de"]))
    return f"{label}.{tld}"


def run_simulated(domain: str, channel: ChannelId):
    client = LookupClient(simulation_mode=True)

    async def _run():
        async with client:
            return await client.query_channel(domain, channel)

    with patch.object(client._whois, "_execute", new=AsyncMock()) as mock_whois, \
            patch.object(client._rdap, "_fetch_json", new=AsyncMock()) as mock_rdap:
        try:
            return asyncio.run(_run())
        finally:
            mock_whois.assert_not_called()
            mock_rdap.assert_not_called()


class TestSimulatedRecords:
    """Records produced without network access."""

    @given(domain=valid_domain_strategy(), channel=st.sampled_from(list(ChannelId)))
    @settings(max_examples=100)
    def test_no_network_and_marked_record(self, domain: str, channel: ChannelId) -> None:
        record = run_simulated(domain, channel)

        assert record.domain == domain
        assert record.raw_text.startswith("[SIMULATED]")
        assert record.registrar
        assert record.name_servers == [f"ns1.{domain}", f"ns2.{domain}"]

    @given(domain=valid_domain_strategy())
    @settings(max_examples=50)
    def test_sources_follow_channel(self, domain: str) -> None:
        assert run_simulated(domain, ChannelId.RDAP_ORG).is_registry_grade
        assert run_simulated(domain, ChannelId.WHOIS_VERISIGN).source == "whois.verisign-grs.com"
        assert run_simulated(domain, ChannelId.WHOIS_REFERRAL).source == "whois.nic." + domain.rsplit(".", 1)[1]

    @given(domain=valid_domain_strategy(), channel=st.sampled_from(list(ChannelId)))
    @settings(max_examples=100)
    def test_unregistered_prefix_always_fails(self, domain: str, channel: ChannelId) -> None:
        with pytest.raises(ChannelError) as exc_info:
            run_simulated(SIMULATED_FAILURE_PREFIX + domain, channel)

        assert exc_info.value.code == ChannelErrorCode.SIMULATED_FAILURE.value
        assert exc_info.value.channel is channel
        assert "[SIMULATED]" in exc_info.value.message

    def test_flag_is_exposed(self) -> None:
        assert LookupClient(simulation_mode=True).simulation_mode
        assert not LookupClient().simulation_mode


class TestSimulatedBatch:
    """A whole batch through the default collaborator in simulation mode."""

    def test_batch_without_network(self) -> None:
        config = SystemConfig(
            rate_limits=RateLimitConfig(default_interval_seconds=0.0, per_channel={}),
            workers=2,
            simulation_mode=True,
        )
        orchestrator = QueryOrchestrator(config, blob_store=MemoryBlobStore())

        async def _run():
            async with orchestrator:
                return await orchestrator.run("example.com\nunregistered-thing.com", SourceMode.AUTO)

        stats = asyncio.run(_run())
        results = orchestrator.results()

        assert (stats.total, stats.completed, stats.success) == (2, 2, 1)
        assert results["example.com"].best.source == "whois.nic.com"
        assert len(results["example.com"].channels) == 1
        failed = results["unregistered-thing.com"]
        assert failed.best is None
        assert failed.error.split("; ")[0] == "whois_referral: [SIMULATED] no record found"
        assert len(failed.error.split("; ")) == 4
        assert orchestrator.history.domains() == ["example.com"]
