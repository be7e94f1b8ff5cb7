"""
Default channel query collaborator.

LookupClient maps each ChannelId onto the RDAP or WHOIS client call that
serves it. In simulation mode no network requests are made and records
are synthesized instead.
"""

from typing import Awaitable, Callable, Optional

from .config import LookupConfig
from .enums import ChannelErrorCode, ChannelId
from .exceptions import ChannelError
from .models import ParsedRecord
from .rdap_client import RDAPClient, extract_tld
from .whois_client import CHANNEL_SERVERS, WHOISClient


ChannelQuery = Callable[[str, ChannelId], Awaitable[ParsedRecord]]

SIMULATED_FAILURE_PREFIX = "unregistered-"


class LookupClient:
    """Routes channel queries to the RDAP and WHOIS clients."""

    def __init__(
        self,
        config: Optional[LookupConfig] = None,
        simulation_mode: bool = False,
    ) -> None:
        config = config or LookupConfig()
        self._simulation_mode = simulation_mode
        self._rdap = RDAPClient(timeout=config.rdap_timeout)
        self._whois = WHOISClient(timeout=config.whois_timeout)

    @property
    def simulation_mode(self) -> bool:
        return self._simulation_mode

    async def __aenter__(self) -> "LookupClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def __call__(self, domain: str, channel: ChannelId) -> ParsedRecord:
        return await self.query_channel(domain, channel)

    async def query_channel(self, domain: str, channel: ChannelId) -> ParsedRecord:
        """
        Query one channel for one domain.

        Returns:
            ParsedRecord from that channel

        Raises:
            ChannelError: If the channel could not produce a record
        """
        if self._simulation_mode:
            return self._simulated_record(domain, channel)

        if channel is ChannelId.RDAP_ORG:
            return await self._rdap.query_rdap_org(domain)
        if channel is ChannelId.RDAP_VERISIGN:
            return await self._rdap.query_verisign(domain)
        if channel is ChannelId.WHOIS_REFERRAL:
            return await self._whois.query_referral(domain)
        return await self._whois.query_channel(domain, channel)

    def _simulated_record(self, domain: str, channel: ChannelId) -> ParsedRecord:
        """
        Synthesize a record without network access.

        Domains whose first label starts with 'unregistered-' fail on every
        channel.
        """
        if domain.startswith(SIMULATED_FAILURE_PREFIX):
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.SIMULATED_FAILURE.value,
                message="[SIMULATED] no record found",
                details={"domain": domain},
            )

        if channel is ChannelId.WHOIS_REFERRAL:
            source = f"whois.nic.{extract_tld(domain) or 'example'}"
        else:
            source = CHANNEL_SERVERS.get(channel, channel.source_label)
        return ParsedRecord(
            domain=domain,
            source=source,
            registrar="Example Registrar",
            created_date="2020-01-01T00:00:00Z",
            expires_date="2030-01-01T00:00:00Z",
            status_list=["active"],
            name_servers=[f"ns1.{domain}", f"ns2.{domain}"],
            raw_text=f"[SIMULATED]\nDomain Name: {domain.upper()}\n",
        )

    async def close(self) -> None:
        await self._rdap.close()
