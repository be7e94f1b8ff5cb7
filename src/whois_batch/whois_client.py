"""
WHOIS Client module for plain-text registration lookups.

This module queries WHOIS servers over TCP port 43 and extracts the
registration fields from the free-text response. The referral channel
discovers the TLD's server through whois.iana.org.
"""

import asyncio
import re
import socket
from typing import Optional

from .enums import ChannelErrorCode, ChannelId
from .exceptions import ChannelError
from .models import ParsedRecord
from .rdap_client import extract_tld


IANA_WHOIS_SERVER = "whois.iana.org"
WHOIS_PORT = 43

# Fixed servers behind the named WHOIS channels
CHANNEL_SERVERS: dict[ChannelId, str] = {
    ChannelId.WHOIS_VERISIGN: "whois.verisign-grs.com",
    ChannelId.WHOIS_CNDNS: "grs-whois.cndns.com",
    ChannelId.WHOIS_HICHINA: "grs-whois.hichina.com",
}

_FIELD_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("registrar", re.compile(r"^\s*(?:Registrar|Sponsoring Registrar)\s*:\s*(.+)$", re.I)),
    ("registrant", re.compile(r"^\s*(?:Registrant Organization|Registrant Name)\s*:\s*(.+)$", re.I)),
    ("created_date", re.compile(
        r"^\s*(?:Creation Date|Created On|Domain Registration Date|Registered)\s*:\s*(.+)$", re.I
    )),
    ("expires_date", re.compile(
        r"^\s*(?:Registry Expiry Date|Expiration Date|Expires On|Expiry Date)\s*:\s*(.+)$", re.I
    )),
    ("updated_date", re.compile(r"^\s*(?:Updated Date|Last Updated On|Last Updated)\s*:\s*(.+)$", re.I)),
]
_NAME_SERVER_PATTERN = re.compile(r"^\s*Name Server\s*:\s*(.+)$", re.I)
_STATUS_PATTERN = re.compile(r"^\s*(?:Domain Status|Status)\s*:\s*(.+)$", re.I)
_TRAILING_URL = re.compile(r"\s*\(?https?://\S*\)?\s*$")


def parse_whois_text(domain: str, source: str, text: str) -> ParsedRecord:
    """
    Extract registration fields from a WHOIS text response.

    Each line is matched against the field patterns in order and the first
    match wins. Single-valued fields keep their last occurrence; name
    servers and statuses accumulate in order.

    Args:
        domain: The queried domain
        source: Source label (the WHOIS server that answered)
        text: Raw response

    Returns:
        ParsedRecord with raw_text set to the full response
    """
    record = ParsedRecord(domain=domain, source=source)
    name_servers: list[str] = []
    statuses: list[str] = []

    for line in text.splitlines():
        matched = False
        for attr, pattern in _FIELD_PATTERNS:
            match = pattern.match(line)
            if match:
                setattr(record, attr, match.group(1).strip())
                matched = True
                break
        if matched:
            continue

        match = _NAME_SERVER_PATTERN.match(line)
        if match:
            value = match.group(1).strip()
            if value:
                name_servers.append(value)
            continue

        match = _STATUS_PATTERN.match(line)
        if match:
            value = _TRAILING_URL.sub("", match.group(1).strip())
            if value:
                statuses.append(value)

    record.name_servers = name_servers or None
    record.status_list = statuses or None
    record.raw_text = text
    return record


def parse_referral(text: str) -> Optional[str]:
    """Find the 'refer:' or 'whois:' server in an IANA response."""
    for line in text.splitlines():
        stripped = line.strip()
        lowered = stripped.lower()
        if lowered.startswith("refer:") or lowered.startswith("whois:"):
            server = stripped.split(":", 1)[1].strip()
            if server:
                return server
    return None


def fallback_server_for_tld(tld: str) -> str:
    if tld in ("com", "net"):
        return "whois.verisign-grs.com"
    return f"{tld}.whois-servers.net"


class WHOISClient:
    """
    WHOIS client over raw TCP.

    Blocking socket I/O runs in the default executor so the event loop
    keeps serving other workers.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """
        Initialize the WHOIS client.

        Args:
            timeout: Connect/read timeout in seconds
        """
        self._timeout = timeout
        self._referrals: dict[str, str] = {}

    async def query_channel(self, domain: str, channel: ChannelId) -> ParsedRecord:
        """
        Query a fixed-server WHOIS channel.

        Raises:
            ChannelError: On connection, timeout or empty-response failures
        """
        server = CHANNEL_SERVERS.get(channel)
        if server is None:
            raise ValueError(f"{channel.value} is not a fixed-server WHOIS channel")
        return await self.query_server(domain, server, channel)

    async def query_referral(self, domain: str) -> ParsedRecord:
        """Query the server that IANA refers the domain's TLD to."""
        tld = extract_tld(domain)
        if tld is None:
            raise ChannelError(
                channel=ChannelId.WHOIS_REFERRAL,
                code=ChannelErrorCode.UNSUPPORTED_TLD.value,
                message="cannot determine the TLD",
                details={"domain": domain},
            )
        server = await self.resolve_server(tld)
        return await self.query_server(domain, server, ChannelId.WHOIS_REFERRAL)

    async def resolve_server(self, tld: str) -> str:
        """
        Resolve the WHOIS server for a TLD, memoized per client.

        IANA is asked first; if it does not answer or names no server, a
        fixed fallback is used.
        """
        cached = self._referrals.get(tld)
        if cached:
            return cached

        server: Optional[str] = None
        try:
            server = parse_referral(await self._execute(IANA_WHOIS_SERVER, tld))
        except (OSError, asyncio.TimeoutError):
            server = None
        server = server or fallback_server_for_tld(tld)
        self._referrals[tld] = server
        return server

    async def query_server(self, domain: str, server: str, channel: ChannelId) -> ParsedRecord:
        try:
            text = await self._execute(server, domain)
        except asyncio.TimeoutError:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.TIMEOUT.value,
                message=f"WHOIS query to {server} timed out after {self._timeout}s",
                details={"server": server},
            )
        except OSError as e:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.NETWORK_ERROR.value,
                message=f"WHOIS query to {server} failed: {e}",
                details={"server": server},
            )

        if not text.strip():
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.EMPTY_RESPONSE.value,
                message=f"empty WHOIS response from {server}",
                details={"server": server},
            )
        return parse_whois_text(domain, server, text)

    async def _execute(self, server: str, query: str) -> str:
        loop = asyncio.get_running_loop()

        def _sync_query() -> str:
            with socket.create_connection((server, WHOIS_PORT), timeout=self._timeout) as sock:
                sock.settimeout(self._timeout)
                sock.sendall(f"{query}\r\n".encode("utf-8"))
                parts: list[bytes] = []
                while True:
                    data = sock.recv(4096)
                    if not data:
                        break
                    parts.append(data)
            return b"".join(parts).decode("utf-8", errors="replace")

        return await asyncio.wait_for(
            loop.run_in_executor(None, _sync_query),
            timeout=self._timeout * 2,
        )

    def cached_referrals(self) -> dict[str, str]:
        return dict(self._referrals)
