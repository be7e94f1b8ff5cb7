"""
RDAP Client for structured registration lookups.

This module provides an async RDAP client for the rdap.org bootstrap
service and Verisign's registry RDAP (.com/.net only), converting RDAP
JSON domain objects into ParsedRecord.
"""

import json
from typing import Any, Optional

import httpx

from .enums import ChannelErrorCode, ChannelId
from .exceptions import ChannelError
from .models import ParsedRecord


RDAP_ORG_URL = "https://rdap.org/domain/{domain}"
VERISIGN_RDAP_URL = "https://rdap.verisign.com/{tld}/v1/domain/{domain}"
VERISIGN_TLDS = frozenset({"com", "net"})

EVENT_FIELDS = {
    "registration": "created_date",
    "expiration": "expires_date",
    "last changed": "updated_date",
    "last update of RDAP database": "updated_date",
}


def extract_tld(domain: str) -> Optional[str]:
    """Last label of a domain, or None for a single-label name."""
    parts = domain.split(".")
    if len(parts) < 2:
        return None
    return parts[-1].lower()


def _vcard_full_name(entity: dict) -> Optional[str]:
    # vcardArray: ["vcard", [["fn", {}, "text", "Name"], ...]]
    vcard = entity.get("vcardArray")
    if not isinstance(vcard, list) or len(vcard) < 2 or not isinstance(vcard[1], list):
        return None
    for item in vcard[1]:
        if isinstance(item, list) and len(item) >= 4 and item[0] == "fn":
            if isinstance(item[3], str):
                return item[3]
    return None


def parse_rdap_json(domain: str, source: str, data: dict[str, Any]) -> ParsedRecord:
    """
    Convert an RDAP domain object into a ParsedRecord.

    Only events, status, nameservers and registrar/registrant entities are
    read; every other field is ignored. Empty lists are reported as absent.

    Args:
        domain: The queried domain
        source: Source label for the record
        data: Decoded RDAP JSON

    Returns:
        ParsedRecord with raw_text set to the JSON text
    """
    record = ParsedRecord(domain=domain, source=source)

    events = data.get("events")
    if isinstance(events, list):
        for event in events:
            if not isinstance(event, dict):
                continue
            attr = EVENT_FIELDS.get(event.get("eventAction", ""))
            date = event.get("eventDate")
            if attr and isinstance(date, str):
                setattr(record, attr, date)

    status = data.get("status")
    if isinstance(status, list):
        statuses = [s for s in status if isinstance(s, str)]
        record.status_list = statuses or None

    nameservers = data.get("nameservers")
    if isinstance(nameservers, list):
        names = [
            ns["ldhName"] for ns in nameservers
            if isinstance(ns, dict) and isinstance(ns.get("ldhName"), str)
        ]
        record.name_servers = names or None

    entities = data.get("entities")
    if isinstance(entities, list):
        for entity in entities:
            if not isinstance(entity, dict):
                continue
            roles = entity.get("roles")
            role = next((r for r in roles if isinstance(r, str)), "") if isinstance(roles, list) else ""
            name = _vcard_full_name(entity)
            if name is None:
                continue
            if role == "registrant":
                record.registrant = name
            elif role == "registrar":
                record.registrar = name

    record.raw_text = json.dumps(data, ensure_ascii=False)
    return record


class RDAPClient:
    """
    Async RDAP client.

    A single httpx.AsyncClient is shared by all queries and created lazily;
    use the client as an async context manager or call close().
    """

    def __init__(
        self,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the RDAP client.

        Args:
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "RDAPClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def query_rdap_org(self, domain: str) -> ParsedRecord:
        """Query the rdap.org bootstrap redirector."""
        url = RDAP_ORG_URL.format(domain=domain)
        data = await self._fetch_json(ChannelId.RDAP_ORG, url)
        return parse_rdap_json(domain, ChannelId.RDAP_ORG.source_label, data)

    async def query_verisign(self, domain: str) -> ParsedRecord:
        """
        Query Verisign's registry RDAP.

        Raises:
            ChannelError: For TLDs other than .com/.net, or on any query failure
        """
        tld = extract_tld(domain)
        if tld not in VERISIGN_TLDS:
            raise ChannelError(
                channel=ChannelId.RDAP_VERISIGN,
                code=ChannelErrorCode.UNSUPPORTED_TLD.value,
                message="Verisign RDAP only serves .com/.net",
                details={"domain": domain, "tld": tld},
            )
        url = VERISIGN_RDAP_URL.format(tld=tld, domain=domain)
        data = await self._fetch_json(ChannelId.RDAP_VERISIGN, url)
        return parse_rdap_json(domain, ChannelId.RDAP_VERISIGN.source_label, data)

    async def _fetch_json(self, channel: ChannelId, url: str) -> dict[str, Any]:
        client = self._ensure_client()
        try:
            response = await client.get(
                url,
                headers={"Accept": "application/rdap+json, application/json"},
            )
        except httpx.TimeoutException:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.TIMEOUT.value,
                message=f"request timed out after {self._timeout}s",
                details={"url": url},
            )
        except httpx.HTTPError as e:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.NETWORK_ERROR.value,
                message=f"request failed: {e}",
                details={"url": url},
            )

        if not response.is_success:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.HTTP_STATUS.value,
                message=f"unexpected response status: {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.PARSE_ERROR.value,
                message=f"failed to parse response: {e}",
                details={"url": url},
            )
        if not isinstance(data, dict):
            raise ChannelError(
                channel=channel,
                code=ChannelErrorCode.PARSE_ERROR.value,
                message="response is not an RDAP object",
                details={"url": url},
            )
        return data

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
