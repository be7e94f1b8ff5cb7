"""
Domain set parsing and normalization.

Turns free-form text into an ordered, deduplicated set of lowercase
domain names. Tokens that are not valid domain names are dropped
silently; parsing never fails.
"""

import re
from typing import Iterable, Iterator, Optional

import idna

from .exceptions import ValidationError


TOKEN_SEPARATORS = re.compile(r"[\s,;]+")

# Labels of 1-63 alphanumerics/hyphens without leading or trailing hyphen,
# alphabetic top-level label of at least two characters.
DOMAIN_PATTERN = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$"
)

MAX_DOMAIN_LENGTH = 253


def normalize_domain(token: str) -> str:
    """
    Normalize one token to its canonical domain form.

    Args:
        token: A single candidate domain, possibly with surrounding
            whitespace, upper case, a trailing dot or non-ASCII labels

    Returns:
        The lowercase (IDNA-encoded where needed) domain name

    Raises:
        ValidationError: If the token is not a valid domain name
    """
    candidate = token.strip().lower()
    if candidate.endswith("."):
        candidate = candidate[:-1]
    if not candidate:
        raise ValidationError(
            code="empty_input",
            message="Domain input is empty",
            details={"raw_input": token},
        )

    if any(ord(c) > 127 for c in candidate):
        try:
            candidate = idna.encode(candidate, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code="idna_error",
                message=f"IDNA encoding failed: {e}",
                details={"raw_input": token},
            )

    if len(candidate) > MAX_DOMAIN_LENGTH or not DOMAIN_PATTERN.match(candidate):
        raise ValidationError(
            code="invalid_domain",
            message=f"Not a valid domain name: {token!r}",
            details={"raw_input": token},
        )
    return candidate


def try_normalize(token: str) -> Optional[str]:
    """Normalize a token, returning None instead of raising."""
    try:
        return normalize_domain(token)
    except ValidationError:
        return None


class DomainSet:
    """
    Ordered set of normalized domain names.

    Iteration order is first-seen input order.
    """

    def __init__(self, domains: Iterable[str] = ()) -> None:
        self._domains: dict[str, None] = {}
        for domain in domains:
            self.add(domain)

    @classmethod
    def parse(cls, text: str) -> "DomainSet":
        """
        Parse free-form text into a DomainSet.

        Splits on whitespace, commas and semicolons. Invalid tokens are
        dropped, duplicates keep their first position.

        Args:
            text: Raw user input

        Returns:
            DomainSet, empty for empty or fully invalid input
        """
        result = cls()
        for token in TOKEN_SEPARATORS.split(text or ""):
            if token:
                result.add(token)
        return result

    def add(self, token: str) -> bool:
        """
        Add a token if it normalizes to a valid, unseen domain.

        Returns:
            True if the set grew
        """
        domain = try_normalize(token)
        if domain is None or domain in self._domains:
            return False
        self._domains[domain] = None
        return True

    def to_list(self) -> list[str]:
        return list(self._domains)

    def to_text(self) -> str:
        """Newline-joined form, parseable back into an equal set."""
        return "\n".join(self._domains)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._domains))

    def __len__(self) -> int:
        return len(self._domains)

    def __contains__(self, item: object) -> bool:
        return item in self._domains

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DomainSet):
            return self.to_list() == other.to_list()
        return NotImplemented

    def __repr__(self) -> str:
        return f"DomainSet({self.to_list()!r})"
