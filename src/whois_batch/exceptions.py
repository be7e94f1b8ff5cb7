"""
Exception classes for the batch lookup system.

All exceptions inherit from WhoisBatchError and provide structured
error information with codes, messages, and optional details. Each
exception class maps onto one ErrorKind.
"""

from typing import Optional

from .enums import ChannelId, ErrorKind


class WhoisBatchError(Exception):
    """Base exception for all batch lookup errors."""

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value if self.kind else None,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(WhoisBatchError):
    """Raised when an input token is not a usable domain name."""

    kind = ErrorKind.VALIDATION


class ChannelError(WhoisBatchError):
    """Raised when a single channel query fails."""

    kind = ErrorKind.CHANNEL_FAILURE

    def __init__(
        self,
        channel: ChannelId,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.channel = channel
        super().__init__(code, message, details)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(channel={self.channel.value!r}, "
            f"code={self.code!r}, message={self.message!r})"
        )


class StoreError(WhoisBatchError):
    """Raised when a persisted store cannot be read, written or decoded."""

    kind = ErrorKind.STORE_FAILURE


class TamperingError(StoreError):
    """Raised when HMAC validation of a persisted blob fails."""

    pass


class ConfigError(WhoisBatchError):
    """Raised when configuration values are out of range."""

    kind = ErrorKind.VALIDATION
