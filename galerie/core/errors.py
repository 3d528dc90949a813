"""
Error Classification

Defines the wallet error taxonomy. Lifecycle failures inside adapters are
absorbed into adapter state; the classes below are what operation-level
callers (connect, sign, balance refresh, payments) see.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for retry decisions."""

    NOT_READY = "not_ready"                    # Adapter not initialized
    RATE_LIMIT = "rate_limit"                  # Provider throttling
    NETWORK = "network"                        # Transient I/O failure
    TIMEOUT = "timeout"                        # Handshake or request timed out
    INVALID_REQUEST = "invalid_request"        # Caller precondition violated
    NOT_FOUND = "not_found"                    # Ledger account absent
    SUBMISSION_REJECTED = "submission_rejected"  # Ledger rejected a transaction
    DERIVATION = "derivation"                  # Key derivation failed
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class WalletError(Exception):
    """Base class for wallet session errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    retryable: bool = False

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext(category=self.category, retryable=self.retryable)


class NotReadyError(WalletError):
    """Adapter is not initialized, optionally because its provider is throttling us."""

    category = ErrorCategory.NOT_READY

    def __init__(
        self,
        message: str = "Wallet provider is not ready",
        adapter: Optional[str] = None,
        rate_limited: bool = False,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                retryable=rate_limited,
                provider=adapter,
                suggested_action=(
                    "Authentication service is busy, try again in a few minutes"
                    if rate_limited
                    else "Wait for the wallet provider to finish initializing"
                ),
                details={"rate_limited": rate_limited},
            ),
        )
        self.adapter = adapter
        self.rate_limited = rate_limited


class RateLimitedError(WalletError):
    """External provider throttled the request."""

    category = ErrorCategory.RATE_LIMIT
    retryable = True

    def __init__(
        self,
        message: str = "Too many requests",
        retry_after: Optional[float] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                retryable=True,
                retry_after_seconds=retry_after,
                provider=provider,
                suggested_action="Retry with exponential backoff",
            ),
        )
        self.retry_after = retry_after


class NetworkError(WalletError):
    """Transient network failure."""

    category = ErrorCategory.NETWORK
    retryable = True

    def __init__(
        self,
        message: str = "Network error",
        provider: Optional[str] = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                retryable=True,
                provider=provider,
                suggested_action="Check network connectivity",
            ),
        )


class InvalidRequestError(WalletError):
    """Caller violated a precondition. Never retried."""

    category = ErrorCategory.INVALID_REQUEST

    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                details={"field": field_name} if field_name else {},
            ),
        )
        self.field_name = field_name


class NotFoundError(WalletError):
    """Ledger account does not exist."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, message: str = "Account not found", public_key: Optional[str] = None):
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                suggested_action="Fund the account before using it",
                details={"public_key": public_key} if public_key else {},
            ),
        )
        self.public_key = public_key


class SubmissionRejectedError(WalletError):
    """Ledger rejected a signed transaction."""

    category = ErrorCategory.SUBMISSION_REJECTED

    def __init__(
        self,
        message: str = "Transaction rejected",
        result_codes: Optional[Dict[str, Any]] = None,
    ):
        codes = result_codes or {}
        super().__init__(
            message,
            context=ErrorContext(
                category=self.category,
                suggested_action="Review transaction parameters",
                details={"result_codes": codes},
            ),
        )
        self.result_codes = codes

    @property
    def operation_codes(self) -> List[str]:
        return list(self.result_codes.get("operations") or [])


class DerivationFailureError(WalletError):
    """Could not derive a ledger key from a provider secret."""

    category = ErrorCategory.DERIVATION


_RATE_LIMIT_PATTERNS = ("429", "too many requests", "rate limit", "throttl")
_NETWORK_PATTERNS = ("failed to fetch", "network", "connection", "unreachable", "refused", "dns")
_TIMEOUT_PATTERNS = ("timeout", "timed out")


def classify_error(error: BaseException) -> ErrorContext:
    """
    Classify an exception and return its error context.

    SDK errors rarely carry types we know about, so the message is inspected for
    the signals providers actually emit (HTTP 429 text, fetch failures).
    """
    if isinstance(error, WalletError):
        return error.context

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorContext(category=ErrorCategory.TIMEOUT, retryable=True)

    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 429:
        return ErrorContext(category=ErrorCategory.RATE_LIMIT, retryable=True)

    if isinstance(error, httpx.TransportError):
        return ErrorContext(category=ErrorCategory.NETWORK, retryable=True)

    message = str(error).lower()

    status = getattr(error, "status", None) or getattr(error, "status_code", None)
    if status == 429 or any(p in message for p in _RATE_LIMIT_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.RATE_LIMIT,
            retryable=True,
            suggested_action="Wait before retrying",
        )

    if any(p in message for p in _NETWORK_PATTERNS):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            retryable=True,
            suggested_action="Check network connectivity",
        )

    if any(p in message for p in _TIMEOUT_PATTERNS):
        return ErrorContext(category=ErrorCategory.TIMEOUT, retryable=True)

    return ErrorContext(category=ErrorCategory.UNKNOWN, retryable=False)


def is_rate_limiting(error: BaseException) -> bool:
    """True for failures an identity provider emits when it is throttling us."""
    return classify_error(error).category in {ErrorCategory.RATE_LIMIT, ErrorCategory.NETWORK}
