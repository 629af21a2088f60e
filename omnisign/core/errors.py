"""
Error Classification

Errors raised by the signing engine and the completion monitor. Each error
states whether retrying the same call can help (``recoverable``).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class OmnisignError(Exception):
    """Base class for all engine errors."""

    recoverable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Signing
# =============================================================================

class SigningError(OmnisignError):
    """Base class for signing failures. Never retried."""


class MissingSigningContextError(SigningError):
    """Required hash, typed-data or delegation inputs are absent."""

    def __init__(self, message: str, missing_field: Optional[str] = None):
        super().__init__(message, details={"missing_field": missing_field})
        self.missing_field = missing_field


class MissingTypedDataError(MissingSigningContextError):
    """Role-based signing requires typedDataToSign."""

    def __init__(self, message: str = "TypedData is required for role-based account signing"):
        super().__init__(message, missing_field="typedDataToSign")


class MissingYParityError(SigningError):
    """The authorization signer returned a signature without a parity bit."""

    def __init__(self, message: str = "Y parity is required for EIP-7702 delegation"):
        super().__init__(message)


class MissingSigningPayloadError(SigningError):
    """Solana operation lacks dataToSign."""

    def __init__(self, message: str = "dataToSign is required for Solana operation signing"):
        super().__init__(message, details={"missing_field": "dataToSign"})
        self.missing_field = "dataToSign"


class SignerMismatchError(SigningError):
    """The supplied key is not a required signer of the payload."""


class UnsupportedAccountTypeError(SigningError):
    """No signing scheme is defined for the account type."""


class MissingSignerError(SigningError):
    """An operation needs a signer that was not supplied."""


class OperationSigningError(SigningError):
    """
    Signing a single operation within a quote failed.

    Wraps the underlying signer error and records which operation failed.
    """

    def __init__(self, index: int, cause: SigningError):
        missing = getattr(cause, "missing_field", None)
        message = f"Failed to sign origin operation {index}: {cause}"
        super().__init__(message, details={"index": index, "missing_field": missing})
        self.index = index
        self.cause = cause
        self.missing_field = missing


# =============================================================================
# Monitoring
# =============================================================================

class MonitoringError(OmnisignError):
    """Base class for completion monitoring outcomes other than success."""


class TerminalExecutionFailure(MonitoringError):
    """The status service reported FAILED or REFUNDED."""

    def __init__(self, quote_id: str, status: str, fail_reason: Optional[str] = None):
        message = f"Transaction {status.lower()}"
        if fail_reason:
            message = f"{message}: {fail_reason}"
        super().__init__(message, details={"quote_id": quote_id, "status": status})
        self.quote_id = quote_id
        self.status = status
        self.fail_reason = fail_reason


class MonitoringTimeout(MonitoringError):
    """No terminal status was observed before the deadline; outcome unknown."""

    recoverable = True

    def __init__(self, quote_id: str, timeout_s: float, last_status: Optional[str] = None):
        super().__init__(
            "Transaction monitoring timeout - check status manually",
            details={"quote_id": quote_id, "timeout_s": timeout_s, "last_status": last_status},
        )
        self.quote_id = quote_id
        self.timeout_s = timeout_s
        self.last_status = last_status


class MonitoringCancelled(MonitoringError):
    """Monitoring was abandoned by the caller; outcome unknown."""

    recoverable = True

    def __init__(self, quote_id: str):
        super().__init__("Transaction monitoring cancelled", details={"quote_id": quote_id})
        self.quote_id = quote_id


class MonitoringRetriesExhausted(MonitoringError):
    """wait_for_transaction gave up after exhausting its retries."""

    def __init__(self, quote_id: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(
            f"Failed to monitor transaction after {attempts} attempts",
            details={"quote_id": quote_id, "attempts": attempts},
        )
        self.quote_id = quote_id
        self.attempts = attempts
        self.last_error = last_error


class TransientQueryError(MonitoringError):
    """A status query failed; logged and retried until the deadline."""

    recoverable = True

    def __init__(self, quote_id: str, cause: BaseException):
        super().__init__(f"Status query failed for {quote_id}: {cause}", details={"quote_id": quote_id})
        self.quote_id = quote_id
        self.cause = cause
