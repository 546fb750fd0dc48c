"""
Ledger-specific exception hierarchy for vestledger.

Every core operation surfaces failures as one of these typed exceptions. The
caller (message layer, CLI) translates them into host-level failures; the
ledger itself never swallows or retries them.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried later
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(LedgerError):
    """Raised when an input fails validation rules."""
    pass


class InvalidAmount(ValidationError):
    """Raised when an amount is zero or negative where a positive one is required."""
    pass


class InvalidAddress(ValidationError):
    """Raised when an address is empty or malformed."""
    pass


class CannotSetOwnAccount(ValidationError):
    """Raised when an owner tries to grant an allowance to itself."""
    pass


class DuplicateInitialBalanceAddresses(ValidationError):
    """Raised when instantiate lists the same address twice."""
    pass


class InvalidCategory(ValidationError):
    """Raised when a category reference does not name a usable parent schedule."""
    pass


class InvalidVestingSchedule(ValidationError):
    """Raised when vesting grant parameters are inconsistent."""
    pass


class ScheduleAlreadyExists(ValidationError):
    """Raised when an address already holds a vesting schedule."""
    pass


class InvalidExpiration(ValidationError):
    """Raised when an allowance is set with an expiration already in the past."""
    pass


class AlreadyInstantiated(ValidationError):
    """Raised when instantiate runs against a store that already holds a token."""
    pass


class InvalidLogo(ValidationError):
    """Raised when an embedded logo is not a valid svg/png."""
    pass


class LogoTooBig(ValidationError):
    """Raised when an embedded logo exceeds the size cap."""
    pass


# ==================== Authorization Errors ====================


class AuthorizationError(LedgerError):
    """Raised when the caller lacks the rights for an operation."""
    pass


class Unauthorized(AuthorizationError):
    """Raised when the caller is not the minter or marketing address."""
    pass


# ==================== Supply Errors ====================


class SupplyError(LedgerError):
    """Raised when an operation would break total supply rules."""
    pass


class CapExceeded(SupplyError):
    """Raised when minting would push total supply past the cap."""
    pass


# ==================== Balance & Allowance Errors ====================


class BalanceError(LedgerError):
    """Raised when balances or allowances cannot cover an operation."""
    pass


class InsufficientFunds(BalanceError):
    """Raised when a debit exceeds the holder's balance."""
    pass


class InsufficientAllowance(BalanceError):
    """Raised when a delegated spend exceeds the remaining allowance."""
    pass


class AllowanceExpired(InsufficientAllowance):
    """Raised when a delegated spend uses an expired allowance."""
    pass


# ==================== Vesting Errors ====================


class VestingError(LedgerError):
    """Raised when vesting accrual or claims fail."""
    pass


class CliffNotReached(VestingError):
    """Raised when a claim is attempted before the cliff has elapsed."""
    recoverable = True


class NothingToClaim(VestingError):
    """Raised when a claim finds no newly vested tokens."""
    recoverable = True


class ScheduleNotFound(VestingError):
    """Raised when an address has no vesting schedule."""
    pass


# ==================== Arithmetic Errors ====================


class ArithmeticOverflow(LedgerError):
    """Raised when a checked Uint128 operation leaves the representable range."""
    pass


# ==================== Storage & Configuration Errors ====================


class StorageError(LedgerError):
    """Raised when the key-value store cannot be read or written."""
    pass


class CorruptedStateError(StorageError):
    """Raised when persisted ledger state cannot be decoded."""
    pass


class ConfigurationError(LedgerError):
    """Raised when ledger configuration is invalid."""
    pass


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a condition that may clear with time.

    Args:
        exc: The exception to check

    Returns:
        True if retrying later (e.g. after the cliff) may succeed
    """
    if isinstance(exc, LedgerError):
        return exc.recoverable
    return False


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, LedgerError):
        context["recoverable"] = is_recoverable_error(exc)
        if exc.details:
            context["details"] = exc.details

    return context
