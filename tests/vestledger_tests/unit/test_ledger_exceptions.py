"""
Tests for the ledger exception hierarchy and its helpers.
"""

from vestledger.core.ledger_exceptions import (
    AllowanceExpired,
    BalanceError,
    CapExceeded,
    CliffNotReached,
    InsufficientAllowance,
    InsufficientFunds,
    LedgerError,
    NothingToClaim,
    SupplyError,
    get_error_context,
    is_recoverable_error,
)


class TestHierarchy:
    def test_expired_allowance_counts_as_insufficient(self):
        assert issubclass(AllowanceExpired, InsufficientAllowance)
        assert issubclass(InsufficientAllowance, BalanceError)

    def test_families(self):
        assert issubclass(InsufficientFunds, LedgerError)
        assert issubclass(CapExceeded, SupplyError)


class TestRecoverability:
    def test_vesting_timing_errors_are_recoverable(self):
        assert is_recoverable_error(CliffNotReached("wait"))
        assert is_recoverable_error(NothingToClaim("wait"))

    def test_other_errors_are_not(self):
        assert not is_recoverable_error(InsufficientFunds("no"))
        assert not is_recoverable_error(ValueError("plain"))

    def test_instance_override(self):
        assert is_recoverable_error(InsufficientFunds("later", recoverable=True))
        assert not is_recoverable_error(CliffNotReached("never", recoverable=False))


class TestErrorContext:
    def test_ledger_error_context(self):
        exc = CapExceeded("over cap", details={"cap": "100"})
        context = get_error_context(exc)
        assert context == {
            "error_type": "CapExceeded",
            "error_message": "over cap",
            "recoverable": False,
            "details": {"cap": "100"},
        }

    def test_plain_exception_context(self):
        context = get_error_context(RuntimeError("boom"))
        assert context == {"error_type": "RuntimeError", "error_message": "boom"}
