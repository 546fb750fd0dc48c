"""
Tests for persisted records, address rules and checked arithmetic.
"""

import pytest

from vestledger.core.constants import CLIFF_MONTH_SECONDS, SECONDS_PER_DAY, UINT128_MAX
from vestledger.core.ledger_exceptions import (
    ArithmeticOverflow,
    CorruptedStateError,
    InvalidAddress,
)
from vestledger.core.safe_math import (
    checked_add,
    checked_mul,
    checked_sub,
    require_uint128,
    saturating_sub,
)
from vestledger.core.state import (
    ALLOWANCES,
    BALANCES,
    TOKEN_INFO,
    VESTING_DETAILS,
    AllowanceRecord,
    Expiration,
    Logo,
    MinterData,
    TokenInfo,
    VestingDetails,
    normalize_address,
)
from vestledger.core.storage import MemoryStore


class TestAddresses:
    """Address normalization"""

    def test_lowercases(self):
        assert normalize_address("Alice") == "alice"

    @pytest.mark.parametrize("address", ["", "   ", "al ice", " alice", "a:b", None])
    def test_rejects_malformed(self, address):
        with pytest.raises(InvalidAddress):
            normalize_address(address)


class TestSafeMath:
    """Uint128 bounds"""

    def test_add_at_limit(self):
        assert checked_add(UINT128_MAX - 1, 1) == UINT128_MAX
        with pytest.raises(ArithmeticOverflow):
            checked_add(UINT128_MAX, 1)

    def test_sub_underflow(self):
        assert checked_sub(5, 5) == 0
        with pytest.raises(ArithmeticOverflow):
            checked_sub(4, 5)

    def test_mul_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            checked_mul(2**64, 2**64)

    def test_saturating_sub_floors_at_zero(self):
        assert saturating_sub(3, 10) == 0
        assert saturating_sub(10, 3) == 7

    @pytest.mark.parametrize("value", [-1, UINT128_MAX + 1, True, 1.5, "10"])
    def test_require_uint128_rejects(self, value):
        with pytest.raises(ArithmeticOverflow):
            require_uint128(value)


class TestExpiration:
    """Allowance expiry"""

    def test_never(self):
        assert not Expiration.never().is_expired(10**9, 10**12)

    def test_at_height_inclusive(self):
        expires = Expiration.at_height(10)
        assert not expires.is_expired(9, 0)
        assert expires.is_expired(10, 0)

    def test_at_time_inclusive(self):
        expires = Expiration.at_time(100)
        assert not expires.is_expired(0, 99)
        assert expires.is_expired(0, 100)

    def test_persisted_form(self):
        record = AllowanceRecord(25, Expiration.at_time(100))
        assert record.to_dict() == {"allowance": "25", "expires": {"at_time": 100}}
        assert AllowanceRecord.from_dict(record.to_dict()) == record
        assert AllowanceRecord.from_dict({"allowance": "1"}).expires == Expiration.never()

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Expiration("at_epoch", 5)

    def test_unknown_stored_kind_is_corruption(self):
        store = MemoryStore(
            {"allowance:alice:bob": {"allowance": "5", "expires": {"at_epoch": 5}}}
        )
        with pytest.raises(CorruptedStateError):
            ALLOWANCES.may_load(store, "alice", "bob")

    def test_cliff_month_is_thirty_days(self):
        assert CLIFF_MONTH_SECONDS == 30 * SECONDS_PER_DAY == 2_592_000


class TestRecords:
    """Record encoding in the store"""

    def test_amounts_stored_as_strings(self):
        store = MemoryStore()
        BALANCES.save(store, UINT128_MAX, "alice")
        assert store.get("balance:alice") == str(UINT128_MAX)
        assert BALANCES.may_load(store, "alice") == UINT128_MAX

    def test_token_info(self):
        store = MemoryStore()
        info = TokenInfo("Vest Token", "VEST", 6, 1050, MinterData("issuer", None))
        TOKEN_INFO.save(store, info)
        assert store.get("token_info")["mint"] == {"minter": "issuer", "cap": None}
        assert TOKEN_INFO.load(store) == info
        assert TOKEN_INFO.load(store).get_cap() is None

    def test_vesting_details(self):
        store = MemoryStore()
        schedule = VestingDetails(
            vesting_start_timestamp=5,
            initial_vesting_count=10,
            total_vesting_token_count=UINT128_MAX,
            last_claimed_timestamp=7,
            category_address="fund",
        )
        VESTING_DETAILS.save(store, schedule, "alice")
        raw = store.get("vesting_details:alice")
        assert raw["total_vesting_token_count"] == str(UINT128_MAX)
        assert raw["last_vesting_timestamp"] is None
        assert VESTING_DETAILS.may_load(store, "alice") == schedule
        assert schedule.unclaimed == UINT128_MAX

    def test_missing_token_info_is_corruption(self):
        with pytest.raises(CorruptedStateError):
            TOKEN_INFO.load(MemoryStore())

    def test_undecodable_record_is_corruption(self):
        store = MemoryStore({"balance:alice": "ten"})
        with pytest.raises(CorruptedStateError):
            BALANCES.may_load(store, "alice")

    def test_logo_persisted_as_base64(self):
        logo = Logo(svg=b"<svg/>")
        assert logo.to_dict() == {"embedded": {"svg": "PHN2Zy8+"}}
        assert Logo.from_dict(logo.to_dict()) == logo
        assert not Logo(url="https://example.com/logo.png").is_embedded
