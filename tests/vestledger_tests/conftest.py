import pytest

from vestledger.core.contracts import Cw20Ledger, Env
from vestledger.core.input_validation_schemas import (
    Cw20Coin,
    InstantiateMsg,
    MinterInput,
    VestingGrantInput,
)
from vestledger.core.storage import MemoryStore

DAY = 86400
MONTH = 30 * DAY


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def ledger(store):
    """Token with alice holding 1000 and issuer as minter capped at 1,000,000."""
    ledger = Cw20Ledger(store)
    msg = InstantiateMsg(
        name="Vest Token",
        symbol="VEST",
        decimals=6,
        initial_balances=[
            Cw20Coin(address="alice", amount=1000),
            Cw20Coin(address="bob", amount=50),
        ],
        mint=MinterInput(minter="issuer", cap=1_000_000),
    )
    ledger.instantiate(Env(sender="issuer", time=0), msg)
    return ledger


@pytest.fixture
def scenario_grant():
    """Seed 1000 after a one-month cliff, then 100 every 30 days up to 2000."""
    return VestingGrantInput(
        address="investor",
        vesting_start_timestamp=0,
        initial_vesting_count=1000,
        vesting_periodicity=MONTH,
        vesting_count_per_period=100,
        total_vesting_token_count=2000,
        cliff_period=1,
    )
