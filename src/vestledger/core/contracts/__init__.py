"""
Ledger contracts: CW20 balances/allowances/vesting and marketing metadata.
"""

from vestledger.core.contracts.context import Env, Response
from vestledger.core.contracts.cw20 import Cw20Ledger

__all__ = ["Cw20Ledger", "Env", "Response"]
