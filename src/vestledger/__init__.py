"""
vestledger - CW20 token ledger with capped minting, allowances and vesting schedules.
"""

__version__ = "0.1.0"
