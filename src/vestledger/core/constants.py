"""
vestledger Constants

Protocol-level numbers shared by the ledger, the vesting engine and the CLI.

NOTE: Values marked [STATE] are baked into persisted records. Changing them
changes how existing schedules and balances are interpreted.
"""

from typing import Final

# =============================================================================
# INTEGER WIDTH [STATE]
# =============================================================================

UINT128_MAX: Final[int] = 2**128 - 1

# =============================================================================
# TIME CONSTANTS (in seconds)
# =============================================================================

SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24
SECONDS_PER_30_DAYS: Final[int] = 30 * SECONDS_PER_DAY

# cliff_period is expressed in months; one month is a fixed 30-day unit [STATE]
CLIFF_MONTH_SECONDS: Final[int] = SECONDS_PER_30_DAYS

# =============================================================================
# TOKEN METADATA LIMITS
# =============================================================================

NAME_MIN_LENGTH: Final[int] = 3
NAME_MAX_LENGTH: Final[int] = 50
SYMBOL_PATTERN: Final[str] = r"^[a-zA-Z\-]{3,12}$"
MAX_DECIMALS: Final[int] = 18

# Embedded logos (svg/png) are capped at 5 KiB
LOGO_SIZE_CAP: Final[int] = 5 * 1024
PNG_HEADER: Final[bytes] = b"\x89PNG\r\n\x1a\n"

# =============================================================================
# STORAGE NAMESPACES [STATE]
# =============================================================================

KEY_TOKEN_INFO: Final[str] = "token_info"
KEY_MARKETING_INFO: Final[str] = "marketing_info"
KEY_LOGO: Final[str] = "logo"
NS_BALANCE: Final[str] = "balance"
NS_ALLOWANCE: Final[str] = "allowance"
NS_VESTING_DETAILS: Final[str] = "vesting_details"
NS_VESTING_CATEGORY: Final[str] = "vesting_category"
KEY_SEPARATOR: Final[str] = ":"
