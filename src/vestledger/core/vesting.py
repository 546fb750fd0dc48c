"""
vestledger - Vesting Accrual Engine

Pure computation over a VestingDetails record and a block timestamp. Nothing
here touches the store: callers load a schedule, run accrue()/claim(), and
persist the returned copy inside their own transaction.

Release model:
- Nothing is released before ``vesting_start_timestamp + cliff_period`` months
  (one month is CLIFF_MONTH_SECONDS).
- At the cliff the seed (``initial_vesting_count``) unlocks in one step.
- Each full ``vesting_periodicity`` elapsed after the cliff releases
  ``vesting_count_per_period`` more, until ``total_vesting_token_count``.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Optional, Tuple

from vestledger.core.constants import CLIFF_MONTH_SECONDS
from vestledger.core.ledger_exceptions import (
    CliffNotReached,
    InvalidVestingSchedule,
    NothingToClaim,
)
from vestledger.core.safe_math import (
    checked_add,
    checked_mul,
    checked_sub,
    require_uint128,
    saturating_sub,
)
from vestledger.core.state import VestingDetails

logger = logging.getLogger(__name__)


def cliff_end_timestamp(schedule: VestingDetails) -> int:
    """Instant from which the schedule may release tokens."""
    return checked_add(
        schedule.vesting_start_timestamp,
        checked_mul(schedule.cliff_period, CLIFF_MONTH_SECONDS),
    )


def cliff_passed(schedule: VestingDetails, now: int) -> bool:
    return now >= cliff_end_timestamp(schedule)


def vested_periodic_amount(schedule: VestingDetails, now: int) -> int:
    """
    Periodic tokens vested by ``now``, excluding the seed.

    Bounded by ``total_vesting_token_count - initial_vesting_count``.
    """
    if schedule.vesting_periodicity == 0 or schedule.vesting_count_per_period == 0:
        return 0
    cliff_end = cliff_end_timestamp(schedule)
    if now <= cliff_end:
        return 0

    periodic_cap = saturating_sub(
        schedule.total_vesting_token_count, schedule.initial_vesting_count
    )
    periods_elapsed = (now - cliff_end) // schedule.vesting_periodicity
    # Past the last full period the cap applies; skip the product entirely
    if periods_elapsed >= -(-periodic_cap // schedule.vesting_count_per_period):
        return periodic_cap
    return min(checked_mul(periods_elapsed, schedule.vesting_count_per_period), periodic_cap)


def accrue(schedule: VestingDetails, now: int) -> Tuple[int, VestingDetails]:
    """
    Compute tokens newly available to claim at ``now``.

    Args:
        schedule: Current schedule (not modified)
        now: Block timestamp in seconds

    Returns:
        (newly_available, updated copy of the schedule)

    Calling accrue again with the same ``now`` on the returned schedule
    yields zero.
    """
    updated = dataclasses.replace(schedule)
    updated.last_vesting_timestamp = now

    if not cliff_passed(schedule, now):
        return 0, updated

    seed_delta = checked_sub(schedule.initial_vesting_count, schedule.initial_vesting_consumed)

    released = checked_add(
        schedule.total_claimed_tokens_till_now, schedule.tokens_available_to_claim
    )
    already_periodic = saturating_sub(released, schedule.initial_vesting_consumed)
    periodic_delta = saturating_sub(vested_periodic_amount(schedule, now), already_periodic)

    headroom = saturating_sub(schedule.total_vesting_token_count, released)
    newly_available = min(checked_add(seed_delta, periodic_delta), headroom)

    updated.initial_vesting_consumed = schedule.initial_vesting_count
    updated.tokens_available_to_claim = checked_add(
        schedule.tokens_available_to_claim, newly_available
    )

    if newly_available:
        logger.debug(
            "Vesting accrued",
            extra={
                "event": "vesting.accrued",
                "seed": min(seed_delta, newly_available),
                "newly_available": newly_available,
                "available": updated.tokens_available_to_claim,
                "at": now,
            },
        )
    return newly_available, updated


def claim(schedule: VestingDetails, now: int) -> Tuple[int, VestingDetails]:
    """
    Accrue and then move everything available into the claimed total.

    Returns:
        (amount to credit to the holder's balance, updated copy of the schedule)

    Raises:
        CliffNotReached: ``now`` is before the end of the cliff
        NothingToClaim: no tokens are available after accrual
    """
    cliff_end = cliff_end_timestamp(schedule)
    if now < cliff_end:
        raise CliffNotReached(
            f"Cliff period not reached: claimable from {cliff_end}, now {now}",
            details={"cliff_end": cliff_end, "now": now},
        )

    _, updated = accrue(schedule, now)
    amount = updated.tokens_available_to_claim
    if amount == 0:
        raise NothingToClaim(
            "No vested tokens available to claim",
            details={
                "claimed": str(updated.total_claimed_tokens_till_now),
                "total": str(updated.total_vesting_token_count),
            },
        )

    updated.total_claimed_tokens_till_now = checked_add(
        updated.total_claimed_tokens_till_now, amount
    )
    updated.tokens_available_to_claim = 0
    updated.last_claimed_timestamp = now
    return amount, updated


def validate_schedule(schedule: VestingDetails) -> None:
    """Reject grants whose parameters cannot vest consistently."""
    for name in (
        "vesting_start_timestamp",
        "initial_vesting_count",
        "initial_vesting_consumed",
        "vesting_periodicity",
        "vesting_count_per_period",
        "total_vesting_token_count",
        "total_claimed_tokens_till_now",
        "tokens_available_to_claim",
        "cliff_period",
    ):
        require_uint128(getattr(schedule, name), name)

    if schedule.total_vesting_token_count == 0:
        raise InvalidVestingSchedule("Total vesting amount must be positive")
    if schedule.initial_vesting_count > schedule.total_vesting_token_count:
        raise InvalidVestingSchedule(
            "Initial vesting count exceeds total vesting amount",
            details={
                "initial_vesting_count": str(schedule.initial_vesting_count),
                "total_vesting_token_count": str(schedule.total_vesting_token_count),
            },
        )
    if schedule.initial_vesting_consumed > schedule.initial_vesting_count:
        raise InvalidVestingSchedule("Initial vesting consumed exceeds initial vesting count")
    if (
        schedule.total_claimed_tokens_till_now + schedule.tokens_available_to_claim
        > schedule.total_vesting_token_count
    ):
        raise InvalidVestingSchedule("Claimed and available tokens exceed total vesting amount")

    periodic_part = schedule.total_vesting_token_count - schedule.initial_vesting_count
    if periodic_part > 0:
        if schedule.vesting_count_per_period == 0:
            raise InvalidVestingSchedule(
                "Vesting count per period must be positive when tokens remain after the seed"
            )
        if schedule.vesting_periodicity == 0:
            raise InvalidVestingSchedule(
                "Vesting periodicity must be positive when tokens remain after the seed"
            )
    # The cliff end must be representable
    cliff_end_timestamp(schedule)


def new_schedule(
    vesting_start_timestamp: int,
    total_vesting_token_count: int,
    initial_vesting_count: int = 0,
    vesting_periodicity: int = 0,
    vesting_count_per_period: int = 0,
    cliff_period: int = 0,
    category_address: Optional[str] = None,
) -> VestingDetails:
    """Build and validate a fresh schedule with nothing claimed yet."""
    schedule = VestingDetails(
        vesting_start_timestamp=vesting_start_timestamp,
        initial_vesting_count=initial_vesting_count,
        vesting_periodicity=vesting_periodicity,
        vesting_count_per_period=vesting_count_per_period,
        total_vesting_token_count=total_vesting_token_count,
        cliff_period=cliff_period,
        category_address=category_address,
    )
    validate_schedule(schedule)
    return schedule


def vesting_end_timestamp(schedule: VestingDetails) -> Optional[int]:
    """Instant at which the whole allocation has vested, or None if it never does."""
    cliff_end = cliff_end_timestamp(schedule)
    periodic_part = saturating_sub(
        schedule.total_vesting_token_count, schedule.initial_vesting_count
    )
    if periodic_part == 0:
        return cliff_end
    if schedule.vesting_count_per_period == 0 or schedule.vesting_periodicity == 0:
        return None
    periods_needed = -(-periodic_part // schedule.vesting_count_per_period)
    return cliff_end + periods_needed * schedule.vesting_periodicity
