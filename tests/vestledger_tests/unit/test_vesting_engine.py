"""
Tests for the vesting accrual engine.

Covers cliff gating, seed unlock, periodic release, idempotent accrual,
clamping to the total allocation and checked arithmetic.
"""

import dataclasses

import pytest

from vestledger.core.constants import UINT128_MAX
from vestledger.core.ledger_exceptions import (
    ArithmeticOverflow,
    CliffNotReached,
    InvalidVestingSchedule,
    NothingToClaim,
)
from vestledger.core.state import VestingDetails
from vestledger.core.vesting import (
    accrue,
    claim,
    cliff_end_timestamp,
    new_schedule,
    validate_schedule,
    vested_periodic_amount,
    vesting_end_timestamp,
)

DAY = 86400
MONTH = 30 * DAY


def scenario_schedule(**overrides):
    params = dict(
        vesting_start_timestamp=0,
        initial_vesting_count=1000,
        vesting_periodicity=MONTH,
        vesting_count_per_period=100,
        total_vesting_token_count=2000,
        cliff_period=1,
    )
    params.update(overrides)
    return new_schedule(**params)


class TestCliff:
    """Nothing is released before the cliff ends"""

    def test_cliff_end_uses_30_day_months(self):
        schedule = scenario_schedule(vesting_start_timestamp=1_000, cliff_period=3)
        assert cliff_end_timestamp(schedule) == 1_000 + 3 * MONTH

    def test_claim_before_cliff_raises(self):
        schedule = scenario_schedule()
        with pytest.raises(CliffNotReached) as exc_info:
            claim(schedule, 29 * DAY)
        assert exc_info.value.details["cliff_end"] == MONTH

    def test_claim_before_cliff_leaves_schedule_untouched(self):
        schedule = scenario_schedule()
        before = dataclasses.replace(schedule)
        with pytest.raises(CliffNotReached):
            claim(schedule, 29 * DAY)
        assert schedule == before

    def test_accrue_before_cliff_only_advances_timestamp(self):
        schedule = scenario_schedule()
        newly, updated = accrue(schedule, 10 * DAY)
        assert newly == 0
        assert updated.tokens_available_to_claim == 0
        assert updated.initial_vesting_consumed == 0
        assert updated.last_vesting_timestamp == 10 * DAY

    def test_zero_cliff_unlocks_seed_at_start(self):
        schedule = scenario_schedule(cliff_period=0, vesting_start_timestamp=500)
        amount, _ = claim(schedule, 500)
        assert amount == 1000


class TestScenario:
    """Seed 1000 at a one-month cliff, then 100 per 30 days up to 2000"""

    def test_claim_sequence(self):
        schedule = scenario_schedule()

        with pytest.raises(CliffNotReached):
            claim(schedule, 29 * DAY)

        amount, schedule = claim(schedule, 31 * DAY)
        assert amount == 1000
        assert schedule.initial_vesting_consumed == 1000
        assert schedule.total_claimed_tokens_till_now == 1000
        assert schedule.last_claimed_timestamp == 31 * DAY

        amount, schedule = claim(schedule, 91 * DAY)
        assert amount == 200
        assert schedule.total_claimed_tokens_till_now == 1200
        assert schedule.tokens_available_to_claim == 0

    def test_full_allocation_claimed_after_end(self):
        schedule = scenario_schedule()
        amount, schedule = claim(schedule, 10_000 * DAY)
        assert amount == 2000
        assert schedule.total_claimed_tokens_till_now == schedule.total_vesting_token_count

        with pytest.raises(NothingToClaim):
            claim(schedule, 20_000 * DAY)

    def test_vesting_end_timestamp(self):
        schedule = scenario_schedule()
        # 1000 periodic tokens at 100 per period after the cliff
        assert vesting_end_timestamp(schedule) == MONTH + 10 * MONTH


class TestAccrual:
    """Accrual bookkeeping"""

    def test_accrue_is_idempotent_for_same_time(self):
        schedule = scenario_schedule()
        first, schedule = accrue(schedule, 95 * DAY)
        second, schedule = accrue(schedule, 95 * DAY)
        assert first == 1000 + 200
        assert second == 0
        assert schedule.tokens_available_to_claim == 1200

    def test_accrue_does_not_mutate_input(self):
        schedule = scenario_schedule()
        accrue(schedule, 95 * DAY)
        assert schedule.tokens_available_to_claim == 0
        assert schedule.last_vesting_timestamp is None

    def test_accrued_tokens_are_claimed_together(self):
        schedule = scenario_schedule()
        _, schedule = accrue(schedule, 31 * DAY)
        amount, schedule = claim(schedule, 61 * DAY)
        assert amount == 1100

    def test_periods_count_from_cliff_end(self):
        schedule = scenario_schedule()
        assert vested_periodic_amount(schedule, MONTH + MONTH - 1) == 0
        assert vested_periodic_amount(schedule, MONTH + MONTH) == 100

    def test_periodic_amount_clamped_to_allocation(self):
        schedule = scenario_schedule(vesting_count_per_period=300)
        # 1000 periodic tokens, 300 per period: the 4th period only adds 100
        assert vested_periodic_amount(schedule, MONTH + 3 * MONTH) == 900
        assert vested_periodic_amount(schedule, MONTH + 4 * MONTH) == 1000

    def test_claimed_plus_available_never_exceeds_total(self):
        schedule = scenario_schedule(vesting_count_per_period=700)
        for day in (31, 61, 91, 121, 400):
            _, schedule = accrue(schedule, day * DAY)
            assert (
                schedule.total_claimed_tokens_till_now + schedule.tokens_available_to_claim
                <= schedule.total_vesting_token_count
            )

    def test_claimed_total_is_monotonic(self):
        schedule = scenario_schedule()
        previous = 0
        for day in (31, 45, 61, 62, 150, 151, 400):
            try:
                _, schedule = claim(schedule, day * DAY)
            except NothingToClaim:
                pass
            assert schedule.total_claimed_tokens_till_now >= previous
            previous = schedule.total_claimed_tokens_till_now
        assert previous == 2000

    def test_seed_only_schedule(self):
        schedule = new_schedule(
            vesting_start_timestamp=0, total_vesting_token_count=500, initial_vesting_count=500
        )
        amount, schedule = claim(schedule, 0)
        assert amount == 500
        assert vesting_end_timestamp(schedule) == 0

    def test_huge_elapsed_time_does_not_overflow(self):
        schedule = scenario_schedule(vesting_periodicity=1, vesting_count_per_period=UINT128_MAX)
        newly, _ = accrue(schedule, 10**30)
        assert newly == 2000

    def test_corrupted_consumed_counter_is_checked(self):
        schedule = VestingDetails(
            initial_vesting_count=10,
            initial_vesting_consumed=20,
            total_vesting_token_count=10,
        )
        with pytest.raises(ArithmeticOverflow):
            accrue(schedule, 0)


class TestValidation:
    """Grant parameter validation"""

    def test_seed_larger_than_total_rejected(self):
        with pytest.raises(InvalidVestingSchedule):
            scenario_schedule(initial_vesting_count=3000)

    def test_zero_total_rejected(self):
        with pytest.raises(InvalidVestingSchedule):
            new_schedule(vesting_start_timestamp=0, total_vesting_token_count=0)

    def test_periodic_part_needs_periodicity(self):
        with pytest.raises(InvalidVestingSchedule):
            scenario_schedule(vesting_periodicity=0)

    def test_periodic_part_needs_amount_per_period(self):
        with pytest.raises(InvalidVestingSchedule):
            scenario_schedule(vesting_count_per_period=0)

    def test_amounts_must_fit_uint128(self):
        schedule = VestingDetails(total_vesting_token_count=UINT128_MAX + 1)
        with pytest.raises(ArithmeticOverflow):
            validate_schedule(schedule)

    def test_negative_start_rejected(self):
        with pytest.raises(ArithmeticOverflow):
            scenario_schedule(vesting_start_timestamp=-1)
