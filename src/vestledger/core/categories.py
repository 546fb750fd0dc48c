"""
vestledger - Vesting Categories

A schedule may name a parent category (another holder's schedule) through
``category_address``. The link is a plain lookup key used for reporting; it
grants the parent no authority over the child's tokens.

Only one level is allowed: a parent must itself be top-level. Members are
indexed under ``vesting_category:{parent}:{member}`` so rollups do not need to
scan every schedule.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from vestledger.core.ledger_exceptions import CorruptedStateError, InvalidCategory
from vestledger.core.safe_math import checked_add
from vestledger.core.state import (
    VESTING_CATEGORY_INDEX,
    VESTING_DETAILS,
    normalize_address,
)
from vestledger.core.storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class CategoryRollup:
    """Aggregate view over all schedules sharing a parent category."""

    category_address: str
    member_count: int = 0
    total_vesting_token_count: int = 0
    total_claimed_tokens_till_now: int = 0
    tokens_available_to_claim: int = 0
    members: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_address": self.category_address,
            "member_count": self.member_count,
            "total_vesting_token_count": str(self.total_vesting_token_count),
            "total_claimed_tokens_till_now": str(self.total_claimed_tokens_till_now),
            "tokens_available_to_claim": str(self.tokens_available_to_claim),
            "members": list(self.members),
        }


def resolve_category(
    store: KeyValueStore, holder: str, category_address: Optional[str]
) -> Optional[str]:
    """
    Validate the parent category of a new schedule.

    Returns:
        The normalized category address, or None for a top-level schedule

    Raises:
        InvalidCategory: parent missing, nested, or the holder itself
    """
    if category_address is None:
        return None
    category = normalize_address(category_address, "category_address")
    if category == holder:
        raise InvalidCategory(
            "A schedule cannot be its own category", details={"address": holder}
        )
    parent = VESTING_DETAILS.may_load(store, category)
    if parent is None:
        raise InvalidCategory(
            f"Category {category} has no vesting schedule",
            details={"category_address": category},
        )
    if parent.category_address is not None:
        raise InvalidCategory(
            f"Category {category} is itself under {parent.category_address}",
            details={"category_address": category, "parent": parent.category_address},
        )
    return category


def add_member(store: KeyValueStore, category: str, member: str) -> None:
    VESTING_CATEGORY_INDEX.save(store, {}, category, member)


def category_members(store: KeyValueStore, category: str) -> List[str]:
    return [member for member, _ in VESTING_CATEGORY_INDEX.range(store, category)]


def category_rollup(store: KeyValueStore, category_address: str) -> CategoryRollup:
    """Sum allocation, claimed and available tokens over a category's members."""
    category = normalize_address(category_address, "category_address")
    rollup = CategoryRollup(category_address=category)

    for member in category_members(store, category):
        schedule = VESTING_DETAILS.may_load(store, member)
        if schedule is None or schedule.category_address != category:
            raise CorruptedStateError(
                f"Category index lists {member} under {category} but its schedule disagrees",
                details={"category_address": category, "member": member},
            )
        rollup.members.append(member)
        rollup.member_count += 1
        rollup.total_vesting_token_count = checked_add(
            rollup.total_vesting_token_count, schedule.total_vesting_token_count
        )
        rollup.total_claimed_tokens_till_now = checked_add(
            rollup.total_claimed_tokens_till_now, schedule.total_claimed_tokens_till_now
        )
        rollup.tokens_available_to_claim = checked_add(
            rollup.tokens_available_to_claim, schedule.tokens_available_to_claim
        )

    logger.debug(
        "Category rollup computed",
        extra={
            "event": "vesting.category_rollup",
            "category": category[:10],
            "members": rollup.member_count,
        },
    )
    return rollup
