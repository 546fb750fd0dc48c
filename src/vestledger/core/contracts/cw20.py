"""
CW20 Token Ledger with Vesting.

This module provides the accounting core of a CW20 fungible token:
- Balances, transfers and burning
- Allowances with expiration (approve, increase/decrease, transfer_from, burn_from)
- Capped minting by a single minter
- Per-holder vesting schedules with cliff, seed unlock and periodic release
- Category rollups over vesting schedules

Every execute call runs inside one store transaction: either all of its
writes commit or none do. Vesting grants are pre-minted: a grant adds its full
allocation to total supply (and is checked against the cap) when created, and
a claim only moves tokens from the schedule into the holder's balance. Hence:

    total_supply == sum(balances) + sum(unclaimed vesting allocations)

Security features:
- Checked Uint128 arithmetic (no silent wraparound)
- Address validation on every entry point
- Minter and marketing authorization
- Allowance expiration
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from vestledger.core import vesting
from vestledger.core.categories import (
    CategoryRollup,
    add_member,
    category_rollup,
    resolve_category,
)
from vestledger.core.constants import UINT128_MAX
from vestledger.core.contracts import marketing
from vestledger.core.contracts.context import Env, Response
from vestledger.core.input_validation_schemas import (
    Cw20Coin,
    InstantiateMsg,
    VestingGrantInput,
)
from vestledger.core.ledger_exceptions import (
    AllowanceExpired,
    AlreadyInstantiated,
    ArithmeticOverflow,
    CannotSetOwnAccount,
    CapExceeded,
    DuplicateInitialBalanceAddresses,
    InsufficientAllowance,
    InsufficientFunds,
    InvalidAmount,
    InvalidExpiration,
    ScheduleAlreadyExists,
    ScheduleNotFound,
    Unauthorized,
)
from vestledger.core.safe_math import checked_add, checked_sub, require_uint128
from vestledger.core.state import (
    ALLOWANCES,
    BALANCES,
    LOGO,
    MARKETING_INFO,
    TOKEN_INFO,
    VESTING_DETAILS,
    AllowanceRecord,
    Expiration,
    Logo,
    MarketingInfo,
    MinterData,
    TokenInfo,
    VestingDetails,
    normalize_address,
)
from vestledger.core.storage import KeyValueStore, atomic

logger = logging.getLogger(__name__)


# ==================== Ledger primitives ====================


def _require_amount(amount: int, positive: bool = True) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or (positive and amount == 0):
        raise InvalidAmount(f"Invalid amount: {amount}", details={"amount": str(amount)})
    if amount > UINT128_MAX:
        raise ArithmeticOverflow(f"Amount exceeds Uint128: {amount}")
    return amount


def balance_of(store: KeyValueStore, address: str) -> int:
    return BALANCES.may_load(store, address) or 0


def credit(store: KeyValueStore, address: str, amount: int) -> int:
    """
    Add amount to an address balance.

    Returns:
        The new balance

    Raises:
        ArithmeticOverflow: If the balance would exceed Uint128
    """
    new_balance = checked_add(balance_of(store, address), amount)
    if new_balance:
        BALANCES.save(store, new_balance, address)
    return new_balance


def debit(store: KeyValueStore, address: str, amount: int) -> int:
    """
    Remove amount from an address balance. Zero balances are deleted.

    Returns:
        The new balance

    Raises:
        InsufficientFunds: If amount exceeds the balance
    """
    balance = balance_of(store, address)
    if balance < amount:
        raise InsufficientFunds(
            f"Insufficient funds: balance {balance}, required {amount}",
            details={"address": address, "balance": str(balance), "required": str(amount)},
        )
    new_balance = balance - amount
    if new_balance:
        BALANCES.save(store, new_balance, address)
    else:
        BALANCES.remove(store, address)
    return new_balance


def _short(address: Optional[str]) -> str:
    return (address or "")[:10]


class Cw20Ledger:
    """
    CW20 ledger bound to a key-value store.

    The ledger keeps no state of its own: every call reads the store, and
    execute calls write back through an atomic transaction. Caller identity
    and block time come in through Env.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ==================== Instantiation ====================

    def instantiate(self, env: Env, msg: InstantiateMsg) -> Response:
        """
        Create the token: metadata, initial balances, minter, marketing, vesting grants.

        Args:
            env: Host context (sender is the deployer)
            msg: Validated instantiate message

        Returns:
            Response with the resulting total supply

        Raises:
            AlreadyInstantiated: If the store already holds a token
            DuplicateInitialBalanceAddresses: If an address is listed twice
            CapExceeded: If initial balances plus grants exceed the cap
        """
        with atomic(self.store) as txn:
            if TOKEN_INFO.may_load(txn) is not None:
                raise AlreadyInstantiated("Token already instantiated")

            total_supply = self._create_accounts(txn, msg.initial_balances)

            mint = None
            if msg.mint is not None:
                mint = MinterData(
                    minter=normalize_address(msg.mint.minter, "minter"), cap=msg.mint.cap
                )

            # Parents must exist before their members are granted
            grants = sorted(msg.vesting, key=lambda g: g.category_address is not None)
            for grant in grants:
                schedule = self._store_grant(txn, grant)
                total_supply = checked_add(total_supply, schedule.total_vesting_token_count)

            info = TokenInfo(
                name=msg.name,
                symbol=msg.symbol,
                decimals=msg.decimals,
                total_supply=total_supply,
                mint=mint,
            )
            cap = info.get_cap()
            if cap is not None and total_supply > cap:
                raise CapExceeded(
                    f"Initial supply greater than cap ({total_supply} > {cap})",
                    details={"total_supply": str(total_supply), "cap": str(cap)},
                )
            TOKEN_INFO.save(txn, info)
            marketing.instantiate_marketing(txn, msg.marketing)

        logger.info(
            "CW20 token instantiated",
            extra={
                "event": "cw20.instantiate",
                "token": msg.symbol,
                "total_supply": str(total_supply),
                "vesting_grants": len(msg.vesting),
                "creator": _short(env.sender),
            },
        )
        return Response(
            "instantiate",
            {"name": msg.name, "symbol": msg.symbol, "total_supply": str(total_supply)},
        )

    def _create_accounts(self, store: KeyValueStore, accounts: Iterable[Cw20Coin]) -> int:
        seen = set()
        total = 0
        for row in accounts:
            address = normalize_address(row.address)
            if address in seen:
                raise DuplicateInitialBalanceAddresses(
                    f"Duplicate initial balance address: {address}",
                    details={"address": address},
                )
            seen.add(address)
            if row.amount:
                credit(store, address, row.amount)
            total = checked_add(total, row.amount)
        return total

    # ==================== Transfers ====================

    def transfer(self, env: Env, recipient: str, amount: int) -> Response:
        """
        Move tokens from the caller to recipient.

        Raises:
            InvalidAmount: If amount is zero
            InsufficientFunds: If amount exceeds the caller's balance
        """
        _require_amount(amount)
        sender = normalize_address(env.sender, "sender")
        rcpt = normalize_address(recipient, "recipient")

        with atomic(self.store) as txn:
            debit(txn, sender, amount)
            credit(txn, rcpt, amount)

        logger.debug(
            "CW20 transfer",
            extra={
                "event": "cw20.transfer",
                "from": _short(sender),
                "to": _short(rcpt),
                "amount": str(amount),
            },
        )
        return Response("transfer", {"from": sender, "to": rcpt, "amount": str(amount)})

    def burn(self, env: Env, amount: int) -> Response:
        """Destroy tokens from the caller's balance, lowering total supply."""
        _require_amount(amount)
        sender = normalize_address(env.sender, "sender")

        with atomic(self.store) as txn:
            debit(txn, sender, amount)
            info = TOKEN_INFO.load(txn)
            info.total_supply = checked_sub(info.total_supply, amount)
            TOKEN_INFO.save(txn, info)

        logger.info(
            "CW20 burn",
            extra={
                "event": "cw20.burn",
                "from": _short(sender),
                "amount": str(amount),
                "new_supply": str(info.total_supply),
            },
        )
        return Response("burn", {"from": sender, "amount": str(amount)})

    # ==================== Allowances ====================

    def _allowance_parties(self, env: Env, spender: str) -> Tuple[str, str]:
        owner = normalize_address(env.sender, "owner")
        spender_norm = normalize_address(spender, "spender")
        if owner == spender_norm:
            raise CannotSetOwnAccount("Cannot set allowance to own account")
        return owner, spender_norm

    def _check_expiration(self, env: Env, expires: Optional[Expiration]) -> None:
        if expires is not None and expires.is_expired(env.height, env.time):
            raise InvalidExpiration(f"Invalid expiration value: {expires}")

    def approve(
        self,
        env: Env,
        spender: str,
        amount: int,
        expires: Optional[Expiration] = None,
    ) -> Response:
        """
        Set the allowance of spender over the caller's tokens.

        Approving zero removes the allowance.

        Raises:
            CannotSetOwnAccount: If spender is the caller
            InvalidExpiration: If expires is already in the past
        """
        _require_amount(amount, positive=False)
        owner, spender_norm = self._allowance_parties(env, spender)
        self._check_expiration(env, expires)

        with atomic(self.store) as txn:
            if amount == 0:
                ALLOWANCES.remove(txn, owner, spender_norm)
            else:
                ALLOWANCES.save(
                    txn,
                    AllowanceRecord(amount, expires or Expiration.never()),
                    owner,
                    spender_norm,
                )

        return Response(
            "approve", {"owner": owner, "spender": spender_norm, "amount": str(amount)}
        )

    def increase_allowance(
        self,
        env: Env,
        spender: str,
        amount: int,
        expires: Optional[Expiration] = None,
    ) -> Response:
        """Add to an allowance, optionally replacing its expiration."""
        _require_amount(amount, positive=False)
        owner, spender_norm = self._allowance_parties(env, spender)
        self._check_expiration(env, expires)

        with atomic(self.store) as txn:
            record = ALLOWANCES.may_load(txn, owner, spender_norm) or AllowanceRecord(0)
            record.allowance = checked_add(record.allowance, amount)
            if expires is not None:
                record.expires = expires
            if record.allowance:
                ALLOWANCES.save(txn, record, owner, spender_norm)

        return Response(
            "increase_allowance",
            {"owner": owner, "spender": spender_norm, "amount": str(amount)},
        )

    def decrease_allowance(
        self,
        env: Env,
        spender: str,
        amount: int,
        expires: Optional[Expiration] = None,
    ) -> Response:
        """Subtract from an allowance; reaching zero removes it."""
        _require_amount(amount, positive=False)
        owner, spender_norm = self._allowance_parties(env, spender)
        self._check_expiration(env, expires)

        with atomic(self.store) as txn:
            record = ALLOWANCES.may_load(txn, owner, spender_norm)
            if record is not None:
                record.allowance = record.allowance - amount if record.allowance > amount else 0
                if expires is not None:
                    record.expires = expires
                if record.allowance:
                    ALLOWANCES.save(txn, record, owner, spender_norm)
                else:
                    ALLOWANCES.remove(txn, owner, spender_norm)

        return Response(
            "decrease_allowance",
            {"owner": owner, "spender": spender_norm, "amount": str(amount)},
        )

    def _deduct_allowance(
        self, store: KeyValueStore, owner: str, spender: str, env: Env, amount: int
    ) -> int:
        record = ALLOWANCES.may_load(store, owner, spender)
        if record is None:
            raise InsufficientAllowance(
                f"No allowance for this account (required {amount})",
                details={"owner": owner, "spender": spender},
            )
        if record.expires.is_expired(env.height, env.time):
            raise AllowanceExpired(
                f"Allowance is expired ({record.expires})",
                details={"owner": owner, "spender": spender},
            )
        if record.allowance < amount:
            raise InsufficientAllowance(
                f"Insufficient allowance ({record.allowance} < {amount})",
                details={
                    "owner": owner,
                    "spender": spender,
                    "allowance": str(record.allowance),
                    "required": str(amount),
                },
            )
        remaining = record.allowance - amount
        if remaining:
            record.allowance = remaining
            ALLOWANCES.save(store, record, owner, spender)
        else:
            ALLOWANCES.remove(store, owner, spender)
        return remaining

    def transfer_from(self, env: Env, owner: str, recipient: str, amount: int) -> Response:
        """
        Move tokens from owner to recipient using the caller's allowance.

        Raises:
            InsufficientAllowance: If amount exceeds the remaining allowance
            AllowanceExpired: If the allowance has expired
            InsufficientFunds: If amount exceeds the owner's balance
        """
        _require_amount(amount)
        spender = normalize_address(env.sender, "spender")
        owner_norm = normalize_address(owner, "owner")
        rcpt = normalize_address(recipient, "recipient")

        with atomic(self.store) as txn:
            self._deduct_allowance(txn, owner_norm, spender, env, amount)
            debit(txn, owner_norm, amount)
            credit(txn, rcpt, amount)

        logger.debug(
            "CW20 transfer_from",
            extra={
                "event": "cw20.transfer_from",
                "from": _short(owner_norm),
                "to": _short(rcpt),
                "by": _short(spender),
                "amount": str(amount),
            },
        )
        return Response(
            "transfer_from",
            {"from": owner_norm, "to": rcpt, "by": spender, "amount": str(amount)},
        )

    def burn_from(self, env: Env, owner: str, amount: int) -> Response:
        """Burn tokens from owner using the caller's allowance."""
        _require_amount(amount)
        spender = normalize_address(env.sender, "spender")
        owner_norm = normalize_address(owner, "owner")

        with atomic(self.store) as txn:
            self._deduct_allowance(txn, owner_norm, spender, env, amount)
            debit(txn, owner_norm, amount)
            info = TOKEN_INFO.load(txn)
            info.total_supply = checked_sub(info.total_supply, amount)
            TOKEN_INFO.save(txn, info)

        logger.info(
            "CW20 burn_from",
            extra={
                "event": "cw20.burn_from",
                "from": _short(owner_norm),
                "by": _short(spender),
                "amount": str(amount),
            },
        )
        return Response(
            "burn_from", {"from": owner_norm, "by": spender, "amount": str(amount)}
        )

    # ==================== Minting ====================

    def _require_minter(self, info: TokenInfo, sender: str) -> MinterData:
        if info.mint is None or normalize_address(sender, "sender") != info.mint.minter:
            raise Unauthorized("Caller is not the minter", details={"sender": sender})
        return info.mint

    def _add_supply(self, info: TokenInfo, amount: int) -> None:
        new_supply = checked_add(info.total_supply, amount)
        cap = info.get_cap()
        if cap is not None and new_supply > cap:
            raise CapExceeded(
                f"Minting cannot exceed the cap ({new_supply} > {cap})",
                details={"total_supply": str(info.total_supply), "cap": str(cap)},
            )
        info.total_supply = new_supply

    def mint(self, env: Env, recipient: str, amount: int) -> Response:
        """
        Create new tokens for recipient (minter only).

        Raises:
            Unauthorized: If the caller is not the minter
            CapExceeded: If total supply would exceed the cap
        """
        _require_amount(amount)
        rcpt = normalize_address(recipient, "recipient")

        with atomic(self.store) as txn:
            info = TOKEN_INFO.load(txn)
            self._require_minter(info, env.sender)
            self._add_supply(info, amount)
            TOKEN_INFO.save(txn, info)
            credit(txn, rcpt, amount)

        logger.info(
            "CW20 mint",
            extra={
                "event": "cw20.mint",
                "token": info.symbol,
                "to": _short(rcpt),
                "amount": str(amount),
                "new_supply": str(info.total_supply),
            },
        )
        return Response("mint", {"to": rcpt, "amount": str(amount)})

    def update_minter(self, env: Env, new_minter: Optional[str]) -> Response:
        """Hand minting rights to another address, or drop them with None. Cap is kept."""
        with atomic(self.store) as txn:
            info = TOKEN_INFO.load(txn)
            current = self._require_minter(info, env.sender)
            if new_minter is None:
                info.mint = None
            else:
                info.mint = MinterData(
                    minter=normalize_address(new_minter, "new_minter"), cap=current.cap
                )
            TOKEN_INFO.save(txn, info)

        logger.info(
            "CW20 minter updated",
            extra={"event": "cw20.update_minter", "new_minter": _short(new_minter)},
        )
        return Response("update_minter", {"new_minter": new_minter or "None"})

    # ==================== Vesting ====================

    def _store_grant(self, store: KeyValueStore, grant: VestingGrantInput) -> VestingDetails:
        address = normalize_address(grant.address)
        if VESTING_DETAILS.has(store, address):
            raise ScheduleAlreadyExists(
                f"Vesting schedule already exists for {address}",
                details={"address": address},
            )
        category = resolve_category(store, address, grant.category_address)
        schedule = vesting.new_schedule(
            vesting_start_timestamp=grant.vesting_start_timestamp,
            total_vesting_token_count=grant.total_vesting_token_count,
            initial_vesting_count=grant.initial_vesting_count,
            vesting_periodicity=grant.vesting_periodicity,
            vesting_count_per_period=grant.vesting_count_per_period,
            cliff_period=grant.cliff_period,
            category_address=category,
        )
        VESTING_DETAILS.save(store, schedule, address)
        if category is not None:
            add_member(store, category, address)
        return schedule

    def grant_vesting(self, env: Env, grant: VestingGrantInput) -> Response:
        """
        Allocate a vesting schedule to a holder (minter only).

        The whole allocation is minted into the schedule now and counts
        toward total supply and the cap.

        Raises:
            Unauthorized: If the caller is not the minter
            ScheduleAlreadyExists: If the holder already has a schedule
            InvalidCategory: If the parent category is unusable
            CapExceeded: If the allocation would exceed the cap
        """
        with atomic(self.store) as txn:
            info = TOKEN_INFO.load(txn)
            self._require_minter(info, env.sender)
            schedule = self._store_grant(txn, grant)
            self._add_supply(info, schedule.total_vesting_token_count)
            TOKEN_INFO.save(txn, info)

        address = normalize_address(grant.address)
        logger.info(
            "Vesting schedule granted",
            extra={
                "event": "cw20.grant_vesting",
                "holder": _short(address),
                "amount": str(schedule.total_vesting_token_count),
                "category": _short(schedule.category_address),
            },
        )
        return Response(
            "grant_vesting",
            {"address": address, "amount": str(schedule.total_vesting_token_count)},
        )

    def claim_vested(self, env: Env) -> Response:
        """
        Claim everything vested for the caller and credit it to their balance.

        Raises:
            ScheduleNotFound: If the caller has no vesting schedule
            CliffNotReached: If the cliff has not elapsed
            NothingToClaim: If nothing new has vested
        """
        holder = normalize_address(env.sender, "sender")

        with atomic(self.store) as txn:
            schedule = VESTING_DETAILS.may_load(txn, holder)
            if schedule is None:
                raise ScheduleNotFound(
                    f"No vesting schedule for {holder}", details={"address": holder}
                )
            amount, updated = vesting.claim(schedule, env.time)
            VESTING_DETAILS.save(txn, updated, holder)
            credit(txn, holder, amount)

        logger.info(
            "Vested tokens claimed",
            extra={
                "event": "cw20.claim_vested",
                "holder": _short(holder),
                "amount": str(amount),
                "claimed_total": str(updated.total_claimed_tokens_till_now),
            },
        )
        return Response("claim_vested", {"address": holder, "amount": str(amount)})

    # ==================== Marketing ====================

    def update_marketing(
        self,
        env: Env,
        project: Optional[str] = None,
        description: Optional[str] = None,
        marketing_address: Optional[str] = None,
    ) -> Response:
        with atomic(self.store) as txn:
            return marketing.update_marketing(txn, env, project, description, marketing_address)

    def upload_logo(self, env: Env, logo: Logo) -> Response:
        with atomic(self.store) as txn:
            return marketing.upload_logo(txn, env, logo)

    # ==================== Queries ====================

    def query_balance(self, address: str) -> int:
        return balance_of(self.store, normalize_address(address))

    def query_token_info(self) -> TokenInfo:
        return TOKEN_INFO.load(self.store)

    def query_minter(self) -> Optional[MinterData]:
        return self.query_token_info().mint

    def query_allowance(self, owner: str, spender: str) -> AllowanceRecord:
        record = ALLOWANCES.may_load(
            self.store, normalize_address(owner, "owner"), normalize_address(spender, "spender")
        )
        return record or AllowanceRecord(0)

    def query_all_allowances(self, owner: str) -> List[Tuple[str, AllowanceRecord]]:
        return list(ALLOWANCES.range(self.store, normalize_address(owner, "owner")))

    def query_all_accounts(self) -> List[str]:
        return [address for address, _ in BALANCES.range(self.store)]

    def query_vesting(self, address: str) -> VestingDetails:
        holder = normalize_address(address)
        schedule = VESTING_DETAILS.may_load(self.store, holder)
        if schedule is None:
            raise ScheduleNotFound(
                f"No vesting schedule for {holder}", details={"address": holder}
            )
        return schedule

    def query_claimable(self, address: str, now: int) -> int:
        """Amount a claim at ``now`` would transfer. Nothing is persisted."""
        schedule = self.query_vesting(address)
        _, projected = vesting.accrue(schedule, now)
        return projected.tokens_available_to_claim

    def query_category_rollup(self, category_address: str) -> CategoryRollup:
        return category_rollup(self.store, category_address)

    def query_marketing_info(self) -> MarketingInfo:
        return MARKETING_INFO.may_load(self.store) or MarketingInfo()

    def query_logo(self) -> Optional[Logo]:
        return LOGO.may_load(self.store)

    def check_supply_invariant(self) -> Dict[str, Any]:
        """
        Recompute total supply from balances and unclaimed vesting allocations.

        Returns:
            Dict with the recorded supply, both components and a ``consistent`` flag
        """
        info = self.query_token_info()
        balances = sum(amount for _, amount in BALANCES.range(self.store))
        unclaimed = sum(schedule.unclaimed for _, schedule in VESTING_DETAILS.range(self.store))
        consistent = info.total_supply == balances + unclaimed
        if not consistent:
            logger.error(
                "Supply invariant violated",
                extra={
                    "event": "cw20.supply_mismatch",
                    "total_supply": str(info.total_supply),
                    "balances": str(balances),
                    "unclaimed_vesting": str(unclaimed),
                },
            )
        return {
            "total_supply": info.total_supply,
            "balances": balances,
            "unclaimed_vesting": unclaimed,
            "consistent": consistent,
        }
