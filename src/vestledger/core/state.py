"""
vestledger - Ledger State Layout

Records persisted by the ledger and typed accessors over the key-value store.

Persisted layout:
    token_info                          -> TokenInfo
    marketing_info                      -> MarketingInfo
    logo                                -> Logo
    balance:{address}                   -> amount (decimal string)
    allowance:{owner}:{spender}         -> AllowanceRecord
    vesting_details:{address}           -> VestingDetails
    vesting_category:{parent}:{member}  -> index marker for category rollups

Amounts are Uint128 values kept as Python ints in memory and as decimal
strings on disk.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

from vestledger.core.constants import (
    KEY_LOGO,
    KEY_MARKETING_INFO,
    KEY_SEPARATOR,
    KEY_TOKEN_INFO,
    NS_ALLOWANCE,
    NS_BALANCE,
    NS_VESTING_CATEGORY,
    NS_VESTING_DETAILS,
)
from vestledger.core.ledger_exceptions import CorruptedStateError, InvalidAddress
from vestledger.core.storage import KeyValueStore

T = TypeVar("T")


def encode_amount(amount: int) -> str:
    return str(amount)


def decode_amount(raw: Any) -> int:
    return int(raw)


def _optional_amount(raw: Any) -> Optional[int]:
    return None if raw is None else int(raw)


def normalize_address(address: str, field_name: str = "address") -> str:
    """Validate an address and return its canonical lower-case form."""
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddress(f"{field_name} cannot be empty")
    if address != address.strip() or any(ch.isspace() for ch in address):
        raise InvalidAddress(f"{field_name} contains whitespace: {address!r}")
    if KEY_SEPARATOR in address:
        raise InvalidAddress(
            f"{field_name} cannot contain {KEY_SEPARATOR!r}: {address!r}"
        )
    return address.lower()


# ==================== Token metadata ====================


@dataclass
class MinterData:
    minter: str
    # cap is the ceiling on total supply, None means unlimited
    cap: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minter": self.minter,
            "cap": None if self.cap is None else encode_amount(self.cap),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MinterData":
        return cls(minter=data["minter"], cap=_optional_amount(data.get("cap")))


@dataclass
class TokenInfo:
    name: str
    symbol: str
    decimals: int
    total_supply: int = 0
    mint: Optional[MinterData] = None

    def get_cap(self) -> Optional[int]:
        return self.mint.cap if self.mint else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": encode_amount(self.total_supply),
            "mint": self.mint.to_dict() if self.mint else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenInfo":
        mint = data.get("mint")
        return cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=int(data["decimals"]),
            total_supply=decode_amount(data.get("total_supply", "0")),
            mint=MinterData.from_dict(mint) if mint else None,
        )


# ==================== Allowances ====================


@dataclass(frozen=True)
class Expiration:
    """When an allowance stops being usable: never, at a block height, or at a time."""

    kind: str = "never"
    value: int = 0

    KINDS = ("never", "at_height", "at_time")

    def __post_init__(self) -> None:
        if self.kind not in self.KINDS:
            raise ValueError(f"Unknown expiration kind: {self.kind}")

    @classmethod
    def never(cls) -> "Expiration":
        return cls("never", 0)

    @classmethod
    def at_height(cls, height: int) -> "Expiration":
        return cls("at_height", int(height))

    @classmethod
    def at_time(cls, timestamp: int) -> "Expiration":
        return cls("at_time", int(timestamp))

    def is_expired(self, height: int, timestamp: int) -> bool:
        if self.kind == "at_height":
            return height >= self.value
        if self.kind == "at_time":
            return timestamp >= self.value
        return False

    def to_dict(self) -> Dict[str, Any]:
        if self.kind == "never":
            return {"never": {}}
        return {self.kind: self.value}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Expiration":
        if not data or "never" in data:
            return cls.never()
        for kind in cls.KINDS[1:]:
            if kind in data:
                return cls(kind, int(data[kind]))
        raise ValueError(f"Unknown expiration: {data}")

    def __str__(self) -> str:
        if self.kind == "never":
            return "expiration: never"
        return f"expiration: {self.kind.replace('_', ' ')} {self.value}"


@dataclass
class AllowanceRecord:
    allowance: int
    expires: Expiration = field(default_factory=Expiration.never)

    def to_dict(self) -> Dict[str, Any]:
        return {"allowance": encode_amount(self.allowance), "expires": self.expires.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AllowanceRecord":
        return cls(
            allowance=decode_amount(data["allowance"]),
            expires=Expiration.from_dict(data.get("expires")),
        )


# ==================== Vesting ====================


@dataclass
class VestingDetails:
    """Vesting schedule of one holder. Never deleted, even when fully claimed."""

    # Instant the schedule begins
    vesting_start_timestamp: int = 0
    # Seed amount unlocked once the cliff has passed
    initial_vesting_count: int = 0
    # Portion of the seed already released
    initial_vesting_consumed: int = 0
    # Length of one release period in seconds; 0 disables periodic release
    vesting_periodicity: int = 0
    vesting_count_per_period: int = 0
    # Seed plus periodic tokens
    total_vesting_token_count: int = 0
    total_claimed_tokens_till_now: int = 0
    last_claimed_timestamp: Optional[int] = None
    tokens_available_to_claim: int = 0
    last_vesting_timestamp: Optional[int] = None
    # Months (fixed 30-day units) before anything may be claimed
    cliff_period: int = 0
    # Parent category; None for top-level categories
    category_address: Optional[str] = None

    _AMOUNT_FIELDS = (
        "initial_vesting_count",
        "initial_vesting_consumed",
        "vesting_count_per_period",
        "total_vesting_token_count",
        "total_claimed_tokens_till_now",
        "tokens_available_to_claim",
    )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self._AMOUNT_FIELDS:
                value = encode_amount(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VestingDetails":
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if f.name in cls._AMOUNT_FIELDS:
                value = decode_amount(value)
            elif f.name in ("vesting_start_timestamp", "vesting_periodicity", "cliff_period"):
                value = int(value)
            elif f.name in ("last_claimed_timestamp", "last_vesting_timestamp"):
                value = None if value is None else int(value)
            kwargs[f.name] = value
        return cls(**kwargs)

    @property
    def unclaimed(self) -> int:
        """Tokens still held by the schedule (available or not yet vested)."""
        return self.total_vesting_token_count - self.total_claimed_tokens_till_now


# ==================== Marketing ====================


@dataclass
class Logo:
    """Either a URL or an embedded svg/png image."""

    url: Optional[str] = None
    svg: Optional[bytes] = None
    png: Optional[bytes] = None

    @property
    def is_embedded(self) -> bool:
        return self.url is None

    def to_dict(self) -> Dict[str, Any]:
        if self.url is not None:
            return {"url": self.url}
        if self.svg is not None:
            return {"embedded": {"svg": base64.b64encode(self.svg).decode("ascii")}}
        return {"embedded": {"png": base64.b64encode(self.png or b"").decode("ascii")}}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Logo":
        if "url" in data:
            return cls(url=data["url"])
        embedded = data["embedded"]
        if "svg" in embedded:
            return cls(svg=base64.b64decode(embedded["svg"]))
        return cls(png=base64.b64decode(embedded["png"]))


@dataclass
class MarketingInfo:
    project: Optional[str] = None
    description: Optional[str] = None
    marketing: Optional[str] = None
    # "url:<link>" or "embedded"; None when no logo was uploaded
    logo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project": self.project,
            "description": self.description,
            "marketing": self.marketing,
            "logo": self.logo,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketingInfo":
        return cls(
            project=data.get("project"),
            description=data.get("description"),
            marketing=data.get("marketing"),
            logo=data.get("logo"),
        )


# ==================== Store accessors ====================


class Item(Generic[T]):
    """Single value stored under a fixed key."""

    def __init__(
        self,
        key: str,
        decode: Callable[[Any], T],
        encode: Callable[[T], Any],
    ) -> None:
        self.key = key
        self._decode = decode
        self._encode = encode

    def may_load(self, store: KeyValueStore) -> Optional[T]:
        raw = store.get(self.key)
        if raw is None:
            return None
        return _decode(self._decode, raw, self.key)

    def load(self, store: KeyValueStore) -> T:
        value = self.may_load(store)
        if value is None:
            raise CorruptedStateError(f"Missing required state: {self.key}")
        return value

    def save(self, store: KeyValueStore, value: T) -> None:
        store.set(self.key, self._encode(value))

    def remove(self, store: KeyValueStore) -> None:
        store.delete(self.key)


class Map(Generic[T]):
    """Values stored under ``namespace:part[:part...]`` keys."""

    def __init__(
        self,
        namespace: str,
        decode: Callable[[Any], T],
        encode: Callable[[T], Any],
    ) -> None:
        self.namespace = namespace
        self._decode = decode
        self._encode = encode

    def key(self, *parts: str) -> str:
        return KEY_SEPARATOR.join((self.namespace,) + parts)

    def may_load(self, store: KeyValueStore, *parts: str) -> Optional[T]:
        key = self.key(*parts)
        raw = store.get(key)
        if raw is None:
            return None
        return _decode(self._decode, raw, key)

    def has(self, store: KeyValueStore, *parts: str) -> bool:
        return store.has(self.key(*parts))

    def save(self, store: KeyValueStore, value: T, *parts: str) -> None:
        store.set(self.key(*parts), self._encode(value))

    def remove(self, store: KeyValueStore, *parts: str) -> None:
        store.delete(self.key(*parts))

    def range(self, store: KeyValueStore, *prefix: str) -> Iterator[Tuple[str, T]]:
        """Yield (remaining key suffix, value) under the given key prefix."""
        start = self.key(*prefix) + KEY_SEPARATOR
        for key, raw in store.scan(start):
            yield key[len(start):], _decode(self._decode, raw, key)


def _decode(decode: Callable[[Any], T], raw: Any, key: str) -> T:
    try:
        return decode(raw)
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptedStateError(
            f"Cannot decode state at {key}: {exc}", details={"key": key}
        ) from exc


def _identity(value: Any) -> Any:
    return value


TOKEN_INFO: Item[TokenInfo] = Item(KEY_TOKEN_INFO, TokenInfo.from_dict, TokenInfo.to_dict)
MARKETING_INFO: Item[MarketingInfo] = Item(
    KEY_MARKETING_INFO, MarketingInfo.from_dict, MarketingInfo.to_dict
)
LOGO: Item[Logo] = Item(KEY_LOGO, Logo.from_dict, Logo.to_dict)
BALANCES: Map[int] = Map(NS_BALANCE, decode_amount, encode_amount)
ALLOWANCES: Map[AllowanceRecord] = Map(
    NS_ALLOWANCE, AllowanceRecord.from_dict, AllowanceRecord.to_dict
)
VESTING_DETAILS: Map[VestingDetails] = Map(
    NS_VESTING_DETAILS, VestingDetails.from_dict, VestingDetails.to_dict
)
VESTING_CATEGORY_INDEX: Map[Any] = Map(NS_VESTING_CATEGORY, _identity, _identity)
