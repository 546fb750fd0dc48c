from __future__ import annotations

import base64
import binascii

from pydantic import BaseModel, Field, conint, constr, model_validator

from vestledger.core.constants import (
    MAX_DECIMALS,
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    SYMBOL_PATTERN,
    UINT128_MAX,
)
from vestledger.core.ledger_exceptions import InvalidLogo
from vestledger.core.state import Logo

Uint128 = conint(ge=0, le=UINT128_MAX)
Timestamp = conint(ge=0, le=UINT128_MAX)


class Cw20Coin(BaseModel):
    address: constr(min_length=1)
    amount: Uint128


class MinterInput(BaseModel):
    minter: constr(min_length=1)
    cap: Uint128 | None = None


class LogoInput(BaseModel):
    url: constr(min_length=1) | None = None
    # base64 encoded image bytes
    svg: str | None = None
    png: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "LogoInput":
        provided = [v for v in (self.url, self.svg, self.png) if v is not None]
        if len(provided) != 1:
            raise ValueError("logo needs exactly one of url, svg or png")
        return self

    def to_logo(self) -> Logo:
        if self.url is not None:
            return Logo(url=self.url)
        try:
            if self.svg is not None:
                return Logo(svg=base64.b64decode(self.svg, validate=True))
            return Logo(png=base64.b64decode(self.png or "", validate=True))
        except (binascii.Error, ValueError) as exc:
            raise InvalidLogo(f"Embedded logo is not valid base64: {exc}") from exc


class MarketingInput(BaseModel):
    project: str | None = None
    description: str | None = None
    marketing: str | None = None
    logo: LogoInput | None = None


class VestingGrantInput(BaseModel):
    address: constr(min_length=1)
    vesting_start_timestamp: Timestamp
    total_vesting_token_count: Uint128
    initial_vesting_count: Uint128 = 0
    vesting_periodicity: Timestamp = 0
    vesting_count_per_period: Uint128 = 0
    cliff_period: conint(ge=0, le=10_000) = 0
    category_address: constr(min_length=1) | None = None


class InstantiateMsg(BaseModel):
    name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    symbol: str = Field(pattern=SYMBOL_PATTERN)
    decimals: conint(ge=0, le=MAX_DECIMALS)
    initial_balances: list[Cw20Coin] = Field(default_factory=list)
    mint: MinterInput | None = None
    marketing: MarketingInput | None = None
    vesting: list[VestingGrantInput] = Field(default_factory=list)
