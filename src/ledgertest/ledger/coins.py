from __future__ import annotations

import re
from typing import Dict, Iterable, List

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_DENOM_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9/:._-]{2,127}$")


class Coin(BaseModel):
    model_config = ConfigDict(frozen=True)

    denom: str
    amount: int

    @field_validator("denom")
    @classmethod
    def _check_denom(cls, v: str) -> str:
        if not _DENOM_RE.match(v):
            raise ValueError(f"invalid denom: {v!r}")
        return v

    @field_validator("amount")
    @classmethod
    def _check_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"negative coin amount: {v}")
        return v


def _check_sorted_unique(coins: List[Coin]) -> None:
    denoms = [c.denom for c in coins]
    if len(set(denoms)) != len(denoms):
        raise ValueError(f"duplicate denomination in {denoms}")
    if denoms != sorted(denoms):
        raise ValueError(f"coins are not sorted by denom: {denoms}")


def new_coins(*coins: Coin) -> List[Coin]:
    """Sanitized coin set: zero amounts dropped, sorted by denom, no duplicates."""
    out = sorted((c for c in coins if c.amount > 0), key=lambda c: c.denom)
    _check_sorted_unique(out)
    return out


def add_coins(a: Iterable[Coin], b: Iterable[Coin]) -> List[Coin]:
    sums: Dict[str, int] = {}
    for c in list(a) + list(b):
        sums[c.denom] = sums.get(c.denom, 0) + int(c.amount)
    return [Coin(denom=d, amount=sums[d]) for d in sorted(sums) if sums[d] > 0]


def amount_of(coins: Iterable[Coin], denom: str) -> int:
    for c in coins:
        if c.denom == denom:
            return int(c.amount)
    return 0


class Balance(BaseModel):
    address: str
    coins: List[Coin]

    @model_validator(mode="after")
    def _check_coins(self) -> "Balance":
        _check_sorted_unique(self.coins)
        return self
