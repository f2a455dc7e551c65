from __future__ import annotations

"""Decimal precision of the native fee denom.

Only two precisions are supported: 6 and 18. Amounts are compared against the
canonical 18-decimal representation through `conversion_factor`.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from ledgertest.ledger.constants import EXAMPLE_ATTO_DENOM, EXAMPLE_DISPLAY_DENOM
from ledgertest.runtime.errors import UnsupportedDecimals


class Decimals(IntEnum):
    SIX = 6
    EIGHTEEN = 18


def validate_decimals(d: Any) -> Decimals:
    """Return `d` as a Decimals member or raise UnsupportedDecimals."""
    if isinstance(d, bool) or not isinstance(d, int):
        raise UnsupportedDecimals(d)
    try:
        return Decimals(int(d))
    except ValueError:
        raise UnsupportedDecimals(d) from None


def conversion_factor(d: int) -> int:
    """Conversion factor between `d` and the 18-decimal representation.

    NOTE: does not validate `d`; anything other than 6 yields 1. Callers
    validate decimals once, when the configuration is built.
    """
    if d == Decimals.SIX:
        return 10**12
    return 1


@dataclass(frozen=True)
class EvmCoinInfo:
    """Denom used to pay EVM fees and its precision."""

    denom: str = EXAMPLE_ATTO_DENOM
    display_denom: str = EXAMPLE_DISPLAY_DENOM
    decimals: int = Decimals.EIGHTEEN

    def validate(self) -> None:
        if not self.denom.strip():
            raise ValueError("denom must be a non-empty string")
        if not self.display_denom.strip():
            raise ValueError("display_denom must be a non-empty string")
        validate_decimals(self.decimals)

    def conversion_factor(self) -> int:
        return conversion_factor(self.decimals)
