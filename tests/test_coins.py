from __future__ import annotations

import pytest
from pydantic import ValidationError

from ledgertest.ledger.coins import Balance, Coin, add_coins, amount_of, new_coins


def _c(denom: str, amount: int) -> Coin:
    return Coin(denom=denom, amount=amount)


def test_coin_validation() -> None:
    assert _c("aatom", 0).amount == 0
    with pytest.raises(ValidationError):
        _c("aatom", -1)
    with pytest.raises(ValidationError):
        _c("1atom", 1)
    with pytest.raises(ValidationError):
        _c("ab", 1)


def test_new_coins_sorts_and_drops_zero() -> None:
    coins = new_coins(_c("uosmo", 5), _c("aatom", 0), _c("abcd", 3))
    assert [(c.denom, c.amount) for c in coins] == [("abcd", 3), ("uosmo", 5)]


def test_new_coins_rejects_duplicates() -> None:
    with pytest.raises(ValueError):
        new_coins(_c("aatom", 1), _c("aatom", 2))


def test_add_coins_sums_per_denom() -> None:
    out = add_coins([_c("aatom", 1), _c("uosmo", 2)], [_c("aatom", 10), _c("abcd", 4)])
    assert [(c.denom, c.amount) for c in out] == [("aatom", 11), ("abcd", 4), ("uosmo", 2)]
    assert add_coins([], []) == []


def test_amount_of() -> None:
    coins = [_c("aatom", 3)]
    assert amount_of(coins, "aatom") == 3
    assert amount_of(coins, "uosmo") == 0


def test_balance_requires_sorted_unique_coins() -> None:
    Balance(address="x", coins=[_c("aatom", 1), _c("uosmo", 1)])
    with pytest.raises(ValidationError):
        Balance(address="x", coins=[_c("uosmo", 1), _c("aatom", 1)])
    with pytest.raises(ValidationError):
        Balance(address="x", coins=[_c("aatom", 1), _c("aatom", 2)])
