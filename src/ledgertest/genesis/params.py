from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.types import Delegation, GenesisAccount, SigningInfo, StakingValidator, ValidatorMissedBlocks


@dataclass
class StakingCustomGenesisState:
    denom: str
    validators: List[StakingValidator] = field(default_factory=list)
    delegations: List[Delegation] = field(default_factory=list)


@dataclass
class SlashingCustomGenesisState:
    """Signing info and missed-blocks records for every genesis validator."""

    signing_info: List[SigningInfo] = field(default_factory=list)
    missed_blocks: List[ValidatorMissedBlocks] = field(default_factory=list)


@dataclass
class BankCustomGenesisState:
    total_supply: List[Coin] = field(default_factory=list)
    balances: List[Balance] = field(default_factory=list)


@dataclass
class GovCustomGenesisState:
    denom: str


@dataclass
class FeeMarketCustomGenesisState:
    base_fee: Decimal


@dataclass
class MintCustomGenesisState:
    denom: str
    inflation_min: Decimal = Decimal("0")
    inflation_max: Decimal = Decimal("0")


@dataclass
class DefaultGenesisParams:
    """Everything the default setters need to build a consistent genesis."""

    gen_accounts: List[GenesisAccount]
    staking: StakingCustomGenesisState
    slashing: SlashingCustomGenesisState
    bank: BankCustomGenesisState
    gov: GovCustomGenesisState
    mint: MintCustomGenesisState
    feemarket: FeeMarketCustomGenesisState
