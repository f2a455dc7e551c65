# src/ledgertest/genesis/builders.py
from __future__ import annotations

"""Validator, staking, balance and supply builders for genesis assembly.

All functions are pure with respect to their inputs: they return new lists
and never mutate what they are given.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ledgertest.crypto.keys import PrivValidator, pub_key_address_string
from ledgertest.genesis.params import SlashingCustomGenesisState
from ledgertest.ledger.address import AddressCodec, module_address
from ledgertest.ledger.coins import Balance, Coin, add_coins
from ledgertest.ledger.constants import BONDED_POOL_NAME, DEFAULT_PREFUND_UNITS
from ledgertest.ledger.decimals import conversion_factor, validate_decimals
from ledgertest.ledger.types import (
    UNIX_EPOCH,
    BondStatus,
    Commission,
    Delegation,
    GenesisAccount,
    SigningInfo,
    StakingValidator,
    ValidatorMissedBlocks,
    ValidatorSigningInfo,
)
from ledgertest.runtime.app import StakingKeeper
from ledgertest.runtime.block import Validator, ValidatorSet
from ledgertest.runtime.errors import abort_setup

log = logging.getLogger("ledgertest.genesis")

# Default commission schedule for genesis validators: 5% / 20% / 5%.
DEFAULT_COMMISSION_RATE = Decimal("0.05")
DEFAULT_COMMISSION_MAX_RATE = Decimal("0.20")
DEFAULT_COMMISSION_MAX_CHANGE_RATE = Decimal("0.05")


def create_validator_set(
    number_of_validators: int,
    *,
    label: Optional[str] = None,
) -> Tuple[ValidatorSet, Dict[str, PrivValidator]]:
    """Create a validator set with `number_of_validators` members of power 1.

    Returns the set and the signers keyed by validator address (upper hex).
    With `label`, keys are derived deterministically (`<label>:<i>`).
    """
    if int(number_of_validators) < 1:
        abort_setup(log, f"need at least one validator, got {number_of_validators}")

    validators: List[Validator] = []
    signers: Dict[str, PrivValidator] = {}
    for i in range(int(number_of_validators)):
        priv_val = PrivValidator.from_label(f"{label}:{i}") if label is not None else PrivValidator.generate()
        pub_key = priv_val.get_pub_key()
        validators.append(Validator(pub_key=pub_key, voting_power=1))
        signers[pub_key_address_string(pub_key)] = priv_val

    return ValidatorSet.of(validators), signers


def create_genesis_accounts(accounts: Sequence[bytes], codec: AddressCodec) -> List[GenesisAccount]:
    return [GenesisAccount(address=codec.bytes_to_string(acc)) for acc in accounts]


def get_acc_addrs_from_balances(balances: Sequence[Balance], codec: AddressCodec) -> List[bytes]:
    return [codec.string_to_bytes(b.address) for b in balances]


def get_initial_amount(decimals: int, units: int = DEFAULT_PREFUND_UNITS) -> int:
    """`units` scaled to a denom of the given precision."""
    d = validate_decimals(decimals)
    return int(units) * conversion_factor(d)


def build_balances(
    accounts: Sequence[bytes],
    denom_decimals: Mapping[str, int],
    codec: AddressCodec,
    *,
    units: int = DEFAULT_PREFUND_UNITS,
) -> List[Balance]:
    """One balance per account holding `units` of every denom.

    Each denom is scaled by its own conversion factor so every account holds
    the same nominal value in every denom. Coins come out sorted by denom.
    """
    coins = [Coin(denom=denom, amount=get_initial_amount(denom_decimals[denom], units)) for denom in sorted(denom_decimals)]
    return [Balance(address=codec.bytes_to_string(acc), coins=list(coins)) for acc in accounts]


def calculate_total_supply(balances: Sequence[Balance]) -> List[Coin]:
    total: List[Coin] = []
    for b in balances:
        total = add_coins(total, b.coins)
    return total


def reconcile_bonded_pool(
    balances: Sequence[Balance],
    bonded_amount: int,
    bond_denom: str,
    codec: AddressCodec,
) -> List[Balance]:
    """Append the bonded-pool module account holding `bonded_amount`.

    Total supply must be computed from the returned list, never before.
    """
    pool = Balance(
        address=codec.bytes_to_string(module_address(BONDED_POOL_NAME)),
        coins=[Coin(denom=bond_denom, amount=int(bonded_amount))],
    )
    return [*balances, pool]


def _default_commission() -> Commission:
    return Commission(
        rate=DEFAULT_COMMISSION_RATE,
        max_rate=DEFAULT_COMMISSION_MAX_RATE,
        max_change_rate=DEFAULT_COMMISSION_MAX_CHANGE_RATE,
    )


def create_staking_validator(val: Validator, bonded_amount: int, operator: bytes, codec: AddressCodec) -> StakingValidator:
    return StakingValidator(
        operator_address=codec.bytes_to_string(operator),
        consensus_pubkey=val.pub_key,
        jailed=False,
        status=BondStatus.BONDED,
        tokens=int(bonded_amount),
        delegator_shares=Decimal("1"),
        unbonding_height=0,
        unbonding_time=UNIX_EPOCH,
        commission=_default_commission(),
        min_self_delegation=0,
    )


def create_staking_validators(
    validators: Sequence[Validator],
    bonded_amount: int,
    operator_addresses: Sequence[bytes],
    codec: AddressCodec,
) -> List[StakingValidator]:
    """Staking records for the consensus validators.

    With no operator addresses each validator operates itself. Otherwise the
    two lists must line up one to one.
    """
    if not operator_addresses:
        return [create_staking_validator(val, bonded_amount, val.address, codec) for val in validators]

    if len(operator_addresses) != len(validators):
        abort_setup(
            log,
            f"provided {len(operator_addresses)} validator operator keys but need {len(validators)}!",
            operators=len(operator_addresses),
            validators=len(validators),
        )
    return [
        create_staking_validator(val, bonded_amount, op, codec)
        for val, op in zip(validators, operator_addresses)
    ]


def create_delegations(validators: Sequence[StakingValidator], delegator: bytes, codec: AddressCodec) -> List[Delegation]:
    delegator_address = codec.bytes_to_string(delegator)
    return [
        Delegation(delegator_address=delegator_address, validator_address=val.operator_address, shares=Decimal("1"))
        for val in validators
    ]


def get_validators_slashing_genesis(
    validators: Sequence[StakingValidator],
    staking_keeper: StakingKeeper,
) -> SlashingCustomGenesisState:
    """Signing info and missed blocks keyed by consensus address.

    Address codec failures propagate as AddressCodecError.
    """
    codec = staking_keeper.consensus_address_codec()
    out = SlashingCustomGenesisState()
    for val in validators:
        cons_addr = codec.bytes_to_string(val.cons_address())
        out.signing_info.append(
            SigningInfo(address=cons_addr, validator_signing_info=ValidatorSigningInfo(address=cons_addr))
        )
        out.missed_blocks.append(ValidatorMissedBlocks(address=cons_addr))
    return out
